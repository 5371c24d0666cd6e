"""API key validation utilities.

Validates keys for the transcription and scraping services picked up from the
environment, catching common configuration mistakes early.
"""

import os
import re
from typing import Literal

Provider = Literal["groq", "openai", "fal", "apify", "firecrawl"]

# Known key prefixes; providers without a stable format are only length-checked
_KEY_PATTERNS: dict[str, tuple[str, str]] = {
    "groq": (r"^gsk_[A-Za-z0-9]+$", "gsk_"),
    "openai": (r"^sk-[A-Za-z0-9_-]+$", "sk-"),
    "firecrawl": (r"^fc-[A-Za-z0-9]+$", "fc-"),
}


class APIKeyError(ValueError):
    """Raised when API key is invalid or missing."""

    pass


def validate_api_key(key: str | None, provider: Provider, key_name: str) -> str:
    """Validate API key format and return cleaned key.

    Args:
        key: The API key to validate (may be None)
        provider: The API provider name
        key_name: Environment variable name (for error messages)

    Returns:
        Validated and stripped API key

    Raises:
        APIKeyError: If key is missing, empty, or malformed

    Example:
        >>> key = validate_api_key(os.environ.get("GROQ_API_KEY"), "groq", "GROQ_API_KEY")
    """
    if key is None or not key.strip():
        raise APIKeyError(
            f"{provider.title()} API key is required.\n"
            f"Set the {key_name} environment variable.\n"
            f"Example: export {key_name}='your-api-key-here'"
        )

    stripped = key.strip()
    if (stripped.startswith('"') and stripped.endswith('"')) or (
        stripped.startswith("'") and stripped.endswith("'")
    ):
        raise APIKeyError(
            f"{provider.title()} API key should not be quoted.\n"
            f"Remove quotes from {key_name} environment variable."
        )

    # Check for invalid characters BEFORE stripping
    if any(char in key for char in ["\n", "\r", "\0", "\t"]):
        raise APIKeyError(
            f"{provider.title()} API key contains invalid characters.\n"
            f"API keys should not contain newlines or control characters.\n"
            f"Check your {key_name} environment variable."
        )

    key = stripped

    if len(key) < 20:
        raise APIKeyError(
            f"{provider.title()} API key appears invalid (too short).\n"
            f"Expected at least 20 characters, got {len(key)}.\n"
            f"Check your {key_name} environment variable."
        )

    if provider in _KEY_PATTERNS:
        pattern, prefix = _KEY_PATTERNS[provider]
        if not re.match(pattern, key):
            raise APIKeyError(
                f"{provider.title()} API key format appears invalid.\n"
                f"{provider.title()} keys typically start with '{prefix}'.\n"
                f"Check your {key_name} environment variable."
            )

    return key


def read_optional_api_key(env_var: str, provider: Provider) -> str | None:
    """Read an optional key from the environment.

    Unset or blank variables yield None; anything else must validate.

    Raises:
        APIKeyError: If the variable is set but malformed
    """
    key = os.environ.get(env_var)
    if key is None or not key.strip():
        return None
    return validate_api_key(key, provider, env_var)
