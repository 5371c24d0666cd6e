"""Configuration manager for loading and saving linkscribe config."""

import logging
from pathlib import Path

import yaml
from platformdirs import user_config_dir
from pydantic import ValidationError

from linkscribe.config.schema import ResolverConfig
from linkscribe.utils.api_keys import APIKeyError, read_optional_api_key
from linkscribe.utils.errors import InvalidConfigError

logger = logging.getLogger(__name__)

# (environment variable, provider, dotted config attribute)
ENV_KEYS = (
    ("GROQ_API_KEY", "groq", "transcription.groq_api_key"),
    ("OPENAI_API_KEY", "openai", "transcription.openai_api_key"),
    ("FAL_KEY", "fal", "transcription.fal_api_key"),
    ("APIFY_API_TOKEN", "apify", "services.apify_api_token"),
    ("FIRECRAWL_API_KEY", "firecrawl", "services.firecrawl_api_key"),
)


class ConfigManager:
    """Manages the linkscribe configuration file."""

    def __init__(self, config_dir: Path | None = None) -> None:
        """Initialize the config manager.

        Args:
            config_dir: Optional custom config directory. Defaults to XDG config dir.
        """
        self.config_dir = config_dir or Path(user_config_dir("linkscribe", "linkscribe"))
        self.config_file = self.config_dir / "config.yaml"

    def load_config(self, apply_env: bool = True) -> ResolverConfig:
        """Load and validate configuration.

        Missing files yield the defaults. Keys already present in the file win
        over environment variables.

        Args:
            apply_env: Overlay API keys from the environment

        Returns:
            Validated ResolverConfig instance

        Raises:
            InvalidConfigError: If the file or an environment key is invalid
        """
        data: dict = {}
        if self.config_file.exists():
            try:
                with open(self.config_file) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise InvalidConfigError(
                    f"Invalid configuration in {self.config_file}: {e}"
                ) from e

        try:
            config = ResolverConfig(**data)
        except ValidationError as e:
            raise InvalidConfigError(
                f"Invalid configuration in {self.config_file}: {e}"
            ) from e

        if apply_env:
            self._apply_environment(config)
        return config

    def save_config(self, config: ResolverConfig) -> None:
        """Save configuration, omitting secrets.

        Args:
            config: ResolverConfig instance to save
        """
        data = config.model_dump(
            mode="json",
            exclude={
                "transcription": {"groq_api_key", "openai_api_key", "fal_api_key"},
                "services": {"apify_api_token", "firecrawl_api_key"},
            },
        )
        self.config_dir.mkdir(parents=True, exist_ok=True)

        with open(self.config_file, "w") as f:
            yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)

    def _apply_environment(self, config: ResolverConfig) -> None:
        for env_var, provider, attribute in ENV_KEYS:
            section_name, field_name = attribute.split(".")
            section = getattr(config, section_name)
            if getattr(section, field_name):
                continue
            try:
                value = read_optional_api_key(env_var, provider)  # type: ignore[arg-type]
            except APIKeyError as e:
                raise InvalidConfigError(str(e)) from e
            if value:
                logger.debug(f"Using {env_var} from environment")
                setattr(section, field_name, value)
