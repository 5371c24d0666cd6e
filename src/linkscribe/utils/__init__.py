"""Utility functions and helpers for linkscribe."""

from linkscribe.utils.errors import (
    BlockedContentError,
    CacheError,
    ConfigError,
    ContentEmptyError,
    FetchError,
    InvalidConfigError,
    LinkscribeError,
    MissingCredentialsError,
    NetworkError,
    ProviderExhaustedError,
)

__all__ = [
    "LinkscribeError",
    "ConfigError",
    "InvalidConfigError",
    "NetworkError",
    "FetchError",
    "BlockedContentError",
    "ContentEmptyError",
    "MissingCredentialsError",
    "ProviderExhaustedError",
    "CacheError",
]
