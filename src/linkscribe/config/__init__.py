"""Configuration models and loading."""

from linkscribe.config.manager import ConfigManager
from linkscribe.config.schema import (
    CacheConfig,
    ResolverConfig,
    ServicesConfig,
    TranscriptionConfig,
)

__all__ = [
    "ConfigManager",
    "CacheConfig",
    "ResolverConfig",
    "ServicesConfig",
    "TranscriptionConfig",
]
