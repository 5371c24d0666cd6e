"""Custom exceptions for linkscribe."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from linkscribe.content.diagnostics import ContentFetchDiagnostics


class LinkscribeError(Exception):
    """Base exception for all linkscribe errors."""

    pass


class ConfigError(LinkscribeError):
    """Configuration-related errors."""

    pass


class InvalidConfigError(ConfigError):
    """Invalid configuration data."""

    pass


class NetworkError(LinkscribeError):
    """Timeout or transport failure while talking to a remote service."""

    pass


class FetchError(NetworkError):
    """Every content strategy for a URL was exhausted.

    Carries whatever diagnostics were accumulated before the failure so
    callers can see which path was taken.
    """

    def __init__(
        self,
        message: str,
        diagnostics: "ContentFetchDiagnostics | None" = None,
    ):
        super().__init__(message)
        self.diagnostics = diagnostics


class BlockedContentError(LinkscribeError):
    """Anti-bot page, captcha or login wall detected."""

    pass


class ContentEmptyError(LinkscribeError):
    """Extraction produced nothing usable."""

    pass


class MissingCredentialsError(LinkscribeError):
    """An explicitly requested strategy lacks its key or downloader."""

    pass


class ProviderExhaustedError(LinkscribeError):
    """Every step of a provider cascade was tried and failed."""

    pass


class CacheError(LinkscribeError):
    """Raised when cache operations fail."""

    pass
