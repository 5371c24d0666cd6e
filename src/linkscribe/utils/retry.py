"""Retry utilities for single outbound requests.

Implements exponential backoff with jitter for transient failures. Retries
wrap exactly one external call; they never span a whole cascade.
"""

import logging
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


# Error classification: Which errors should trigger retries?

class RetryableError(Exception):
    """Base class for errors that should trigger retries."""

    def __init__(self, message: str = "", status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(RetryableError):
    """Remote rate limit exceeded."""

    pass


class TimeoutError(RetryableError):
    """Request timeout."""

    pass


class ConnectionError(RetryableError):
    """Network connection error."""

    pass


class ServerError(RetryableError):
    """Server-side error (5xx)."""

    pass


class NonRetryableError(Exception):
    """Base class for errors that should NOT trigger retries."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(NonRetryableError):
    """Invalid API key or authentication failed."""

    pass


class InvalidRequestError(NonRetryableError):
    """Invalid request parameters (4xx)."""

    pass


# Retry configuration

class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        max_wait_seconds: float = 10,
        min_wait_seconds: float = 0.5,
        jitter: bool = True,
    ):
        """Initialize retry configuration.

        Args:
            max_attempts: Maximum number of attempts (including initial)
            max_wait_seconds: Maximum wait time between retries
            min_wait_seconds: Minimum wait time between retries
            jitter: Whether to add jitter to wait times
        """
        self.max_attempts = max_attempts
        self.max_wait_seconds = max_wait_seconds
        self.min_wait_seconds = min_wait_seconds
        self.jitter = jitter


DEFAULT_RETRY_CONFIG = RetryConfig(
    max_attempts=3,
    max_wait_seconds=10,
    min_wait_seconds=0.5,
    jitter=True,
)

# Fast configuration for testing (minimal delays)
TEST_RETRY_CONFIG = RetryConfig(
    max_attempts=2,
    max_wait_seconds=0.02,
    min_wait_seconds=0.01,
    jitter=False,
)

RETRYABLE_ERRORS: tuple[type[Exception], ...] = (
    RateLimitError,
    TimeoutError,
    ConnectionError,
    ServerError,
)


def log_retry_attempt(retry_state: RetryCallState) -> None:
    """Log retry attempts for debugging.

    Args:
        retry_state: Tenacity retry state
    """
    if retry_state.outcome and retry_state.outcome.failed:
        exception = retry_state.outcome.exception()
        attempt_number = retry_state.attempt_number

        logger.warning(
            f"Retry attempt {attempt_number} failed: {type(exception).__name__}: {exception}"
        )


def with_retry(
    config: RetryConfig | None = None,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator adding retry with exponential backoff to a coroutine function.

    The configuration is resolved when the wrapped function is called, so
    swapping ``DEFAULT_RETRY_CONFIG`` (as the test suite does) takes effect
    for functions decorated at import time.

    Usage:
        @with_retry()
        async def fetch_page(client, url):
            ...

        @with_retry(retry_on=(ConnectionError, TimeoutError))
        async def network_call():
            ...

    Args:
        config: Retry configuration (uses DEFAULT_RETRY_CONFIG if None)
        retry_on: Exception types to retry on (all RetryableError subclasses if None)

    Returns:
        Decorated coroutine function with retry logic
    """
    retry_types = retry_on or RETRYABLE_ERRORS

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            effective = config or DEFAULT_RETRY_CONFIG
            retrying = AsyncRetrying(
                stop=stop_after_attempt(effective.max_attempts),
                wait=wait_exponential_jitter(
                    initial=effective.min_wait_seconds,
                    max=effective.max_wait_seconds,
                    jitter=effective.max_wait_seconds if effective.jitter else 0,
                ),
                retry=retry_if_exception_type(retry_types),
                before_sleep=log_retry_attempt,
                reraise=True,
            )
            try:
                return await retrying(func, *args, **kwargs)
            except retry_types as e:
                logger.warning(
                    f"{func.__name__} failed after {effective.max_attempts} attempts: "
                    f"{type(e).__name__}: {e}"
                )
                raise

        return wrapper

    return decorator


# Error classification helpers

def classify_http_error(status_code: int, error_message: str = "") -> Exception:
    """Classify HTTP error into retryable or non-retryable.

    Args:
        status_code: HTTP status code
        error_message: Error message or URL for context

    Returns:
        Appropriate exception instance
    """
    if status_code == 429:
        return RateLimitError(f"Rate limit exceeded: {error_message}", status_code=status_code)

    if 500 <= status_code < 600:
        return ServerError(
            f"Server error (HTTP {status_code}): {error_message}", status_code=status_code
        )

    if status_code == 408:
        return TimeoutError(f"Request timeout: {error_message}", status_code=status_code)

    if status_code in (401, 403):
        return AuthenticationError(
            f"Authentication failed (HTTP {status_code}): {error_message}",
            status_code=status_code,
        )

    if 400 <= status_code < 500:
        return InvalidRequestError(
            f"Invalid request (HTTP {status_code}): {error_message}",
            status_code=status_code,
        )

    return NonRetryableError(f"HTTP error {status_code}: {error_message}", status_code=status_code)


def classify_transport_error(exception: httpx.HTTPError) -> Exception:
    """Map an httpx transport exception onto the retry taxonomy.

    Args:
        exception: Exception raised by httpx before a response arrived

    Returns:
        Classified exception
    """
    if isinstance(exception, httpx.TimeoutException):
        return TimeoutError(str(exception) or "Request timed out")
    if isinstance(exception, httpx.TransportError):
        return ConnectionError(str(exception) or type(exception).__name__)
    return NonRetryableError(str(exception))
