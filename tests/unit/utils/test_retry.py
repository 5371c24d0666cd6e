"""Tests for retry and error handling utilities."""

from unittest.mock import AsyncMock

import httpx
import pytest

from linkscribe.utils.http import get_json, send_request
from linkscribe.utils.retry import (
    AuthenticationError,
    ConnectionError,
    InvalidRequestError,
    NonRetryableError,
    RateLimitError,
    RetryConfig,
    ServerError,
    TimeoutError,
    classify_http_error,
    classify_transport_error,
    with_retry,
)


class TestClassifyHttpError:
    """Test HTTP error classification."""

    def test_rate_limit_429(self):
        """Test 429 classified as rate limit."""
        error = classify_http_error(429, "Too many requests")
        assert isinstance(error, RateLimitError)
        assert error.status_code == 429
        assert "Rate limit exceeded" in str(error)

    def test_server_error_5xx(self):
        """Test 5xx classified as server error."""
        for status in (500, 502, 503):
            error = classify_http_error(status)
            assert isinstance(error, ServerError)
            assert error.status_code == status

    def test_request_timeout_408(self):
        """Test 408 classified as timeout."""
        assert isinstance(classify_http_error(408), TimeoutError)

    def test_auth_errors(self):
        """Test 401/403 are not retried."""
        assert isinstance(classify_http_error(401), AuthenticationError)
        assert isinstance(classify_http_error(403), AuthenticationError)

    def test_client_error_4xx(self):
        """Test other 4xx map to invalid request."""
        error = classify_http_error(404, "https://example.com/missing")
        assert isinstance(error, InvalidRequestError)
        assert isinstance(error, NonRetryableError)
        assert "https://example.com/missing" in str(error)


class TestClassifyTransportError:
    """Test httpx transport error classification."""

    def test_timeout(self):
        """Test httpx timeouts become retryable timeouts."""
        error = classify_transport_error(httpx.ReadTimeout("read timed out"))
        assert isinstance(error, TimeoutError)

    def test_connect_error(self):
        """Test connection failures become retryable connection errors."""
        error = classify_transport_error(httpx.ConnectError("refused"))
        assert isinstance(error, ConnectionError)


class TestWithRetry:
    """Test the retry decorator."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        """Test function succeeding immediately is called once."""
        func = AsyncMock(return_value="ok")

        @with_retry()
        async def call():
            return await func()

        assert await call() == "ok"
        assert func.call_count == 1

    @pytest.mark.asyncio
    async def test_retries_retryable_error(self):
        """Test a retryable error is retried until success."""
        func = AsyncMock(side_effect=[ServerError("boom"), "ok"])

        @with_retry()
        async def call():
            return await func()

        assert await call() == "ok"
        assert func.call_count == 2

    @pytest.mark.asyncio
    async def test_gives_up_after_max_attempts(self):
        """Test the last retryable error is re-raised."""
        func = AsyncMock(side_effect=RateLimitError("slow down"))

        @with_retry(config=RetryConfig(max_attempts=3, max_wait_seconds=0.01, min_wait_seconds=0.001, jitter=False))
        async def call():
            return await func()

        with pytest.raises(RateLimitError):
            await call()
        assert func.call_count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_not_retried(self):
        """Test non-retryable errors propagate immediately."""
        func = AsyncMock(side_effect=AuthenticationError("bad key"))

        @with_retry()
        async def call():
            return await func()

        with pytest.raises(AuthenticationError):
            await call()
        assert func.call_count == 1


class TestSendRequest:
    """Test the shared HTTP request helper."""

    @pytest.mark.asyncio
    async def test_retries_server_error_then_succeeds(self):
        """Test one 503 is retried and the next 200 returned."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            if len(calls) == 1:
                return httpx.Response(503)
            return httpx.Response(200, json={"ok": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            data = await get_json(client, "https://api.example.com/thing", timeout=5)

        assert data == {"ok": True}
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_not_found_is_not_retried(self):
        """Test a 404 raises a non-retryable error after one request."""
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(404)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(InvalidRequestError) as exc_info:
                await send_request(client, "GET", "https://example.com/missing", timeout=5)

        assert exc_info.value.status_code == 404
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_transport_error_classified(self):
        """Test transport failures surface as connection errors."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(ConnectionError):
                await send_request(client, "GET", "https://example.com", timeout=5)
