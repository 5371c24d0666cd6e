"""Thin httpx helpers shared by the fetcher and the transcript providers."""

import json
import logging
from typing import Any

import httpx

from linkscribe.utils.retry import (
    NonRetryableError,
    RetryableError,
    classify_http_error,
    classify_transport_error,
    with_retry,
)

logger = logging.getLogger(__name__)

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/122.0 Safari/537.36"
)

BROWSER_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# Anything a single request can raise once retries are exhausted
REQUEST_ERRORS: tuple[type[Exception], ...] = (RetryableError, NonRetryableError)


@with_retry()
async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
    json_body: Any = None,
    content: bytes | str | None = None,
) -> httpx.Response:
    """Issue one HTTP request, raising classified errors for failures.

    Transient failures (timeouts, connection resets, 429 and 5xx) are retried
    with backoff. Every other status >= 400 raises a non-retryable error.

    Args:
        client: Shared async client
        method: HTTP method
        url: Target URL
        timeout: Timeout in seconds for this request
        headers: Optional request headers
        params: Optional query parameters
        json_body: Optional JSON body
        content: Optional raw body

    Returns:
        Successful response
    """
    try:
        response = await client.request(
            method,
            url,
            headers=headers,
            params=params,
            json=json_body,
            content=content,
            timeout=timeout,
            follow_redirects=True,
        )
    except httpx.HTTPError as e:
        raise classify_transport_error(e) from e

    if response.status_code >= 400:
        raise classify_http_error(response.status_code, url)
    return response


async def get_text(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
) -> str:
    """GET a URL and return the decoded body."""
    response = await send_request(
        client, "GET", url, timeout=timeout, headers=headers, params=params
    )
    return response.text


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
    params: dict[str, Any] | None = None,
) -> Any:
    """GET a URL and parse the body as JSON.

    Raises:
        ValueError: If the body is not valid JSON
    """
    response = await send_request(
        client, "GET", url, timeout=timeout, headers=headers, params=params
    )
    return json.loads(response.text)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    body: Any,
    *,
    timeout: float,
    headers: dict[str, str] | None = None,
) -> Any:
    """POST a JSON body and parse the JSON response."""
    response = await send_request(
        client, "POST", url, timeout=timeout, headers=headers, json_body=body
    )
    return json.loads(response.text)


def describe_error(error: BaseException) -> str:
    """Short human-readable description used in diagnostic notes."""
    message = str(error).strip()
    return message or type(error).__name__
