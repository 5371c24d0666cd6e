"""Direct HTML document fetch."""

import logging

import httpx

from linkscribe.deps import LinkResolverDeps, ProgressKind
from linkscribe.utils.errors import ContentEmptyError, NetworkError
from linkscribe.utils.http import BROWSER_HEADERS, REQUEST_ERRORS, describe_error, send_request
from linkscribe.utils.retry import TimeoutError as RequestTimeoutError

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = (
    "text/html",
    "application/xhtml+xml",
    "application/xml",
    "text/xml",
    "application/rss+xml",
    "application/atom+xml",
)


def is_allowed_content_type(content_type: str | None) -> bool:
    """Markup and plain text are accepted; a missing header is given the benefit of the doubt."""
    if not content_type:
        return True
    media_type = content_type.split(";")[0].strip().lower()
    return media_type in ALLOWED_CONTENT_TYPES or media_type.startswith("text/")


async def fetch_html_document(deps: LinkResolverDeps, url: str, *, timeout: float) -> str:
    """Fetch ``url`` with browser-like headers and return the decoded body.

    Raises:
        NetworkError: On timeout, transport failure or a non-2xx status
        ContentEmptyError: If the response is not an HTML/XML/text document
    """
    deps.emit(ProgressKind.FETCH_HTML_START, url)
    try:
        response: httpx.Response = await send_request(
            deps.http, "GET", url, timeout=timeout, headers=BROWSER_HEADERS
        )
    except RequestTimeoutError as e:
        deps.emit(ProgressKind.FETCH_HTML_DONE, url, ok=False)
        if e.status_code is None:
            raise NetworkError("Fetching HTML document timed out") from e
        raise NetworkError(f"Failed to fetch HTML document (status {e.status_code})") from e
    except REQUEST_ERRORS as e:
        deps.emit(ProgressKind.FETCH_HTML_DONE, url, ok=False)
        status_code = getattr(e, "status_code", None)
        if status_code is not None:
            raise NetworkError(f"Failed to fetch HTML document (status {status_code})") from e
        raise NetworkError(f"Failed to fetch HTML document: {describe_error(e)}") from e

    content_type = response.headers.get("content-type")
    if not is_allowed_content_type(content_type):
        deps.emit(ProgressKind.FETCH_HTML_DONE, url, ok=False, content_type=content_type)
        raise ContentEmptyError(f"Unsupported content type for HTML document: {content_type}")

    html = response.text
    logger.debug(f"Fetched {len(html)} characters of HTML from {url}")
    deps.emit(
        ProgressKind.FETCH_HTML_DONE,
        url,
        ok=True,
        status=response.status_code,
        characters=len(html),
    )
    return html
