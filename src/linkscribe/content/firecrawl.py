"""When to spend a Firecrawl call, how to make it, and the default client."""

import json
import logging
from dataclasses import dataclass

import httpx

from linkscribe.content.blocking import looks_blocked
from linkscribe.content.diagnostics import CacheMode, FirecrawlDiagnostics, initial_cache_status
from linkscribe.content.html import extract_article_content, extract_plain_text
from linkscribe.content.platforms import is_youtube_url
from linkscribe.deps import FirecrawlPayload, LinkResolverDeps, ProgressKind
from linkscribe.utils.errors import LinkscribeError, NetworkError
from linkscribe.utils.http import REQUEST_ERRORS, describe_error, send_request
from linkscribe.utils.retry import NonRetryableError, RetryableError
from linkscribe.utils.text import normalize_for_prompt

logger = logging.getLogger(__name__)

MIN_HTML_CONTENT_CHARACTERS = 200
MIN_HTML_DOCUMENT_CHARACTERS_FOR_FALLBACK = 5000

DEFAULT_FIRECRAWL_BASE_URL = "https://api.firecrawl.dev"


def should_fallback(html: str) -> bool:
    """Decide whether fetched HTML is too blocked or thin to use.

    Small, complete pages (example.com) stay on the HTML path; only large
    documents with little extractable text, such as app shells, are sent to
    Firecrawl.
    """
    plain_text = normalize_for_prompt(extract_plain_text(html))
    if looks_blocked(plain_text):
        return True
    article = normalize_for_prompt(extract_article_content(html))
    if len(article) >= MIN_HTML_CONTENT_CHARACTERS:
        return False
    return len(html) >= MIN_HTML_DOCUMENT_CHARACTERS_FOR_FALLBACK


@dataclass
class FirecrawlAttempt:
    payload: FirecrawlPayload | None
    diagnostics: FirecrawlDiagnostics


async def fetch_with_firecrawl(
    deps: LinkResolverDeps,
    url: str,
    *,
    timeout: float,
    cache_mode: CacheMode = "default",
    reason: str | None = None,
) -> FirecrawlAttempt:
    """Run one Firecrawl scrape, recording what happened in fresh diagnostics.

    Never raises for Firecrawl failures; they end up as notes.
    """
    diagnostics = FirecrawlDiagnostics(
        cache_mode=cache_mode, cache_status=initial_cache_status(cache_mode)
    )

    if is_youtube_url(url):
        diagnostics.add_note("firecrawl", "Skipped Firecrawl for YouTube URL", "skipped")
        return FirecrawlAttempt(payload=None, diagnostics=diagnostics)

    client = deps.firecrawl
    if client is None:
        diagnostics.add_note("firecrawl", "Firecrawl is not configured", "skipped")
        return FirecrawlAttempt(payload=None, diagnostics=diagnostics)

    diagnostics.attempted = True
    deps.emit(ProgressKind.FIRECRAWL_START, url, reason=reason or "firecrawl")

    try:
        payload = await client.scrape(url, timeout=timeout, cache_mode=cache_mode)
    except (LinkscribeError, RetryableError, NonRetryableError, ValueError) as e:
        logger.warning(f"Firecrawl failed for {url}: {e}")
        diagnostics.add_note("firecrawl", f"Firecrawl error: {describe_error(e)}", "error")
        deps.emit(ProgressKind.FIRECRAWL_DONE, url, ok=False)
        return FirecrawlAttempt(payload=None, diagnostics=diagnostics)

    if payload is None:
        diagnostics.add_note("firecrawl", "Firecrawl returned no content payload", "soft_fail")
        deps.emit(ProgressKind.FIRECRAWL_DONE, url, ok=False)
        return FirecrawlAttempt(payload=None, diagnostics=diagnostics)

    deps.emit(
        ProgressKind.FIRECRAWL_DONE,
        url,
        ok=True,
        markdown_bytes=len(payload.markdown.encode()) if payload.markdown else None,
        html_bytes=len(payload.html.encode()) if payload.html else None,
    )
    return FirecrawlAttempt(payload=payload, diagnostics=diagnostics)


class FirecrawlScraper:
    """Firecrawl ``/v1/scrape`` client over a shared httpx client."""

    def __init__(
        self,
        http: httpx.AsyncClient,
        api_key: str,
        base_url: str = DEFAULT_FIRECRAWL_BASE_URL,
    ):
        self.http = http
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    async def scrape(
        self, url: str, *, timeout: float, cache_mode: CacheMode = "default"
    ) -> FirecrawlPayload | None:
        """Scrape ``url``; None when Firecrawl returns no markdown.

        Raises:
            NetworkError: If the request fails or Firecrawl reports an error
        """
        body = {
            "url": url,
            "formats": ["markdown", "html"],
            "onlyMainContent": True,
            "proxy": "auto",
            "maxAge": 0,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            response = await send_request(
                self.http,
                "POST",
                f"{self.base_url}/v1/scrape",
                timeout=timeout,
                headers=headers,
                json_body=body,
            )
        except REQUEST_ERRORS as e:
            status_code = getattr(e, "status_code", None)
            if status_code is not None:
                raise NetworkError(f"Firecrawl request failed ({status_code})") from e
            raise NetworkError(f"Firecrawl request failed: {describe_error(e)}") from e

        try:
            data = json.loads(response.text)
        except ValueError as e:
            raise NetworkError("Firecrawl returned invalid JSON") from e

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise NetworkError(error or "Firecrawl response was not successful")

        payload = data.get("data") or {}
        markdown = payload.get("markdown")
        if not isinstance(markdown, str) or not markdown.strip():
            return None

        html = payload.get("html")
        metadata = payload.get("metadata")
        return FirecrawlPayload(
            markdown=markdown,
            html=html if isinstance(html, str) else None,
            metadata=metadata if isinstance(metadata, dict) else None,
        )
