"""Tests for the Firecrawl fallback policy and client."""

import json

import httpx
import pytest

from linkscribe.content.firecrawl import FirecrawlScraper, fetch_with_firecrawl, should_fallback
from linkscribe.deps import FirecrawlPayload, ProgressKind
from linkscribe.utils.errors import NetworkError

ARTICLE = "<p>" + "This sentence is part of a long readable article. " * 10 + "</p>"


class FakeFirecrawl:
    def __init__(self, payload: FirecrawlPayload | None = None, error: Exception | None = None):
        self.payload = payload
        self.error = error
        self.calls: list[str] = []

    async def scrape(self, url, *, timeout, cache_mode):
        self.calls.append(url)
        if self.error:
            raise self.error
        return self.payload


class TestShouldFallback:
    """Test the blocked/thin HTML heuristic."""

    def test_blocked_page(self):
        """Test challenge pages fall back."""
        html = "<html><head><title>Attention Required! | Cloudflare</title></head><body></body></html>"
        assert should_fallback(html) is True

    def test_small_complete_page(self):
        """Test small pages stay on the HTML path."""
        html = "<html><body><h1>Example Domain</h1><p>This domain is for use in examples.</p></body></html>"
        assert should_fallback(html) is False

    def test_large_app_shell(self):
        """Test large documents with little text fall back."""
        html = f"<html><body><div id='root'></div><script>{'x' * 6000}</script></body></html>"
        assert should_fallback(html) is True

    def test_long_article(self):
        """Test readable articles never fall back."""
        html = f"<html><body>{ARTICLE}<script>{'x' * 6000}</script></body></html>"
        assert should_fallback(html) is False


class TestFetchWithFirecrawl:
    """Test fetch_with_firecrawl."""

    @pytest.mark.asyncio
    async def test_skips_youtube(self, make_deps):
        """Test YouTube URLs never reach Firecrawl."""
        client = FakeFirecrawl(FirecrawlPayload(markdown="x"))
        deps = make_deps(firecrawl=client)

        attempt = await fetch_with_firecrawl(deps, "https://youtu.be/dQw4w9WgXcQ", timeout=5)

        assert attempt.payload is None
        assert attempt.diagnostics.attempted is False
        assert attempt.diagnostics.notes_text == "Skipped Firecrawl for YouTube URL"
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_not_configured(self, make_deps):
        """Test a missing client is recorded."""
        attempt = await fetch_with_firecrawl(make_deps(), "https://example.com", timeout=5)

        assert attempt.payload is None
        assert attempt.diagnostics.notes_text == "Firecrawl is not configured"

    @pytest.mark.asyncio
    async def test_error_becomes_note(self, make_deps, progress_events):
        """Test client errors are recorded, not raised."""
        deps = make_deps(firecrawl=FakeFirecrawl(error=NetworkError("quota exceeded")))

        attempt = await fetch_with_firecrawl(deps, "https://example.com", timeout=5)

        assert attempt.payload is None
        assert attempt.diagnostics.attempted is True
        assert "Firecrawl error: quota exceeded" in attempt.diagnostics.notes_text
        assert [e.kind for e in progress_events] == [
            ProgressKind.FIRECRAWL_START,
            ProgressKind.FIRECRAWL_DONE,
        ]
        assert progress_events[-1].data["ok"] is False

    @pytest.mark.asyncio
    async def test_no_payload(self, make_deps):
        """Test an empty scrape is a soft failure."""
        attempt = await fetch_with_firecrawl(
            make_deps(firecrawl=FakeFirecrawl(None)), "https://example.com", timeout=5
        )

        assert attempt.diagnostics.notes_text == "Firecrawl returned no content payload"

    @pytest.mark.asyncio
    async def test_success(self, make_deps, progress_events):
        """Test a payload is returned and its size reported."""
        payload = FirecrawlPayload(markdown="# Title\n\nBody")
        deps = make_deps(firecrawl=FakeFirecrawl(payload))

        attempt = await fetch_with_firecrawl(
            deps, "https://example.com", timeout=5, cache_mode="bypass"
        )

        assert attempt.payload is payload
        assert attempt.diagnostics.cache_status == "bypassed"
        assert progress_events[-1].data["ok"] is True
        assert progress_events[-1].data["markdown_bytes"] == len("# Title\n\nBody")


class TestFirecrawlScraper:
    """Test the HTTP client."""

    @pytest.mark.asyncio
    async def test_scrape(self):
        """Test the request shape and payload parsing."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "success": True,
                    "data": {"markdown": "Body", "html": "<p>Body</p>", "metadata": {"title": "T"}},
                },
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            payload = await FirecrawlScraper(http, "fc-key").scrape("https://example.com", timeout=5)

        assert payload == FirecrawlPayload(
            markdown="Body", html="<p>Body</p>", metadata={"title": "T"}
        )
        assert str(seen[0].url) == "https://api.firecrawl.dev/v1/scrape"
        assert seen[0].headers["Authorization"] == "Bearer fc-key"
        assert json.loads(seen[0].content)["url"] == "https://example.com"

    @pytest.mark.asyncio
    async def test_empty_markdown(self):
        """Test blank markdown yields None."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": True, "data": {"markdown": "  "}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            assert await FirecrawlScraper(http, "fc-key").scrape("https://example.com", timeout=5) is None

    @pytest.mark.asyncio
    async def test_unsuccessful(self):
        """Test success=false raises with the reported error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"success": False, "error": "blocked by robots"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(NetworkError, match="blocked by robots"):
                await FirecrawlScraper(http, "fc-key").scrape("https://example.com", timeout=5)

    @pytest.mark.asyncio
    async def test_http_error(self):
        """Test HTTP failures are reported with their status."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(402)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            with pytest.raises(NetworkError, match="402"):
                await FirecrawlScraper(http, "fc-key").scrape("https://example.com", timeout=5)
