"""Tests for LinkContentResolver strategy selection."""

import asyncio

import httpx
import pytest

from linkscribe.content.models import ResolveOptions
from linkscribe.content.platforms import to_nitter_urls
from linkscribe.content.resolver import LinkContentResolver
from linkscribe.deps import BirdTweet, FirecrawlPayload, ProgressKind
from linkscribe.transcription.models import TranscriptResolution
from linkscribe.utils.errors import (
    BlockedContentError,
    ContentEmptyError,
    FetchError,
    MissingCredentialsError,
    NetworkError,
    ProviderExhaustedError,
)

PARAGRAPH = "Resolvers pick the cheapest strategy that still yields readable text."
ARTICLE_HTML = f"""<html>
<head>
  <title>Example Post</title>
  <meta property="og:site_name" content="Example">
</head>
<body><h1>Example Post</h1><p>{PARAGRAPH}</p></body>
</html>"""
CHALLENGE_HTML = (
    "<html><head><title>Attention Required! | Cloudflare</title></head>"
    "<body><p>Checking your browser</p></body></html>"
)
TWEET_URL = "https://x.com/someone/status/1234567890"
TWEET_TEXT = "Shipping a new release of the link resolver today with Nitter support."
BLOCKED_TWEET_HTML = "<html><body><p>Something went wrong. Try again.</p></body></html>"
LONG_ARTICLE_HTML = (
    "<html><head><title>Long Read</title></head><body><h1>Long Read</h1>"
    + "".join(f"<p>{PARAGRAPH} Part {n}.</p>" for n in range(1, 5))
    + "</body></html>"
)


class FakeFirecrawl:
    def __init__(self, payload: FirecrawlPayload | None):
        self.payload = payload
        self.calls: list[str] = []

    async def scrape(self, url, *, timeout, cache_mode):
        self.calls.append(url)
        return self.payload


class RecordingDispatcher:
    """Stands in for TranscriptDispatcher, returning one fixed resolution."""

    def __init__(self, resolution: TranscriptResolution | None = None):
        self.resolution = resolution or TranscriptResolution()
        self.calls: list[tuple[str, str | None]] = []

    async def resolve(self, url, html, options):
        self.calls.append((url, html))
        return self.resolution


class FakeBird:
    def __init__(self, tweet: BirdTweet | None = None, error: Exception | None = None):
        self.tweet = tweet
        self.error = error

    async def read_tweet(self, url, *, timeout):
        if self.error:
            raise self.error
        return self.tweet


FIRECRAWL_PAYLOAD = FirecrawlPayload(
    markdown="# Rendered\n\nArticle text rendered by Firecrawl.",
    metadata={"title": "Rendered", "siteName": "Example"},
)


class TestHtmlStrategy:
    """Test the direct HTML path."""

    @pytest.mark.asyncio
    async def test_plain_page(self, make_deps, progress_events):
        """Test an ordinary page resolves from its HTML."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, html=ARTICLE_HTML)

        resolver = LinkContentResolver(make_deps(handler))

        result = await resolver.resolve("https://example.com/post")

        assert result.diagnostics.strategy == "html"
        assert result.title == "Example Post"
        assert result.site_name == "Example"
        assert result.content == PARAGRAPH
        assert result.transcript_source is None
        assert result.diagnostics.firecrawl.attempted is False
        assert progress_events[0].kind == ProgressKind.FETCH_HTML_START

    @pytest.mark.asyncio
    async def test_fetch_failure_without_firecrawl(self, make_deps):
        """Test HTML errors surface when Firecrawl is unavailable."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        resolver = LinkContentResolver(make_deps(handler))

        with pytest.raises(NetworkError, match="status 404"):
            await resolver.resolve("https://example.com/missing")

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self, make_deps):
        """Test binary documents are rejected."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"%PDF", headers={"content-type": "application/pdf"})

        with pytest.raises(ContentEmptyError, match="application/pdf"):
            await LinkContentResolver(make_deps(handler)).resolve("https://example.com/doc.pdf")

    @pytest.mark.asyncio
    async def test_invalid_youtube_id(self, make_deps):
        """Test malformed video ids fail before any request."""
        resolver = LinkContentResolver(make_deps())

        with pytest.raises(ContentEmptyError, match="Invalid YouTube video id"):
            await resolver.resolve("https://www.youtube.com/watch?v=short")

    @pytest.mark.asyncio
    async def test_overall_timeout(self, make_deps):
        """Test the overall deadline raises FetchError with diagnostics."""

        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200, html=ARTICLE_HTML)

        resolver = LinkContentResolver(make_deps(handler))

        with pytest.raises(FetchError, match="timed out") as exc_info:
            await resolver.resolve(
                "https://example.com/slow", ResolveOptions(overall_timeout_seconds=0.05)
            )

        assert exc_info.value.diagnostics is not None


class TestFirecrawlStrategy:
    """Test Firecrawl fallbacks."""

    @pytest.mark.asyncio
    async def test_blocked_page_falls_back(self, make_deps):
        """Test a challenge page is replaced by Firecrawl content."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, html=CHALLENGE_HTML)

        firecrawl = FakeFirecrawl(FIRECRAWL_PAYLOAD)
        resolver = LinkContentResolver(make_deps(handler, firecrawl=firecrawl))

        result = await resolver.resolve("https://example.com/protected")

        assert result.diagnostics.strategy == "firecrawl"
        assert result.diagnostics.firecrawl.used is True
        assert result.diagnostics.markdown.provider == "firecrawl"
        assert "Article text rendered by Firecrawl." in result.content
        assert result.title == "Rendered"
        assert firecrawl.calls == ["https://example.com/protected"]
        assert "falling back to Firecrawl" in result.diagnostics.firecrawl.notes_text

    @pytest.mark.asyncio
    async def test_html_error_falls_back(self, make_deps):
        """Test HTML fetch failures try Firecrawl."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403)

        resolver = LinkContentResolver(
            make_deps(handler, firecrawl=FakeFirecrawl(FIRECRAWL_PAYLOAD))
        )

        result = await resolver.resolve("https://example.com/forbidden")

        assert result.diagnostics.strategy == "firecrawl"
        assert "HTML fetch failed" in result.diagnostics.firecrawl.notes_text

    @pytest.mark.asyncio
    async def test_both_fail(self, make_deps):
        """Test a failed HTML fetch plus an empty scrape raises FetchError."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        resolver = LinkContentResolver(make_deps(handler, firecrawl=FakeFirecrawl(None)))

        with pytest.raises(FetchError, match="Failed to fetch HTML document") as exc_info:
            await resolver.resolve("https://example.com/gone")

        assert exc_info.value.diagnostics.firecrawl.attempted is True

    @pytest.mark.asyncio
    async def test_always_skips_html(self, make_deps):
        """Test firecrawl=always never fetches HTML when the scrape succeeds."""
        resolver = LinkContentResolver(make_deps(firecrawl=FakeFirecrawl(FIRECRAWL_PAYLOAD)))

        result = await resolver.resolve(
            "https://example.com/post", ResolveOptions(firecrawl="always")
        )

        assert result.diagnostics.strategy == "firecrawl"
        assert "Firecrawl forced via options" in result.diagnostics.firecrawl.notes_text

    @pytest.mark.asyncio
    async def test_readable_page_skips_firecrawl(self, make_deps):
        """Test an article with enough text never calls a configured Firecrawl."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, html=LONG_ARTICLE_HTML)

        firecrawl = FakeFirecrawl(FIRECRAWL_PAYLOAD)
        resolver = LinkContentResolver(make_deps(handler, firecrawl=firecrawl))

        result = await resolver.resolve("https://example.com/long-read")

        assert result.diagnostics.strategy == "html"
        assert len(result.content) >= 200
        assert firecrawl.calls == []
        assert result.diagnostics.firecrawl.attempted is False


class TestPodcastShortCircuit:
    """Test Spotify and Apple Podcasts handling."""

    @pytest.mark.asyncio
    async def test_spotify_requires_transcriber(self, make_deps):
        """Test Spotify fails fast without credentials and without network."""
        resolver = LinkContentResolver(make_deps())

        with pytest.raises(MissingCredentialsError, match="Spotify"):
            await resolver.resolve("https://open.spotify.com/episode/abc123")

    @pytest.mark.asyncio
    async def test_apple_requires_transcriber(self, make_deps):
        """Test Apple Podcasts fails fast without credentials."""
        resolver = LinkContentResolver(make_deps())

        with pytest.raises(MissingCredentialsError, match="Apple Podcasts"):
            await resolver.resolve("https://podcasts.apple.com/us/podcast/show/id1234")

    @pytest.mark.asyncio
    async def test_spotify_transcript(self, make_deps, transcription_keys):
        """Test a Spotify episode resolves from its transcript alone."""
        dispatcher = RecordingDispatcher(
            TranscriptResolution(
                text="Welcome to episode seven.",
                source="whisper",
                metadata={"episode_title": "Episode Seven"},
            )
        )
        resolver = LinkContentResolver(
            make_deps(transcription=transcription_keys), dispatcher=dispatcher
        )

        result = await resolver.resolve("https://open.spotify.com/episode/abc123")

        assert result.diagnostics.strategy == "html"
        assert result.site_name == "Spotify"
        assert result.title == "Episode Seven"
        assert result.content == "Welcome to episode seven."
        assert result.transcript_source == "whisper"
        assert dispatcher.calls == [("https://open.spotify.com/episode/abc123", None)]
        assert "skipped HTML fetch" in result.diagnostics.transcript.notes_text
        assert "Spotify short-circuit" in result.diagnostics.firecrawl.notes_text

    @pytest.mark.asyncio
    async def test_apple_transcript(self, make_deps, transcription_keys):
        """Test an Apple Podcasts episode never fetches its page."""
        dispatcher = RecordingDispatcher(
            TranscriptResolution(text="Apple episode words.", source="podcastTranscript")
        )
        resolver = LinkContentResolver(
            make_deps(transcription=transcription_keys), dispatcher=dispatcher
        )

        result = await resolver.resolve(
            "https://podcasts.apple.com/us/podcast/show/id1234?i=1000567"
        )

        assert result.diagnostics.strategy == "html"
        assert result.site_name == "Apple Podcasts"
        assert result.content == "Apple episode words."
        assert "Apple Podcasts: skipped HTML fetch" in result.diagnostics.transcript.notes_text

    @pytest.mark.asyncio
    async def test_empty_podcast_transcript(self, make_deps, transcription_keys):
        """Test an empty transcript raises ProviderExhaustedError."""
        resolver = LinkContentResolver(
            make_deps(transcription=transcription_keys), dispatcher=RecordingDispatcher()
        )

        with pytest.raises(ProviderExhaustedError, match="Spotify transcript unavailable"):
            await resolver.resolve("https://open.spotify.com/episode/abc123")


class TestTweetStrategy:
    """Test bird and Nitter."""

    @pytest.mark.asyncio
    async def test_bird(self, make_deps, progress_events):
        """Test bird text wins without any HTTP request."""
        bird = FakeBird(BirdTweet(id="1234567890", text=TWEET_TEXT, author_username="someone"))
        resolver = LinkContentResolver(make_deps(bird=bird))

        result = await resolver.resolve(TWEET_URL)

        assert result.diagnostics.strategy == "bird"
        assert result.content == TWEET_TEXT
        assert result.title == "@someone"
        assert result.site_name == "X"
        assert [e.kind for e in progress_events] == [ProgressKind.BIRD_START, ProgressKind.BIRD_DONE]

    @pytest.mark.asyncio
    async def test_nitter_after_anubis(self, make_deps):
        """Test an Anubis mirror is skipped for the next one."""
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if len(hosts) == 1:
                return httpx.Response(
                    200, html="<html><body><p>Anubis proof-of-work check</p></body></html>"
                )
            return httpx.Response(200, html=f"<html><body><p>{TWEET_TEXT}</p></body></html>")

        bird = FakeBird(error=NetworkError("bird not installed"))
        resolver = LinkContentResolver(make_deps(handler, bird=bird))

        result = await resolver.resolve(TWEET_URL)

        mirrors = [httpx.URL(url).host for url in to_nitter_urls(TWEET_URL)]
        assert result.diagnostics.strategy == "nitter"
        assert result.content == TWEET_TEXT
        assert hosts == mirrors[:2]

    @pytest.mark.asyncio
    async def test_all_hosts_fail(self, make_deps):
        """Test exhausting bird, Nitter and x.com surfaces the HTML error."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        resolver = LinkContentResolver(make_deps(handler))

        with pytest.raises(NetworkError, match="status 404"):
            await resolver.resolve(TWEET_URL)

    @pytest.mark.asyncio
    async def test_page_itself_after_mirrors(self, make_deps):
        """Test readable x.com HTML is used once the mirrors fail."""
        hosts: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            hosts.append(request.url.host)
            if request.url.host == "x.com":
                return httpx.Response(200, html=f"<html><body><p>{TWEET_TEXT}</p></body></html>")
            return httpx.Response(404)

        resolver = LinkContentResolver(make_deps(handler))

        result = await resolver.resolve(TWEET_URL)

        assert result.diagnostics.strategy == "html"
        assert result.content == TWEET_TEXT
        assert hosts[-1] == "x.com"

    @pytest.mark.asyncio
    async def test_blocked_page_after_mirrors(self, make_deps):
        """Test X's error shell raises BlockedContentError with the earlier notes."""

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "x.com":
                return httpx.Response(200, html=BLOCKED_TWEET_HTML)
            return httpx.Response(404)

        resolver = LinkContentResolver(make_deps(handler))

        with pytest.raises(
            BlockedContentError, match="Unable to fetch tweet content from X"
        ) as exc_info:
            await resolver.resolve(TWEET_URL)

        assert "Bird not available" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_blocked_mirror_skips_transcripts(self, make_deps):
        """Test a mirror serving X's error text never reaches the dispatcher."""
        pages: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            pages.append(request.url.host)
            if len(pages) == 1:
                return httpx.Response(200, html=BLOCKED_TWEET_HTML)
            return httpx.Response(200, html=f"<html><body><p>{TWEET_TEXT}</p></body></html>")

        dispatcher = RecordingDispatcher()
        resolver = LinkContentResolver(make_deps(handler), dispatcher=dispatcher)

        result = await resolver.resolve(TWEET_URL, ResolveOptions(media_transcript="prefer"))

        assert result.diagnostics.strategy == "nitter"
        assert result.content == TWEET_TEXT
        assert len(pages) == 2
        assert len(dispatcher.calls) == 1
        assert TWEET_TEXT in dispatcher.calls[0][1]
