"""Collaborator interfaces and the dependency bundle threaded through a resolve.

Nothing here is a module-level singleton: the HTTP client, cache store and
every optional collaborator travel inside a ``LinkResolverDeps`` instance, so
independent resolvers can coexist in one process.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import httpx
from pydantic import BaseModel, Field

from linkscribe.config.schema import TranscriptionConfig
from linkscribe.content.diagnostics import CacheMode
from linkscribe.transcription.cache import TranscriptCacheStore
from linkscribe.transcription.models import Transcriber

logger = logging.getLogger(__name__)


class ProgressKind(str, Enum):
    """Kinds of progress events, in roughly the order a resolve emits them."""

    FETCH_HTML_START = "fetch-html-start"
    FETCH_HTML_DONE = "fetch-html-done"
    BIRD_START = "bird-start"
    BIRD_DONE = "bird-done"
    NITTER_START = "nitter-start"
    NITTER_DONE = "nitter-done"
    FIRECRAWL_START = "firecrawl-start"
    FIRECRAWL_DONE = "firecrawl-done"
    TRANSCRIPT_START = "transcript-start"
    TRANSCRIPT_DONE = "transcript-done"
    MEDIA_DOWNLOAD_START = "transcript-media-download-start"
    MEDIA_DOWNLOAD_DONE = "transcript-media-download-done"
    WHISPER_PROGRESS = "transcript-whisper-progress"


class ProgressEvent(BaseModel):
    """Best-effort notification about resolver progress."""

    kind: ProgressKind
    url: str
    data: dict[str, Any] = Field(default_factory=dict)


ProgressListener = Callable[[ProgressEvent], None]


class FirecrawlPayload(BaseModel):
    """Scrape result returned by a Firecrawl client."""

    markdown: str | None = None
    html: str | None = None
    metadata: dict[str, Any] | None = None


class FirecrawlClient(Protocol):
    async def scrape(
        self, url: str, *, timeout: float, cache_mode: CacheMode
    ) -> FirecrawlPayload | None: ...


class BirdTweet(BaseModel):
    """Tweet text as returned by the bird CLI wrapper."""

    id: str | None = None
    text: str = ""
    author_username: str | None = None
    author_name: str | None = None
    created_at: str | None = None


class BirdReader(Protocol):
    async def read_tweet(self, url: str, *, timeout: float) -> BirdTweet | None: ...


class ReadabilityResult(BaseModel):
    """Main-content extraction of an HTML page."""

    text: str | None = None
    html: str | None = None
    title: str | None = None
    excerpt: str | None = None


class ReadabilityExtractor(Protocol):
    async def extract(self, html: str, url: str | None = None) -> ReadabilityResult | None: ...


class MarkdownConverter(Protocol):
    async def convert(
        self,
        *,
        url: str,
        html: str,
        title: str | None,
        site_name: str | None,
        timeout: float,
    ) -> str: ...


class CookieSource(BaseModel):
    """Where a media downloader should read cookies from."""

    cookie_file: Path | None = None
    browser: str | None = None  # e.g. "chrome", "firefox"


class CookieResolver(Protocol):
    async def resolve(self, url: str) -> CookieSource | None: ...


class MediaDownloader(Protocol):
    """Downloads the audio track of a page (yt-dlp in the default build)."""

    async def download_audio(
        self,
        url: str,
        output_path: Path,
        *,
        cookies: CookieSource | None = None,
    ) -> Path: ...


@dataclass
class LinkResolverDeps:
    """Everything a resolve needs from the outside world.

    Attributes:
        http: Shared async HTTP client
        transcription: Credentials available to the transcriber
        transcriber: Speech-to-text collaborator
        transcript_cache: Cache store for transcripts (None disables caching)
        media_downloader: Audio downloader (None means yt-dlp is unavailable)
        firecrawl: Firecrawl client (None means Firecrawl is not configured)
        apify_api_token: Token for the Apify YouTube transcript actor
        bird: Tweet reader tried before Nitter
        cookie_resolver: Supplies cookies for authenticated media downloads
        readability: Main-content extractor
        markdown_converter: HTML to Markdown converter
        on_progress: Progress listener
        scratch_dir: Directory for temporary media (system temp dir if None)
    """

    http: httpx.AsyncClient
    transcription: TranscriptionConfig = field(default_factory=TranscriptionConfig)
    transcriber: Transcriber | None = None
    transcript_cache: TranscriptCacheStore | None = None
    media_downloader: MediaDownloader | None = None
    firecrawl: FirecrawlClient | None = None
    apify_api_token: str | None = None
    bird: BirdReader | None = None
    cookie_resolver: CookieResolver | None = None
    readability: ReadabilityExtractor | None = None
    markdown_converter: MarkdownConverter | None = None
    on_progress: ProgressListener | None = None
    scratch_dir: Path | None = None

    @property
    def has_transcription_credentials(self) -> bool:
        return self.transcription.is_available

    @property
    def can_transcribe(self) -> bool:
        return self.transcriber is not None and self.transcription.is_available

    def emit(self, kind: ProgressKind, url: str, **data: Any) -> None:
        """Send a progress event; listener failures never affect the resolve."""
        if self.on_progress is None:
            return
        try:
            self.on_progress(ProgressEvent(kind=kind, url=url, data=data))
        except Exception as e:
            logger.warning(f"Progress listener failed on {kind.value}: {e}")
