"""Default wiring of collaborators from configuration."""

import logging

import httpx

from linkscribe.audio.downloader import YtDlpDownloader
from linkscribe.config.schema import ResolverConfig
from linkscribe.content.firecrawl import FirecrawlScraper
from linkscribe.content.models import ResolveOptions
from linkscribe.content.readability import ReadabilityLxmlExtractor
from linkscribe.deps import (
    BirdReader,
    CookieResolver,
    LinkResolverDeps,
    MarkdownConverter,
    ProgressListener,
)
from linkscribe.transcription.cache import (
    FileTranscriptCache,
    MemoryTranscriptCache,
    TranscriptCacheStore,
)
from linkscribe.transcription.models import Transcriber

logger = logging.getLogger(__name__)


def build_cache(config: ResolverConfig, *, in_memory: bool = False) -> TranscriptCacheStore | None:
    if not config.cache.enabled:
        return None
    if in_memory:
        return MemoryTranscriptCache()
    return FileTranscriptCache(config.cache.cache_dir)


def build_deps(
    config: ResolverConfig,
    http: httpx.AsyncClient,
    *,
    transcriber: Transcriber | None = None,
    bird: BirdReader | None = None,
    cookie_resolver: CookieResolver | None = None,
    markdown_converter: MarkdownConverter | None = None,
    on_progress: ProgressListener | None = None,
    in_memory_cache: bool = False,
) -> LinkResolverDeps:
    """Build resolver dependencies with the default collaborators.

    Firecrawl is only wired when an API key is configured, and the yt-dlp
    downloader only when media downloads are allowed. The transcriber, bird
    reader, cookie resolver and Markdown converter are supplied by the caller.

    Args:
        config: Loaded configuration
        http: Shared async HTTP client (owned by the caller)
        transcriber: Speech-to-text collaborator
        bird: Tweet reader tried before Nitter
        cookie_resolver: Cookie source for media downloads
        markdown_converter: HTML to Markdown converter
        on_progress: Progress listener
        in_memory_cache: Use a process-local cache instead of the file cache

    Returns:
        Dependencies ready for ``LinkContentResolver``
    """
    logging.getLogger("linkscribe").setLevel(config.log_level)

    firecrawl = None
    if config.services.firecrawl_api_key:
        firecrawl = FirecrawlScraper(
            http,
            config.services.firecrawl_api_key,
            base_url=config.services.firecrawl_base_url,
        )
    else:
        logger.debug("No Firecrawl API key configured; Firecrawl fallback disabled")

    return LinkResolverDeps(
        http=http,
        transcription=config.transcription,
        transcriber=transcriber,
        transcript_cache=build_cache(config, in_memory=in_memory_cache),
        media_downloader=YtDlpDownloader() if config.media_downloads else None,
        firecrawl=firecrawl,
        apify_api_token=config.services.apify_api_token,
        bird=bird,
        cookie_resolver=cookie_resolver,
        readability=ReadabilityLxmlExtractor(),
        markdown_converter=markdown_converter,
        on_progress=on_progress,
    )


def default_options(config: ResolverConfig, **overrides) -> ResolveOptions:
    """Resolve options seeded from the configured modes and timeout."""
    values = {
        "timeout_seconds": config.timeout_seconds,
        "firecrawl": config.firecrawl_mode,
        "youtube_transcript": config.youtube_transcript_mode,
    }
    values.update(overrides)
    return ResolveOptions(**values)
