"""Tests for default dependency wiring."""

from pathlib import Path

import httpx
import pytest

from linkscribe.audio.downloader import YtDlpDownloader
from linkscribe.config.schema import CacheConfig, ResolverConfig, ServicesConfig
from linkscribe.content.firecrawl import FirecrawlScraper
from linkscribe.content.readability import ReadabilityLxmlExtractor
from linkscribe.factory import build_deps, default_options
from linkscribe.transcription.cache import FileTranscriptCache, MemoryTranscriptCache


@pytest.fixture
def http() -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))


class TestBuildDeps:
    """Tests for build_deps."""

    def test_defaults(self, tmp_path: Path, http: httpx.AsyncClient) -> None:
        """Test the default collaborators are wired."""
        config = ResolverConfig(cache=CacheConfig(cache_dir=tmp_path / "cache"))

        deps = build_deps(config, http)

        assert deps.http is http
        assert isinstance(deps.transcript_cache, FileTranscriptCache)
        assert isinstance(deps.media_downloader, YtDlpDownloader)
        assert isinstance(deps.readability, ReadabilityLxmlExtractor)
        assert deps.firecrawl is None
        assert deps.can_transcribe is False

    def test_firecrawl_with_key(self, tmp_path: Path, http: httpx.AsyncClient) -> None:
        """Test Firecrawl is only wired when a key is configured."""
        config = ResolverConfig(
            cache=CacheConfig(cache_dir=tmp_path),
            services=ServicesConfig(firecrawl_api_key="fc-" + "k" * 30, apify_api_token="tok"),
        )

        deps = build_deps(config, http)

        assert isinstance(deps.firecrawl, FirecrawlScraper)
        assert deps.apify_api_token == "tok"

    def test_cache_variants(self, http: httpx.AsyncClient) -> None:
        """Test disabled and in-memory caches."""
        disabled = build_deps(ResolverConfig(cache=CacheConfig(enabled=False)), http)
        memory = build_deps(ResolverConfig(), http, in_memory_cache=True)

        assert disabled.transcript_cache is None
        assert isinstance(memory.transcript_cache, MemoryTranscriptCache)

    def test_media_downloads_disabled(self, http: httpx.AsyncClient) -> None:
        """Test yt-dlp is left out when media downloads are off."""
        config = ResolverConfig(media_downloads=False)

        deps = build_deps(config, http, in_memory_cache=True)

        assert deps.media_downloader is None


class TestDefaultOptions:
    """Tests for default_options."""

    def test_seeded_from_config(self) -> None:
        """Test configured modes become the option defaults."""
        config = ResolverConfig(
            timeout_seconds=15, firecrawl_mode="always", youtube_transcript_mode="web"
        )

        options = default_options(config, format="markdown")

        assert options.timeout_seconds == 15
        assert options.firecrawl == "always"
        assert options.youtube_transcript == "web"
        assert options.markdown_requested is True
