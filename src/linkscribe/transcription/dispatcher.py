"""Pick a transcript provider for a link and wrap it with the cache policy."""

import logging
from collections.abc import Callable

from linkscribe.content.diagnostics import TranscriptDiagnostics
from linkscribe.content.models import ResolveOptions
from linkscribe.content.platforms import is_youtube_url
from linkscribe.deps import LinkResolverDeps, ProgressKind
from linkscribe.transcription.cache import (
    read_transcript_cache,
    segments_from_metadata,
    write_transcript_cache,
)
from linkscribe.transcription.models import CacheEntry, ProviderResult, TranscriptResolution
from linkscribe.transcription.providers.base import ProviderContext, TranscriptProvider
from linkscribe.transcription.providers.generic import GenericProvider
from linkscribe.transcription.providers.podcast.provider import PodcastProvider
from linkscribe.transcription.providers.youtube.provider import YouTubeProvider
from linkscribe.utils.errors import LinkscribeError
from linkscribe.utils.http import REQUEST_ERRORS

logger = logging.getLogger(__name__)

ProviderPredicate = Callable[[str, str | None], bool]

# Exceptions that fall back to a cached transcript when one exists
PROVIDER_ERRORS = (LinkscribeError, *REQUEST_ERRORS)


def default_provider_table() -> list[tuple[ProviderPredicate, TranscriptProvider]]:
    """YouTube, then podcasts, then the catch-all generic provider."""
    youtube = YouTubeProvider()
    podcast = PodcastProvider()
    generic = GenericProvider()
    return [
        (lambda url, html: is_youtube_url(url), youtube),
        (podcast.can_handle, podcast),
        (generic.can_handle, generic),
    ]


class TranscriptDispatcher:
    """Resolves the transcript for a link through exactly one provider.

    The provider table is evaluated in order; the first matching predicate
    wins. Cache reads happen before the provider runs and writes after it,
    keyed by the provider's name and resource key.
    """

    def __init__(
        self,
        deps: LinkResolverDeps,
        providers: list[tuple[ProviderPredicate, TranscriptProvider]] | None = None,
    ):
        self.deps = deps
        self.providers = providers if providers is not None else default_provider_table()

    def select_provider(self, url: str, html: str | None) -> TranscriptProvider:
        for predicate, provider in self.providers:
            if predicate(url, html):
                return provider
        raise LookupError(f"No transcript provider accepts {url}")

    async def resolve(
        self, url: str, html: str | None, options: ResolveOptions
    ) -> TranscriptResolution:
        """Resolve the transcript for ``url``.

        Returns:
            Resolution whose diagnostics record the cache path, every
            attempted provider and every note

        Raises:
            LinkscribeError: If the provider fails and no cached transcript exists
        """
        provider = self.select_provider(url, html)
        service = provider.NAME
        resource_key = provider.resource_key(url)
        deps = self.deps

        deps.emit(ProgressKind.TRANSCRIPT_START, url, service=service)
        cache_read = await read_transcript_cache(
            deps.transcript_cache,
            service,
            resource_key,
            options.cache_mode,
            timestamps_requested=options.transcript_timestamps,
        )
        if cache_read.resolution is not None:
            logger.info(f"Using cached {service} transcript for {url}")
            self._emit_done(url, service, cache_read.resolution)
            return cache_read.resolution

        diagnostics = cache_read.diagnostics
        cached = cache_read.cached
        context = ProviderContext(
            url=url, html=html, resource_key=resource_key, options=options, deps=deps
        )

        try:
            result = await provider.fetch(context)
        except PROVIDER_ERRORS as e:
            diagnostics.extend_notes(context.notes)
            if cached is not None and cached.content:
                logger.warning(f"{service} provider failed for {url}; using cached transcript: {e}")
                resolution = self._fallback(cached, diagnostics)
                self._emit_done(url, service, resolution)
                return resolution
            deps.emit(ProgressKind.TRANSCRIPT_DONE, url, service=service, ok=False, error=str(e))
            raise

        diagnostics.attempted_providers.extend(result.attempted_providers)
        diagnostics.extend_notes(result.notes)

        if result.text:
            await write_transcript_cache(
                deps.transcript_cache, service, resource_key, result, diagnostics
            )
            resolution = self._from_result(result, diagnostics)
        elif cached is not None and cached.content:
            resolution = self._fallback(cached, diagnostics)
        else:
            await write_transcript_cache(
                deps.transcript_cache, service, resource_key, result, diagnostics
            )
            resolution = self._from_result(result, diagnostics)

        self._emit_done(url, service, resolution)
        return resolution

    @staticmethod
    def _from_result(
        result: ProviderResult, diagnostics: TranscriptDiagnostics
    ) -> TranscriptResolution:
        diagnostics.provider = result.source
        diagnostics.text_provided = bool(result.text)
        return TranscriptResolution(
            text=result.text,
            source=result.source,
            metadata=result.metadata or None,
            segments=result.segments,
            diagnostics=diagnostics,
        )

    @staticmethod
    def _fallback(cached: CacheEntry, diagnostics: TranscriptDiagnostics) -> TranscriptResolution:
        diagnostics.cache_status = "fallback"
        diagnostics.provider = cached.source
        diagnostics.text_provided = True
        diagnostics.add_note("cache", "Falling back to cached transcript", "info")
        return TranscriptResolution(
            text=cached.content,
            source=cached.source,
            metadata=cached.metadata or None,
            segments=segments_from_metadata(cached.metadata),
            diagnostics=diagnostics,
        )

    def _emit_done(self, url: str, service: str, resolution: TranscriptResolution) -> None:
        self.deps.emit(
            ProgressKind.TRANSCRIPT_DONE,
            url,
            service=service,
            ok=bool(resolution.text),
            source=resolution.source,
            cache_status=resolution.diagnostics.cache_status if resolution.diagnostics else None,
        )
