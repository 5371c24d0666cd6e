"""Media transcription for tweets and pages with embedded, source-less media.

Only runs when the caller prefers media transcripts; otherwise page text is
the answer for such links.
"""

import logging
from typing import Any

from linkscribe.content.html import has_sourceless_media
from linkscribe.content.platforms import is_twitter_status_url
from linkscribe.deps import CookieSource, ProgressKind
from linkscribe.transcription.media import transcribe_with_downloader
from linkscribe.transcription.models import ProviderResult
from linkscribe.transcription.providers.base import (
    CascadeStep,
    ProviderCascade,
    ProviderContext,
    StepOutput,
    TranscriptProvider,
    result_from_outcome,
    unavailable_result,
)
from linkscribe.utils.errors import LinkscribeError
from linkscribe.utils.http import REQUEST_ERRORS
from linkscribe.utils.text import normalize_transcript_text

logger = logging.getLogger(__name__)


class GenericProvider(TranscriptProvider):
    """Catch-all provider: downloader plus transcriber for embedded media."""

    NAME = "generic"

    def can_handle(self, url: str, html: str | None) -> bool:
        return True

    def _skip(self, context: ProviderContext, reason: str, message: str | None = None) -> ProviderResult:
        if message:
            context.note(self.NAME, message, "skipped")
        return ProviderResult(
            source=None,
            metadata={"provider": self.NAME, "reason": reason},
            notes=list(context.notes),
        )

    async def _cookies(self, context: ProviderContext) -> CookieSource | None:
        resolver = context.deps.cookie_resolver
        if resolver is None:
            return None
        try:
            return await resolver.resolve(context.url)
        except (LinkscribeError, OSError) as e:
            logger.warning(f"Cookie resolution failed for {context.url}: {e}")
            context.note("cookies", f"Cookie resolution failed: {e}", "soft_fail")
            return None

    async def fetch(self, context: ProviderContext) -> ProviderResult:
        if context.options.media_transcript != "prefer":
            return self._skip(context, "media_transcript_not_preferred")

        is_twitter = is_twitter_status_url(context.url)
        has_media = context.html is not None and has_sourceless_media(context.html)
        if not is_twitter and not has_media:
            return self._skip(context, "no_embedded_media")

        kind = "twitter" if is_twitter else "embedded_media"
        deps = context.deps
        if deps.media_downloader is None:
            return self._skip(
                context, "missing_yt_dlp", "yt-dlp downloader not configured; media not transcribed"
            )
        if not deps.can_transcribe:
            return self._skip(
                context,
                "missing_transcription_provider",
                "Missing transcription provider (set GROQ_API_KEY, OPENAI_API_KEY or FAL_KEY)",
            )

        cookies = await self._cookies(context)
        base_metadata: dict[str, Any] = {"provider": self.NAME, "kind": kind}

        async def run_downloader() -> StepOutput | None:
            deps.emit(
                ProgressKind.TRANSCRIPT_START,
                context.url,
                service=self.NAME,
                hint=f"{kind}: downloading media (yt-dlp)",
            )
            media = await transcribe_with_downloader(
                deps, context.url, service=self.NAME, cookies=cookies
            )
            context.notes.extend(media.notes)
            if not media.text:
                return None
            metadata = {**base_metadata, "transcription_provider": media.provider_id}
            if context.options.transcript_timestamps:
                metadata["timestamps"] = False
            return StepOutput(text=normalize_transcript_text(media.text), metadata=metadata)

        cascade = ProviderCascade(context, soft_errors=REQUEST_ERRORS)
        outcome = await cascade.run([CascadeStep("yt-dlp", run_downloader)])
        if outcome.output is not None:
            return result_from_outcome(context, outcome)

        return unavailable_result(
            context,
            outcome.attempted_providers,
            {**base_metadata, "reason": "media_transcription_failed"},
        )
