"""YouTube transcript provider."""

import logging
from typing import Any

from linkscribe.content.html import extract_youtube_player_response
from linkscribe.content.platforms import extract_youtube_video_id, is_youtube_url
from linkscribe.deps import ProgressKind
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
from linkscribe.transcription.providers.youtube.api import (
    TimedTranscript,
    extract_bootstrap,
    fetch_youtubei_transcript,
)
from linkscribe.transcription.providers.youtube.apify import fetch_apify_transcript
from linkscribe.transcription.providers.youtube.captions import fetch_caption_transcript
from linkscribe.utils.errors import MissingCredentialsError, ProviderExhaustedError
from linkscribe.utils.http import BROWSER_HEADERS, REQUEST_ERRORS, describe_error, get_text
from linkscribe.utils.json_access import get_float
from linkscribe.utils.text import normalize_transcript_text

logger = logging.getLogger(__name__)

_PAGE_MARKERS = ("ytcfg.set", "ytInitialPlayerResponse")


def has_youtube_config(html: str | None) -> bool:
    return bool(html) and any(marker in html for marker in _PAGE_MARKERS)


def video_duration_seconds(html: str) -> float | None:
    player = extract_youtube_player_response(html)
    duration = get_float(player, ["videoDetails", "lengthSeconds"])
    if duration is None:
        duration = get_float(player, ["microformat", "playerMicroformatRenderer", "lengthSeconds"])
    return duration if duration and duration > 0 else None


class YouTubeProvider(TranscriptProvider):
    """Captions first (youtubei, then caption tracks), then audio transcription or Apify.

    In ``auto`` mode a missing prerequisite only skips its step. Explicit
    ``yt-dlp`` and ``apify`` modes raise ``MissingCredentialsError`` instead.
    """

    NAME = "youtube"

    def can_handle(self, url: str, html: str | None) -> bool:
        return is_youtube_url(url)

    def resource_key(self, url: str) -> str:
        return extract_youtube_video_id(url) or url

    def _check_explicit_mode(self, context: ProviderContext) -> None:
        mode = context.options.youtube_transcript
        deps = context.deps
        if mode == "yt-dlp" and deps.media_downloader is None:
            raise MissingCredentialsError(
                "Missing yt-dlp downloader for youtube_transcript=yt-dlp (install yt-dlp)"
            )
        if mode == "yt-dlp" and not deps.can_transcribe:
            raise MissingCredentialsError(
                "Missing transcription provider for youtube_transcript=yt-dlp "
                "(set GROQ_API_KEY, OPENAI_API_KEY or FAL_KEY, or install a local model)"
            )
        if mode == "apify" and not deps.apify_api_token:
            raise MissingCredentialsError("Missing APIFY_API_TOKEN for youtube_transcript=apify")

    async def _load_watch_page(self, context: ProviderContext) -> str | None:
        if has_youtube_config(context.html):
            return context.html
        try:
            return await get_text(
                context.deps.http, context.url, timeout=context.timeout, headers=BROWSER_HEADERS
            )
        except REQUEST_ERRORS as e:
            context.note("watch-page", f"Watch page fetch failed: {describe_error(e)}", "soft_fail")
            return context.html

    def _hint(self, context: ProviderContext, hint: str) -> None:
        context.deps.emit(ProgressKind.TRANSCRIPT_START, context.url, service=self.NAME, hint=hint)

    async def fetch(self, context: ProviderContext) -> ProviderResult:
        self._check_explicit_mode(context)

        html = await self._load_watch_page(context)
        video_id = extract_youtube_video_id(context.url)
        if not html or not video_id:
            return ProviderResult(source=None, notes=list(context.notes))

        mode = context.options.youtube_transcript
        deps = context.deps
        can_run_yt_dlp = deps.media_downloader is not None and deps.can_transcribe
        duration = video_duration_seconds(html)
        base_metadata: dict[str, Any] = {}
        if duration:
            base_metadata["duration_seconds"] = duration

        def timed_output(transcript: TimedTranscript | None, provider: str) -> StepOutput | None:
            if transcript is None:
                return None
            text = normalize_transcript_text(transcript.text)
            metadata = {**base_metadata, "provider": provider}
            if context.options.transcript_timestamps and not transcript.segments:
                metadata["timestamps"] = False
            return StepOutput(text=text, metadata=metadata, segments=transcript.segments)

        async def run_youtubei() -> StepOutput | None:
            self._hint(context, "YouTube: checking captions (youtubei)")
            bootstrap = extract_bootstrap(html)
            if bootstrap is None:
                context.note("youtubei", "youtubei bootstrap config not found", "soft_fail")
                return None
            transcript = await fetch_youtubei_transcript(
                deps.http, bootstrap, context.url, timeout=context.timeout
            )
            return timed_output(transcript, "youtubei")

        async def run_caption_tracks() -> StepOutput | None:
            self._hint(context, "YouTube: checking caption tracks")
            transcript = await fetch_caption_transcript(
                deps.http,
                html,
                video_id=video_id,
                original_url=context.url,
                bootstrap=extract_bootstrap(html),
                timeout=context.timeout,
            )
            return timed_output(transcript, "captionTracks")

        async def run_yt_dlp() -> StepOutput | None:
            self._hint(context, "YouTube: downloading audio (yt-dlp)")
            media = await transcribe_with_downloader(
                deps, context.url, service=self.NAME, duration_hint=duration
            )
            context.notes.extend(media.notes)
            if media.text:
                metadata = {
                    **base_metadata,
                    "provider": "yt-dlp",
                    "transcription_provider": media.provider_id,
                }
                if context.options.transcript_timestamps:
                    metadata["timestamps"] = False
                return StepOutput(text=normalize_transcript_text(media.text), metadata=metadata)
            if mode == "yt-dlp" and media.error:
                raise ProviderExhaustedError(f"yt-dlp transcription failed: {media.error}")
            return None

        async def run_apify() -> StepOutput | None:
            self._hint(context, "YouTube: fetching transcript (Apify)")
            assert deps.apify_api_token is not None
            text = await fetch_apify_transcript(deps.http, deps.apify_api_token, context.url)
            if not text:
                return None
            metadata = {**base_metadata, "provider": "apify"}
            if context.options.transcript_timestamps:
                metadata["timestamps"] = False
            return StepOutput(text=normalize_transcript_text(text), metadata=metadata)

        steps: list[CascadeStep] = []
        if mode in ("auto", "web"):
            steps.append(CascadeStep("youtubei", run_youtubei))
            steps.append(CascadeStep("captionTracks", run_caption_tracks))
        if mode == "yt-dlp" or (mode == "auto" and can_run_yt_dlp):
            steps.append(CascadeStep("yt-dlp", run_yt_dlp))
        if mode in ("auto", "apify"):
            steps.append(
                CascadeStep(
                    "apify",
                    run_apify,
                    enabled=bool(deps.apify_api_token),
                    skip_reason="Apify token not configured",
                )
            )

        cascade = ProviderCascade(context, soft_errors=(*REQUEST_ERRORS, ValueError))
        outcome = await cascade.run(steps)
        if outcome.output is not None:
            return result_from_outcome(context, outcome)

        return unavailable_result(
            context,
            outcome.attempted_providers,
            {"provider": "youtube", "reason": "no_transcript_available"},
        )
