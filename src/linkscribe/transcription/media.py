"""Download media to scratch storage and hand it to the transcriber.

Every download lands in a uniquely named temporary file that is removed on
every exit path, including cancellation.
"""

import asyncio
import logging
import mimetypes
import tempfile
import uuid
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

import aiofiles
import httpx

from linkscribe.audio.downloader import MediaDownloadError
from linkscribe.content.diagnostics import DiagnosticNote, NoteOutcome
from linkscribe.deps import CookieSource, LinkResolverDeps, ProgressKind
from linkscribe.transcription.models import TranscriptionProgress, TranscriptionRequest
from linkscribe.utils.http import BROWSER_USER_AGENT, REQUEST_ERRORS, describe_error
from linkscribe.utils.retry import classify_http_error, classify_transport_error, with_retry

logger = logging.getLogger(__name__)

MEDIA_DOWNLOAD_TIMEOUT_SECONDS = 300.0
TRANSCRIPTION_TIMEOUT_SECONDS = 600.0


@dataclass
class MediaTranscription:
    """Outcome of downloading and transcribing one media source."""

    text: str | None = None
    provider_id: str | None = None
    error: str | None = None
    notes: list[DiagnosticNote] = field(default_factory=list)

    def note(self, step: str, message: str, outcome: NoteOutcome = "info") -> None:
        self.notes.append(DiagnosticNote(step=step, outcome=outcome, message=message))


@asynccontextmanager
async def temporary_media_path(
    scratch_dir: Path | None, suffix: str = ".mp3"
) -> AsyncIterator[Path]:
    """Reserve a unique scratch path and delete whatever is there afterwards."""
    directory = scratch_dir or Path(tempfile.gettempdir())
    path = directory / f"linkscribe-{uuid.uuid4().hex}{suffix}"
    try:
        yield path
    finally:
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to remove temporary media {path}: {e}")


def guess_suffix(url: str, default: str = ".mp3") -> str:
    suffix = Path(urlparse(url).path).suffix.lower()
    return suffix if 1 < len(suffix) <= 5 else default


@with_retry()
async def download_to_file(
    client: httpx.AsyncClient,
    url: str,
    destination: Path,
    *,
    timeout: float = MEDIA_DOWNLOAD_TIMEOUT_SECONDS,
) -> tuple[int, str | None]:
    """Stream ``url`` into ``destination``.

    Returns:
        Bytes written and the response content type
    """
    headers = {"User-Agent": BROWSER_USER_AGENT, "Accept": "*/*"}
    written = 0
    try:
        async with client.stream(
            "GET", url, headers=headers, timeout=timeout, follow_redirects=True
        ) as response:
            if response.status_code >= 400:
                raise classify_http_error(response.status_code, url)
            content_type = response.headers.get("content-type")
            async with aiofiles.open(destination, "wb") as f:
                async for chunk in response.aiter_bytes():
                    await f.write(chunk)
                    written += len(chunk)
    except httpx.HTTPError as e:
        raise classify_transport_error(e) from e
    return written, content_type


def _progress_forwarder(deps: LinkResolverDeps, url: str, service: str):
    def forward(progress: TranscriptionProgress) -> None:
        deps.emit(
            ProgressKind.WHISPER_PROGRESS,
            url,
            service=service,
            processed_seconds=progress.processed_seconds,
            total_seconds=progress.total_seconds,
            part_index=progress.part_index,
            total_parts=progress.total_parts,
        )

    return forward


async def _transcribe_file(
    deps: LinkResolverDeps,
    path: Path,
    *,
    page_url: str,
    service: str,
    media_type: str | None,
    duration_hint: float | None,
    result: MediaTranscription,
) -> MediaTranscription:
    assert deps.transcriber is not None
    request = TranscriptionRequest(
        file_path=path,
        media_type=media_type or mimetypes.guess_type(path.name)[0],
        filename=path.name,
        duration_hint_seconds=duration_hint,
        provider_order=list(deps.transcription.provider_order()),
        on_progress=_progress_forwarder(deps, page_url, service),
    )
    try:
        outcome = await asyncio.wait_for(
            deps.transcriber.transcribe(request), TRANSCRIPTION_TIMEOUT_SECONDS
        )
    except asyncio.TimeoutError:
        result.error = "Transcription timed out"
        result.note("transcription", result.error, "error")
        return result

    result.provider_id = outcome.provider_id
    if outcome.text and outcome.text.strip():
        result.text = outcome.text
        result.note("transcription", f"Transcribed with {outcome.provider_id or 'unknown'}", "ok")
    else:
        result.error = outcome.error or "Transcriber returned no text"
        result.note("transcription", f"Transcription failed: {result.error}", "soft_fail")
    return result


async def transcribe_media_url(
    deps: LinkResolverDeps,
    media_url: str,
    *,
    page_url: str,
    service: str,
    duration_hint: float | None = None,
) -> MediaTranscription:
    """Download a direct media URL (podcast enclosure, stream) and transcribe it."""
    result = MediaTranscription()
    if not deps.can_transcribe:
        result.error = "Missing transcription provider (set GROQ_API_KEY, OPENAI_API_KEY or FAL_KEY)"
        result.note("transcription", result.error, "skipped")
        return result

    async with temporary_media_path(deps.scratch_dir, guess_suffix(media_url)) as path:
        deps.emit(ProgressKind.MEDIA_DOWNLOAD_START, page_url, service=service, media_url=media_url)
        try:
            size, content_type = await download_to_file(deps.http, media_url, path)
        except REQUEST_ERRORS as e:
            result.error = f"Media download failed: {describe_error(e)}"
            result.note("media-download", result.error, "soft_fail")
            deps.emit(ProgressKind.MEDIA_DOWNLOAD_DONE, page_url, service=service, ok=False)
            return result
        deps.emit(
            ProgressKind.MEDIA_DOWNLOAD_DONE,
            page_url,
            service=service,
            ok=True,
            downloaded_bytes=size,
        )
        if size == 0:
            result.error = "Media download returned an empty body"
            result.note("media-download", result.error, "soft_fail")
            return result

        media_type = content_type.split(";")[0].strip() if content_type else None
        return await _transcribe_file(
            deps,
            path,
            page_url=page_url,
            service=service,
            media_type=media_type,
            duration_hint=duration_hint,
            result=result,
        )


async def transcribe_with_downloader(
    deps: LinkResolverDeps,
    page_url: str,
    *,
    service: str,
    cookies: CookieSource | None = None,
    duration_hint: float | None = None,
) -> MediaTranscription:
    """Extract audio from a page with the media downloader and transcribe it."""
    result = MediaTranscription()
    if deps.media_downloader is None:
        result.error = "yt-dlp downloader not configured"
        result.note("yt-dlp", result.error, "skipped")
        return result
    if not deps.can_transcribe:
        result.error = "Missing transcription provider (set GROQ_API_KEY, OPENAI_API_KEY or FAL_KEY)"
        result.note("transcription", result.error, "skipped")
        return result

    async with temporary_media_path(deps.scratch_dir, ".mp3") as path:
        deps.emit(ProgressKind.MEDIA_DOWNLOAD_START, page_url, service=service, media_url=None)
        try:
            audio_path = await deps.media_downloader.download_audio(page_url, path, cookies=cookies)
        except MediaDownloadError as e:
            result.error = str(e)
            result.note("yt-dlp", f"yt-dlp download failed: {e}", "soft_fail")
            deps.emit(ProgressKind.MEDIA_DOWNLOAD_DONE, page_url, service=service, ok=False)
            return result
        deps.emit(ProgressKind.MEDIA_DOWNLOAD_DONE, page_url, service=service, ok=True)

        try:
            return await _transcribe_file(
                deps,
                audio_path,
                page_url=page_url,
                service=service,
                media_type="audio/mpeg",
                duration_hint=duration_hint,
                result=result,
            )
        finally:
            if audio_path != path:
                await asyncio.to_thread(audio_path.unlink, missing_ok=True)
