"""Assemble the final ``ResolvedContent`` from base content and a transcript."""

import logging
import re
from dataclasses import dataclass

from linkscribe.content.diagnostics import ContentFetchDiagnostics
from linkscribe.content.html import DetectedVideo
from linkscribe.content.models import ResolvedContent
from linkscribe.transcription.models import TranscriptResolution
from linkscribe.utils.json_access import get_float, get_str
from linkscribe.utils.text import count_words

logger = logging.getLogger(__name__)

_LEADING_CONTROL = re.compile(r"^[\s\x00-\x1f\x7f-\x9f]+")


@dataclass
class ContentMetadata:
    """Page-level facts the finalizer copies onto the result."""

    url: str
    diagnostics: ContentFetchDiagnostics
    title: str | None = None
    description: str | None = None
    site_name: str | None = None
    video: DetectedVideo | None = None
    is_video_only: bool = False
    strip_title: bool = True


def select_base_content(base_content: str, transcript_text: str | None) -> str:
    """The transcript, when present, replaces the page content outright."""
    if transcript_text and transcript_text.strip():
        return transcript_text.strip()
    return base_content


def strip_leading_title(content: str, title: str | None) -> str:
    """Drop a leading copy of ``title`` so callers can render it separately.

    Examples:
        >>> strip_leading_title("  Hello World\\nBody", "hello world")
        'Body'
        >>> strip_leading_title("Body only", "Title")
        'Body only'
    """
    if not content or not title or not title.strip():
        return content
    normalized_title = title.strip()
    trimmed = content.lstrip()
    if not trimmed.lower().startswith(normalized_title.lower()):
        return content
    return _LEADING_CONTROL.sub("", trimmed[len(normalized_title) :])


def finalize(
    base_content: str,
    transcript_resolution: TranscriptResolution | None,
    max_characters: int | None,
    metadata: ContentMetadata,
) -> ResolvedContent:
    """Merge, truncate and count.

    Counts always describe the returned ``content``, i.e. they are computed
    after truncation.
    """
    transcript_text = transcript_resolution.text if transcript_resolution else None
    has_transcript = bool(transcript_text and transcript_text.strip())

    content = select_base_content(base_content, transcript_text)
    if not has_transcript and metadata.strip_title:
        content = strip_leading_title(content, metadata.title)

    truncated = False
    if max_characters is not None and max_characters > 0 and len(content) > max_characters:
        logger.debug(f"Truncating content for {metadata.url} to {max_characters} characters")
        content = content[:max_characters]
        truncated = True

    transcript_metadata = (transcript_resolution.metadata if transcript_resolution else None) or None
    transcript_characters = transcript_word_count = transcript_lines = None
    if has_transcript and transcript_text:
        stripped = transcript_text.strip()
        transcript_characters = len(stripped)
        transcript_word_count = count_words(stripped)
        transcript_lines = sum(1 for line in stripped.splitlines() if line.strip())

    transcript_diagnostics = metadata.diagnostics.transcript
    transcript_diagnostics.text_provided = has_transcript
    if transcript_resolution and transcript_diagnostics.provider is None:
        transcript_diagnostics.provider = transcript_resolution.source

    return ResolvedContent(
        url=metadata.url,
        title=metadata.title,
        description=metadata.description,
        site_name=metadata.site_name,
        content=content,
        truncated=truncated,
        total_characters=len(content),
        word_count=count_words(content),
        transcript_characters=transcript_characters,
        transcript_word_count=transcript_word_count,
        transcript_lines=transcript_lines,
        transcript_source=transcript_resolution.source if transcript_resolution else None,
        transcription_provider=get_str(transcript_metadata, ["transcription_provider"]),
        transcript_metadata=transcript_metadata,
        media_duration_seconds=get_float(transcript_metadata, ["duration_seconds"]),
        video=metadata.video,
        is_video_only=metadata.is_video_only,
        diagnostics=metadata.diagnostics,
    )
