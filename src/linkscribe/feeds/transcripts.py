"""Plain text from the transcript formats podcasts publish (JSON, WebVTT, text)."""

import json
import re
from dataclasses import dataclass
from typing import Any, Optional

from linkscribe.feeds.models import TranscriptLink
from linkscribe.transcription.models import TranscriptSegment

_CUE_TIMING = re.compile(
    r"^(?:(\d+):)?(\d{2}):(\d{2})[.,](\d{3})\s+-->\s+(?:(\d+):)?(\d{2}):(\d{2})[.,](\d{3})"
)
_VTT_BLOCK_HEADER = re.compile(r"^(NOTE|STYLE|REGION)\b", re.IGNORECASE)


@dataclass
class FeedTranscript:
    text: str
    segments: Optional[list[TranscriptSegment]] = None


def _timestamp_ms(hours: Optional[str], minutes: str, seconds: str, millis: str) -> int:
    return ((int(hours or 0) * 60 + int(minutes)) * 60 + int(seconds)) * 1000 + int(millis)


def _is_metadata_line(line: str) -> bool:
    return (
        line.upper().startswith("WEBVTT")
        or bool(_CUE_TIMING.match(line))
        or line.isdigit()
        or bool(_VTT_BLOCK_HEADER.match(line))
    )


def vtt_to_text(raw: str) -> str:
    """Cue text only: headers, timings, cue numbers and NOTE blocks dropped."""
    lines = [line.strip() for line in raw.replace("\r\n", "\n").split("\n")]
    return "\n".join(line for line in lines if line and not _is_metadata_line(line)).strip()


def vtt_segments(raw: str) -> list[TranscriptSegment]:
    """Timed cues of a WebVTT document."""
    segments: list[TranscriptSegment] = []
    for block in re.split(r"\n\s*\n", raw.replace("\r\n", "\n")):
        lines = [line.strip() for line in block.split("\n") if line.strip()]
        for index, line in enumerate(lines):
            match = _CUE_TIMING.match(line)
            if not match:
                continue
            start = _timestamp_ms(*match.group(1, 2, 3, 4))
            end = _timestamp_ms(*match.group(5, 6, 7, 8))
            text = " ".join(lines[index + 1 :]).strip()
            if text:
                segments.append(
                    TranscriptSegment(
                        start_ms=start, duration_ms=max(end - start, 0), text=text
                    )
                )
            break
    return segments


def _texts(rows: list[Any]) -> Optional[str]:
    parts = [
        row["text"].strip()
        for row in rows
        if isinstance(row, dict) and isinstance(row.get("text"), str) and row["text"].strip()
    ]
    text = "\n".join(parts).strip()
    return text or None


def json_transcript_to_text(payload: Any) -> Optional[str]:
    """Handle the JSON shapes seen in the wild.

    A list of ``{text}`` rows, or an object with ``transcript``, ``text`` or
    ``segments[].text``.
    """
    if isinstance(payload, list):
        return _texts(payload)
    if isinstance(payload, dict):
        for key in ("transcript", "text"):
            value = payload.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        segments = payload.get("segments")
        if isinstance(segments, list):
            return _texts(segments)
    return None


def transcript_from_body(
    body: str, link: TranscriptLink, content_type: Optional[str] = None
) -> Optional[FeedTranscript]:
    """Decode a fetched transcript according to its declared or served type.

    The type declared in the feed wins over the response content type.
    """
    effective_type = link.type or content_type
    url = link.url.lower()

    if effective_type == "application/json" or url.endswith(".json"):
        try:
            text = json_transcript_to_text(json.loads(body))
        except ValueError:
            return None
        return FeedTranscript(text=text) if text else None

    if effective_type == "text/vtt" or url.endswith(".vtt"):
        text = vtt_to_text(body)
        if not text:
            return None
        return FeedTranscript(text=text, segments=vtt_segments(body) or None)

    text = body.strip()
    return FeedTranscript(text=text) if text else None
