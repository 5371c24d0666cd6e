"""Data models for transcripts, cache entries and transcription requests."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, Protocol

from pydantic import BaseModel, Field

from linkscribe.content.diagnostics import (
    DiagnosticNote,
    TranscriptDiagnostics,
    TranscriptSource,
)

__all__ = [
    "CacheEntry",
    "CacheWrite",
    "ProviderResult",
    "TranscriptResolution",
    "TranscriptSegment",
    "TranscriptSource",
    "Transcriber",
    "TranscriptionOutcome",
    "TranscriptionProgress",
    "TranscriptionRequest",
]


class TranscriptSegment(BaseModel):
    """A timed slice of a transcript."""

    start_ms: int = Field(ge=0)
    duration_ms: int | None = Field(default=None, ge=0)
    text: str


class CacheEntry(BaseModel):
    """Stored transcript as returned by a cache store.

    A negative entry has ``content=None`` and ``source="unavailable"``.
    Expired entries are still returned; callers decide whether to use them.
    """

    content: str | None = None
    source: TranscriptSource | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    expired: bool = False


class CacheWrite(BaseModel):
    """Payload handed to a cache store on write."""

    content: str | None = None
    source: TranscriptSource | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class TranscriptResolution(BaseModel):
    """Outcome of the transcript dispatcher for one link."""

    text: str | None = None
    source: TranscriptSource | None = None
    metadata: dict[str, Any] | None = None
    segments: list[TranscriptSegment] | None = None
    diagnostics: TranscriptDiagnostics | None = None


class ProviderResult(BaseModel):
    """What a transcript provider found.

    ``source=None`` means the provider did not run its cascade at all;
    ``source="unavailable"`` means it ran and found nothing.
    """

    text: str | None = None
    source: TranscriptSource | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    segments: list[TranscriptSegment] | None = None
    attempted_providers: list[TranscriptSource] = Field(default_factory=list)
    notes: list[DiagnosticNote] = Field(default_factory=list)


class TranscriptionProgress(BaseModel):
    """Progress reported by a transcriber working through chunked media."""

    processed_seconds: float | None = Field(default=None, ge=0)
    total_seconds: float | None = Field(default=None, ge=0)
    part_index: int | None = Field(default=None, ge=0)
    total_parts: int | None = Field(default=None, ge=0)

    @property
    def percentage(self) -> float | None:
        """Completion percentage if the total duration is known."""
        if self.total_seconds and self.processed_seconds is not None:
            return min(100.0, (self.processed_seconds / self.total_seconds) * 100)
        return None


@dataclass
class TranscriptionRequest:
    """Input for a transcriber: a local file or raw bytes, never both.

    Attributes:
        file_path: Path to a local media file
        audio_bytes: Raw media data
        media_type: Declared MIME type, if known
        filename: Original filename hint (used for extension sniffing)
        duration_hint_seconds: Best-effort duration for progress reporting
        provider_order: Preferred provider ids, most preferred first
        on_progress: Optional progress callback

    Raises:
        ValueError: If not exactly one input is provided
    """

    file_path: Path | None = None
    audio_bytes: bytes | None = None
    media_type: str | None = None
    filename: str | None = None
    duration_hint_seconds: float | None = None
    provider_order: list[str] = field(default_factory=list)
    on_progress: Callable[[TranscriptionProgress], None] | None = None

    @property
    def source_type(self) -> Literal["file", "bytes"]:
        return "file" if self.file_path else "bytes"

    def __post_init__(self) -> None:
        sources = sum(1 for x in [self.file_path, self.audio_bytes] if x)
        if sources != 1:
            raise ValueError("Exactly one of file_path or audio_bytes must be provided")


class TranscriptionOutcome(BaseModel):
    """Result returned by a transcriber."""

    text: str | None = None
    provider_id: str | None = None
    error: str | None = None


class Transcriber(Protocol):
    """Speech-to-text collaborator (Whisper via Groq/OpenAI/FAL or a local model)."""

    async def transcribe(self, request: TranscriptionRequest) -> TranscriptionOutcome: ...
