"""Diagnostics recording which path produced a resolved link.

Every stage of the resolver writes into these models. Notes are structured
records and are only ever appended. Serialized with camelCase keys, which is
the shape callers and tests rely on.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

CacheMode = Literal["default", "bypass"]
CacheStatus = Literal["hit", "miss", "expired", "bypassed", "fallback", "unknown"]
Strategy = Literal["bird", "firecrawl", "html", "nitter"]
NoteOutcome = Literal["ok", "skipped", "soft_fail", "error", "info"]
TranscriptSource = Literal[
    "youtubei",
    "captionTracks",
    "yt-dlp",
    "podcastTranscript",
    "whisper",
    "apify",
    "html",
    "unavailable",
    "unknown",
]
MarkdownProvider = Literal["firecrawl", "llm"]


class DiagnosticNote(BaseModel):
    """One step of evidence: what ran, how it went, and why."""

    model_config = ConfigDict(frozen=True)

    step: str
    outcome: NoteOutcome = "info"
    message: str

    def __str__(self) -> str:
        return f"{self.step}: {self.message}"


class _DiagnosticsBase(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    notes: list[DiagnosticNote] = Field(default_factory=list)

    def add_note(self, step: str, message: str, outcome: NoteOutcome = "info") -> None:
        self.notes.append(DiagnosticNote(step=step, outcome=outcome, message=message))

    def extend_notes(self, notes: list[DiagnosticNote]) -> None:
        self.notes.extend(notes)

    @property
    def notes_text(self) -> str | None:
        """Notes joined with '; ' for error messages, or None when empty."""
        if not self.notes:
            return None
        return "; ".join(note.message for note in self.notes)


class FirecrawlDiagnostics(_DiagnosticsBase):
    attempted: bool = False
    used: bool = False
    cache_mode: CacheMode = "default"
    cache_status: CacheStatus = "unknown"


class MarkdownDiagnostics(_DiagnosticsBase):
    requested: bool = False
    used: bool = False
    provider: MarkdownProvider | None = None


class TranscriptDiagnostics(_DiagnosticsBase):
    cache_mode: CacheMode = "default"
    cache_status: CacheStatus = "unknown"
    text_provided: bool = False
    provider: TranscriptSource | None = None
    attempted_providers: list[TranscriptSource] = Field(default_factory=list)


class ContentFetchDiagnostics(BaseModel):
    """Top-level diagnostics attached to every resolved link."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    strategy: Strategy = "html"
    firecrawl: FirecrawlDiagnostics = Field(default_factory=FirecrawlDiagnostics)
    markdown: MarkdownDiagnostics = Field(default_factory=MarkdownDiagnostics)
    transcript: TranscriptDiagnostics = Field(default_factory=TranscriptDiagnostics)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def initial_cache_status(cache_mode: CacheMode) -> CacheStatus:
    return "bypassed" if cache_mode == "bypass" else "unknown"
