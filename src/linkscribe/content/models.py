"""Request options and the resolved-content result model."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from linkscribe.config.schema import FirecrawlMode, YoutubeTranscriptMode
from linkscribe.content.diagnostics import CacheMode, ContentFetchDiagnostics, TranscriptSource
from linkscribe.content.html import DetectedVideo

ContentFormat = Literal["text", "markdown"]
MarkdownMode = Literal["off", "auto", "llm", "readability"]
MediaTranscriptMode = Literal["auto", "prefer"]


class ResolveOptions(BaseModel):
    """Per-call options for ``LinkContentResolver.resolve``."""

    timeout_seconds: float = Field(default=120.0, gt=0)
    overall_timeout_seconds: float | None = Field(default=None, gt=0)
    max_characters: int | None = None  # None or <= 0 means no limit
    cache_mode: CacheMode = "default"
    firecrawl: FirecrawlMode = "auto"
    youtube_transcript: YoutubeTranscriptMode = "auto"
    format: ContentFormat = "text"
    markdown_mode: MarkdownMode = "auto"
    media_transcript: MediaTranscriptMode = "auto"
    transcript_timestamps: bool = False

    @property
    def markdown_requested(self) -> bool:
        return self.format == "markdown"


class ResolvedContent(BaseModel):
    """Best available text for a link, plus transcript statistics."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    url: str
    title: str | None = None
    description: str | None = None
    site_name: str | None = None
    content: str
    truncated: bool = False
    total_characters: int = 0
    word_count: int = 0
    transcript_characters: int | None = None
    transcript_word_count: int | None = None
    transcript_lines: int | None = None
    transcript_source: TranscriptSource | None = None
    transcription_provider: str | None = None
    transcript_metadata: dict[str, Any] | None = None
    media_duration_seconds: float | None = None
    video: DetectedVideo | None = None
    is_video_only: bool = False
    diagnostics: ContentFetchDiagnostics

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
