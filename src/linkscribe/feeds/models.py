"""Data models for podcast feeds."""

from typing import Optional

from pydantic import BaseModel, Field

from linkscribe.utils.text import normalize_loose_title


class TranscriptLink(BaseModel):
    """A ``<podcast:transcript>`` entry on a feed item."""

    url: str
    type: Optional[str] = None  # Normalized MIME type, e.g. "text/vtt"

    @property
    def is_json(self) -> bool:
        return self.type == "application/json" or self.url.lower().endswith(".json")

    @property
    def is_vtt(self) -> bool:
        return self.type == "text/vtt" or self.url.lower().endswith(".vtt")


class Enclosure(BaseModel):
    """Audio attached to a feed item."""

    url: str
    type: Optional[str] = None
    length: Optional[int] = None


class FeedItem(BaseModel):
    """Represents a single podcast episode in a feed."""

    title: Optional[str] = None
    enclosure: Optional[Enclosure] = None
    duration_seconds: Optional[float] = None
    published: Optional[str] = None
    transcripts: list[TranscriptLink] = Field(default_factory=list)

    @property
    def loose_title(self) -> str:
        """Title normalized for fuzzy matching."""
        return normalize_loose_title(self.title or "")


class PodcastFeed(BaseModel):
    """Parsed RSS or Atom feed."""

    title: Optional[str] = None
    items: list[FeedItem] = Field(default_factory=list)

    @property
    def has_transcripts(self) -> bool:
        return any(item.transcripts for item in self.items)
