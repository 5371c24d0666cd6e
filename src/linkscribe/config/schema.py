"""Configuration schema models using Pydantic."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR"]
FirecrawlMode = Literal["off", "auto", "always"]
YoutubeTranscriptMode = Literal["auto", "web", "yt-dlp", "apify"]
TranscriptionProviderId = Literal["groq", "openai", "fal", "local"]


class TranscriptionConfig(BaseModel):
    """Credentials for the speech-to-text collaborator."""

    groq_api_key: str | None = None  # If None, will use environment variable
    openai_api_key: str | None = None
    fal_api_key: str | None = None
    local_model_ready: bool = False  # Local whisper model installed and loadable

    @property
    def has_cloud_key(self) -> bool:
        return bool(self.groq_api_key or self.openai_api_key or self.fal_api_key)

    @property
    def is_available(self) -> bool:
        """True when at least one transcription route can run."""
        return self.has_cloud_key or self.local_model_ready

    def provider_order(self) -> list[TranscriptionProviderId]:
        """Preferred provider order: groq, openai, fal, then local.

        With no cloud key configured, a ready local model is the only entry.
        """
        order: list[TranscriptionProviderId] = []
        if self.groq_api_key:
            order.append("groq")
        if self.openai_api_key:
            order.append("openai")
        if self.fal_api_key:
            order.append("fal")
        if self.local_model_ready:
            order.append("local")
        return order


class ServicesConfig(BaseModel):
    """Third-party scraping services."""

    apify_api_token: str | None = None
    firecrawl_api_key: str | None = None
    firecrawl_base_url: str = "https://api.firecrawl.dev"


class CacheConfig(BaseModel):
    """Transcript cache settings."""

    enabled: bool = True
    cache_dir: Path | None = None  # Default: platform cache dir


class ResolverConfig(BaseModel):
    """Global linkscribe configuration."""

    version: str = "1"
    log_level: LogLevel = "INFO"
    timeout_seconds: float = Field(default=120.0, gt=0)
    firecrawl_mode: FirecrawlMode = "auto"
    youtube_transcript_mode: YoutubeTranscriptMode = "auto"
    media_downloads: bool = True  # Allow yt-dlp audio downloads

    transcription: TranscriptionConfig = Field(default_factory=TranscriptionConfig)
    services: ServicesConfig = Field(default_factory=ServicesConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
