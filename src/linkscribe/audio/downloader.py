"""Audio downloader using yt-dlp."""

import asyncio
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field
from yt_dlp import YoutubeDL
from yt_dlp.utils import DownloadError, ExtractorError

from linkscribe.deps import CookieSource

logger = logging.getLogger(__name__)


class MediaDownloadError(Exception):
    """Raised when the audio track of a page cannot be downloaded."""

    pass


class DownloadProgress(BaseModel):
    """Progress information for audio download."""

    status: str = Field(..., description="Current download status")
    downloaded_bytes: int = Field(default=0, ge=0, description="Bytes downloaded so far")
    total_bytes: int | None = Field(
        default=None, ge=0, description="Total bytes to download (if known)"
    )
    speed: float | None = Field(default=None, ge=0, description="Download speed in bytes/sec")
    eta: int | None = Field(default=None, ge=0, description="Estimated time remaining (seconds)")

    @property
    def percentage(self) -> float | None:
        """Calculate download percentage if total is known."""
        if self.total_bytes and self.total_bytes > 0:
            return (self.downloaded_bytes / self.total_bytes) * 100
        return None


class YtDlpDownloader:
    """Extract the audio track of a page with yt-dlp.

    Audio is converted to MP3 so every transcription backend accepts it.
    The caller owns ``output_path`` and is responsible for deleting it.
    """

    def __init__(
        self,
        progress_callback: Callable[[DownloadProgress], None] | None = None,
        audio_codec: str = "mp3",
        audio_quality: str = "128",
    ):
        self.progress_callback = progress_callback
        self.audio_codec = audio_codec
        self.audio_quality = audio_quality

    def _progress_hook(self, progress_dict: dict[str, Any]) -> None:
        if not self.progress_callback:
            return

        total_bytes = progress_dict.get("total_bytes") or progress_dict.get(
            "total_bytes_estimate"
        )
        progress = DownloadProgress(
            status=progress_dict.get("status", "unknown"),
            downloaded_bytes=progress_dict.get("downloaded_bytes") or 0,
            total_bytes=total_bytes,
            speed=progress_dict.get("speed"),
            eta=progress_dict.get("eta"),
        )
        self.progress_callback(progress)

    def build_options(self, output_path: Path, cookies: CookieSource | None) -> dict[str, Any]:
        """yt-dlp options writing ``<output_path stem>.<codec>`` next to ``output_path``."""
        output_template = str(output_path.with_suffix("")) + ".%(ext)s"
        ydl_opts: dict[str, Any] = {
            "format": "bestaudio/best",
            "postprocessors": [
                {
                    "key": "FFmpegExtractAudio",
                    "preferredcodec": self.audio_codec,
                    "preferredquality": self.audio_quality,
                }
            ],
            "outtmpl": output_template,
            "progress_hooks": [self._progress_hook],
            "noplaylist": True,
            "quiet": True,
            "no_warnings": True,
        }

        if cookies is not None:
            if cookies.cookie_file:
                ydl_opts["cookiefile"] = str(cookies.cookie_file)
            elif cookies.browser:
                ydl_opts["cookiesfrombrowser"] = (cookies.browser,)

        return ydl_opts

    async def download_audio(
        self,
        url: str,
        output_path: Path,
        *,
        cookies: CookieSource | None = None,
    ) -> Path:
        """Download the audio of ``url``.

        Args:
            url: Page or media URL understood by yt-dlp
            output_path: Desired output location (extension is replaced by the codec)
            cookies: Optional cookie source for gated content

        Returns:
            Path to the extracted audio file

        Raises:
            MediaDownloadError: If download or extraction fails
        """
        ydl_opts = self.build_options(output_path, cookies)
        expected = output_path.with_suffix(f".{self.audio_codec}")

        try:
            # Run yt-dlp in thread pool to avoid blocking
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, self._download_sync, url, ydl_opts, expected)
        except DownloadError as e:
            raise MediaDownloadError(f"Failed to download audio from {url}: {e}") from e
        except ExtractorError as e:
            raise MediaDownloadError(
                f"Failed to extract audio information from {url}: {e}"
            ) from e
        except OSError as e:
            raise MediaDownloadError(f"Failed to write audio for {url}: {e}") from e

    def _download_sync(self, url: str, ydl_opts: dict[str, Any], expected: Path) -> Path:
        with YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=True)
            if not info:
                raise MediaDownloadError(f"yt-dlp returned no information for {url}")

        if not expected.exists():
            raise MediaDownloadError(
                f"Download completed but file not found at expected location: {expected}"
            )
        logger.debug(f"Downloaded audio for {url} to {expected}")
        return expected
