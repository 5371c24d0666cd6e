"""Audio extraction for media transcription."""

from linkscribe.audio.downloader import DownloadProgress, MediaDownloadError, YtDlpDownloader

__all__ = [
    "DownloadProgress",
    "MediaDownloadError",
    "YtDlpDownloader",
]
