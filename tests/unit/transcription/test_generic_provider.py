"""Tests for the generic media transcript provider."""

from pathlib import Path

import pytest

from linkscribe.audio.downloader import MediaDownloadError
from linkscribe.content.models import ResolveOptions
from linkscribe.transcription.providers.base import ProviderContext
from linkscribe.transcription.providers.generic import GenericProvider

TWEET_URL = "https://x.com/someone/status/1234567890"


class FakeDownloader:
    """Writes a small file where yt-dlp would put the extracted audio."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: list[tuple[str, object]] = []

    async def download_audio(self, url, output_path: Path, *, cookies=None) -> Path:
        self.calls.append((url, cookies))
        if self.fail:
            raise MediaDownloadError("HTTP Error 403: Forbidden")
        path = output_path.with_suffix(".mp3")
        path.write_bytes(b"ID3")
        return path


def make_context(deps, url: str = TWEET_URL, html: str | None = None, **options) -> ProviderContext:
    return ProviderContext(
        url=url,
        html=html,
        resource_key=url,
        options=ResolveOptions(**{"media_transcript": "prefer", **options}),
        deps=deps,
    )


class TestGenericProvider:
    """Test GenericProvider skip reasons and the download cascade."""

    @pytest.mark.asyncio
    async def test_not_preferred(self, make_deps):
        """Test nothing runs unless media transcripts are preferred."""
        result = await GenericProvider().fetch(
            make_context(make_deps(), media_transcript="auto")
        )

        assert result.source is None
        assert result.metadata["reason"] == "media_transcript_not_preferred"

    @pytest.mark.asyncio
    async def test_no_embedded_media(self, make_deps):
        """Test plain pages are skipped."""
        result = await GenericProvider().fetch(
            make_context(make_deps(), url="https://example.com/post", html="<p>text</p>")
        )

        assert result.metadata["reason"] == "no_embedded_media"

    @pytest.mark.asyncio
    async def test_missing_yt_dlp(self, make_deps):
        """Test a missing downloader is a recorded skip."""
        result = await GenericProvider().fetch(make_context(make_deps()))

        assert result.source is None
        assert result.metadata["reason"] == "missing_yt_dlp"
        assert result.notes[0].outcome == "skipped"

    @pytest.mark.asyncio
    async def test_missing_transcriber(self, make_deps):
        """Test a downloader without a transcriber is skipped."""
        deps = make_deps(media_downloader=FakeDownloader())

        result = await GenericProvider().fetch(make_context(deps))

        assert result.metadata["reason"] == "missing_transcription_provider"

    @pytest.mark.asyncio
    async def test_transcribes_tweet_video(
        self, make_deps, transcription_keys, fake_transcriber, tmp_path: Path
    ):
        """Test downloaded audio is transcribed and the scratch file removed."""
        downloader = FakeDownloader()
        deps = make_deps(
            media_downloader=downloader,
            transcription=transcription_keys,
            transcriber=fake_transcriber,
            scratch_dir=tmp_path,
        )

        result = await GenericProvider().fetch(make_context(deps))

        assert result.text == "transcribed audio"
        assert result.source == "yt-dlp"
        assert result.attempted_providers == ["yt-dlp"]
        assert result.metadata == {
            "provider": "generic",
            "kind": "twitter",
            "transcription_provider": "groq",
        }
        assert downloader.calls == [(TWEET_URL, None)]
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_download_failure(
        self, make_deps, transcription_keys, fake_transcriber, tmp_path: Path
    ):
        """Test a failed download is a confirmed absence with a note."""
        deps = make_deps(
            media_downloader=FakeDownloader(fail=True),
            transcription=transcription_keys,
            transcriber=fake_transcriber,
            scratch_dir=tmp_path,
        )
        html = '<video src="blob:https://example.com/1"></video>'

        result = await GenericProvider().fetch(
            make_context(deps, url="https://example.com/clip", html=html)
        )

        assert result.text is None
        assert result.source == "unavailable"
        assert result.metadata["kind"] == "embedded_media"
        assert any("403" in note.message for note in result.notes)
        assert fake_transcriber.requests == []
