"""Tests for media downloads and their scratch files."""

import asyncio
from pathlib import Path

import httpx
import pytest

from linkscribe.transcription.media import temporary_media_path, transcribe_media_url

MEDIA_URL = "https://cdn.example.com/episode.mp3"
PAGE_URL = "https://example.com/episode"


class TestTemporaryMediaPath:
    """Test temporary_media_path."""

    @pytest.mark.asyncio
    async def test_removed_after_use(self, tmp_path: Path):
        """Test the reserved file is deleted on a normal exit."""
        async with temporary_media_path(tmp_path, ".m4a") as path:
            assert path.parent == tmp_path
            assert path.suffix == ".m4a"
            path.write_bytes(b"audio")

        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_removed_on_cancellation(self, tmp_path: Path):
        """Test a cancelled body still deletes the partial file."""
        with pytest.raises(asyncio.CancelledError):
            async with temporary_media_path(tmp_path) as path:
                path.write_bytes(b"partial")
                raise asyncio.CancelledError

        assert list(tmp_path.iterdir()) == []


class TestTranscribeMediaUrl:
    """Test transcribe_media_url scratch handling."""

    @pytest.mark.asyncio
    async def test_body_error_midway(
        self, make_deps, transcription_keys, fake_transcriber, tmp_path: Path
    ):
        """Test a connection dropped mid-body leaves no scratch file behind."""

        async def broken_body():
            yield b"ID3partial"
            raise httpx.ReadError("connection reset")

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=broken_body(), headers={"content-type": "audio/mpeg"}
            )

        deps = make_deps(
            handler,
            transcription=transcription_keys,
            transcriber=fake_transcriber,
            scratch_dir=tmp_path,
        )

        result = await transcribe_media_url(deps, MEDIA_URL, page_url=PAGE_URL, service="podcast")

        assert result.text is None
        assert result.error.startswith("Media download failed")
        assert result.notes[-1].outcome == "soft_fail"
        assert fake_transcriber.requests == []
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_cancelled_download(
        self, make_deps, transcription_keys, fake_transcriber, tmp_path: Path
    ):
        """Test cancelling a running download deletes the partial file."""
        started = asyncio.Event()

        async def stalled_body():
            yield b"ID3partial"
            started.set()
            await asyncio.sleep(60)
            yield b"never"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, content=stalled_body(), headers={"content-type": "audio/mpeg"}
            )

        deps = make_deps(
            handler,
            transcription=transcription_keys,
            transcriber=fake_transcriber,
            scratch_dir=tmp_path,
        )

        task = asyncio.create_task(
            transcribe_media_url(deps, MEDIA_URL, page_url=PAGE_URL, service="podcast")
        )
        await started.wait()
        assert len(list(tmp_path.iterdir())) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert list(tmp_path.iterdir()) == []
        assert fake_transcriber.requests == []
