"""Tests for the podcast transcript provider."""

import json
from pathlib import Path

import httpx
import pytest

from linkscribe.content.models import ResolveOptions
from linkscribe.transcription.providers.base import ProviderContext
from linkscribe.transcription.providers.podcast.provider import PodcastProvider
from linkscribe.transcription.providers.podcast.spotify import is_preview_clip
from linkscribe.utils.errors import ProviderExhaustedError

FEED_URL = "https://feeds.example.com/show.xml"


def rss_feed(*items: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:itunes="http://www.itunes.com/dtds/podcast-1.0.dtd"'
        ' xmlns:podcast="https://podcastindex.org/namespace/1.0">'
        "<channel><title>Example Show</title>" + "".join(items) + "</channel></rss>"
    )


def rss_item(
    title: str,
    *,
    audio: str | None = None,
    transcript: str | None = None,
    transcript_type: str = "text/vtt",
) -> str:
    parts = [f"<title>{title}</title>", "<itunes:duration>10:00</itunes:duration>"]
    if audio:
        parts.append(f'<enclosure url="{audio}" type="audio/mpeg" length="1234"/>')
    if transcript:
        parts.append(f'<podcast:transcript url="{transcript}" type="{transcript_type}"/>')
    return "<item>" + "".join(parts) + "</item>"


VTT = "WEBVTT\n\n1\n00:00:00.000 --> 00:00:02.500\nHello and welcome.\n\n2\n00:00:02.500 --> 00:00:05.000\nToday we talk feeds.\n"


def make_context(deps, url: str, html: str | None) -> ProviderContext:
    provider = PodcastProvider()
    return ProviderContext(
        url=url,
        html=html,
        resource_key=provider.resource_key(url),
        options=ResolveOptions(),
        deps=deps,
    )


class TestPodcastProvider:
    """Test the podcast provider entry paths."""

    def test_can_handle_and_keys(self):
        """Test URL claims and cache keys."""
        provider = PodcastProvider()

        assert provider.can_handle("https://open.spotify.com/episode/abc123", None)
        assert provider.can_handle("https://example.com/feed.xml", None)
        assert provider.can_handle("https://example.com/x", rss_feed())
        assert not provider.can_handle("https://example.com/article", "<html></html>")
        assert provider.resource_key("https://open.spotify.com/episode/abc123") == "spotify:abc123"
        assert (
            provider.resource_key("https://podcasts.apple.com/us/podcast/x/id42")
            == "apple:42:latest"
        )

    @pytest.mark.asyncio
    async def test_rss_feed_transcript(self, make_deps):
        """Test a feed's transcript tag is used without transcription."""

        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://cdn.example.com/ep1.vtt"
            return httpx.Response(200, text=VTT, headers={"content-type": "text/vtt"})

        feed = rss_feed(
            rss_item(
                "Episode 1",
                audio="https://cdn.example.com/ep1.mp3",
                transcript="https://cdn.example.com/ep1.vtt",
            )
        )
        deps = make_deps(handler)

        result = await PodcastProvider().fetch(make_context(deps, FEED_URL, feed))

        assert result.text == "Hello and welcome.\nToday we talk feeds."
        assert result.source == "podcastTranscript"
        assert result.attempted_providers == ["podcastTranscript"]
        assert result.metadata["kind"] == "rss_feed_transcript"
        assert result.metadata["transcript_url"] == "https://cdn.example.com/ep1.vtt"
        assert [s.start_ms for s in result.segments] == [0, 2500]
        assert any("skipped Whisper" in note.message for note in result.notes)

    @pytest.mark.asyncio
    async def test_feed_url_fetched(self, make_deps):
        """Test a feed URL without HTML is fetched first."""
        feed = rss_feed(
            rss_item(
                "Episode 1",
                transcript="https://cdn.example.com/ep1.json",
                transcript_type="application/json",
            )
        )

        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == FEED_URL:
                return httpx.Response(200, text=feed)
            return httpx.Response(200, json={"segments": [{"text": "One"}, {"text": "Two"}]})

        result = await PodcastProvider().fetch(make_context(make_deps(handler), FEED_URL, None))

        assert result.text == "One\nTwo"
        assert result.source == "podcastTranscript"

    @pytest.mark.asyncio
    async def test_enclosure_transcription(
        self, make_deps, transcription_keys, transcriber_factory, tmp_path: Path
    ):
        """Test the enclosure is transcribed when no transcript is published."""
        transcriber = transcriber_factory(text="spoken words")

        def handler(request: httpx.Request) -> httpx.Response:
            assert str(request.url) == "https://cdn.example.com/ep1.mp3"
            return httpx.Response(200, content=b"ID3audio", headers={"content-type": "audio/mpeg"})

        deps = make_deps(
            handler,
            transcription=transcription_keys,
            transcriber=transcriber,
            scratch_dir=tmp_path,
        )
        feed = rss_feed(rss_item("Episode 1", audio="https://cdn.example.com/ep1.mp3"))

        result = await PodcastProvider().fetch(make_context(deps, FEED_URL, feed))

        assert result.text == "spoken words"
        assert result.source == "whisper"
        assert result.attempted_providers == ["whisper"]
        assert result.metadata["kind"] == "rss_feed_enclosure"
        assert result.metadata["transcription_provider"] == "groq"
        assert result.metadata["duration_seconds"] == 600.0
        request = transcriber.requests[0]
        assert request.media_type == "audio/mpeg"
        assert request.provider_order == ["groq"]
        # Scratch media is removed afterwards
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.asyncio
    async def test_enclosure_without_transcriber(self, make_deps):
        """Test a missing transcriber is a skip, not a failure."""
        feed = rss_feed(rss_item("Episode 1", audio="https://cdn.example.com/ep1.mp3"))

        result = await PodcastProvider().fetch(make_context(make_deps(), FEED_URL, feed))

        assert result.text is None
        assert result.source is None
        assert result.metadata["reason"] == "missing_transcription_provider"

    @pytest.mark.asyncio
    async def test_apple_lookup_feed_transcript(self, make_deps):
        """Test Apple URLs resolve through iTunes lookup and the show feed."""
        lookup = {
            "results": [
                {"wrapperType": "track", "kind": "podcast", "feedUrl": FEED_URL},
                {
                    "wrapperType": "podcastEpisode",
                    "trackId": 1000650000000,
                    "trackName": "Episode Two!",
                    "episodeUrl": "https://cdn.example.com/ep2.mp3",
                    "trackTimeMillis": 60000,
                },
            ]
        }
        feed = rss_feed(
            rss_item("Episode One", transcript="https://cdn.example.com/ep1.vtt"),
            rss_item("Episode Two", transcript="https://cdn.example.com/ep2.vtt"),
        )

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "itunes.apple.com":
                assert request.url.params["id"] == "1234"
                return httpx.Response(200, json=lookup)
            if str(request.url) == FEED_URL:
                return httpx.Response(200, text=feed)
            assert str(request.url) == "https://cdn.example.com/ep2.vtt"
            return httpx.Response(200, text=VTT)

        url = "https://podcasts.apple.com/us/podcast/show/id1234?i=1000650000000"

        result = await PodcastProvider().fetch(make_context(make_deps(handler), url, None))

        assert result.source == "podcastTranscript"
        assert result.metadata["kind"] == "apple_itunes_rss_transcript"
        assert result.metadata["episode_title"] == "Episode Two!"
        assert result.metadata["show_id"] == "1234"

    @pytest.mark.asyncio
    async def test_apple_lookup_failure_exhausts(self, make_deps):
        """Test platform URLs raise when every step failed."""

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404)

        url = "https://podcasts.apple.com/us/podcast/show/id1234"

        with pytest.raises(ProviderExhaustedError, match="iTunes lookup failed"):
            await PodcastProvider().fetch(make_context(make_deps(handler), url, None))

    @pytest.mark.asyncio
    async def test_spotify_embed_audio(
        self, make_deps, transcription_keys, transcriber_factory, tmp_path: Path
    ):
        """Test Spotify embed audio is transcribed when it is not a preview clip."""
        next_data = {
            "props": {
                "pageProps": {
                    "state": {
                        "data": {
                            "entity": {
                                "title": "Episode 7",
                                "subtitle": "Example Show",
                                "duration": 120000,
                            },
                            "defaultAudioFileObject": {
                                "url": ["https://p.scdn.co/mp3-preview/abc"],
                            },
                        }
                    }
                }
            }
        }
        embed = (
            '<html><body><script id="__NEXT_DATA__" type="application/json">'
            f"{json.dumps(next_data)}</script></body></html>"
        )
        text = "word " * 100

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.host == "open.spotify.com":
                assert request.url.path == "/embed/episode/abc123"
                return httpx.Response(200, text=embed)
            assert request.url.host == "p.scdn.co"
            return httpx.Response(200, content=b"audio", headers={"content-type": "audio/mpeg"})

        deps = make_deps(
            handler,
            transcription=transcription_keys,
            transcriber=transcriber_factory(text=text),
            scratch_dir=tmp_path,
        )

        result = await PodcastProvider().fetch(
            make_context(deps, "https://open.spotify.com/episode/abc123", None)
        )

        assert result.source == "whisper"
        assert result.metadata["kind"] == "spotify_embed_audio"
        assert result.metadata["show_title"] == "Example Show"
        assert result.metadata["duration_seconds"] == 120.0
        assert any(note.message == "Resolved Spotify embed audio" for note in result.notes)

    @pytest.mark.asyncio
    async def test_embedded_stream_after_feed_failure(
        self, make_deps, transcription_keys, transcriber_factory, tmp_path: Path
    ):
        """Test the embedded streamUrl is transcribed when the feedUrl fetch fails."""
        stream_url = "https://cdn.example.com/stream/ep42.mp3"
        html = (
            "<html><body><script>"
            + json.dumps({"feedUrl": FEED_URL, "streamUrl": stream_url}, separators=(",", ":"))
            + "</script></body></html>"
        )
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if str(request.url) == FEED_URL:
                return httpx.Response(404)
            return httpx.Response(200, content=b"ID3audio", headers={"content-type": "audio/mpeg"})

        deps = make_deps(
            handler,
            transcription=transcription_keys,
            transcriber=transcriber_factory(text="streamed words"),
            scratch_dir=tmp_path,
        )

        result = await PodcastProvider().fetch(
            make_context(deps, "https://example.com/episodes/42", html)
        )

        assert result.text == "streamed words"
        assert result.source == "whisper"
        assert result.metadata["kind"] == "apple_stream_url"
        assert result.metadata["stream_url"] == stream_url
        assert requested == [FEED_URL, stream_url]
        assert any(
            note.step == "feed fetch" and note.outcome == "soft_fail" for note in result.notes
        )
        assert list(tmp_path.iterdir()) == []


class TestPreviewClip:
    """Test the preview clip heuristic."""

    def test_thresholds(self):
        """Test short transcripts of long episodes count as previews."""
        assert is_preview_clip(150, 3600) is True
        assert is_preview_clip(500, 3600) is True
        assert is_preview_clip(500, None) is True
        assert is_preview_clip(500, 120) is False
        assert is_preview_clip(5000, 3600) is False
        assert is_preview_clip(0, 3600) is False
