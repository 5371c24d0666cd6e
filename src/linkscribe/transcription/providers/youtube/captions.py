"""Caption tracks listed in YouTube's player response."""

import json
import logging
from typing import Any
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

import httpx
from bs4 import BeautifulSoup

from linkscribe.content.html import extract_youtube_player_response
from linkscribe.transcription.models import TranscriptSegment
from linkscribe.transcription.providers.youtube.api import (
    YOUTUBEI_BASE_URL,
    TimedTranscript,
    YoutubeBootstrap,
    client_headers,
    context_with_url,
    extract_innertube_api_key,
    parse_timestamp_ms,
)
from linkscribe.utils.http import BROWSER_USER_AGENT, REQUEST_ERRORS, get_text, send_request
from linkscribe.utils.json_access import get_list, get_path, get_str, log_schema_drift, loads_or_none
from linkscribe.utils.text import decode_entities

logger = logging.getLogger(__name__)

ANDROID_CLIENT_NAME = "ANDROID"
ANDROID_CLIENT_VERSION = "20.10.38"

CAPTION_HEADERS = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept-Language": "en-US,en;q=0.9",
}

_XSSI_PREFIX = ")]}'"


def _is_english(language: str) -> bool:
    return language == "en" or language.startswith("en-")


def order_caption_tracks(player: dict[str, Any]) -> list[dict[str, Any]]:
    """Manual tracks before ASR, English first, one track per language."""
    renderer = get_path(player, ["captions", "playerCaptionsTracklistRenderer"])
    if renderer is None:
        renderer = get_path(player, ["playerCaptionsTracklistRenderer"])
    tracks = [t for t in get_list(renderer, ["captionTracks"]) if isinstance(t, dict)]
    tracks += [t for t in get_list(renderer, ["automaticCaptions"]) if isinstance(t, dict)]

    def sort_key(track: dict[str, Any]) -> tuple[int, int]:
        language = track.get("languageCode") if isinstance(track.get("languageCode"), str) else ""
        return (1 if track.get("kind") == "asr" else 0, 0 if _is_english(language) else 1)

    ordered: list[dict[str, Any]] = []
    seen: set[str] = set()
    for track in sorted(tracks, key=sort_key):
        language = str(track.get("languageCode") or "").lower()
        if language and language in seen:
            continue
        if language:
            seen.add(language)
        ordered.append(track)
    return ordered


def parse_json3_transcript(raw: str) -> TimedTranscript | None:
    """Parse the ``fmt=json3`` caption format (``events[].segs[].utf8``)."""
    data = loads_or_none(raw)
    events = get_list(data, ["events"])
    if not events:
        return None

    lines: list[str] = []
    segments: list[TranscriptSegment] = []
    for event in events:
        if not isinstance(event, dict):
            continue
        segs = event.get("segs")
        if not isinstance(segs, list):
            continue
        text = "".join(
            seg["utf8"] for seg in segs if isinstance(seg, dict) and isinstance(seg.get("utf8"), str)
        ).strip()
        if not text:
            continue
        lines.append(text)
        start_ms = parse_timestamp_ms(event.get("tStartMs"))
        if start_ms is not None:
            segments.append(
                TranscriptSegment(
                    start_ms=start_ms,
                    duration_ms=parse_timestamp_ms(event.get("dDurationMs")),
                    text=" ".join(text.split()),
                )
            )

    transcript = "\n".join(lines).strip()
    if not transcript:
        return None
    return TimedTranscript(text=transcript, segments=segments or None)


def _seconds_to_ms(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return round(seconds * 1000) if seconds >= 0 else None


def parse_xml_transcript(raw: str) -> TimedTranscript | None:
    """Parse the legacy ``<text start="1.2" dur="3.4">`` caption format."""
    soup = BeautifulSoup(raw, "html.parser")
    lines: list[str] = []
    segments: list[TranscriptSegment] = []
    for node in soup.find_all("text"):
        text = " ".join(decode_entities(node.get_text()).split())
        if not text:
            continue
        lines.append(text)
        start_ms = _seconds_to_ms(node.get("start"))
        if start_ms is not None:
            segments.append(
                TranscriptSegment(
                    start_ms=start_ms, duration_ms=_seconds_to_ms(node.get("dur")), text=text
                )
            )

    transcript = "\n".join(lines).strip()
    if not transcript:
        return None
    return TimedTranscript(text=transcript, segments=segments or None)


def _with_query(url: str, **params: str) -> str:
    parsed = urlparse(url)
    query = dict(parse_qsl(parsed.query, keep_blank_values=True))
    query.update(params)
    return urlunparse(parsed._replace(query=urlencode(query)))


def _without_format(url: str) -> str:
    parsed = urlparse(url)
    query = [(k, v) for k, v in parse_qsl(parsed.query, keep_blank_values=True) if k != "fmt"]
    return urlunparse(parsed._replace(query=urlencode(query)))


async def download_caption_track(
    client: httpx.AsyncClient, track: dict[str, Any], *, timeout: float
) -> TimedTranscript | None:
    """Fetch one track as json3, falling back to the XML format."""
    base_url = get_str(track, ["baseUrl"]) or get_str(track, ["url"])
    if not base_url:
        return None

    try:
        json3_url = _with_query(base_url, fmt="json3", alt="json")
        raw = await get_text(client, json3_url, timeout=timeout, headers=CAPTION_HEADERS)
        transcript = parse_json3_transcript(raw) or parse_xml_transcript(raw)
        if transcript:
            return transcript
    except REQUEST_ERRORS as e:
        logger.debug(f"json3 caption download failed, trying XML: {e}")

    try:
        raw = await get_text(
            client, _without_format(base_url), timeout=timeout, headers=CAPTION_HEADERS
        )
    except REQUEST_ERRORS as e:
        logger.debug(f"XML caption download failed: {e}")
        return None
    return parse_json3_transcript(raw) or parse_xml_transcript(raw)


async def transcript_from_player(
    client: httpx.AsyncClient, player: dict[str, Any], *, timeout: float
) -> TimedTranscript | None:
    tracks = order_caption_tracks(player)
    if not tracks:
        return None
    for track in tracks:
        transcript = await download_caption_track(client, track, timeout=timeout)
        if transcript:
            return transcript
    return None


def _parse_player_body(raw: str) -> dict[str, Any] | None:
    text = raw.lstrip()
    if text.startswith(_XSSI_PREFIX):
        text = text[len(_XSSI_PREFIX) :]
    try:
        data = json.loads(text)
    except ValueError:
        log_schema_drift("youtubei player", "response is not JSON")
        return None
    return data if isinstance(data, dict) else None


async def fetch_android_player(
    client: httpx.AsyncClient, api_key: str, video_id: str, *, timeout: float
) -> dict[str, Any] | None:
    """Player response as seen by the Android app, which often lists tracks the web page omits."""
    body = {
        "context": {
            "client": {"clientName": ANDROID_CLIENT_NAME, "clientVersion": ANDROID_CLIENT_VERSION}
        },
        "videoId": video_id,
    }
    response = await send_request(
        client,
        "POST",
        f"{YOUTUBEI_BASE_URL}/player?key={api_key}",
        timeout=timeout,
        headers={**CAPTION_HEADERS, "Content-Type": "application/json", "Accept": "application/json"},
        json_body=body,
    )
    return _parse_player_body(response.text)


async def fetch_web_player(
    client: httpx.AsyncClient,
    bootstrap: YoutubeBootstrap,
    video_id: str,
    original_url: str,
    *,
    timeout: float,
) -> dict[str, Any] | None:
    body = {
        "context": context_with_url(bootstrap.context, original_url),
        "videoId": video_id,
        "playbackContext": {"contentPlaybackContext": {"html5Preference": "HTML5_PREF_WANTS"}},
        "contentCheckOk": True,
        "racyCheckOk": True,
    }
    headers = client_headers(bootstrap, original_url)
    if bootstrap.xsrf_token:
        headers["X-Youtube-Identity-Token"] = bootstrap.xsrf_token
    response = await send_request(
        client,
        "POST",
        f"{YOUTUBEI_BASE_URL}/player?key={bootstrap.api_key}",
        timeout=timeout,
        headers=headers,
        json_body=body,
    )
    return _parse_player_body(response.text)


async def fetch_caption_transcript(
    client: httpx.AsyncClient,
    html: str,
    *,
    video_id: str,
    original_url: str,
    bootstrap: YoutubeBootstrap | None,
    timeout: float,
) -> TimedTranscript | None:
    """Try the page's own player response, then the web player API, then ANDROID."""
    player = extract_youtube_player_response(html)
    if player is not None:
        transcript = await transcript_from_player(client, player, timeout=timeout)
        if transcript:
            return transcript
    else:
        log_schema_drift("youtube watch page", "ytInitialPlayerResponse not found")

    api_key = (bootstrap.api_key if bootstrap else None) or extract_innertube_api_key(html)
    if not api_key:
        return None

    if bootstrap is not None and bootstrap.api_key:
        try:
            web_player = await fetch_web_player(
                client, bootstrap, video_id, original_url, timeout=timeout
            )
        except REQUEST_ERRORS as e:
            logger.debug(f"Web player request failed for {video_id}: {e}")
            web_player = None
        if web_player is not None:
            transcript = await transcript_from_player(client, web_player, timeout=timeout)
            if transcript:
                return transcript

    android_player = await fetch_android_player(client, api_key, video_id, timeout=timeout)
    if android_player is None:
        return None
    return await transcript_from_player(client, android_player, timeout=timeout)
