"""Spotify episode embed pages.

Episode pages proper are usually behind bot protection; the lightweight embed
page still ships ``__NEXT_DATA__`` with the show, title, duration and, for
many episodes, a playable audio URL.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

from bs4 import Tag

from linkscribe.content.blocking import looks_blocked
from linkscribe.content.html import parse_html
from linkscribe.deps import LinkResolverDeps
from linkscribe.utils.errors import BlockedContentError, LinkscribeError, NetworkError
from linkscribe.utils.http import BROWSER_HEADERS, REQUEST_ERRORS, describe_error, send_request
from linkscribe.utils.json_access import get_float, get_list, get_str, log_schema_drift

logger = logging.getLogger(__name__)

SPOTIFY_EMBED_URL = "https://open.spotify.com/embed/episode/{episode_id}"
BLOCK_SNIFF_CHARACTERS = 20000

# Embed audio shorter than this is usually a preview clip, not the episode
PREVIEW_MAX_CHARACTERS = 200
PREVIEW_SUSPECT_CHARACTERS = 800
PREVIEW_SUSPECT_MIN_DURATION_SECONDS = 600

_ENTITY = ["props", "pageProps", "state", "data", "entity"]
_AUDIO = ["props", "pageProps", "state", "data", "defaultAudioFileObject"]


@dataclass
class SpotifyEmbedData:
    show_title: str
    episode_title: str
    duration_seconds: float | None = None
    drm_format: str | None = None
    audio_url: str | None = None


def looks_like_blocked_embed(html: str) -> bool:
    """Captcha detection that trusts ``__NEXT_DATA__`` as proof of a real page."""
    head = html[:BLOCK_SNIFF_CHARACTERS]
    if "__next_data__" in head.lower():
        return False
    return looks_blocked(head)


def _pick_audio_url(raw: Any) -> str | None:
    urls = [
        value.strip()
        for value in (raw if isinstance(raw, list) else [])
        if isinstance(value, str) and value.strip().lower().startswith(("http://", "https://"))
    ]
    if not urls:
        return None
    return next((url for url in urls if "scdn.co" in url.lower()), urls[0])


def extract_spotify_embed_data(html: str) -> SpotifyEmbedData | None:
    """Parse ``__NEXT_DATA__``; None when the script or the titles are missing."""
    script = parse_html(html).find("script", id="__NEXT_DATA__")
    if not isinstance(script, Tag):
        return None
    try:
        data = json.loads(script.string or script.get_text())
    except ValueError:
        log_schema_drift("spotify embed", "__NEXT_DATA__ is not JSON")
        return None

    show_title = (get_str(data, [*_ENTITY, "subtitle"]) or "").strip()
    episode_title = (get_str(data, [*_ENTITY, "title"]) or "").strip()
    if not show_title or not episode_title:
        log_schema_drift("spotify embed", "entity title/subtitle missing")
        return None

    duration_ms = get_float(data, [*_ENTITY, "duration"])
    return SpotifyEmbedData(
        show_title=show_title,
        episode_title=episode_title,
        duration_seconds=duration_ms / 1000 if duration_ms else None,
        drm_format=get_str(data, [*_AUDIO, "format"]),
        audio_url=_pick_audio_url(get_list(data, [*_AUDIO, "url"])),
    )


def is_preview_clip(transcript_characters: int, duration_seconds: float | None) -> bool:
    """Whether a transcript of embed audio looks like a short preview clip.

    Very short transcripts always count; moderately short ones count when the
    episode is long or of unknown length.
    """
    if transcript_characters <= 0:
        return False
    if transcript_characters < PREVIEW_MAX_CHARACTERS:
        return True
    return transcript_characters < PREVIEW_SUSPECT_CHARACTERS and (
        duration_seconds is None or duration_seconds >= PREVIEW_SUSPECT_MIN_DURATION_SECONDS
    )


async def fetch_spotify_embed_html(
    deps: LinkResolverDeps,
    episode_id: str,
    *,
    timeout: float,
) -> tuple[str, Literal["fetch", "firecrawl"]]:
    """Fetch the embed page directly, falling back to Firecrawl when blocked.

    Returns:
        The page HTML and how it was obtained

    Raises:
        NetworkError: If the page cannot be fetched by either route
        BlockedContentError: If both routes only return a captcha
    """
    embed_url = SPOTIFY_EMBED_URL.format(episode_id=episode_id)
    headers = {**BROWSER_HEADERS, "Referer": f"https://open.spotify.com/episode/{episode_id}"}

    try:
        response = await send_request(deps.http, "GET", embed_url, timeout=timeout, headers=headers)
        if not looks_like_blocked_embed(response.text):
            return response.text, "fetch"
        direct_error: Exception = BlockedContentError("Spotify embed HTML looked blocked (captcha)")
    except REQUEST_ERRORS as e:
        status_code = getattr(e, "status_code", None)
        reason = f"status {status_code}" if status_code else describe_error(e)
        direct_error = NetworkError(f"Spotify embed fetch failed ({reason})")

    if deps.firecrawl is None:
        raise direct_error

    logger.info(f"Spotify embed fetch failed ({direct_error}); trying Firecrawl")
    try:
        payload = await deps.firecrawl.scrape(embed_url, timeout=timeout, cache_mode="bypass")
    except (LinkscribeError, *REQUEST_ERRORS, ValueError) as e:
        raise NetworkError(f"{direct_error}; Firecrawl error: {describe_error(e)}") from e

    text = ((payload.html or payload.markdown or "") if payload else "").strip()
    if not text:
        raise NetworkError(
            f"Spotify embed fetch failed and Firecrawl returned empty content ({direct_error})"
        )
    if looks_like_blocked_embed(text):
        raise BlockedContentError("Spotify embed blocked even via Firecrawl (captcha)")
    return text, "firecrawl"
