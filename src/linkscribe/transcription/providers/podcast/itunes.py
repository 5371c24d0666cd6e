"""Apple's public iTunes directory: episode lookup by id and show/episode search."""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import httpx

from linkscribe.utils.http import get_json
from linkscribe.utils.json_access import get_float, get_list, get_str, log_schema_drift
from linkscribe.utils.text import normalize_loose_title

logger = logging.getLogger(__name__)

ITUNES_SEARCH_URL = "https://itunes.apple.com/search"
ITUNES_LOOKUP_URL = "https://itunes.apple.com/lookup"
ITUNES_HEADERS = {"Accept": "application/json"}


@dataclass
class ItunesEpisode:
    episode_url: str
    episode_title: str | None = None
    feed_url: str | None = None
    file_extension: str | None = None
    duration_seconds: float | None = None


def _is_http_url(value: str | None) -> bool:
    return bool(value) and value.lower().startswith(("http://", "https://"))


def _records(payload: Any, endpoint: str) -> list[dict[str, Any]]:
    if not isinstance(payload, dict) or "results" not in payload:
        log_schema_drift(f"itunes {endpoint}", "results array missing")
        return []
    return [record for record in get_list(payload, ["results"]) if isinstance(record, dict)]


def _duration_seconds(record: dict[str, Any]) -> float | None:
    millis = get_float(record, ["trackTimeMillis"])
    return millis / 1000 if millis else None


def _release_timestamp(record: dict[str, Any]) -> float | None:
    raw = get_str(record, ["releaseDate"])
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _newest_first(episodes: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # Undated episodes sort last
    return sorted(
        episodes,
        key=lambda record: (
            _release_timestamp(record) is None,
            -(_release_timestamp(record) or 0),
        ),
    )


async def lookup_apple_episode(
    client: httpx.AsyncClient,
    show_id: str,
    episode_id: str | None,
    *,
    timeout: float,
) -> ItunesEpisode | None:
    """Resolve an Apple Podcasts show (and optional episode id) to an audio URL.

    The show record supplies the feed URL. Without an episode id, or when the
    id is not among the returned episodes, the newest episode is chosen.

    Raises:
        RetryableError, NonRetryableError: On request failure
        ValueError: If the response is not JSON
    """
    payload = await get_json(
        client,
        ITUNES_LOOKUP_URL,
        timeout=timeout,
        headers=ITUNES_HEADERS,
        params={"id": show_id, "entity": "podcastEpisode", "limit": "200"},
    )
    records = _records(payload, "lookup")

    show = next(
        (
            r
            for r in records
            if get_str(r, ["wrapperType"]) == "track" and get_str(r, ["kind"]) == "podcast"
        ),
        None,
    )
    feed_url = get_str(show, ["feedUrl"]) if show else None

    episodes = [r for r in records if get_str(r, ["wrapperType"]) == "podcastEpisode"]
    if not episodes:
        return None

    chosen = None
    if episode_id:
        chosen = next((r for r in episodes if str(r.get("trackId", "")) == episode_id), None)
    if chosen is None:
        chosen = _newest_first(episodes)[0]

    episode_url = (get_str(chosen, ["episodeUrl"]) or get_str(chosen, ["previewUrl"]) or "").strip()
    if not _is_http_url(episode_url):
        return None

    extension = get_str(chosen, ["episodeFileExtension"])
    return ItunesEpisode(
        episode_url=episode_url,
        episode_title=(get_str(chosen, ["trackName"]) or "").strip() or None,
        feed_url=feed_url.strip() if feed_url else None,
        file_extension=extension.strip().lstrip(".") if extension else None,
        duration_seconds=_duration_seconds(chosen),
    )


async def search_feed_url(
    client: httpx.AsyncClient, show_title: str, *, timeout: float
) -> str | None:
    """Find a show's RSS feed by title, preferring an exact (loose) name match."""
    payload = await get_json(
        client,
        ITUNES_SEARCH_URL,
        timeout=timeout,
        headers=ITUNES_HEADERS,
        params={"term": show_title, "media": "podcast", "entity": "podcast", "limit": "10"},
    )
    records = _records(payload, "search")
    if not records:
        return None

    target = normalize_loose_title(show_title)
    best = next(
        (r for r in records if normalize_loose_title(get_str(r, ["collectionName"]) or "") == target),
        records[0],
    )
    feed_url = (get_str(best, ["feedUrl"]) or "").strip()
    return feed_url if _is_http_url(feed_url) else None


async def search_episode(
    client: httpx.AsyncClient,
    show_title: str,
    episode_title: str,
    *,
    timeout: float,
) -> ItunesEpisode | None:
    """Search episodes by show and episode title.

    Preference: exact episode and show match, then exact episode match, then
    the first result with an audio URL.
    """
    payload = await get_json(
        client,
        ITUNES_SEARCH_URL,
        timeout=timeout,
        headers=ITUNES_HEADERS,
        params={
            "term": f"{show_title} {episode_title}",
            "media": "podcast",
            "entity": "podcastEpisode",
            "limit": "25",
        },
    )
    candidates = [
        r
        for r in _records(payload, "search")
        if get_str(r, ["episodeUrl"]) and get_str(r, ["trackName"])
    ]
    if not candidates:
        return None

    show = normalize_loose_title(show_title)
    episode = normalize_loose_title(episode_title)

    def title_matches(record: dict[str, Any]) -> bool:
        return normalize_loose_title(get_str(record, ["trackName"]) or "") == episode

    best = (
        next(
            (
                r
                for r in candidates
                if title_matches(r)
                and normalize_loose_title(get_str(r, ["collectionName"]) or "") == show
            ),
            None,
        )
        or next((r for r in candidates if title_matches(r)), None)
        or candidates[0]
    )
    return ItunesEpisode(
        episode_url=str(get_str(best, ["episodeUrl"])),
        episode_title=get_str(best, ["trackName"]) or episode_title,
        duration_seconds=_duration_seconds(best),
    )
