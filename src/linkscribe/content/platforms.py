"""URL classification for the platforms the resolver treats specially."""

import re
from typing import NamedTuple
from urllib.parse import parse_qs, urlparse, urlunparse

YOUTUBE_URL_PATTERN = re.compile(r"youtube\.com|youtu\.be", re.IGNORECASE)
_VIDEO_ID = re.compile(r"^[a-zA-Z0-9_-]{11}$")

PODCAST_HOST_SUFFIXES = (
    "spotify.com",
    "podcasts.apple.com",
    "podchaser.com",
    "podbean.com",
    "buzzsprout.com",
    "spreaker.com",
    "simplecast.com",
    "rss.com",
    "libsyn.com",
    "omny.fm",
    "acast.com",
    "transistor.fm",
    "captivate.fm",
    "soundcloud.com",
    "ivoox.com",
    "iheart.com",
    "megaphone.fm",
    "pca.st",
    "player.fm",
    "castbox.fm",
)

PODCAST_PLATFORM_HOST_PATTERN = re.compile(
    r"open\.spotify\.com|spotify\.com|podcasts\.apple\.com|overcast\.fm|pca\.st|pod\.link"
    r"|castbox\.fm|player\.fm",
    re.IGNORECASE,
)
FEED_HINT_URL_PATTERN = re.compile(r"rss|feed|podcast|\.xml($|[?#])", re.IGNORECASE)

TWITTER_HOSTS = frozenset({"x.com", "twitter.com", "mobile.twitter.com"})
NITTER_HOSTS = (
    "nitter.net",
    "nitter.poast.org",
    "nitter.catsarch.com",
    "nitter.privacydev.net",
    "nitter.1d4.us",
)
_STATUS_PATH = re.compile(r"/status/\d+")


class ApplePodcastIds(NamedTuple):
    show_id: str
    episode_id: str | None


def _host(url: str) -> str:
    try:
        host = (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""
    return host.removeprefix("www.")


def is_youtube_url(url: str) -> bool:
    return bool(YOUTUBE_URL_PATTERN.search(url))


def is_youtube_video_url(url: str) -> bool:
    """True for watch/shorts/live/embed/youtu.be links (with or without a valid id)."""
    host = _host(url)
    path = urlparse(url).path
    if host == "youtu.be":
        return True
    if host in ("youtube.com", "m.youtube.com", "music.youtube.com"):
        return path == "/watch" or path.startswith(("/shorts/", "/live/", "/embed/", "/v/"))
    return False


def extract_youtube_video_id(url: str) -> str | None:
    """Extract YouTube video ID from URL.

    Handles youtube.com/watch?v=ID, youtu.be/ID, and /embed/, /v/, /shorts/,
    /live/ paths. Ids that are not 11 URL-safe characters are rejected.

    Examples:
        >>> extract_youtube_video_id("https://youtu.be/dQw4w9WgXcQ")
        'dQw4w9WgXcQ'
        >>> extract_youtube_video_id("https://example.com/watch?v=dQw4w9WgXcQ") is None
        True
    """
    parsed = urlparse(url)
    host = _host(url)
    candidate: str | None = None

    if host in ("youtube.com", "m.youtube.com", "music.youtube.com"):
        if parsed.path == "/watch":
            values = parse_qs(parsed.query).get("v")
            candidate = values[0] if values else None
        elif parsed.path.startswith(("/embed/", "/v/", "/shorts/", "/live/")):
            parts = parsed.path.split("/")
            candidate = parts[2] if len(parts) >= 3 else None
    elif host == "youtu.be":
        candidate = parsed.path.lstrip("/").split("/")[0]

    if candidate and _VIDEO_ID.match(candidate.strip()):
        return candidate.strip()
    return None


def extract_spotify_episode_id(url: str) -> str | None:
    host = _host(url)
    if not host.endswith("spotify.com"):
        return None
    parts = [part for part in urlparse(url).path.split("/") if part]
    if "episode" not in parts:
        return None
    index = parts.index("episode")
    episode_id = parts[index + 1] if index + 1 < len(parts) else None
    return episode_id if episode_id and episode_id.isalnum() else None


def extract_apple_podcast_ids(url: str) -> ApplePodcastIds | None:
    if _host(url) != "podcasts.apple.com":
        return None
    parsed = urlparse(url)
    show_match = re.search(r"/id(\d+)(?:/|$)", parsed.path)
    if not show_match:
        return None
    episode_values = parse_qs(parsed.query).get("i")
    episode_id = episode_values[0] if episode_values and episode_values[0].isdigit() else None
    return ApplePodcastIds(show_id=show_match.group(1), episode_id=episode_id)


def is_podcast_host(url: str) -> bool:
    host = _host(url)
    if host.startswith("music.amazon.") and "/podcasts/" in urlparse(url).path:
        return True
    return any(host == suffix or host.endswith(f".{suffix}") for suffix in PODCAST_HOST_SUFFIXES)


def is_podcast_platform_url(url: str) -> bool:
    return bool(PODCAST_PLATFORM_HOST_PATTERN.search(_host(url)))


def looks_like_feed_url(url: str) -> bool:
    return bool(FEED_HINT_URL_PATTERN.search(url))


def is_twitter_status_url(url: str) -> bool:
    return _host(url) in TWITTER_HOSTS and bool(_STATUS_PATH.search(urlparse(url).path))


def string_hash(value: str) -> int:
    """Java-style 32-bit string hash (``h = h * 31 + ord(c)`` with overflow)."""
    result = 0
    for char in value:
        result = (result * 31 + ord(char)) & 0xFFFFFFFF
    return result - 0x100000000 if result >= 0x80000000 else result


def to_nitter_urls(url: str) -> list[str]:
    """Nitter mirror URLs for a tweet, rotated by a hash of path and query.

    The same tweet always starts at the same mirror; different tweets spread
    their load across mirrors.
    """
    if _host(url) not in TWITTER_HOSTS:
        return []
    parsed = urlparse(url)
    seed = string_hash(parsed.path + (f"?{parsed.query}" if parsed.query else ""))
    offset = abs(seed) % len(NITTER_HOSTS)
    rotated = NITTER_HOSTS[offset:] + NITTER_HOSTS[:offset]
    return [
        urlunparse(("https", host, parsed.path, parsed.params, parsed.query, parsed.fragment))
        for host in rotated
    ]
