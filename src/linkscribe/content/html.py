"""HTML parsing: page metadata, JSON-LD, article segments and video detection."""

import json
import logging
import re
from typing import Any, Literal
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from pydantic import BaseModel

from linkscribe.utils.json_access import extract_balanced_json, get_str
from linkscribe.utils.text import decode_entities, normalize_whitespace, pick_first_text

logger = logging.getLogger(__name__)

# Tags whose text never counts as page content
NON_TEXT_TAGS = ["script", "style", "noscript", "template", "svg", "canvas", "iframe", "object", "embed"]

SEGMENT_TAGS = ["h1", "h2", "h3", "h4", "h5", "h6", "li", "p", "blockquote", "pre"]
MIN_HEADING_LENGTH = 10
MIN_LIST_ITEM_LENGTH = 20
MIN_SEGMENT_LENGTH = 30

VIDEO_EXTENSIONS = (".mp4", ".webm", ".mov", ".m4v")
_YOUTUBE_EMBED_ID = re.compile(r"/embed/([a-zA-Z0-9_-]{11})")
_YOUTUBE_ID = re.compile(r"^[a-zA-Z0-9_-]{11}$")


class PageMetadata(BaseModel):
    title: str | None = None
    description: str | None = None
    site_name: str | None = None


class JsonLdContent(BaseModel):
    title: str | None = None
    description: str | None = None
    type: str | None = None


class DetectedVideo(BaseModel):
    kind: Literal["youtube", "direct"]
    url: str


def parse_html(html: str) -> BeautifulSoup:
    return BeautifulSoup(html, "html.parser")


def safe_hostname(url: str) -> str | None:
    host = (urlparse(url).hostname or "").lower()
    if host.startswith("www."):
        host = host[4:]
    return host or None


def normalize_candidate(value: str | None) -> str | None:
    """Collapse all whitespace to single spaces; None when empty."""
    if not value:
        return None
    collapsed = " ".join(value.split())
    return collapsed or None


def _meta_content(soup: BeautifulSoup, selectors: list[tuple[str, str]]) -> str | None:
    for attribute, value in selectors:
        meta = soup.find("meta", attrs={attribute: value})
        if not isinstance(meta, Tag):
            continue
        raw = meta.get("content") or meta.get("value") or ""
        normalized = normalize_candidate(decode_entities(str(raw)))
        if normalized:
            return normalized
    return None


def extract_metadata(html: str, url: str) -> PageMetadata:
    """Title, description and site name from meta tags and ``<title>``."""
    soup = parse_html(html)

    title_tag = soup.find("title")
    title = pick_first_text(
        [
            _meta_content(
                soup,
                [("property", "og:title"), ("name", "og:title"), ("name", "twitter:title")],
            ),
            normalize_candidate(title_tag.get_text()) if isinstance(title_tag, Tag) else None,
        ]
    )
    description = _meta_content(
        soup,
        [("property", "og:description"), ("name", "description"), ("name", "twitter:description")],
    )
    site_name = pick_first_text(
        [
            _meta_content(soup, [("property", "og:site_name"), ("name", "application-name")]),
            safe_hostname(url),
        ]
    )
    return PageMetadata(title=title, description=description, site_name=site_name)


def extract_firecrawl_metadata(metadata: dict[str, Any] | None) -> PageMetadata:
    """Metadata block of a Firecrawl payload."""
    if not metadata:
        return PageMetadata()
    return PageMetadata(
        title=pick_first_text([get_str(metadata, ["title"]), get_str(metadata, ["ogTitle"])]),
        description=pick_first_text(
            [get_str(metadata, ["description"]), get_str(metadata, ["ogDescription"])]
        ),
        site_name=pick_first_text(
            [get_str(metadata, ["siteName"]), get_str(metadata, ["ogSiteName"])]
        ),
    )


def _first_string(record: dict[str, Any], keys: list[str]) -> str | None:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _jsonld_type(record: dict[str, Any]) -> str | None:
    raw = record.get("@type")
    if isinstance(raw, str):
        return raw.lower()
    if isinstance(raw, list):
        for entry in raw:
            if isinstance(entry, str):
                return entry.lower()
    return None


def _collect_jsonld(node: Any, out: list[JsonLdContent]) -> None:
    if isinstance(node, list):
        for item in node:
            _collect_jsonld(item, out)
        return
    if not isinstance(node, dict):
        return

    graph = node.get("@graph")
    if isinstance(graph, list):
        _collect_jsonld(graph, out)

    node_type = _jsonld_type(node)
    if node_type:
        title = _first_string(node, ["name", "headline", "title"])
        description = _first_string(node, ["description", "summary"])
        if title or description:
            out.append(JsonLdContent(title=title, description=description, type=node_type))


def extract_jsonld(html: str) -> JsonLdContent | None:
    """Best JSON-LD candidate: the one with the longest description."""
    soup = parse_html(html)
    candidates: list[JsonLdContent] = []
    for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
        raw = script.string or script.get_text()
        if not raw or not raw.strip():
            continue
        try:
            _collect_jsonld(json.loads(raw), candidates)
        except ValueError:
            logger.debug("Ignoring malformed JSON-LD block")

    normalized = [
        JsonLdContent(
            title=normalize_candidate(c.title),
            description=normalize_candidate(c.description),
            type=normalize_candidate(c.type),
        )
        for c in candidates
    ]
    normalized = [c for c in normalized if c.title or c.description]
    if not normalized:
        return None
    return max(normalized, key=lambda c: len(c.description or ""))


def is_podcast_like_jsonld_type(type_name: str | None) -> bool:
    if not type_name:
        return False
    normalized = type_name.lower()
    return "podcast" in normalized or normalized in (
        "audioobject",
        "episode",
        "radioepisode",
        "musicrecording",
    )


def _strip_non_text(soup: BeautifulSoup) -> BeautifulSoup:
    for element in soup.find_all(NON_TEXT_TAGS):
        element.decompose()
    return soup


def extract_plain_text(html: str) -> str:
    """All visible text, with scripts/styles and similar removed."""
    soup = _strip_non_text(parse_html(html))
    return soup.get_text(" ")


def collect_segments(html: str) -> list[str]:
    """Readable text blocks: headings, list items and paragraphs.

    Falls back to the whole body text when no block qualifies.
    """
    soup = _strip_non_text(parse_html(html))
    segments: list[str] = []

    for element in soup.find_all(SEGMENT_TAGS):
        # Nested block tags are visited on their own
        if element.find(SEGMENT_TAGS):
            continue
        text = normalize_whitespace(element.get_text(" ")).replace("\n", " ")
        if not text:
            continue

        tag = element.name.lower()
        if tag.startswith("h"):
            if len(text) >= MIN_HEADING_LENGTH:
                segments.append(text)
        elif tag == "li":
            if len(text) >= MIN_LIST_ITEM_LENGTH:
                segments.append(f"• {text}")
        elif len(text) >= MIN_SEGMENT_LENGTH:
            segments.append(text)

    if not segments:
        body = soup.body or soup
        fallback = normalize_whitespace(body.get_text(" "))
        return [fallback] if fallback else []

    return segments


def extract_article_content(html: str) -> str:
    return "\n".join(collect_segments(html))


def _resolve_url(candidate: str | None, base_url: str) -> str | None:
    if not candidate or not candidate.strip():
        return None
    try:
        return urljoin(base_url, candidate.strip())
    except ValueError:
        return None


def _youtube_id_from_embed(url: str) -> str | None:
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower().removeprefix("www.")
    if host == "youtube.com" or host.endswith(".youtube.com"):
        match = _YOUTUBE_EMBED_ID.search(parsed.path)
        return match.group(1) if match else None
    if host == "youtu.be":
        candidate = parsed.path.lstrip("/").strip()
        return candidate if _YOUTUBE_ID.match(candidate) else None
    return None


def is_direct_video_url(url: str) -> bool:
    return urlparse(url).path.lower().endswith(VIDEO_EXTENSIONS)


def detect_primary_video(html: str, url: str) -> DetectedVideo | None:
    """Find the page's main video: YouTube embed, og:video, or ``<video>``."""
    soup = parse_html(html)

    for iframe in soup.find_all("iframe", src=True):
        src = str(iframe["src"])
        if "youtube.com/embed/" not in src and "youtu.be/" not in src:
            continue
        resolved = _resolve_url(src, url)
        video_id = _youtube_id_from_embed(resolved) if resolved else None
        if video_id:
            return DetectedVideo(kind="youtube", url=f"https://www.youtube.com/watch?v={video_id}")
        break

    og_video = _meta_content(
        soup,
        [
            ("property", "og:video"),
            ("property", "og:video:url"),
            ("property", "og:video:secure_url"),
            ("name", "og:video"),
            ("name", "og:video:url"),
            ("name", "og:video:secure_url"),
        ],
    )
    resolved = _resolve_url(og_video, url)
    if resolved:
        if is_direct_video_url(resolved):
            return DetectedVideo(kind="direct", url=resolved)
        video_id = _youtube_id_from_embed(resolved)
        if video_id:
            return DetectedVideo(kind="youtube", url=f"https://www.youtube.com/watch?v={video_id}")

    video = soup.find("video", src=True)
    source = soup.select_one("video source[src]")
    video_src = video["src"] if isinstance(video, Tag) else (source["src"] if source else None)
    resolved = _resolve_url(str(video_src) if video_src else None, url)
    if resolved and is_direct_video_url(resolved):
        return DetectedVideo(kind="direct", url=resolved)

    return None


def has_sourceless_media(html: str) -> bool:
    """True when the page embeds media that cannot be downloaded directly.

    Covers ``<video>``/``<audio>`` tags without a usable source and an
    ``og:video`` that points at a player rather than a file.
    """
    soup = parse_html(html)
    for tag in soup.find_all(["video", "audio"]):
        source = tag.find("source")
        src = tag.get("src") or (source.get("src") if isinstance(source, Tag) else None)
        if not src or str(src).startswith("blob:"):
            return True
    og_video = _meta_content(soup, [("property", "og:video"), ("property", "og:video:url")])
    return bool(og_video) and not is_direct_video_url(og_video or "")


def extract_og_audio(html: str, url: str) -> str | None:
    soup = parse_html(html)
    return _resolve_url(
        _meta_content(
            soup,
            [("property", "og:audio"), ("property", "og:audio:url"), ("property", "og:audio:secure_url")],
        ),
        url,
    )


def extract_youtube_player_response(html: str) -> dict[str, Any] | None:
    """The ``ytInitialPlayerResponse`` object embedded in a watch page."""
    marker = html.find("ytInitialPlayerResponse")
    while marker >= 0:
        raw = extract_balanced_json(html, marker)
        if raw:
            try:
                data = json.loads(raw)
            except ValueError:
                data = None
            if isinstance(data, dict) and (
                "videoDetails" in data or "captions" in data or "playabilityStatus" in data
            ):
                return data
        marker = html.find("ytInitialPlayerResponse", marker + 1)
    return None


def extract_youtube_short_description(html: str) -> str | None:
    player = extract_youtube_player_response(html)
    return get_str(player, ["videoDetails", "shortDescription"])
