"""RSS/Atom feed parser using BeautifulSoup's lxml XML builder."""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, Tag

from linkscribe.feeds.models import Enclosure, FeedItem, PodcastFeed, TranscriptLink
from linkscribe.utils.text import normalize_loose_title

logger = logging.getLogger(__name__)

FEED_SNIFF_CHARACTERS = 4096
_TRANSCRIPT_HINT = re.compile(r"podcast:transcript", re.IGNORECASE)


def looks_like_feed(text: str) -> bool:
    """True when the start of a document is an RSS or Atom feed."""
    head = text[:FEED_SNIFF_CHARACTERS].lstrip().lower()
    return "<rss" in head or "<feed" in head


def has_transcript_hint(xml: str) -> bool:
    """Cheap textual check before bothering with ``<podcast:transcript>`` tags."""
    return bool(_TRANSCRIPT_HINT.search(xml))


def parse_itunes_duration(raw: Optional[str]) -> Optional[float]:
    """Parse ``itunes:duration`` values: ``SS``, ``MM:SS`` or ``HH:MM:SS``.

    Examples:
        >>> parse_itunes_duration("1:02:03")
        3723.0
        >>> parse_itunes_duration("0") is None
        True
    """
    if not raw:
        return None
    value = raw.strip()
    if not value:
        return None

    if value.isdigit():
        seconds = float(value)
        return seconds if seconds > 0 else None

    parts = [part.strip() for part in value.split(":") if part.strip()]
    if len(parts) not in (2, 3):
        return None
    try:
        numbers = [float(part) for part in parts]
    except ValueError:
        return None
    if any(number < 0 for number in numbers):
        return None

    if len(numbers) == 3:
        hours, minutes, seconds = numbers
        total = round(hours * 3600 + minutes * 60 + seconds)
    else:
        minutes, seconds = numbers
        total = round(minutes * 60 + seconds)
    return float(total) if total > 0 else None


def _qualified_name(tag: Tag) -> str:
    # Declared namespaces split into prefix/name; undeclared ones keep "prefix:name"
    name = f"{tag.prefix}:{tag.name}" if tag.prefix else tag.name
    return name.lower()


def _children(node: Tag, name: str) -> list[Tag]:
    return [
        child
        for child in node.find_all(True, recursive=False)
        if isinstance(child, Tag) and _qualified_name(child) == name
    ]


def _child_text(node: Tag, name: str) -> Optional[str]:
    for child in _children(node, name):
        text = child.get_text().strip()
        if text:
            return text
    return None


def _normalize_type(raw: object) -> Optional[str]:
    if not isinstance(raw, str) or not raw.strip():
        return None
    return raw.split(";")[0].strip().lower()


class RSSParser:
    """Parses podcast feeds and extracts episode information."""

    def parse(self, xml: str) -> PodcastFeed:
        """Parse an RSS or Atom document.

        Malformed markup is parsed leniently; a document without items
        yields an empty feed rather than an error.
        """
        soup = BeautifulSoup(xml, "xml")
        root = soup.find(lambda tag: _qualified_name(tag) in ("channel", "feed"))
        container = root if isinstance(root, Tag) else soup

        nodes = [
            tag
            for tag in container.find_all(True)
            if isinstance(tag, Tag) and _qualified_name(tag) in ("item", "entry")
        ]
        items = [self._parse_item(node) for node in nodes]
        title = _child_text(root, "title") if isinstance(root, Tag) else None

        logger.debug(f"Parsed feed {title!r} with {len(items)} items")
        return PodcastFeed(title=title, items=items)

    def _parse_item(self, node: Tag) -> FeedItem:
        return FeedItem(
            title=_child_text(node, "title"),
            enclosure=self._parse_enclosure(node),
            duration_seconds=parse_itunes_duration(_child_text(node, "itunes:duration")),
            published=_child_text(node, "pubdate") or _child_text(node, "published"),
            transcripts=self._parse_transcripts(node),
        )

    def _parse_enclosure(self, node: Tag) -> Optional[Enclosure]:
        for enclosure in _children(node, "enclosure"):
            url = str(enclosure.get("url") or "").strip()
            if url:
                length = str(enclosure.get("length") or "").strip()
                return Enclosure(
                    url=url,
                    type=_normalize_type(enclosure.get("type")),
                    length=int(length) if length.isdigit() else None,
                )
        # Atom: <link rel="enclosure" href="...">
        for link in _children(node, "link"):
            href = str(link.get("href") or "").strip()
            if link.get("rel") == "enclosure" and href:
                return Enclosure(url=href, type=_normalize_type(link.get("type")))
        return None

    def _parse_transcripts(self, node: Tag) -> list[TranscriptLink]:
        links: list[TranscriptLink] = []
        for tag in _children(node, "podcast:transcript"):
            url = str(tag.get("url") or "").strip()
            if url:
                links.append(TranscriptLink(url=url, type=_normalize_type(tag.get("type"))))
        return links


def match_item_by_title(feed: PodcastFeed, episode_title: Optional[str]) -> Optional[FeedItem]:
    """Find the episode's item.

    Titles are compared after loose normalization. Without a title, or when
    nothing matches, a feed with exactly one audio item yields that item;
    with no title at all the newest (first) audio item is used.
    """
    with_audio = [item for item in feed.items if item.enclosure is not None]

    if episode_title:
        target = normalize_loose_title(episode_title)
        for item in with_audio:
            if item.loose_title == target:
                return item
        return with_audio[0] if len(with_audio) == 1 else None

    return with_audio[0] if with_audio else None


def select_transcript_link(links: list[TranscriptLink]) -> Optional[TranscriptLink]:
    """Prefer JSON transcripts, then WebVTT, then whatever is listed first."""
    if not links:
        return None
    for link in links:
        if link.is_json:
            return link
    for link in links:
        if link.is_vtt:
            return link
    return links[0]
