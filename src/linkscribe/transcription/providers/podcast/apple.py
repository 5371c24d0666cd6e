"""Values embedded in Apple Podcasts (and similar) episode pages."""

import json
import re

from bs4 import Tag

from linkscribe.content.html import normalize_candidate, parse_html


def extract_apple_episode_title(html: str) -> str | None:
    """Episode title from ``apple:title``, falling back to ``og:title``.

    ``apple:title`` carries the bare episode title, which is what RSS items use.
    """
    soup = parse_html(html)
    for attrs in ({"name": "apple:title"}, {"property": "og:title"}):
        meta = soup.find("meta", attrs=attrs)
        if isinstance(meta, Tag):
            title = normalize_candidate(str(meta.get("content") or ""))
            if title:
                return title
    return None


def extract_embedded_json_url(html: str, field: str) -> str | None:
    """Decode a ``"field":"..."`` JSON string value from anywhere in the page."""
    pattern = re.compile(rf'"{re.escape(field)}":"((?:\\.|[^"\\])*)"', re.IGNORECASE)
    match = pattern.search(html)
    if not match:
        return None
    try:
        value = json.loads(f'"{match.group(1)}"')
    except ValueError:
        return None
    if not isinstance(value, str) or not value.strip():
        return None
    return value.strip()
