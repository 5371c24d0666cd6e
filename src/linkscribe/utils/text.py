"""Text normalization helpers."""

import html
import re
import unicodedata

_NBSP = "\u00a0"
_HORIZONTAL_SPACE = re.compile(r"[\t ]+")
_NEWLINE_WITH_SPACE = re.compile(r"\s*\n\s*")
_EXCESS_NEWLINES = re.compile(r"\n{3,}")
_WORD_SPLIT = re.compile(r"\s+")
_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def normalize_for_prompt(text: str) -> str:
    """Collapse whitespace the way downstream prompts expect."""
    text = text.replace(_NBSP, " ")
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = _NEWLINE_WITH_SPACE.sub("\n", text)
    text = _EXCESS_NEWLINES.sub("\n\n", text)
    return text.strip()


def normalize_whitespace(text: str) -> str:
    text = text.replace(_NBSP, " ")
    text = _HORIZONTAL_SPACE.sub(" ", text)
    text = _NEWLINE_WITH_SPACE.sub("\n", text)
    return text.strip()


# Transcripts use the same rules as page content
normalize_transcript_text = normalize_for_prompt


def normalize_transcript_lines(lines: list[str]) -> str | None:
    """Join transcript lines and normalize, or None if nothing remains."""
    if not lines:
        return None
    normalized = normalize_transcript_text("\n".join(lines))
    return normalized or None


def normalize_loose_title(title: str) -> str:
    """Normalize a title for fuzzy comparison.

    Lowercases, strips diacritics and replaces runs of non-alphanumerics
    with a single space.

    Example:
        >>> normalize_loose_title("Épisode #12: Café!")
        'episode 12 cafe'
    """
    decomposed = unicodedata.normalize("NFKD", title)
    stripped = "".join(c for c in decomposed if not unicodedata.combining(c))
    return _NON_ALPHANUMERIC.sub(" ", stripped.lower()).strip()


def decode_entities(text: str) -> str:
    return html.unescape(text)


def count_words(text: str) -> int:
    stripped = text.strip()
    if not stripped:
        return 0
    return len(_WORD_SPLIT.split(stripped))


def pick_first_text(candidates: list[str | None]) -> str | None:
    """First candidate that is non-blank after stripping."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate.strip()
    return None
