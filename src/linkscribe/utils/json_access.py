"""Safe accessors for loosely-typed external JSON.

Payloads from YouTube's internal API, iTunes and Spotify embed pages change
shape without notice. Every accessor here returns ``None`` on a mismatch
instead of raising, so a changed payload degrades into an ordinary soft miss.
"""

import json
import logging
from collections.abc import Sequence
from typing import Any

logger = logging.getLogger(__name__)

PathKey = str | int


def get_path(data: Any, path: Sequence[PathKey]) -> Any:
    """Walk ``path`` through nested dicts/lists, returning None on any miss.

    Example:
        >>> get_path({"a": [{"b": 1}]}, ["a", 0, "b"])
        1
    """
    current = data
    for key in path:
        if isinstance(key, int):
            if not isinstance(current, list) or not -len(current) <= key < len(current):
                return None
            current = current[key]
        else:
            if not isinstance(current, dict) or key not in current:
                return None
            current = current[key]
    return current


def get_str(data: Any, path: Sequence[PathKey]) -> str | None:
    """String at ``path``, or None when missing, non-string or blank."""
    value = get_path(data, path)
    if isinstance(value, str) and value.strip():
        return value
    return None


def get_int(data: Any, path: Sequence[PathKey]) -> int | None:
    """Integer at ``path``; numeric strings are accepted."""
    value = get_path(data, path)
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def get_float(data: Any, path: Sequence[PathKey]) -> float | None:
    """Number at ``path`` as float."""
    value = get_path(data, path)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def get_list(data: Any, path: Sequence[PathKey]) -> list[Any]:
    """List at ``path``, or an empty list."""
    value = get_path(data, path)
    return value if isinstance(value, list) else []


def get_dict(data: Any, path: Sequence[PathKey]) -> dict[str, Any] | None:
    """Mapping at ``path``, or None."""
    value = get_path(data, path)
    return value if isinstance(value, dict) else None


def loads_or_none(text: str | None) -> Any:
    """Parse JSON text, returning None instead of raising."""
    if not text:
        return None
    try:
        return json.loads(text)
    except ValueError:
        return None


def extract_balanced_json(text: str, start: int) -> str | None:
    """Return the balanced ``{...}`` object beginning at or after ``start``.

    String literals are honoured so braces inside quoted values do not
    unbalance the scan.
    """
    open_index = text.find("{", start)
    if open_index < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(open_index, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[open_index : index + 1]
    return None


def log_schema_drift(payload: str, detail: str) -> None:
    """Emit a distinguishable signal that an external payload changed shape."""
    logger.warning(f"schema drift in {payload}: {detail}")
