"""Transcript caching layer.

Two stores implement the same small interface (``get``/``set`` keyed by
service and resource key): a file-based store for persistence across runs and
an in-memory store. The gateway functions at the bottom wrap a store with the
read-through/write-through policy used by the dispatcher.
"""

import asyncio
import hashlib
import json
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Protocol

import aiofiles
from platformdirs import user_cache_dir
from pydantic import ValidationError

from linkscribe.content.diagnostics import CacheMode, TranscriptDiagnostics, initial_cache_status
from linkscribe.transcription.models import (
    CacheEntry,
    CacheWrite,
    ProviderResult,
    TranscriptResolution,
    TranscriptSegment,
)
from linkscribe.utils.errors import CacheError

logger = logging.getLogger(__name__)

TRANSCRIPT_TTL_SECONDS = 30 * 24 * 60 * 60
NEGATIVE_TTL_SECONDS = 6 * 60 * 60


class TranscriptCacheStore(Protocol):
    """Storage backend for transcripts."""

    async def get(self, service: str, resource_key: str) -> CacheEntry | None: ...

    async def set(
        self, service: str, resource_key: str, entry: CacheWrite, ttl_seconds: float
    ) -> None: ...


class FileTranscriptCache:
    """File-based cache for transcripts.

    Uses SHA256 hashes of ``service:resource_key`` as cache keys and stores
    entries as JSON files with their expiry time. Expired entries are kept on
    disk and reported with ``expired=True`` until ``clear_expired`` runs.
    """

    def __init__(self, cache_dir: Path | None = None):
        """Initialize transcript cache.

        Args:
            cache_dir: Directory for cache storage (default: XDG cache dir)
        """
        if cache_dir is None:
            cache_dir = Path(user_cache_dir("linkscribe", "linkscribe")) / "transcripts"

        self.cache_dir = cache_dir
        self.cache_dir.mkdir(parents=True, exist_ok=True)

    def _get_cache_key(self, service: str, resource_key: str) -> str:
        return hashlib.sha256(f"{service}:{resource_key}".encode()).hexdigest()

    def _get_cache_path(self, service: str, resource_key: str) -> Path:
        return self.cache_dir / f"{self._get_cache_key(service, resource_key)}.json"

    @staticmethod
    def _is_expired(expires_at: datetime) -> bool:
        return datetime.now(timezone.utc) >= expires_at

    async def get(self, service: str, resource_key: str) -> CacheEntry | None:
        """Get an entry from cache (async).

        Returns:
            CacheEntry (possibly expired) if found, None otherwise

        Raises:
            CacheError: If the cache file exists but cannot be read
        """
        cache_path = self._get_cache_path(service, resource_key)

        if not cache_path.exists():
            return None

        try:
            async with aiofiles.open(cache_path, "rb") as f:
                raw = await f.read()
        except FileNotFoundError:
            # Removed by a concurrent delete or clear
            return None
        except OSError as e:
            raise CacheError(f"Failed to read cached transcript: {e}") from e

        try:
            data = json.loads(raw)
            expires_at = datetime.fromisoformat(data["expires_at"])
            entry = CacheEntry.model_validate(data["entry"])
            entry.expired = self._is_expired(expires_at)
            return entry

        except (json.JSONDecodeError, KeyError, TypeError, ValueError, ValidationError):
            # Cache file is corrupted - remove it
            logger.warning(f"Removing corrupted cache file {cache_path.name}")
            await self._delete_file(cache_path)
            return None

    async def set(
        self, service: str, resource_key: str, entry: CacheWrite, ttl_seconds: float
    ) -> None:
        """Save an entry to cache (async).

        Raises:
            CacheError: If caching fails
        """
        cache_path = self._get_cache_path(service, resource_key)
        # Unique temp name so concurrent writers of one key never share a file
        temp_path = cache_path.with_suffix(f".{uuid.uuid4().hex}.tmp")
        now = datetime.now(timezone.utc)

        try:
            data = {
                "cached_at": now.isoformat(),
                "expires_at": (now + timedelta(seconds=ttl_seconds)).isoformat(),
                "service": service,
                "resource_key": resource_key,
                "entry": entry.model_dump(mode="json"),
            }

            async with aiofiles.open(temp_path, "w") as f:
                await f.write(json.dumps(data, indent=2))

            await asyncio.to_thread(temp_path.replace, cache_path)

        except (OSError, TypeError) as e:
            if temp_path.exists():
                await self._delete_file(temp_path)
            raise CacheError(f"Failed to cache transcript: {e}") from e

    async def delete(self, service: str, resource_key: str) -> bool:
        """Delete an entry from cache.

        Returns:
            True if deleted, False if not found
        """
        cache_path = self._get_cache_path(service, resource_key)

        if cache_path.exists():
            await self._delete_file(cache_path)
            return True

        return False

    async def clear(self) -> int:
        """Clear all cached transcripts.

        Returns:
            Number of cache entries deleted
        """
        cache_files = list(self.cache_dir.glob("*.json"))
        await asyncio.gather(*[self._delete_file(f) for f in cache_files])
        return len(cache_files)

    async def clear_expired(self) -> int:
        """Clear expired and corrupted cache entries.

        Returns:
            Number of entries deleted
        """
        cache_files = list(self.cache_dir.glob("*.json"))

        async def check_and_delete(cache_file: Path) -> bool:
            try:
                async with aiofiles.open(cache_file) as f:
                    data = json.loads(await f.read())

                if self._is_expired(datetime.fromisoformat(data["expires_at"])):
                    await self._delete_file(cache_file)
                    return True

            except (json.JSONDecodeError, KeyError, ValueError, OSError):
                await self._delete_file(cache_file)
                return True

            return False

        results = await asyncio.gather(*[check_and_delete(f) for f in cache_files])
        return sum(1 for deleted in results if deleted)

    async def stats(self) -> dict[str, Any]:
        """Get cache statistics.

        Returns:
            Dictionary with totals, expired count, size and per-source counts
        """
        cache_files = list(self.cache_dir.glob("*.json"))

        async def analyze_file(cache_file: Path) -> dict[str, Any] | None:
            try:
                stat = await asyncio.to_thread(cache_file.stat)
                async with aiofiles.open(cache_file) as f:
                    data = json.loads(await f.read())

                return {
                    "size": stat.st_size,
                    "expired": self._is_expired(datetime.fromisoformat(data["expires_at"])),
                    "source": data["entry"].get("source") or "unknown",
                }

            except (json.JSONDecodeError, KeyError, ValueError, OSError):
                return None

        results = await asyncio.gather(*[analyze_file(f) for f in cache_files])

        expired = 0
        total_size = 0
        sources: dict[str, int] = {}
        for result in results:
            if result:
                total_size += result["size"]
                if result["expired"]:
                    expired += 1
                sources[result["source"]] = sources.get(result["source"], 0) + 1

        return {
            "total": len(cache_files),
            "expired": expired,
            "valid": len(cache_files) - expired,
            "size_bytes": total_size,
            "sources": sources,
            "cache_dir": str(self.cache_dir),
        }

    async def _delete_file(self, path: Path) -> None:
        try:
            await asyncio.to_thread(path.unlink, missing_ok=True)
        except OSError as e:
            logger.warning(f"Failed to delete cache file {path}: {e}")


class MemoryTranscriptCache:
    """In-process transcript cache.

    Safe to share between concurrent resolves; each instance is independent.
    """

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[CacheWrite, float]] = {}
        self._ttls: dict[tuple[str, str], float] = {}
        self._lock = asyncio.Lock()

    async def get(self, service: str, resource_key: str) -> CacheEntry | None:
        async with self._lock:
            stored = self._entries.get((service, resource_key))
        if stored is None:
            return None
        entry, expires_at = stored
        return CacheEntry(
            content=entry.content,
            source=entry.source,
            metadata=dict(entry.metadata),
            expired=self._clock() >= expires_at,
        )

    async def set(
        self, service: str, resource_key: str, entry: CacheWrite, ttl_seconds: float
    ) -> None:
        async with self._lock:
            self._entries[(service, resource_key)] = (
                entry.model_copy(deep=True),
                self._clock() + ttl_seconds,
            )
            self._ttls[(service, resource_key)] = ttl_seconds

    def ttl_for(self, service: str, resource_key: str) -> float | None:
        """TTL used by the last write of a key."""
        return self._ttls.get((service, resource_key))

    def __len__(self) -> int:
        return len(self._entries)


@dataclass
class CacheReadOutcome:
    """Result of consulting the cache before running a provider.

    Attributes:
        resolution: Set on a usable hit
        cached: Any entry found (fresh, expired or mismatched), kept as a
            fallback candidate if the live fetch fails
        diagnostics: Transcript diagnostics seeded with the cache status
    """

    resolution: TranscriptResolution | None
    cached: CacheEntry | None
    diagnostics: TranscriptDiagnostics


def segments_from_metadata(metadata: dict[str, Any]) -> list[TranscriptSegment] | None:
    raw = metadata.get("segments")
    if not isinstance(raw, list) or not raw:
        return None
    try:
        return [TranscriptSegment.model_validate(item) for item in raw]
    except ValidationError:
        return None


async def read_transcript_cache(
    store: TranscriptCacheStore | None,
    service: str,
    resource_key: str,
    cache_mode: CacheMode,
    *,
    timestamps_requested: bool = False,
) -> CacheReadOutcome:
    """Look up a transcript, classifying the outcome for diagnostics."""
    diagnostics = TranscriptDiagnostics(
        cache_mode=cache_mode, cache_status=initial_cache_status(cache_mode)
    )

    if store is None:
        return CacheReadOutcome(None, None, diagnostics)

    if cache_mode == "bypass":
        diagnostics.add_note("cache", "Cache bypassed; fetching live transcript", "skipped")
        return CacheReadOutcome(None, None, diagnostics)

    try:
        entry = await store.get(service, resource_key)
    except CacheError as e:
        logger.warning(f"Transcript cache read failed for {service}:{resource_key}: {e}")
        diagnostics.cache_status = "miss"
        diagnostics.add_note("cache", f"Cache read failed: {e}", "soft_fail")
        return CacheReadOutcome(None, None, diagnostics)

    if entry is None:
        diagnostics.cache_status = "miss"
        return CacheReadOutcome(None, None, diagnostics)

    if entry.expired:
        diagnostics.cache_status = "expired"
        diagnostics.add_note("cache", "Cached transcript expired; refetching")
        return CacheReadOutcome(None, entry, diagnostics)

    segments = segments_from_metadata(entry.metadata)
    if timestamps_requested and entry.content and segments is None:
        if entry.metadata.get("timestamps") is False:
            diagnostics.add_note("cache", "Cached transcript has timestamps unavailable")
        else:
            diagnostics.cache_status = "miss"
            diagnostics.add_note(
                "cache", "Cached transcript is missing timestamps; refetching", "soft_fail"
            )
            return CacheReadOutcome(None, entry, diagnostics)

    diagnostics.cache_status = "hit"
    diagnostics.text_provided = bool(entry.content)
    diagnostics.provider = entry.source
    logger.debug(f"Transcript cache hit for {service}:{resource_key}")
    resolution = TranscriptResolution(
        text=entry.content,
        source=entry.source,
        metadata=entry.metadata,
        segments=segments,
        diagnostics=diagnostics,
    )
    return CacheReadOutcome(resolution, entry, diagnostics)


async def write_transcript_cache(
    store: TranscriptCacheStore | None,
    service: str,
    resource_key: str,
    result: ProviderResult,
    diagnostics: TranscriptDiagnostics,
) -> None:
    """Persist a provider result.

    Transcripts get the long TTL; a confirmed absence gets the short negative
    TTL. Results from providers that never ran are not stored. Write failures
    are recorded but never fail the resolve.
    """
    if store is None:
        return

    if result.text:
        ttl = TRANSCRIPT_TTL_SECONDS
    elif result.source == "unavailable":
        ttl = NEGATIVE_TTL_SECONDS
    else:
        return

    metadata = dict(result.metadata)
    if result.segments:
        metadata["segments"] = [segment.model_dump() for segment in result.segments]

    entry = CacheWrite(content=result.text, source=result.source, metadata=metadata)
    try:
        await store.set(service, resource_key, entry, ttl)
    except CacheError as e:
        logger.warning(f"Transcript cache write failed for {service}:{resource_key}: {e}")
        diagnostics.add_note("cache", f"Cache write failed: {e}", "soft_fail")
