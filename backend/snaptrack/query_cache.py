"""Process-wide keyed query cache shared by unrelated views.

Views read collections through `QueryCache.fetch`, which serves the cached
value until the key is marked stale. Only mutating paths call
`invalidate`; staleness is a flag consumed by the next read, so readers
never lock.

The cache is created once per client process and handed to every
component that needs it; there is no module-level instance.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable

from snaptrack.metrics import CACHE_INVALIDATIONS_TOTAL

logger = logging.getLogger(__name__)

QueryKey = tuple[Hashable, ...]

# Listing of every snapshot; invalidated whenever one is deleted.
SNAPSHOTS_KEY: QueryKey = ("snapshots",)


@dataclass
class CacheEntry:
    data: Any = None
    updated_at: float | None = None
    stale: bool = True
    # Bumped by every invalidation; a fetch started before a bump cannot clear `stale`.
    generation: int = 0


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """Keyed cache with prefix invalidation and per-key fetch coalescing."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic):
        self._entries: dict[QueryKey, CacheEntry] = {}
        self._inflight: dict[QueryKey, tuple[asyncio.Future[Any], int]] = {}
        self._clock = clock

    def __contains__(self, key: QueryKey) -> bool:
        return key in self._entries

    def get_data(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry else None

    def set_data(self, key: QueryKey, data: Any) -> None:
        entry = self._entries.setdefault(key, CacheEntry())
        entry.data = data
        entry.updated_at = self._clock()
        entry.stale = False

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        return entry is None or entry.stale

    async def fetch(self, key: QueryKey, fetcher: Callable[[], Awaitable[Any]]) -> Any:
        """Return cached data for `key`, fetching when missing or stale.

        Concurrent callers for the same key share one fetch, as long as no
        invalidation happened since it started; a caller arriving after an
        invalidation starts its own. A failed fetch propagates and leaves
        the key stale.
        """
        entry = self._entries.get(key)
        if entry is not None and not entry.stale:
            return entry.data

        entry = self._entries.setdefault(key, CacheEntry())
        inflight = self._inflight.get(key)
        if inflight is not None:
            pending, pending_generation = inflight
            if pending_generation == entry.generation:
                return await asyncio.shield(pending)

        started_generation = entry.generation
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._inflight[key] = (future, started_generation)
        try:
            data = await fetcher()
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as exc:
            future.set_exception(exc)
            # Mark retrieved so a fetch nobody else awaited does not warn on GC.
            future.exception()
            raise
        else:
            # Pre-invalidation results go back to their callers but are never cached.
            if entry.generation == started_generation:
                entry.data = data
                entry.updated_at = self._clock()
                entry.stale = False
            future.set_result(data)
            return data
        finally:
            if self._inflight.get(key, (None, None))[0] is future:
                del self._inflight[key]

    def invalidate(self, prefix: QueryKey) -> int:
        """Mark every key starting with `prefix` stale. Returns how many were marked.

        Marking a key nobody has read yet still registers it, so a read that
        is already in flight cannot cache pre-mutation data as fresh.
        """
        marked = 0
        matched = [key for key in self._entries if _matches(key, prefix)]
        if not matched:
            matched = [prefix]
        for key in matched:
            entry = self._entries.setdefault(key, CacheEntry())
            entry.stale = True
            entry.generation += 1
            marked += 1
        CACHE_INVALIDATIONS_TOTAL.labels(key=str(prefix[0]) if prefix else "*").inc()
        logger.debug("Invalidated %d cache key(s) under %r", marked, prefix)
        return marked

    def remove(self, key: QueryKey) -> None:
        self._entries.pop(key, None)
