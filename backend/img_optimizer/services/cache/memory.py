"""In-process cache store."""

import logging
import math
import time
from typing import Any

from cachetools import TLRUCache

from img_optimizer.services.cache.base import CacheStore, Clock
from img_optimizer.services.pipeline.models import CacheEntry

logger = logging.getLogger(__name__)


def _time_to_use(_key: str, entry: CacheEntry, _now: float) -> float:
    # Entries are still served at exactly created_at + ttl
    return math.nextafter(entry.expires_at, math.inf)


class MemoryCacheStore(CacheStore):
    """
    cachetools-backed cache for single-instance deployments and tests.

    Entries are immutable and swapped in with a single assignment, so a
    reader sees either the old entry or the new one. Capacity is bounded by
    ``max_entries``; the least recently used entries are dropped first.
    """

    def __init__(
        self,
        ttl_seconds: float = 86400,
        max_entries: int = 1024,
        clock: Clock = time.time,
    ):
        super().__init__(ttl_seconds, clock)
        self._max_entries = max_entries
        self._entries: TLRUCache[str, CacheEntry] = TLRUCache(
            maxsize=max_entries, ttu=_time_to_use, timer=clock
        )

    def _expire(self) -> int:
        before = len(self._entries)
        self._entries.expire()
        return before - len(self._entries)

    async def lookup(self, key: str) -> CacheEntry | None:
        if self._expire():
            logger.debug("Memory cache dropped expired entries on lookup")
        return self._entries.get(key)

    async def put(self, key: str, data: bytes, content_type: str) -> CacheEntry:
        entry = self._new_entry(key, data, content_type)
        self._entries[key] = entry
        return entry

    async def evict_expired(self) -> int:
        evicted = self._expire()
        if evicted:
            logger.info(f"Evicted {evicted} expired memory cache entries")
        return evicted

    async def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    async def clear(self) -> int:
        self._expire()
        count = len(self._entries)
        self._entries.clear()
        return count

    async def get_stats(self) -> dict[str, Any]:
        self._expire()
        return {
            "backend": "memory",
            "entries": len(self._entries),
            "max_entries": self._max_entries,
            "total_size_bytes": sum(len(e.data) for e in self._entries.values()),
            "ttl_seconds": self._ttl,
        }
