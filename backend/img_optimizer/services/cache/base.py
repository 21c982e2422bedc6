"""Cache store interface."""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from img_optimizer.services.pipeline.models import CacheEntry

Clock = Callable[[], float]


class CacheStore(ABC):
    """
    Keyed blob storage with TTL expiry.

    Implementations must never let ``lookup`` observe a partially written
    entry: ``put`` either commits a complete entry or leaves the previous
    state untouched.
    """

    def __init__(self, ttl_seconds: float, clock: Clock = time.time):
        self._ttl = ttl_seconds
        self._clock = clock

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    @abstractmethod
    async def lookup(self, key: str) -> CacheEntry | None:
        """Return the live entry for ``key`` or None."""

    @abstractmethod
    async def put(self, key: str, data: bytes, content_type: str) -> CacheEntry:
        """Store an entry, raising CacheStorageError on failure."""

    @abstractmethod
    async def evict_expired(self) -> int:
        """Remove expired entries. Returns count removed."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove one entry. Returns True if it existed."""

    @abstractmethod
    async def clear(self) -> int:
        """Remove all entries. Returns count removed."""

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """Backend statistics for the readiness endpoint."""

    async def health_check(self) -> bool:
        return True

    async def close(self) -> None:
        return None

    def _new_entry(self, key: str, data: bytes, content_type: str) -> CacheEntry:
        return CacheEntry(
            key=key,
            data=data,
            content_type=content_type,
            created_at=self._clock(),
            ttl=self._ttl,
        )
