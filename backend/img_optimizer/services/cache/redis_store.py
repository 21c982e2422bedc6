"""Redis-backed cache store shared between instances."""

import logging
import math
import time
from typing import Any

from redis.exceptions import RedisError

from img_optimizer.redis.client import RedisClient
from img_optimizer.redis.keys import RedisKeys
from img_optimizer.services.cache.base import CacheStore, Clock
from img_optimizer.services.pipeline.errors import CacheStorageError
from img_optimizer.services.pipeline.models import CacheEntry

logger = logging.getLogger(__name__)


def _text(value: bytes | str) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisCacheStore(CacheStore):
    """
    Cache entries as Redis hashes.

    The hash fields and the key expiry are written inside one MULTI/EXEC
    transaction, so no reader can see a hash without its payload. Redis
    drops expired keys itself; ``evict_expired`` has nothing to do.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        ttl_seconds: float = 86400,
        clock: Clock = time.time,
    ):
        super().__init__(ttl_seconds, clock)
        self._redis = redis_client

    async def lookup(self, key: str) -> CacheEntry | None:
        try:
            data = await self._redis.client.hgetall(RedisKeys.entry(key))
        except RedisError as e:
            raise CacheStorageError(str(e)) from e

        if not data or b"data" not in data:
            return None

        try:
            entry = CacheEntry(
                key=key,
                data=data[b"data"],
                content_type=_text(data[b"content_type"]),
                created_at=float(data[b"created_at"]),
                ttl=float(data[b"ttl"]),
            )
        except (KeyError, ValueError) as e:
            logger.warning(f"Malformed Redis cache entry {key}: {e}")
            return None

        if entry.is_expired(self._clock()):
            return None

        logger.debug(f"Redis cache hit: {key}")
        return entry

    async def put(self, key: str, data: bytes, content_type: str) -> CacheEntry:
        entry = self._new_entry(key, data, content_type)
        redis_key = RedisKeys.entry(key)
        try:
            async with self._redis.pipeline(transaction=True) as pipe:
                pipe.delete(redis_key)
                pipe.hset(
                    redis_key,
                    mapping={
                        "data": entry.data,
                        "content_type": entry.content_type,
                        "created_at": str(entry.created_at),
                        "ttl": str(entry.ttl),
                    },
                )
                pipe.expire(redis_key, max(1, math.ceil(entry.ttl)))
        except RedisError as e:
            raise CacheStorageError(str(e)) from e

        logger.debug(f"Redis cached: {key} ({len(data)} bytes)")
        return entry

    async def evict_expired(self) -> int:
        return 0

    async def delete(self, key: str) -> bool:
        try:
            return bool(await self._redis.client.delete(RedisKeys.entry(key)))
        except RedisError as e:
            raise CacheStorageError(str(e)) from e

    async def _keys(self) -> list[bytes]:
        keys: list[bytes] = []
        cursor = 0
        while True:
            cursor, batch = await self._redis.client.scan(
                cursor,
                match=RedisKeys.entry_pattern(),
                count=100,
            )
            keys.extend(batch)
            if cursor == 0:
                break
        return keys

    async def clear(self) -> int:
        try:
            keys = await self._keys()
            if keys:
                await self._redis.client.delete(*keys)
        except RedisError as e:
            raise CacheStorageError(str(e)) from e
        logger.info(f"Cleared {len(keys)} Redis cache entries")
        return len(keys)

    async def get_stats(self) -> dict[str, Any]:
        try:
            entries = len(await self._keys())
        except RedisError as e:
            logger.warning(f"Redis stats failed: {e}")
            entries = None
        return {
            "backend": "redis",
            "entries": entries,
            "used_memory_bytes": await self._redis.used_memory(),
            "ttl_seconds": self._ttl,
        }

    async def health_check(self) -> bool:
        return await self._redis.health_check()

    async def close(self) -> None:
        await self._redis.disconnect()
