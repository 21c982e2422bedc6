"""Async Redis connection shared by the cache store."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from redis.asyncio import ConnectionPool, Redis

from img_optimizer.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    """
    Pooled Redis connection.

    Responses are left as bytes because cached payloads are raw image data;
    callers decode the text fields they need.
    """

    def __init__(
        self,
        url: str,
        max_connections: int = 20,
        socket_timeout: float = 5.0,
    ) -> None:
        self._url = url
        self._max_connections = max_connections
        self._socket_timeout = socket_timeout
        self._pool: ConnectionPool | None = None
        self._client: Redis | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "RedisClient":
        return cls(
            url=settings.redis_url,
            max_connections=settings.redis_max_connections,
            socket_timeout=settings.redis_socket_timeout,
        )

    @property
    def connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Open the pool and verify the server answers."""
        if self.connected:
            return

        pool = ConnectionPool.from_url(
            self._url,
            max_connections=self._max_connections,
            decode_responses=False,
            socket_timeout=self._socket_timeout,
            socket_connect_timeout=self._socket_timeout,
            retry_on_timeout=True,
        )
        client = Redis(connection_pool=pool)
        try:
            await client.ping()
        except redis.RedisError as e:
            logger.error(f"Failed to connect to Redis at {self._url}: {e}")
            await pool.disconnect()
            raise

        self._pool = pool
        self._client = client
        logger.info(f"Redis connection established ({self._max_connections} max connections)")

    async def disconnect(self) -> None:
        if self._pool is not None:
            await self._pool.disconnect()
            logger.info("Redis connection closed")
        self._pool = None
        self._client = None

    @property
    def client(self) -> Redis:
        if self._client is None:
            raise RuntimeError("Redis client not initialized. Call connect() first.")
        return self._client

    @asynccontextmanager
    async def pipeline(self, transaction: bool = True) -> AsyncGenerator:
        """Queue commands and execute them on exit (MULTI/EXEC when transactional)."""
        async with self.client.pipeline(transaction=transaction) as pipe:
            yield pipe
            await pipe.execute()

    async def used_memory(self) -> int | None:
        """Server memory use in bytes, if INFO is permitted."""
        try:
            info = await self.client.info("memory")
        except redis.RedisError as e:
            logger.debug(f"Redis INFO unavailable: {e}")
            return None
        return info.get("used_memory")

    async def health_check(self) -> bool:
        try:
            await self.client.ping()
            return True
        except (redis.RedisError, RuntimeError) as e:
            logger.error(f"Redis health check failed: {e}")
            return False
