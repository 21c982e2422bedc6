"""
Single-flight coordination of transform computations.

At most one computation runs per cache key. Concurrent callers for the same
key attach to the running computation and receive its result or error.
The computation runs as its own task, so a caller that goes away (client
disconnect) only abandons its wait; the result still reaches the cache.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from img_optimizer.services.cache.base import CacheStore
from img_optimizer.services.pipeline.errors import CacheStorageError, TransformTimeoutError
from img_optimizer.services.pipeline.models import Passthrough, TransformResult

logger = logging.getLogger(__name__)

ComputeResult = TransformResult | Passthrough
ComputeFn = Callable[[], Awaitable[ComputeResult]]


def _consume_exception(future: asyncio.Future) -> None:
    # Waiters may all be gone; mark the exception as retrieved.
    if not future.cancelled():
        future.exception()


class SingleFlightCoordinator:
    """
    Deduplicates concurrent work per key in front of a ``CacheStore``.

    The in-flight registry maps key -> future. Every check-and-insert on it
    happens without an intervening ``await``, which makes it one atomic step
    on the event loop.
    """

    def __init__(self, store: CacheStore, compute_timeout: float | None = None):
        self._store = store
        self._compute_timeout = compute_timeout
        self._in_flight: dict[str, asyncio.Future] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def is_in_flight(self, key: str) -> bool:
        return key in self._in_flight

    async def execute(self, key: str, compute: ComputeFn) -> tuple[ComputeResult, bool]:
        """
        Return ``(result, from_cache)`` for ``key``.

        Cached entries are returned without computing. Otherwise the caller
        either starts the computation or attaches to the one in progress.
        """
        future = self._in_flight.get(key)
        if future is None:
            entry = await self._lookup(key)
            if entry is not None:
                logger.debug(f"Cache hit: {key}")
                return TransformResult.from_entry(entry), True

            future = self._in_flight.get(key)
            if future is None:
                future = self._start(key, compute)
            else:
                logger.debug(f"Attaching to in-flight computation: {key}")
        else:
            logger.debug(f"Attaching to in-flight computation: {key}")

        return await asyncio.shield(future)

    async def _lookup(self, key: str):
        try:
            return await self._store.lookup(key)
        except CacheStorageError as e:
            logger.warning(f"Cache lookup failed, treating as miss: {e}")
            return None

    def _start(self, key: str, compute: ComputeFn) -> asyncio.Future:
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        future.add_done_callback(_consume_exception)
        self._in_flight[key] = future

        task = loop.create_task(self._run(key, compute, future))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        logger.debug(f"Started computation: {key}")
        return future

    async def _run(self, key: str, compute: ComputeFn, future: asyncio.Future) -> None:
        from_cache = False
        try:
            # Any computation that released this key before we registered has
            # already committed its entry.
            entry = await self._lookup(key)
            if entry is not None:
                logger.debug(f"Cache hit on recheck: {key}")
                result = TransformResult.from_entry(entry)
                from_cache = True
            elif self._compute_timeout is not None:
                try:
                    result = await asyncio.wait_for(compute(), self._compute_timeout)
                except asyncio.TimeoutError:
                    raise TransformTimeoutError(self._compute_timeout) from None
            else:
                result = await compute()

            if not from_cache and result.cacheable:
                try:
                    await self._store.put(key, result.data, result.content_type)
                except CacheStorageError as e:
                    logger.warning(f"Cache write failed for {key}, serving uncached: {e}")

        except asyncio.CancelledError:
            self._release(key, future)
            if not future.done():
                future.cancel()
            raise
        except Exception as e:
            logger.info(f"Computation failed for {key}: {e}")
            self._release(key, future)
            future.set_exception(e)
        else:
            self._release(key, future)
            future.set_result((result, from_cache))

    def _release(self, key: str, future: asyncio.Future) -> None:
        if self._in_flight.get(key) is future:
            del self._in_flight[key]

    async def shutdown(self) -> None:
        """Cancel outstanding computations (application exit)."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info(f"Cancelled {len(tasks)} in-flight computations")
