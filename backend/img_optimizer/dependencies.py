"""Dependency injection factories and pipeline assembly."""

from concurrent.futures import ThreadPoolExecutor

from fastapi import Request

from img_optimizer.config import Settings
from img_optimizer.redis.client import RedisClient
from img_optimizer.services.cache import (
    CacheStore,
    DiskCacheStore,
    MemoryCacheStore,
    RedisCacheStore,
)
from img_optimizer.services.image import Fetcher, FetchLimits, PillowCodec
from img_optimizer.services.pipeline.errors import ServiceUnavailableError
from img_optimizer.services.pipeline.orchestrator import TransformOrchestrator
from img_optimizer.services.pipeline.service import ImagePipeline
from img_optimizer.services.pipeline.single_flight import SingleFlightCoordinator


async def build_cache_store(settings: Settings) -> CacheStore:
    """Create the configured cache backend."""
    if settings.cache_backend == "memory":
        return MemoryCacheStore(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.memory_cache_max_entries,
        )

    if settings.cache_backend == "redis":
        redis_client = RedisClient.from_settings(settings)
        await redis_client.connect()
        return RedisCacheStore(redis_client, ttl_seconds=settings.cache_ttl_seconds)

    return DiskCacheStore(
        cache_dir=settings.cache_dir,
        ttl_seconds=settings.cache_ttl_seconds,
        max_size_bytes=settings.cache_max_size_bytes,
    )


def build_pipeline(
    settings: Settings,
    store: CacheStore,
    fetcher: Fetcher,
    executor: ThreadPoolExecutor | None = None,
) -> ImagePipeline:
    """Wire validator, coordinator and orchestrator around ``store``."""
    orchestrator = TransformOrchestrator(
        fetcher=fetcher,
        codec=PillowCodec(max_pixels=settings.max_image_pixels),
        limits=FetchLimits(
            max_bytes=settings.max_source_bytes,
            timeout=settings.fetch_timeout_seconds,
        ),
        executor=executor,
    )
    coordinator = SingleFlightCoordinator(
        store,
        compute_timeout=settings.transform_timeout_seconds,
    )
    return ImagePipeline(store=store, coordinator=coordinator, orchestrator=orchestrator)


# ============================================================================
# HTTP Request Dependencies
# ============================================================================


async def get_pipeline(request: Request) -> ImagePipeline:
    """Get the image pipeline from app state."""
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        raise ServiceUnavailableError("The image pipeline is not initialized")
    return pipeline
