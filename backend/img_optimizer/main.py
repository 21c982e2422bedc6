"""FastAPI application entry point."""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from img_optimizer.api.router import api_router
from img_optimizer.config import Settings, get_settings
from img_optimizer.dependencies import build_cache_store, build_pipeline
from img_optimizer.middleware.error_handler import setup_exception_handlers
from img_optimizer.middleware.observability import setup_observability
from img_optimizer.middleware.request_id import RequestIDMiddleware
from img_optimizer.services.image import HttpxFetcher
from img_optimizer.services.pipeline.errors import CacheStorageError
from img_optimizer.services.pipeline.service import ImagePipeline

logger = logging.getLogger(__name__)


async def run_eviction_loop(pipeline: ImagePipeline, interval: float) -> None:
    """Periodically drop expired cache entries until cancelled."""
    while True:
        await asyncio.sleep(interval)
        try:
            await pipeline.evict_expired()
        except CacheStorageError as e:
            logger.warning(f"Cache eviction failed: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management."""
    settings: Settings = app.state.settings
    logger.info(f"Starting {settings.app_name}...")

    owned = app.state.pipeline is None
    executor: ThreadPoolExecutor | None = None
    fetcher: HttpxFetcher | None = None

    if owned:
        store = await build_cache_store(settings)
        logger.info(f"Cache backend initialized: {settings.cache_backend}")
        fetcher = HttpxFetcher(user_agent=settings.user_agent)
        executor = ThreadPoolExecutor(
            max_workers=max(1, settings.transform_workers),
            thread_name_prefix="transform",
        )
        app.state.pipeline = build_pipeline(settings, store, fetcher, executor)

    evictor = None
    if settings.cache_evict_interval_seconds > 0:
        evictor = asyncio.create_task(
            run_eviction_loop(app.state.pipeline, settings.cache_evict_interval_seconds)
        )

    yield

    logger.info("Shutting down...")
    if evictor is not None:
        evictor.cancel()
        await asyncio.gather(evictor, return_exceptions=True)

    if owned:
        await app.state.pipeline.close()
        await fetcher.close()
        executor.shutdown(wait=False, cancel_futures=True)
        app.state.pipeline = None
    logger.info("Shutdown complete")


def create_app(
    settings: Settings | None = None,
    pipeline: ImagePipeline | None = None,
) -> FastAPI:
    """
    Application factory.

    A prebuilt ``pipeline`` (tests, embedding) is used as-is and not closed
    on shutdown; otherwise one is assembled from ``settings`` at startup.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        description="On-the-fly image resizing and re-encoding proxy",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Origin", "X-Requested-With", "Content-Type", "Accept"],
        expose_headers=["X-Cache", "X-Image-Id", "X-Request-ID"],
        max_age=3600,
    )

    # Observability (logging + access log)
    setup_observability(app, settings)

    # Request ID middleware (outermost, so every log line carries the id)
    app.add_middleware(RequestIDMiddleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routes
    app.include_router(api_router)

    return app


app = create_app()
