"""Health check and error catalog endpoints."""

import time
from typing import Annotated

from fastapi import APIRouter, Depends, Response, status

from img_optimizer.dependencies import get_pipeline
from img_optimizer.models.schemas.common import (
    ErrorCatalogResponse,
    HealthResponse,
    ReadinessResponse,
)
from img_optimizer.services.pipeline.errors import list_all_errors
from img_optimizer.services.pipeline.service import ImagePipeline

router = APIRouter()

SERVICE_NAME = "img-optimizer"


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """
    Basic health check for load balancers.

    Returns 200 if service is running.
    """
    return HealthResponse(status="ok", service=SERVICE_NAME)


@router.get("/health/ready", response_model=ReadinessResponse)
async def readiness_check(
    response: Response,
    pipeline: Annotated[ImagePipeline, Depends(get_pipeline)],
):
    """
    Readiness check verifying the cache backend.

    Returns 503 if the backend is not usable.
    """
    start = time.time()
    healthy = await pipeline.store.health_check()
    latency = (time.time() - start) * 1000

    cache = await pipeline.store.get_stats()
    cache["healthy"] = healthy
    cache["latency_ms"] = round(latency, 2)

    if not healthy:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessResponse(
        status="ok" if healthy else "degraded",
        cache=cache,
        in_flight=pipeline.coordinator.in_flight,
    )


@router.get("/errors", response_model=ErrorCatalogResponse)
async def list_errors():
    """List every error code with its title and description."""
    errors = list_all_errors()
    return ErrorCatalogResponse(errors=errors, total=len(errors))
