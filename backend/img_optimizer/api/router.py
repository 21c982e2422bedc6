"""Main API router aggregating all routers."""

from fastapi import APIRouter

from img_optimizer.api.v1.health import router as health_router
from img_optimizer.api.v1.images import router as images_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["Health"])
api_router.include_router(images_router, tags=["Images"])
