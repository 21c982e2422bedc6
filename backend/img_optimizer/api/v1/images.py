"""Image optimization endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import RedirectResponse, Response

from img_optimizer.dependencies import get_pipeline
from img_optimizer.models.schemas.common import ProblemDetailResponse
from img_optimizer.services.pipeline.models import Passthrough
from img_optimizer.services.pipeline.service import ImagePipeline

router = APIRouter(prefix="/img-optimizer/v1")

PROBLEM_RESPONSES = {
    code: {"model": ProblemDetailResponse} for code in (400, 404, 413, 422, 500, 502, 504)
}


def _cache_headers(request: Request) -> dict[str, str]:
    ttl = int(request.app.state.settings.cache_ttl_seconds)
    return {"Cache-Control": f"public, max-age={ttl}"}


@router.get(
    "/img",
    responses={
        200: {"content": {"image/jpeg": {}, "image/png": {}, "image/webp": {}}},
        302: {"description": "SVG source, redirect to the original"},
        **PROBLEM_RESPONSES,
    },
)
async def optimize_image(
    request: Request,
    pipeline: Annotated[ImagePipeline, Depends(get_pipeline)],
    src: Annotated[str | None, Query(description="Absolute http(s) URL of the source image")] = None,
    w: Annotated[str | None, Query(description="Target width, 1-3840")] = None,
    q: Annotated[str | None, Query(description="Quality, 1-100 (default 75)")] = None,
    f: Annotated[str | None, Query(description="Output format: jpeg, jpg, png, webp")] = None,
):
    """
    Resize and re-encode a remote image.

    Identical requests are served from cache; concurrent identical requests
    share one fetch and transform. SVG sources are redirected untouched.
    """
    result = await pipeline.handle({"src": src, "w": w, "q": q, "f": f})

    if isinstance(result, Passthrough):
        return RedirectResponse(result.location, status_code=status.HTTP_302_FOUND)

    headers = _cache_headers(request)
    headers["X-Cache"] = result.cache_status
    headers["X-Image-Id"] = result.image_id
    return Response(content=result.data, media_type=result.content_type, headers=headers)


@router.get("/img/{image_id}", responses=PROBLEM_RESPONSES)
async def get_image_by_id(
    image_id: str,
    request: Request,
    pipeline: Annotated[ImagePipeline, Depends(get_pipeline)],
):
    """Serve a previously generated image by its ``X-Image-Id``."""
    entry = await pipeline.get_cached(image_id)
    headers = _cache_headers(request)
    headers["X-Cache"] = "HIT"
    return Response(content=entry.data, media_type=entry.content_type, headers=headers)
