"""Global error handling: every failure leaves as a problem-detail body."""

import logging
from http import HTTPStatus
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from img_optimizer.config import Settings, get_settings
from img_optimizer.services.pipeline.errors import (
    ImageOptimizerError,
    ProblemDetail,
    classify,
)

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"


def _settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", None) or get_settings()


def _get_cors_headers(request: Request) -> dict[str, str]:
    """Build CORS headers for error responses based on request origin."""
    origin = request.headers.get("origin")
    if not origin:
        return {}

    allowed_origins = _settings(request).cors_origins_list

    # Check if origin is allowed (support wildcard)
    if "*" in allowed_origins or origin in allowed_origins:
        return {"Access-Control-Allow-Origin": origin}

    return {}


def problem_response(request: Request, problem: ProblemDetail) -> JSONResponse:
    """Serialize a problem detail with CORS headers."""
    return JSONResponse(
        status_code=problem.status,
        content=problem.to_dict(),
        headers=_get_cors_headers(request),
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def image_optimizer_error_handler(
    request: Request,
    exc: ImageOptimizerError,
) -> JSONResponse:
    """Handle classified pipeline errors."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")
    return problem_response(request, classify(exc, _settings(request).error_docs_url))


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle routing-level HTTP exceptions (unknown path, wrong method)."""
    code_map = {
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
    }

    try:
        title = HTTPStatus(exc.status_code).phrase
    except ValueError:
        title = "Error"

    code = code_map.get(exc.status_code, f"HTTP_{exc.status_code}")
    base_url = _settings(request).error_docs_url.rstrip("/")
    content: dict[str, Any] = ProblemDetail(
        type=f"{base_url}/errors/{code}",
        title=title,
        status=exc.status_code,
        detail=exc.detail if isinstance(exc.detail, str) else title,
        error_code=code,
        how_to_fix="Check the request path and method against the API documentation",
        more_info=f"{base_url}#error-{code.lower()}",
    ).to_dict()

    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers={**_get_cors_headers(request), **(exc.headers or {})},
        media_type=PROBLEM_MEDIA_TYPE,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions without leaking their details."""
    logger.exception(f"Unexpected error: {exc}")
    problem = classify(exc, _settings(request).error_docs_url)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=problem.to_dict(),
        headers=_get_cors_headers(request),
        media_type=PROBLEM_MEDIA_TYPE,
    )


def setup_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers."""
    app.add_exception_handler(ImageOptimizerError, image_optimizer_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
