"""Error taxonomy and problem-detail rendering.

Every failure the pipeline can produce is an ``ImageOptimizerError``
subclass. Each class carries a stable error code, an HTTP status and the
fields it needs to render guidance text; ``classify`` turns any exception
into a ``ProblemDetail`` (RFC 7807 style) for the response body.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class ProblemDetail:
    """Machine-readable error body returned to callers."""

    type: str
    title: str
    status: int
    detail: str
    error_code: str
    how_to_fix: str
    more_info: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "title": self.title,
            "status": self.status,
            "detail": self.detail,
            "errorCode": self.error_code,
            "howToFix": self.how_to_fix,
            "moreInfo": self.more_info,
        }


class ImageOptimizerError(Exception):
    """Base class for all classified pipeline errors."""

    code: str = "SYS_001"
    title: str = "Internal Server Error"
    status_code: int = 500
    summary: str = "Internal server error"
    description: str = "An unexpected error occurred"
    fix: str = "Try again later. If the problem persists, contact support"

    def __init__(self, message: str | None = None):
        self.message = message or self.description
        super().__init__(self.message)

    @property
    def detail(self) -> str:
        return f"{self.code}: {self.summary} - {self.message}"

    @property
    def how_to_fix(self) -> str:
        return self.fix

    def to_problem(self, base_url: str) -> ProblemDetail:
        base_url = base_url.rstrip("/")
        return ProblemDetail(
            type=f"{base_url}/errors/{self.code}",
            title=self.title,
            status=self.status_code,
            detail=self.detail,
            error_code=self.code,
            how_to_fix=self.how_to_fix,
            more_info=f"{base_url}#error-{self.code.lower()}",
        )


# ============================================================================
# Request validation (400)
# ============================================================================


class InvalidImageUrlError(ImageOptimizerError):
    code = "IMG_001"
    title = "Bad Request"
    status_code = 400
    summary = "Invalid image URL"
    description = "The provided URL is not valid"
    fix = "Provide a valid URL starting with http:// or https://"

    def __init__(self, url: str | None = None):
        self.url = url
        if url:
            super().__init__(f"The provided URL '{url}' is not valid")
        else:
            super().__init__("The 'src' parameter is required")


class InvalidWidthError(ImageOptimizerError):
    code = "VAL_001"
    title = "Bad Request"
    status_code = 400
    summary = "Invalid width"
    description = "Width must be between 1 and 3840"
    fix = "Provide a width value between 1 and 3840"

    def __init__(self, width: str):
        self.width = width
        super().__init__(f"Width must be between 1 and 3840, got '{width}'")


class InvalidQualityError(ImageOptimizerError):
    code = "VAL_002"
    title = "Bad Request"
    status_code = 400
    summary = "Invalid quality"
    description = "Quality must be between 1 and 100"
    fix = "Provide a quality value between 1 and 100"

    def __init__(self, quality: str):
        self.quality = quality
        super().__init__(f"Quality must be between 1 and 100, got '{quality}'")


class InvalidImageFormatError(ImageOptimizerError):
    code = "IMG_004"
    title = "Bad Request"
    status_code = 400
    summary = "Invalid image format"
    description = "The requested output format is not supported"

    def __init__(self, format: str):
        self.format = format
        super().__init__(f"Format '{format}' is not supported")

    @property
    def how_to_fix(self) -> str:
        return f"Use one of the supported formats: jpeg, jpg, png, webp. Got '{self.format}'"


# ============================================================================
# Source fetch
# ============================================================================


class FetchFailedError(ImageOptimizerError):
    code = "IMG_002"
    title = "Bad Gateway"
    status_code = 502
    summary = "Image fetch failed"
    description = "Unable to download image from the source URL"
    fix = "Ensure the image URL is accessible and the server is responding"

    def __init__(self, url: str, upstream_status: int | None = None, reason: str | None = None):
        self.url = url
        self.upstream_status = upstream_status
        self.reason = reason
        if upstream_status is not None:
            message = f"Unable to download image from {url} (HTTP {upstream_status})"
        else:
            message = f"Unable to download image from {url}"
        super().__init__(message)


class FetchTimeoutError(ImageOptimizerError):
    code = "IMG_006"
    title = "Gateway Timeout"
    status_code = 504
    summary = "Image fetch timed out"
    description = "The source server did not respond in time"
    fix = "The source server is too slow to respond. Retry later or use a faster host"

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Downloading {url} took longer than {timeout:g}s")


class SourceTooLargeError(ImageOptimizerError):
    code = "IMG_005"
    title = "Payload Too Large"
    status_code = 413
    summary = "Image too large"
    description = "Image dimensions exceed maximum allowed size"
    fix = "Reduce the image dimensions or use a smaller source image"

    def __init__(self, limit: int | None = None, reason: str | None = None):
        self.limit = limit
        if reason:
            message = reason
        elif limit is not None:
            message = f"Source image exceeds the {limit} byte limit"
        else:
            message = "Image dimensions exceed maximum allowed size"
        super().__init__(message)


# ============================================================================
# Transformation
# ============================================================================


class DecodeFailedError(ImageOptimizerError):
    code = "IMG_003"
    title = "Processing Error"
    status_code = 422
    summary = "Image processing failed"
    description = "Error processing image"
    fix = "Try a different image or check if the image file is corrupted"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Error decoding image: {reason}")


class EncodeFailedError(ImageOptimizerError):
    code = "IMG_007"
    title = "Processing Error"
    status_code = 500
    summary = "Image encoding failed"
    description = "The image could not be encoded in the requested format"
    fix = "Try a different output format"

    def __init__(self, format: str, reason: str):
        self.format = format
        self.reason = reason
        super().__init__(f"Error encoding {format}: {reason}")


class TransformTimeoutError(ImageOptimizerError):
    code = "IMG_008"
    title = "Gateway Timeout"
    status_code = 504
    summary = "Image processing timed out"
    description = "Processing did not finish within the time limit"
    fix = "Retry the request or ask for a smaller width"

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Processing did not finish within {timeout:g}s")


class ImageNotFoundError(ImageOptimizerError):
    code = "IMG_009"
    title = "Not Found"
    status_code = 404
    summary = "Image not found"
    description = "No cached image exists with the given id"
    fix = "Request the image through /img-optimizer/v1/img to (re)create it"

    def __init__(self, image_id: str):
        self.image_id = image_id
        super().__init__(f"No cached image with id '{image_id}'")


# ============================================================================
# Infrastructure
# ============================================================================


class CacheStorageError(ImageOptimizerError):
    code = "CACHE_001"
    title = "Internal Server Error"
    status_code = 500
    summary = "Cache error"
    description = "Failed to access cache"
    fix = "Try again later or contact support if the issue persists"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Failed to access cache: {reason}")


class InternalServerError(ImageOptimizerError):
    """Generic classification for anything unexpected."""


class ServiceUnavailableError(ImageOptimizerError):
    code = "SYS_002"
    title = "Service Unavailable"
    status_code = 503
    summary = "Service unavailable"
    description = "The service is temporarily unavailable"
    fix = "The service is temporarily down. Please try again in a few minutes"


ERROR_CATALOG: tuple[type[ImageOptimizerError], ...] = (
    InvalidImageUrlError,
    FetchFailedError,
    DecodeFailedError,
    InvalidImageFormatError,
    SourceTooLargeError,
    FetchTimeoutError,
    EncodeFailedError,
    TransformTimeoutError,
    ImageNotFoundError,
    InvalidWidthError,
    InvalidQualityError,
    CacheStorageError,
    InternalServerError,
    ServiceUnavailableError,
)


def classify(exc: BaseException, base_url: str) -> ProblemDetail:
    """Map any exception to a problem detail.

    Unclassified exceptions never leak their message; they become SYS_001.
    """
    if not isinstance(exc, ImageOptimizerError):
        exc = InternalServerError()
    return exc.to_problem(base_url)


def list_all_errors() -> list[str]:
    """Human-readable catalog of every error code."""
    return [f"{cls.code}: {cls.summary} - {cls.description}" for cls in ERROR_CATALOG]
