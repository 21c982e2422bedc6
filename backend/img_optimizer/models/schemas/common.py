"""Common Pydantic schemas for API responses."""

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ProblemDetailResponse(BaseModel):
    """Problem-detail error body (documentation schema)."""

    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(..., description="URL identifying the error kind")
    title: str = Field(..., description="Short summary of the status")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human readable explanation")
    error_code: str = Field(..., alias="errorCode", description="Stable error code")
    how_to_fix: str = Field(..., alias="howToFix", description="Remediation hint")
    more_info: str = Field(..., alias="moreInfo", description="Documentation link")


class HealthResponse(BaseModel):
    """Basic health check response."""

    status: str = Field(..., description="Health status")
    service: str = Field(..., description="Service name")


class ReadinessResponse(BaseModel):
    """Readiness check with cache backend details."""

    status: str
    cache: dict[str, Any]
    in_flight: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ErrorCatalogResponse(BaseModel):
    """Every error code the service can return."""

    errors: list[str]
    total: int
