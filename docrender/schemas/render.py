"""
Pydantic schemas for the document rendering endpoints.

Includes the render request model and the error/health response bodies.
"""

from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# --- Request Schemas ---


class RenderRequest(BaseModel):
    """Request to render a template into a PDF document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    template_name: str = Field(
        ...,
        min_length=1,
        alias="templateName",
        description="Name of a registered template (file stem, e.g. 'invoice')",
    )
    data: Dict[str, Any] = Field(
        ...,
        description="Payload bound into the template; 'secoes' holds renderable sections",
    )
    output_name: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("outputName", "fileName", "output_name"),
        description="Suggested download filename",
    )


# --- Response Schemas ---


class ErrorResponse(BaseModel):
    """Error body returned for every failed render."""

    error: str = Field(..., description="Outcome category")
    message: str = Field(..., description="Error description")
    request_id: str = Field(..., description="Identifier for cross-referencing logs")
    retry_after: Optional[int] = Field(
        None, description="Seconds to wait before resubmitting (conflicts only)"
    )
    details: Optional[Dict[str, Any]] = Field(None, description="Additional details")


class HealthCheck(BaseModel):
    """Status of one dependency."""

    status: Literal["healthy", "unhealthy"]
    latency_ms: Optional[float] = None
    error: Optional[str] = None
    count: Optional[int] = None


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"]
    uptime_seconds: float
    timestamp: datetime
    version: str
    checks: Dict[str, HealthCheck]
