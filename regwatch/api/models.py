"""
Request and response models for the pipeline API.
"""

from typing import Literal

from pydantic import BaseModel, Field


class PipelineRunRequest(BaseModel):
    """Request body for a pipeline invocation. Every field is optional."""

    action: str | None = Field(
        default=None,
        description="Free-form action label, recorded in logs only",
    )
    region: str | None = Field(
        default=None,
        description="Only run sources for this region (e.g. US, EU, Global)",
    )
    agency: str | None = Field(
        default=None,
        description="Only run sources for this agency (e.g. FDA, USDA)",
    )
    force_refresh: bool = Field(
        default=False,
        description="Ignore and reset per-source cooldowns",
    )
    test_mode: bool = Field(
        default=False,
        description="Write alerts to the scratch table and skip bookkeeping",
    )


class PipelineRunResponse(BaseModel):
    """Response for a completed pipeline invocation."""

    success: bool = Field(..., description="Always true for a completed run")
    totalAlertsProcessed: int = Field(  # noqa: N815
        ...,
        description="New alerts inserted across all sources",
    )
    results: dict[str, int] = Field(
        default_factory=dict,
        description="Inserted alerts keyed by <agency>_<region>",
    )
    timestamp: str = Field(..., description="Invocation time (ISO 8601, UTC)")


class PipelineErrorResponse(BaseModel):
    """Response when the invocation itself failed."""

    success: bool = Field(default=False)
    error: str = Field(..., description="Error message")
    timestamp: str = Field(..., description="Failure time (ISO 8601, UTC)")


class ErrorResponse(BaseModel):
    """Error response model."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        ...,
        description="Type of error",
    )


class ComponentHealth(BaseModel):
    """Health status of an individual infrastructure component."""

    status: Literal["healthy", "unhealthy"] = Field(
        ...,
        description="Component status",
    )
    latency_ms: float | None = Field(
        default=None,
        description="Check latency in milliseconds",
    )
    details: dict | None = Field(
        default=None,
        description="Additional details (e.g. error message)",
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "unhealthy"] = Field(
        ...,
        description="Overall service status",
    )
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health checks",
    )
    version: str = Field(..., description="Service version")


class FreshnessItem(BaseModel):
    """Latest run of one source."""

    source_name: str
    source_id: str | None = None
    last_attempt: str
    last_successful_fetch: str | None = None
    fetch_status: str
    records_fetched: int = 0
    total_records_fetched: int = 0
    health_state: str
    consecutive_failures: int = 0
    last_error: str | None = None


class FreshnessResponse(BaseModel):
    """Freshness of every source that has run at least once."""

    sources: list[FreshnessItem] = Field(default_factory=list)
    total: int = Field(..., description="Number of sources listed")
    unhealthy: int = Field(..., description="Sources currently unhealthy")
