"""
Source freshness endpoint.
"""

from fastapi import APIRouter, Depends, Query

from regwatch.api.dependencies import get_freshness_repository
from regwatch.api.models import FreshnessItem, FreshnessResponse
from regwatch.monitoring.repository import FreshnessRepository

router = APIRouter()


@router.get(
    "/sources/freshness",
    response_model=FreshnessResponse,
    summary="Per-source freshness",
    description="Latest run outcome and health state of every source.",
)
async def list_freshness(
    health_state: str | None = Query(
        default=None,
        description="Only return sources in this health state",
    ),
    repository: FreshnessRepository = Depends(get_freshness_repository),
) -> FreshnessResponse:
    records = await repository.list_all()
    if health_state:
        records = [r for r in records if r.health_state == health_state]

    return FreshnessResponse(
        sources=[FreshnessItem(**r.to_dict()) for r in records],
        total=len(records),
        unhealthy=sum(1 for r in records if r.health_state == "unhealthy"),
    )
