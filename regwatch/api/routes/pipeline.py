"""
Pipeline invocation endpoint.
"""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from regwatch.api.dependencies import get_orchestrator
from regwatch.api.models import (
    PipelineErrorResponse,
    PipelineRunRequest,
    PipelineRunResponse,
)
from regwatch.pipeline.orchestrator import PipelineOrchestrator
from regwatch.pipeline.schemas import PipelineRequest

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post(
    "/pipeline/run",
    response_model=PipelineRunResponse,
    responses={500: {"model": PipelineErrorResponse}},
    summary="Run the ingestion pipeline",
    description="Fetch every due source, classify and store new alerts.",
)
async def run_pipeline(
    body: PipelineRunRequest | None = None,
    orchestrator: PipelineOrchestrator = Depends(get_orchestrator),
):
    """
    Run one pipeline invocation.

    Per-source failures are reported inside ``results``; only a failure
    of the invocation as a whole returns 500.
    """
    body = body or PipelineRunRequest()
    request = PipelineRequest(
        action=body.action,
        region=body.region,
        agency=body.agency,
        force_refresh=body.force_refresh,
        test_mode=body.test_mode,
    )

    try:
        result = await orchestrator.run(request)
    except Exception as e:
        logger.error("Pipeline invocation failed", error=str(e), exc_info=True)
        return JSONResponse(
            status_code=500,
            content=PipelineErrorResponse(
                error=str(e),
                timestamp=datetime.now(timezone.utc).isoformat(),
            ).model_dump(),
        )

    return result.to_response()
