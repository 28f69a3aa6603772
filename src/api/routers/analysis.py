"""API router for brand visibility analysis runs."""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException

from models.domain import WorkUnit
from models.schemas import AnalysisConfiguration, AnalysisRunResponse
from services.errors import ConfigurationError
from services.metrics_service import calculate_run_summary
from workers.pipeline import AnalysisOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator() -> AnalysisOrchestrator:
    return AnalysisOrchestrator()


@router.post(
    "/runs",
    response_model=AnalysisRunResponse,
    response_model_exclude_none=True,
)
async def create_analysis_run(
    config: AnalysisConfiguration,
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> AnalysisRunResponse:
    """
    Run every prompt against every selected provider and return the results.

    The request blocks until the run finishes. Provider failures are reported
    per result; only a configuration problem fails the request.

    Raises:
        HTTPException: 400 if a selected provider has no API key or model
    """
    snapshots: List[List[WorkUnit]] = []

    try:
        results = await orchestrator.run(config, snapshots.append)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    tasks = snapshots[-1] if snapshots else []
    failed = sum(1 for task in tasks if task.error)
    logger.info(f"Run for {config.client_name} finished with {failed} failed task(s)")

    return AnalysisRunResponse(
        results=results,
        summary=calculate_run_summary(results, config.client_name),
        tasks=[task.to_dict() for task in tasks],
    )
