"""
Pipeline stage API endpoints.

Routes: GET /stages, POST /stages/{stage}

Dependencies: kb_pipeline.application.pipeline_runner
System role: HTTP trigger for every pipeline stage
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException

from kb_pipeline.api.deps import get_pipeline_runner
from kb_pipeline.application.pipeline_runner import PipelineRunner
from kb_pipeline.core.document_processing.models import StageResult

router = APIRouter(prefix="/stages", tags=["stages"])


@router.get("")
async def list_stages(runner: PipelineRunner = Depends(get_pipeline_runner)) -> dict:
    """Stage names accepted by POST /stages/{stage}."""
    return {"stages": [stage.value for stage in runner.stages]}


@router.post("/{stage}", response_model=StageResult)
async def run_stage(
    stage: str,
    payload: dict[str, Any] | None = Body(default=None),
    runner: PipelineRunner = Depends(get_pipeline_runner),
) -> StageResult:
    """
    Run a stage and return its summary.

    Args:
        stage: Stage name, e.g. ``generate-embeddings``
        payload: Optional request (``documentId``, ``batchSize``, ...)
        runner: Injected PipelineRunner

    Returns:
        StageResult: Stage summary

    Raises:
        HTTPException(404): Unknown stage
        HTTPException(500): Fatal stage error (detail carries the summary)
    """
    if not runner.handles(stage):
        raise HTTPException(status_code=404, detail=f"Unknown stage '{stage}'")

    result = await runner.run(stage, payload or {})
    if not result.success:
        raise HTTPException(status_code=500, detail=result.model_dump(mode="json"))
    return result
