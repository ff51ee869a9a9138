"""
Document ingestion API endpoints.

Routes: POST /documents

Dependencies: kb_pipeline.application.pipeline_runner
System role: Ingestion shortcut over the ingest-document stage
"""

from fastapi import APIRouter, Depends, HTTPException, status

from kb_pipeline.api.deps import get_pipeline_runner
from kb_pipeline.application.pipeline_runner import PipelineRunner
from kb_pipeline.core.document_processing.models import IngestDocumentRequest, StageResult
from kb_pipeline.core.stages import Stage

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", response_model=StageResult, status_code=status.HTTP_201_CREATED)
async def ingest_document(
    request: IngestDocumentRequest,
    runner: PipelineRunner = Depends(get_pipeline_runner),
) -> StageResult:
    """
    Ingest a document and queue its embedding and vision work.

    Args:
        request: Document name with text or object key, plus extracted visuals/tables
        runner: Injected PipelineRunner

    Returns:
        StageResult: Summary with ``details.documentId``

    Raises:
        HTTPException(422): Document could not be ingested (detail carries the summary)
    """
    result = await runner.run(Stage.INGEST_DOCUMENT, request.model_dump(mode="json"))
    if not result.success:
        raise HTTPException(status_code=422, detail=result.model_dump(mode="json"))
    return result
