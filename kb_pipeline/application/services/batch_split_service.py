"""
Batch split service.

Splits a large document into page-range processing jobs that the job queue
worker dispatches one at a time. Idempotent: a document that already has
jobs is left untouched.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: "split-document-into-batches" pipeline stage
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker

from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.boundary.db.CRUD.processing_job_crud import processing_job_crud
from kb_pipeline.core.document_processing.database.document_status_updater import (
    DocumentStatusUpdater,
)
from kb_pipeline.core.document_processing.models import SplitDocumentRequest, StageResult
from kb_pipeline.core.state_machine import DocumentStatus, ProcessingJobStatus

logger = logging.getLogger(__name__)


def page_ranges(total_pages: int, pages_per_batch: int) -> list[tuple[int, int]]:
    """Inclusive 1-based (page_start, page_end) pairs covering every page."""
    return [
        (start, min(start + pages_per_batch - 1, total_pages))
        for start in range(1, total_pages + 1, pages_per_batch)
    ]


class BatchSplitService:
    """Create processing jobs for a document's page ranges."""

    def __init__(self, session_factory: async_sessionmaker, pages_per_batch: int = 20) -> None:
        self._session_factory = session_factory
        self._pages_per_batch = pages_per_batch

    async def split_document(self, request: SplitDocumentRequest) -> StageResult:
        """
        Create one PENDING job per page range.

        Args:
            request: Document id plus optional page count and batch size

        Returns:
            StageResult: processed = jobs created; success=False when the
            document is missing or has no page count
        """
        pages_per_batch = request.pages_per_batch or self._pages_per_batch

        async with self._session_factory() as session:
            document = await document_crud.get_by_id(session, request.document_id)
            if document is None:
                return StageResult.fatal(f"Document not found: {request.document_id}")
            if document.status in (DocumentStatus.READY, DocumentStatus.FAILED):
                return StageResult(
                    message=f"Document is {document.status.value}; nothing to split",
                    details={"documentId": str(document.id)},
                )

            existing = await processing_job_crud.count_for_document(session, document.id)
            if existing:
                logger.info(
                    f"{__name__}:split_document - Jobs already exist",
                    extra={"document_id": str(document.id), "jobs": existing},
                )
                return StageResult(
                    message=f"Document already has {existing} jobs",
                    details={"documentId": str(document.id), "existing": existing},
                )

            total_pages = request.total_pages or document.total_pages
            updater = DocumentStatusUpdater(session)
            if not total_pages:
                reason = "Total page count unknown; cannot split into batches"
                await updater.mark_failed(document.id, reason)
                return StageResult(
                    success=False,
                    failed=1,
                    message=reason,
                    error=reason,
                    details={"documentId": str(document.id)},
                )

            ranges = page_ranges(total_pages, pages_per_batch)
            try:
                for batch_index, (page_start, page_end) in enumerate(ranges):
                    await processing_job_crud.create(
                        session,
                        document_id=document.id,
                        batch_index=batch_index,
                        page_start=page_start,
                        page_end=page_end,
                        status=ProcessingJobStatus.PENDING,
                    )
                await document_crud.update_by_id(session, document.id, total_pages=total_pages)
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.info(f"{__name__}:split_document - Concurrent split won for {document.id}")
                return StageResult(
                    message="Jobs created by a concurrent split",
                    details={"documentId": str(document.id)},
                )
            except Exception as e:
                logger.error(f"{__name__}:split_document - {type(e).__name__}: {e}")
                await session.rollback()
                raise

            await updater.mark_processing(document.id)

        logger.info(
            f"{__name__}:split_document - Created {len(ranges)} jobs",
            extra={"document_id": str(request.document_id), "total_pages": total_pages},
        )
        return StageResult(
            processed=len(ranges),
            message=f"Split {total_pages} pages into {len(ranges)} batches",
            details={
                "documentId": str(request.document_id),
                "totalPages": total_pages,
                "pagesPerBatch": pages_per_batch,
            },
        )
