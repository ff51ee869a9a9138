"""
Document CRUD operations.

Extends BaseCRUD with the document queries used by the pipeline sweeps:
intermediate-status scans, orphan detection, and aggregation bookkeeping.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Document persistence operations
"""

from datetime import datetime
from typing import Iterable, Sequence
from uuid import UUID

from sqlalchemy import and_, exists, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.base import utcnow
from kb_pipeline.boundary.db.CRUD.base_crud import BaseCRUD
from kb_pipeline.boundary.db.models.document_model import DocumentModel
from kb_pipeline.boundary.db.models.processing_job_model import ProcessingJobModel
from kb_pipeline.core.state_machine import DocumentStatus, Entity, ProcessingJobStatus

INTERMEDIATE_STATUSES = (
    DocumentStatus.INGESTED,
    DocumentStatus.DOWNLOADED,
    DocumentStatus.PROCESSING,
    DocumentStatus.CHUNKED,
)


def _aggregation_due(retry_before: datetime | None):
    never = DocumentModel.aggregated_at.is_(None)
    if retry_before is None:
        return never
    return or_(never, DocumentModel.aggregated_at < retry_before)


class DocumentCRUD(BaseCRUD[DocumentModel]):
    """CRUD operations for DocumentModel."""

    def __init__(self) -> None:
        """Initialize with DocumentModel and the document transition table."""
        super().__init__(DocumentModel, Entity.DOCUMENT)

    async def get_intermediate(
        self,
        session: AsyncSession,
        document_id: UUID | None = None,
    ) -> Sequence[DocumentModel]:
        """
        Documents that are neither READY nor FAILED.

        Args:
            session: Async database session
            document_id: Restrict the scan to one document

        Returns:
            Matching documents ordered by creation time
        """
        stmt = select(DocumentModel).where(DocumentModel.status.in_(INTERMEDIATE_STATUSES))
        if document_id is not None:
            stmt = stmt.where(DocumentModel.id == document_id)
        stmt = stmt.order_by(DocumentModel.created_at)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def find_orphaned_ingested(
        self,
        session: AsyncSession,
        older_than: datetime,
        limit: int,
    ) -> Sequence[DocumentModel]:
        """
        INGESTED documents past the threshold that never got processing jobs.

        Args:
            session: Async database session
            older_than: Creation cutoff
            limit: Maximum documents returned

        Returns:
            Orphaned documents, oldest first
        """
        has_jobs = exists().where(ProcessingJobModel.document_id == DocumentModel.id)
        stmt = (
            select(DocumentModel)
            .where(
                DocumentModel.status == DocumentStatus.INGESTED,
                DocumentModel.created_at < older_than,
                ~has_jobs,
            )
            .order_by(DocumentModel.created_at)
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def find_unaggregated_complete(
        self,
        session: AsyncSession,
        retry_before: datetime | None = None,
    ) -> Sequence[DocumentModel]:
        """
        PROCESSING documents whose processing jobs are all COMPLETED.

        The aggregate stage moves a document out of PROCESSING, so READY and
        CHUNKED documents are never returned.

        Args:
            session: Async database session
            retry_before: Also return documents whose aggregation was
                triggered before this time (None: only never-triggered ones)

        Returns:
            Documents needing aggregation
        """
        has_jobs = exists().where(ProcessingJobModel.document_id == DocumentModel.id)
        has_unfinished = exists().where(
            and_(
                ProcessingJobModel.document_id == DocumentModel.id,
                ProcessingJobModel.status != ProcessingJobStatus.COMPLETED,
            )
        )
        stmt = (
            select(DocumentModel)
            .where(
                _aggregation_due(retry_before),
                DocumentModel.status == DocumentStatus.PROCESSING,
                has_jobs,
                ~has_unfinished,
            )
            .order_by(DocumentModel.created_at)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_names(self, session: AsyncSession, ids: Iterable[UUID]) -> dict[UUID, str]:
        """Map document ids to names; unknown ids are absent."""
        ids = list(ids)
        if not ids:
            return {}
        stmt = select(DocumentModel.id, DocumentModel.name).where(DocumentModel.id.in_(ids))
        result = await session.execute(stmt)
        return {id: name for id, name in result.all()}

    async def increment_recovery_attempts(self, session: AsyncSession, id: UUID) -> None:
        """Bump the orphan-recovery counter."""
        stmt = (
            update(DocumentModel)
            .where(DocumentModel.id == id)
            .values(recovery_attempts=DocumentModel.recovery_attempts + 1)
        )
        await session.execute(stmt)

    async def mark_aggregated(
        self,
        session: AsyncSession,
        id: UUID,
        retry_before: datetime | None = None,
    ) -> bool:
        """
        Stamp ``aggregated_at`` if aggregation is still due.

        Conditional on the same predicate as find_unaggregated_complete, so
        concurrent sweeps trigger a document once.

        Returns:
            bool: True if this call claimed the trigger
        """
        stmt = (
            update(DocumentModel)
            .where(DocumentModel.id == id, _aggregation_due(retry_before))
            .values(aggregated_at=utcnow())
        )
        result = await session.execute(stmt)
        return result.rowcount > 0


document_crud = DocumentCRUD()
