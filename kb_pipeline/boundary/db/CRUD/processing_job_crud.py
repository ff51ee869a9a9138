"""
Processing job CRUD operations.

Queries backing the job queue worker: stuck detection, self-healing
candidates, and deterministic next-job selection.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Batch job persistence operations
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.CRUD.base_crud import BaseCRUD
from kb_pipeline.boundary.db.models.processing_job_model import ProcessingJobModel
from kb_pipeline.core.state_machine import Entity, ProcessingJobStatus


class ProcessingJobCRUD(BaseCRUD[ProcessingJobModel]):
    """CRUD operations for ProcessingJobModel."""

    def __init__(self) -> None:
        super().__init__(ProcessingJobModel, Entity.PROCESSING_JOB)

    async def get_stuck(
        self,
        session: AsyncSession,
        older_than: datetime,
    ) -> Sequence[ProcessingJobModel]:
        """PROCESSING jobs not touched since ``older_than``."""
        stmt = select(ProcessingJobModel).where(
            ProcessingJobModel.status == ProcessingJobStatus.PROCESSING,
            ProcessingJobModel.updated_at < older_than,
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_failed_before(
        self,
        session: AsyncSession,
        older_than: datetime,
    ) -> Sequence[ProcessingJobModel]:
        """FAILED jobs whose last update is older than ``older_than``."""
        stmt = select(ProcessingJobModel).where(
            ProcessingJobModel.status == ProcessingJobStatus.FAILED,
            ProcessingJobModel.updated_at < older_than,
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def get_next_pending(self, session: AsyncSession) -> ProcessingJobModel | None:
        """
        The single next job to dispatch.

        Ordered by document then batch index so each document's batches run
        in sequence.
        """
        stmt = (
            select(ProcessingJobModel)
            .where(ProcessingJobModel.status == ProcessingJobStatus.PENDING)
            .order_by(ProcessingJobModel.document_id, ProcessingJobModel.batch_index)
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_for_document(self, session: AsyncSession, document_id: UUID) -> int:
        stmt = select(func.count(ProcessingJobModel.id)).where(
            ProcessingJobModel.document_id == document_id
        )
        return int((await session.execute(stmt)).scalar_one())


processing_job_crud = ProcessingJobCRUD()
