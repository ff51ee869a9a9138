"""
Visual enrichment queue CRUD operations.

The active-processing query only ever returns items linked to a chunk, so
orphaned legacy rows can never be picked up again.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Visual enrichment queue persistence operations
"""

from datetime import datetime
from typing import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.CRUD.base_crud import BaseCRUD
from kb_pipeline.boundary.db.models.visual_job_model import VisualEnrichmentJobModel
from kb_pipeline.core.state_machine import Entity, VisualJobStatus


class VisualJobCRUD(BaseCRUD[VisualEnrichmentJobModel]):
    """CRUD operations for VisualEnrichmentJobModel."""

    def __init__(self) -> None:
        super().__init__(VisualEnrichmentJobModel, Entity.VISUAL_JOB)

    async def get_active_batch(
        self,
        session: AsyncSession,
        batch_size: int,
        document_id: UUID | None = None,
    ) -> Sequence[VisualEnrichmentJobModel]:
        """
        Next pending items with a valid chunk linkage.

        Args:
            session: Async database session
            batch_size: Maximum items returned
            document_id: Restrict to one document

        Returns:
            Pending, chunk-linked items ordered by creation time
        """
        stmt = select(VisualEnrichmentJobModel).where(
            VisualEnrichmentJobModel.status == VisualJobStatus.PENDING,
            VisualEnrichmentJobModel.chunk_id.is_not(None),
        )
        if document_id is not None:
            stmt = stmt.where(VisualEnrichmentJobModel.document_id == document_id)
        stmt = stmt.order_by(VisualEnrichmentJobModel.created_at).limit(batch_size)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def reset_stuck(self, session: AsyncSession, older_than: datetime) -> int:
        """
        Return items stuck in PROCESSING to PENDING.

        Args:
            session: Async database session
            older_than: updated_at cutoff

        Returns:
            Number of items reset
        """
        return await self.transition_where(
            session,
            VisualJobStatus.PENDING,
            VisualEnrichmentJobModel.updated_at < older_than,
            retry=True,
            sources=frozenset({VisualJobStatus.PROCESSING.value}),
        )


visual_job_crud = VisualJobCRUD()
