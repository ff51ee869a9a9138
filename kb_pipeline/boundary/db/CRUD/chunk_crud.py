"""
Chunk CRUD operations.

Extends BaseCRUD with per-document chunk queries and readiness counts.
Status changes go through the transition helpers in the chunk store writer.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Chunk persistence operations
"""

from typing import Sequence
from uuid import UUID

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.CRUD.base_crud import BaseCRUD
from kb_pipeline.boundary.db.models.chunk_model import ChunkModel
from kb_pipeline.core.state_machine import ChunkStatus, Entity


class ChunkCRUD(BaseCRUD[ChunkModel]):
    """CRUD operations for ChunkModel."""

    def __init__(self) -> None:
        """Initialize with ChunkModel guarded by the chunk transition table."""
        super().__init__(ChunkModel, Entity.CHUNK, status_field="embedding_status")

    async def get_by_document_and_index(
        self,
        session: AsyncSession,
        document_id: UUID,
        chunk_index: int,
    ) -> ChunkModel | None:
        stmt = select(ChunkModel).where(
            ChunkModel.document_id == document_id,
            ChunkModel.chunk_index == chunk_index,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_pending(
        self,
        session: AsyncSession,
        document_id: UUID | None = None,
        limit: int | None = None,
    ) -> Sequence[ChunkModel]:
        """
        PENDING chunks, optionally scoped to one document.

        Args:
            session: Async database session
            document_id: Restrict to one document
            limit: Maximum rows (None for all)

        Returns:
            Pending chunks ordered by document then index
        """
        stmt = select(ChunkModel).where(ChunkModel.embedding_status == ChunkStatus.PENDING)
        if document_id is not None:
            stmt = stmt.where(ChunkModel.document_id == document_id)
        stmt = stmt.order_by(ChunkModel.document_id, ChunkModel.chunk_index)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def find_containing(
        self,
        session: AsyncSession,
        document_id: UUID,
        needle: str,
    ) -> Sequence[ChunkModel]:
        """Chunks of a document whose content contains ``needle`` verbatim."""
        stmt = (
            select(ChunkModel)
            .where(
                ChunkModel.document_id == document_id,
                ChunkModel.content.contains(needle, autoescape=True),
            )
            .order_by(ChunkModel.chunk_index)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def count_readiness(self, session: AsyncSession, document_id: UUID) -> tuple[int, int]:
        """
        Count a document's chunks.

        Args:
            session: Async database session
            document_id: Owning document

        Returns:
            (total, not_ready) chunk counts
        """
        not_ready = func.sum(
            case((ChunkModel.embedding_status != ChunkStatus.READY, 1), else_=0)
        )
        stmt = select(func.count(ChunkModel.id), not_ready).where(
            ChunkModel.document_id == document_id
        )
        total, pending = (await session.execute(stmt)).one()
        return int(total or 0), int(pending or 0)


chunk_crud = ChunkCRUD()
