"""
Agent knowledge CRUD operations.

Hosts the orphaned-chunk finder: knowledge chunks that still reference an
agent/pool-document pairing whose link row no longer exists.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Agent knowledge persistence operations
"""

from typing import NamedTuple, Sequence
from uuid import UUID

from sqlalchemy import and_, delete, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.CRUD.base_crud import BaseCRUD
from kb_pipeline.boundary.db.models.knowledge_model import (
    AgentDocumentLinkModel,
    AgentKnowledgeChunkModel,
)


class OrphanedChunk(NamedTuple):
    chunk_id: UUID
    agent_id: UUID
    pool_document_id: UUID
    document_name: str | None


class KnowledgeCRUD(BaseCRUD[AgentKnowledgeChunkModel]):
    """CRUD operations for agent knowledge chunks."""

    def __init__(self) -> None:
        super().__init__(AgentKnowledgeChunkModel)

    async def find_orphaned_chunks(
        self,
        session: AsyncSession,
        limit: int | None = None,
    ) -> list[OrphanedChunk]:
        """
        Knowledge chunks whose agent/document link is gone.

        Chunks without a pool document (uploaded straight to an agent) are
        never orphans.

        Args:
            session: Async database session
            limit: Maximum rows (None for all)

        Returns:
            list[OrphanedChunk]: chunk_id, agent_id, pool_document_id, document_name
        """
        linked = exists().where(
            and_(
                AgentDocumentLinkModel.agent_id == AgentKnowledgeChunkModel.agent_id,
                AgentDocumentLinkModel.document_id == AgentKnowledgeChunkModel.pool_document_id,
            )
        )
        stmt = (
            select(
                AgentKnowledgeChunkModel.id,
                AgentKnowledgeChunkModel.agent_id,
                AgentKnowledgeChunkModel.pool_document_id,
                AgentKnowledgeChunkModel.document_name,
            )
            .where(AgentKnowledgeChunkModel.pool_document_id.is_not(None), ~linked)
            .order_by(AgentKnowledgeChunkModel.created_at)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return [OrphanedChunk(*row) for row in result.all()]

    async def delete_many(self, session: AsyncSession, ids: Sequence[UUID]) -> int:
        """Delete knowledge chunks by id; returns rows deleted."""
        if not ids:
            return 0
        stmt = delete(AgentKnowledgeChunkModel).where(AgentKnowledgeChunkModel.id.in_(list(ids)))
        result = await session.execute(stmt)
        return result.rowcount


knowledge_crud = KnowledgeCRUD()
