"""
Document readiness predicate.

A document is ready once it has at least one chunk and every chunk is
READY. The transition is a conditional update restricted to non-terminal
statuses, so exactly one caller observes ``True`` for a given document and
downstream triggers fire at most once.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Shared by the embedding stage, the vision worker and the
reconciliation sweeper
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kb_pipeline.boundary.db.CRUD.chunk_crud import chunk_crud
from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher
from kb_pipeline.core.stages import Stage
from kb_pipeline.core.state_machine import DocumentStatus

logger = logging.getLogger(__name__)


async def advance_document_if_ready(session: AsyncSession, document_id: UUID) -> bool:
    """
    Move a document to READY when all of its chunks are ready.

    Commits its own write.

    Args:
        session: Async database session
        document_id: Document to check

    Returns:
        bool: True only if this call performed the transition
    """
    total, not_ready = await chunk_crud.count_readiness(session, document_id)
    if total == 0 or not_ready > 0:
        logger.debug(
            f"{__name__}:advance_document_if_ready - Not ready",
            extra={"document_id": str(document_id), "total": total, "not_ready": not_ready},
        )
        return False

    try:
        advanced = await document_crud.transition_by_id(
            session, document_id, DocumentStatus.READY, error_message=None
        )
        await session.commit()
    except Exception as e:
        logger.error(f"{__name__}:advance_document_if_ready - {type(e).__name__}: {e}")
        await session.rollback()
        raise

    if advanced:
        logger.info(
            f"{__name__}:advance_document_if_ready - Document ready ({total} chunks)",
            extra={"document_id": str(document_id)},
        )
    return advanced


class DocumentReadinessChecker:
    """Readiness check plus the benchmark-assignment trigger."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        dispatcher: EventTriggerDispatcher,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher

    async def check(self, document_id: UUID) -> bool:
        """
        Advance the document if ready and fire benchmark assignment once.

        Returns:
            bool: True if the document became ready in this call
        """
        async with self._session_factory() as session:
            advanced = await advance_document_if_ready(session, document_id)

        if advanced:
            self._dispatcher.fire(
                Stage.ASSIGN_BENCHMARK_CHUNKS, {"documentId": str(document_id)}
            )
        return advanced

    def check_detached(self, document_id: UUID):
        """Run :meth:`check` in the background on its own session."""
        return self._dispatcher.spawn(
            self.check(document_id), label=f"readiness:{document_id}"
        )
