"""
Maintenance service.

Deletes agent knowledge chunks whose agent/document link no longer exists,
in fixed-size batches with a per-run cap. Stops at the first failed delete
and reports what is left for the next run.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: "auto-maintenance" pipeline stage
"""

import logging
from typing import Any

from sqlalchemy.ext.asyncio import async_sessionmaker

from kb_pipeline.boundary.db.CRUD.knowledge_crud import knowledge_crud
from kb_pipeline.core.document_processing.models import StageResult

logger = logging.getLogger(__name__)


class MaintenanceService:
    """Periodic cleanup of orphaned knowledge chunks."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        batch_size: int = 100,
        max_per_run: int = 500,
    ) -> None:
        self._session_factory = session_factory
        self._batch_size = batch_size
        self._max_per_run = max_per_run

    async def cleanup_orphaned_knowledge(self, request: Any = None) -> StageResult:
        """
        Delete orphaned knowledge chunks.

        Args:
            request: Unused; accepted for a uniform stage signature

        Returns:
            StageResult: processed = chunks deleted; details carry found and
            remaining counts
        """
        result = StageResult()

        async with self._session_factory() as session:
            orphans = await knowledge_crud.find_orphaned_chunks(session)
            ids = [o.chunk_id for o in orphans[: self._max_per_run]]

            for start in range(0, len(ids), self._batch_size):
                batch = ids[start:start + self._batch_size]
                try:
                    deleted = await knowledge_crud.delete_many(session, batch)
                    await session.commit()
                except Exception as e:
                    await session.rollback()
                    logger.error(
                        f"{__name__}:cleanup_orphaned_knowledge - Batch delete failed: "
                        f"{type(e).__name__}: {e}",
                        extra={"batch_start": start, "batch_size": len(batch)},
                    )
                    result.record_failure(f"batch:{start}", f"{type(e).__name__}: {e}")
                    break
                result.processed += deleted

        remaining = len(orphans) - result.processed
        result.details = {"found": len(orphans), "deleted": result.processed, "remaining": remaining}
        result.message = (
            f"Deleted {result.processed} orphaned knowledge chunks, {remaining} remaining"
        )
        if orphans:
            logger.info(f"{__name__}:cleanup_orphaned_knowledge - {result.message}")
        return result
