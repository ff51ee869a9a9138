"""
Reconciliation service.

Backstop for document readiness: re-checks every document still in an
intermediate status and advances the ones whose chunks are all READY.
Safe to run repeatedly; the conditional READY transition means a document
is advanced, and its benchmark trigger fired, exactly once.

Dependencies: sqlalchemy, kb_pipeline.core.document_processing.database
System role: "reconcile-documents" pipeline stage
"""

import logging

from sqlalchemy.ext.asyncio import async_sessionmaker

from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.core.document_processing.database.readiness import DocumentReadinessChecker
from kb_pipeline.core.document_processing.models import DocumentScopeRequest, StageResult
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher

logger = logging.getLogger(__name__)


class ReconciliationService:
    """Advance documents whose chunks have all been embedded."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        dispatcher: EventTriggerDispatcher,
        error_limit: int = 20,
    ) -> None:
        """
        Initialize reconciliation service.

        Args:
            session_factory: Factory for per-unit-of-work sessions
            dispatcher: Fires assign-benchmark-chunks for newly ready documents
            error_limit: Per-item error entries kept in the summary
        """
        self._session_factory = session_factory
        self._readiness = DocumentReadinessChecker(session_factory, dispatcher)
        self._error_limit = error_limit

    async def reconcile(self, request: DocumentScopeRequest | None = None) -> StageResult:
        """
        Sweep intermediate documents.

        Args:
            request: Optional document scope

        Returns:
            StageResult: processed = documents advanced to READY
        """
        request = request or DocumentScopeRequest()

        async with self._session_factory() as session:
            documents = await document_crud.get_intermediate(session, request.document_id)
            document_ids = [d.id for d in documents]

        result = StageResult()
        for document_id in document_ids:
            try:
                if await self._readiness.check(document_id):
                    result.processed += 1
            except Exception as e:
                logger.error(
                    f"{__name__}:reconcile - {type(e).__name__}: {e}",
                    extra={"document_id": str(document_id)},
                )
                result.record_failure(document_id, str(e), self._error_limit)

        result.details = {"checked": len(document_ids), "advanced": result.processed}
        result.message = (
            f"Reconciled {len(document_ids)} documents, {result.processed} marked ready"
        )
        logger.info(f"{__name__}:reconcile - {result.message}")
        return result
