"""
Test suite for ReconciliationService.

System role: Verification of the "reconcile-documents" stage
"""

import pytest

from kb_pipeline.application.services.reconciliation_service import ReconciliationService
from kb_pipeline.boundary.db.models import DocumentModel
from kb_pipeline.core.document_processing.models import DocumentScopeRequest
from kb_pipeline.core.state_machine import ChunkStatus, DocumentStatus


@pytest.fixture
def reconciliation(session_factory, dispatcher) -> ReconciliationService:
    return ReconciliationService(session_factory, dispatcher)


class TestReconcile:
    """Test suite for reconcile()."""

    @pytest.mark.asyncio
    async def test_should_advance_complete_documents_once(
        self, reconciliation, seed, dispatcher, stage_calls
    ) -> None:
        complete = await seed.document(status=DocumentStatus.CHUNKED)
        await seed.chunk(complete.id, 0, embedding_status=ChunkStatus.READY)
        incomplete = await seed.document(status=DocumentStatus.CHUNKED)
        await seed.chunk(incomplete.id, 0, embedding_status=ChunkStatus.READY)
        await seed.chunk(incomplete.id, 1, embedding_status=ChunkStatus.PENDING)
        await seed.document(status=DocumentStatus.INGESTED)

        first = await reconciliation.reconcile()
        second = await reconciliation.reconcile()
        await dispatcher.drain()

        assert first.processed == 1
        assert first.details == {"checked": 3, "advanced": 1}
        assert second.processed == 0
        assert (await seed.get(DocumentModel, complete.id)).status == DocumentStatus.READY
        assert (await seed.get(DocumentModel, incomplete.id)).status == DocumentStatus.CHUNKED
        assert stage_calls == [("assign-benchmark-chunks", {"documentId": str(complete.id)})]

    @pytest.mark.asyncio
    async def test_scope_should_limit_to_one_document(self, reconciliation, seed) -> None:
        target = await seed.document(status=DocumentStatus.CHUNKED)
        other = await seed.document(status=DocumentStatus.CHUNKED)
        for document in (target, other):
            await seed.chunk(document.id, 0, embedding_status=ChunkStatus.READY)

        result = await reconciliation.reconcile(DocumentScopeRequest(document_id=target.id))

        assert result.details["checked"] == 1
        assert (await seed.get(DocumentModel, other.id)).status == DocumentStatus.CHUNKED

    @pytest.mark.asyncio
    async def test_terminal_documents_are_not_checked(self, reconciliation, seed) -> None:
        await seed.document(status=DocumentStatus.READY)
        await seed.document(status=DocumentStatus.FAILED)

        result = await reconciliation.reconcile()

        assert result.details["checked"] == 0
