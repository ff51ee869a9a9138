"""
Integration tests for the pipeline CRUD layer.

Runs against in-memory SQLite to exercise the conditional updates and the
sweep queries end to end.

System role: Verification of guarded transitions and sweep selection
"""

import uuid
from datetime import timedelta

import pytest

from kb_pipeline.boundary.db.base import utcnow
from kb_pipeline.boundary.db.CRUD.chunk_crud import chunk_crud
from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.boundary.db.CRUD.knowledge_crud import knowledge_crud
from kb_pipeline.boundary.db.CRUD.processing_job_crud import processing_job_crud
from kb_pipeline.boundary.db.CRUD.visual_job_crud import visual_job_crud
from kb_pipeline.boundary.db.models import (
    DocumentModel,
    ProcessingJobModel,
    VisualEnrichmentJobModel,
)
from kb_pipeline.core.state_machine import (
    ChunkStatus,
    DocumentStatus,
    ProcessingJobStatus,
    VisualJobStatus,
)


class TestGuardedTransitions:
    """Test suite for BaseCRUD.transition_by_id / transition_where."""

    @pytest.mark.asyncio
    async def test_forward_transition_should_apply(self, test_async_db, seed) -> None:
        document = await seed.document()

        moved = await document_crud.transition_by_id(
            test_async_db, document.id, DocumentStatus.PROCESSING
        )
        await test_async_db.commit()

        assert moved is True
        assert (await seed.get(DocumentModel, document.id)).status == DocumentStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_regression_should_match_no_row(self, test_async_db, seed) -> None:
        document = await seed.document(status=DocumentStatus.READY)

        moved = await document_crud.transition_by_id(
            test_async_db, document.id, DocumentStatus.PROCESSING
        )
        await test_async_db.commit()

        assert moved is False
        assert (await seed.get(DocumentModel, document.id)).status == DocumentStatus.READY

    @pytest.mark.asyncio
    async def test_retry_edge_requires_flag(self, test_async_db, seed) -> None:
        document = await seed.document(status=DocumentStatus.FAILED)

        assert not await document_crud.transition_by_id(
            test_async_db, document.id, DocumentStatus.INGESTED
        )
        assert await document_crud.transition_by_id(
            test_async_db, document.id, DocumentStatus.INGESTED, retry=True
        )

    @pytest.mark.asyncio
    async def test_transition_should_write_extra_columns(self, test_async_db, seed) -> None:
        document = await seed.document()

        await document_crud.transition_by_id(
            test_async_db, document.id, DocumentStatus.FAILED, error_message="bad input"
        )
        await test_async_db.commit()

        row = await seed.get(DocumentModel, document.id)
        assert row.status == DocumentStatus.FAILED
        assert row.error_message == "bad input"

    @pytest.mark.asyncio
    async def test_update_by_id_should_refuse_status(self, test_async_db, seed) -> None:
        document = await seed.document()

        with pytest.raises(ValueError, match="transition_by_id"):
            await document_crud.update_by_id(test_async_db, document.id, status=DocumentStatus.READY)

    @pytest.mark.asyncio
    async def test_concurrent_claim_should_succeed_once(self, session_factory, seed) -> None:
        document = await seed.document()
        chunk = await seed.chunk(document.id, 0)

        results = []
        for _ in range(2):
            async with session_factory() as session:
                results.append(
                    await chunk_crud.transition_by_id(session, chunk.id, ChunkStatus.PROCESSING)
                )
                await session.commit()

        assert results == [True, False]


class TestChunkQueries:
    """Test suite for ChunkCRUD queries."""

    @pytest.mark.asyncio
    async def test_count_readiness(self, test_async_db, seed) -> None:
        document = await seed.document()
        await seed.chunk(document.id, 0, embedding_status=ChunkStatus.READY)
        await seed.chunk(document.id, 1, embedding_status=ChunkStatus.READY)
        await seed.chunk(document.id, 2, embedding_status=ChunkStatus.WAITING_ENRICHMENT)

        assert await chunk_crud.count_readiness(test_async_db, document.id) == (3, 1)
        assert await chunk_crud.count_readiness(test_async_db, uuid.uuid4()) == (0, 0)

    @pytest.mark.asyncio
    async def test_get_pending_in_index_order(self, test_async_db, seed) -> None:
        document = await seed.document()
        await seed.chunk(document.id, 1)
        await seed.chunk(document.id, 0)
        await seed.chunk(document.id, 4, embedding_status=ChunkStatus.READY)

        pending = await chunk_crud.get_pending(test_async_db, document.id)

        assert [c.chunk_index for c in pending] == [0, 1]

    @pytest.mark.asyncio
    async def test_find_containing_should_match_literal_token(self, test_async_db, seed) -> None:
        document = await seed.document()
        await seed.chunk(document.id, 0, content="see [VISUAL_ENRICHMENT_PENDING: a_1] here")
        await seed.chunk(document.id, 1, content="see [VISUAL_ENRICHMENT_PENDING: ab1] here")

        found = await chunk_crud.find_containing(
            test_async_db, document.id, "[VISUAL_ENRICHMENT_PENDING: a_1]"
        )

        assert [c.chunk_index for c in found] == [0]


class TestVisualJobQueries:
    """Test suite for VisualJobCRUD."""

    @pytest.mark.asyncio
    async def test_active_batch_should_skip_orphans(self, test_async_db, seed) -> None:
        document = await seed.document()
        chunk = await seed.chunk(document.id, 0)
        linked = await seed.visual_job(document.id, chunk_id=chunk.id)
        await seed.visual_job(document.id, chunk_id=None)
        await seed.visual_job(document.id, chunk_id=chunk.id, status=VisualJobStatus.COMPLETED)

        for _ in range(3):
            batch = await visual_job_crud.get_active_batch(test_async_db, batch_size=10)
            assert [job.id for job in batch] == [linked.id]

    @pytest.mark.asyncio
    async def test_active_batch_should_respect_size_and_order(self, test_async_db, seed) -> None:
        document = await seed.document()
        chunk = await seed.chunk(document.id, 0)
        jobs = [await seed.visual_job(document.id, chunk_id=chunk.id) for _ in range(3)]

        batch = await visual_job_crud.get_active_batch(test_async_db, batch_size=2)

        assert [job.id for job in batch] == [jobs[0].id, jobs[1].id]

    @pytest.mark.asyncio
    async def test_reset_stuck_should_only_touch_old_processing(self, test_async_db, seed) -> None:
        document = await seed.document()
        chunk = await seed.chunk(document.id, 0)
        old = await seed.visual_job(document.id, chunk_id=chunk.id, status=VisualJobStatus.PROCESSING)
        fresh = await seed.visual_job(
            document.id, chunk_id=chunk.id, status=VisualJobStatus.PROCESSING
        )
        await seed.backdate(VisualEnrichmentJobModel, old.id, minutes=20)

        count = await visual_job_crud.reset_stuck(test_async_db, utcnow() - timedelta(minutes=5))
        await test_async_db.commit()

        assert count == 1
        assert (await seed.get(VisualEnrichmentJobModel, old.id)).status == VisualJobStatus.PENDING
        assert (
            await seed.get(VisualEnrichmentJobModel, fresh.id)
        ).status == VisualJobStatus.PROCESSING


class TestDocumentSweepQueries:
    """Test suite for DocumentCRUD sweep queries."""

    @pytest.mark.asyncio
    async def test_get_intermediate(self, test_async_db, seed) -> None:
        chunked = await seed.document(status=DocumentStatus.CHUNKED)
        await seed.document(status=DocumentStatus.READY)
        await seed.document(status=DocumentStatus.FAILED)

        documents = await document_crud.get_intermediate(test_async_db)

        assert [d.id for d in documents] == [chunked.id]

    @pytest.mark.asyncio
    async def test_find_orphaned_ingested(self, test_async_db, seed) -> None:
        orphan = await seed.document()
        with_job = await seed.document()
        recent = await seed.document()
        await seed.processing_job(with_job.id)
        await seed.backdate(DocumentModel, orphan.id, minutes=30, column="created_at")
        await seed.backdate(DocumentModel, with_job.id, minutes=30, column="created_at")

        found = await document_crud.find_orphaned_ingested(
            test_async_db, utcnow() - timedelta(minutes=10), limit=10
        )

        assert [d.id for d in found] == [orphan.id]
        assert recent.id not in {d.id for d in found}

    @pytest.mark.asyncio
    async def test_find_unaggregated_complete(self, test_async_db, seed) -> None:
        complete = await seed.document(status=DocumentStatus.PROCESSING)
        partial = await seed.document(status=DocumentStatus.PROCESSING)
        await seed.document(status=DocumentStatus.PROCESSING)
        ready = await seed.document(status=DocumentStatus.READY)
        await seed.processing_job(ready.id, batch_index=0, status=ProcessingJobStatus.COMPLETED)
        for index in range(2):
            await seed.processing_job(
                complete.id, batch_index=index, status=ProcessingJobStatus.COMPLETED
            )
        await seed.processing_job(partial.id, batch_index=0, status=ProcessingJobStatus.COMPLETED)
        await seed.processing_job(partial.id, batch_index=1, status=ProcessingJobStatus.PENDING)

        found = await document_crud.find_unaggregated_complete(test_async_db)
        assert [d.id for d in found] == [complete.id]

        assert await document_crud.mark_aggregated(test_async_db, complete.id)
        assert not await document_crud.mark_aggregated(test_async_db, complete.id)
        await test_async_db.commit()

        assert await document_crud.find_unaggregated_complete(test_async_db) == []
        later = utcnow() + timedelta(minutes=1)
        found = await document_crud.find_unaggregated_complete(test_async_db, retry_before=later)
        assert [d.id for d in found] == [complete.id]

    @pytest.mark.asyncio
    async def test_increment_recovery_attempts(self, test_async_db, seed) -> None:
        document = await seed.document()

        await document_crud.increment_recovery_attempts(test_async_db, document.id)
        await document_crud.increment_recovery_attempts(test_async_db, document.id)
        await test_async_db.commit()

        assert (await seed.get(DocumentModel, document.id)).recovery_attempts == 2


class TestProcessingJobQueries:
    """Test suite for ProcessingJobCRUD."""

    @pytest.mark.asyncio
    async def test_next_pending_should_follow_document_then_batch(
        self, test_async_db, seed
    ) -> None:
        document = await seed.document()
        await seed.processing_job(document.id, batch_index=1)
        first = await seed.processing_job(document.id, batch_index=0)

        job = await processing_job_crud.get_next_pending(test_async_db)

        assert job.id == first.id
        assert await processing_job_crud.count_for_document(test_async_db, document.id) == 2

    @pytest.mark.asyncio
    async def test_stuck_and_failed_selection(self, test_async_db, seed) -> None:
        document = await seed.document()
        stuck = await seed.processing_job(document.id, 0, status=ProcessingJobStatus.PROCESSING)
        failed = await seed.processing_job(document.id, 1, status=ProcessingJobStatus.FAILED)
        await seed.processing_job(document.id, 2, status=ProcessingJobStatus.PROCESSING)
        await seed.backdate(ProcessingJobModel, stuck.id, minutes=15)
        await seed.backdate(ProcessingJobModel, failed.id, minutes=15)
        cutoff = utcnow() - timedelta(minutes=10)

        assert [j.id for j in await processing_job_crud.get_stuck(test_async_db, cutoff)] == [
            stuck.id
        ]
        assert [
            j.id for j in await processing_job_crud.get_failed_before(test_async_db, cutoff)
        ] == [failed.id]


class TestKnowledgeQueries:
    """Test suite for KnowledgeCRUD orphan detection."""

    @pytest.mark.asyncio
    async def test_find_and_delete_orphans(self, test_async_db, seed) -> None:
        agent_id = uuid.uuid4()
        linked_doc = await seed.document()
        unlinked_doc = await seed.document(name="old.pdf")
        await seed.link(agent_id, linked_doc.id)
        await seed.knowledge_chunk(agent_id, pool_document_id=linked_doc.id)
        orphan = await seed.knowledge_chunk(
            agent_id, pool_document_id=unlinked_doc.id, document_name="old.pdf"
        )
        await seed.knowledge_chunk(agent_id, pool_document_id=None)

        orphans = await knowledge_crud.find_orphaned_chunks(test_async_db)

        assert [(o.chunk_id, o.agent_id, o.pool_document_id, o.document_name) for o in orphans] == [
            (orphan.id, agent_id, unlinked_doc.id, "old.pdf")
        ]
        assert await knowledge_crud.delete_many(test_async_db, [o.chunk_id for o in orphans]) == 1
        assert await knowledge_crud.delete_many(test_async_db, []) == 0
        await test_async_db.commit()

        assert await knowledge_crud.find_orphaned_chunks(test_async_db) == []
