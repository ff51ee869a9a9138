"""
Embedding stage service.

Embeds PENDING chunks and finalizes each one as READY (validated vector) or
FAILED (error retained). Also exposes single-chunk embedding for the visual
enrichment worker, which re-embeds chunks inline after enrichment.

Flow of generate_embeddings:
1. Abort when the embedding credential is missing
2. Reset chunks stuck in PROCESSING
3. Reconcile documents that are already complete
4. Claim pending chunks (one document, or up to batch_size)
5. Embed them in concurrent groups; failures never abort siblings
6. Mark ready/failed and advance documents whose chunks are all ready

Dependencies: sqlalchemy, kb_pipeline.core.document_processing
System role: "generate-embeddings" pipeline stage
"""

import logging
from datetime import timedelta
from typing import NamedTuple
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from kb_pipeline.application.services.reconciliation_service import ReconciliationService
from kb_pipeline.boundary.db.base import utcnow
from kb_pipeline.boundary.db.CRUD.chunk_crud import chunk_crud
from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.configs.pipeline import PipelineSettings
from kb_pipeline.core.document_processing.database.chunk_store_writer import ChunkStoreWriter
from kb_pipeline.core.document_processing.database.readiness import DocumentReadinessChecker
from kb_pipeline.core.document_processing.models import DocumentScopeRequest, StageResult
from kb_pipeline.core.document_processing.tasks.embedding_task import (
    EmbeddingClient,
    build_embedding_input,
)
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher
from kb_pipeline.core.exceptions import EmbeddingError, ValidationError

logger = logging.getLogger(__name__)


class _ClaimedChunk(NamedTuple):
    chunk_id: UUID
    document_id: UUID
    text: str


class EmbeddingStageService:
    """Generate embeddings for pending chunks."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        embedding_client: EmbeddingClient,
        dispatcher: EventTriggerDispatcher,
        settings: PipelineSettings,
        reconciler: ReconciliationService | None = None,
    ) -> None:
        """
        Initialize embedding stage service.

        Args:
            session_factory: Factory for per-unit-of-work sessions
            embedding_client: Client with retry and validation
            dispatcher: Fires downstream stages
            settings: Pipeline thresholds
            reconciler: Run before selecting work (defaults to a new one)
        """
        self._session_factory = session_factory
        self._client = embedding_client
        self._settings = settings
        self._readiness = DocumentReadinessChecker(session_factory, dispatcher)
        self._reconciler = reconciler or ReconciliationService(
            session_factory, dispatcher, error_limit=settings.error_detail_limit
        )

    @property
    def has_credentials(self) -> bool:
        return self._client.has_credentials

    async def generate_embeddings(self, request: DocumentScopeRequest | None = None) -> StageResult:
        """
        Embed pending chunks.

        Args:
            request: Optional document scope and batch size

        Returns:
            StageResult: processed = chunks marked READY, failed = chunks
            marked FAILED; fatal summary when credentials are missing
        """
        request = request or DocumentScopeRequest()

        if not self._client.has_credentials:
            logger.error(f"{__name__}:generate_embeddings - Embedding API key not configured")
            return StageResult.fatal("Embedding API key not configured")

        cutoff = utcnow() - timedelta(minutes=self._settings.chunk_stuck_threshold_minutes)
        async with self._session_factory() as session:
            reset = await ChunkStoreWriter(session).reset_stuck_chunks(cutoff)

        reconciled = await self._reconciler.reconcile(
            DocumentScopeRequest(document_id=request.document_id)
        )

        claimed = await self._claim_pending(request)
        result = StageResult(
            details={
                "reset_stuck": reset,
                "reconciled": reconciled.processed,
                "claimed": len(claimed),
            }
        )
        if not claimed:
            result.message = "No pending chunks"
            return result

        logger.info(
            f"{__name__}:generate_embeddings - Embedding {len(claimed)} chunks",
            extra={"document_id": str(request.document_id) if request.document_id else None},
        )
        batch = await self._client.embed_batch(
            [c.text for c in claimed],
            concurrency=self._settings.embedding_group_size,
            on_progress=lambda done, total: logger.info(
                f"{__name__}:generate_embeddings - Progress {done}/{total}"
            ),
        )

        limit = self._settings.error_detail_limit
        async with self._session_factory() as session:
            writer = ChunkStoreWriter(session, validator=self._client.validate)

            for success in batch.successes:
                chunk = claimed[success.index]
                try:
                    if await writer.mark_chunk_ready(chunk.chunk_id, success.embedding):
                        result.processed += 1
                except ValidationError as e:
                    await writer.mark_chunk_failed(chunk.chunk_id, e.message)
                    result.record_failure(chunk.chunk_id, e.message, limit)

            for failure in batch.failures:
                chunk = claimed[failure.index]
                await writer.mark_chunk_failed(chunk.chunk_id, failure.error)
                result.record_failure(chunk.chunk_id, failure.error, limit)

        documents_ready = 0
        for document_id in dict.fromkeys(c.document_id for c in claimed):
            if await self._readiness.check(document_id):
                documents_ready += 1

        result.details["documents_ready"] = documents_ready
        result.message = (
            f"Embedded {result.processed} chunks, {result.failed} failed, "
            f"{documents_ready} documents ready"
        )
        logger.info(f"{__name__}:generate_embeddings - {result.message}")
        return result

    async def embed_chunk(self, chunk_id: UUID) -> bool:
        """
        Embed one chunk immediately.

        Args:
            chunk_id: Chunk to embed (must be PENDING)

        Returns:
            bool: True if the chunk is now READY; False if it was not
            claimable or ended FAILED
        """
        async with self._session_factory() as session:
            chunk = await chunk_crud.get_by_id(session, chunk_id)
            if chunk is None:
                logger.warning(f"{__name__}:embed_chunk - Chunk {chunk_id} not found")
                return False

            names = await document_crud.get_names(session, [chunk.document_id])
            text = build_embedding_input(
                chunk.content,
                chunk.heading_hierarchy,
                chunk.semantic_summary,
                document_name=names.get(chunk.document_id),
            )
            writer = ChunkStoreWriter(session, validator=self._client.validate)
            if not await writer.claim_chunk(chunk_id):
                logger.info(f"{__name__}:embed_chunk - Chunk {chunk_id} already claimed")
                return False

            try:
                embedded = await self._client.embed(text)
                return await writer.mark_chunk_ready(chunk_id, embedded.embedding)
            except (EmbeddingError, ValidationError) as e:
                logger.warning(
                    f"{__name__}:embed_chunk - {type(e).__name__}: {e.message}",
                    extra={"chunk_id": str(chunk_id)},
                )
                await writer.mark_chunk_failed(chunk_id, e.message)
                return False

    async def _claim_pending(self, request: DocumentScopeRequest) -> list[_ClaimedChunk]:
        limit = None
        if request.document_id is None:
            limit = request.batch_size or self._settings.embedding_batch_size

        async with self._session_factory() as session:
            pending = await chunk_crud.get_pending(session, request.document_id, limit)
            names = await document_crud.get_names(session, {c.document_id for c in pending})
            candidates = [
                _ClaimedChunk(
                    chunk_id=chunk.id,
                    document_id=chunk.document_id,
                    text=build_embedding_input(
                        chunk.content,
                        chunk.heading_hierarchy,
                        chunk.semantic_summary,
                        document_name=names.get(chunk.document_id),
                    ),
                )
                for chunk in pending
            ]

            writer = ChunkStoreWriter(session)
            claimed = [c for c in candidates if await writer.claim_chunk(c.chunk_id)]

        if len(claimed) < len(candidates):
            logger.info(
                f"{__name__}:generate_embeddings - "
                f"{len(candidates) - len(claimed)} chunks claimed elsewhere"
            )
        return claimed
