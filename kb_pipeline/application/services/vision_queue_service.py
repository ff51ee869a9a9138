"""
Visual enrichment queue service.

Drains the visual enrichment queue: each item's image is described by the
vision provider with domain context, the description is written into the
linked chunk, and the chunk is re-embedded immediately.

Per-item flow:
1. Claim (pending → processing); skip if another worker won
2. Decode the base64 payload (failure is permanent)
3. Resolve domain context (explicit → inferred → general)
4. Describe; an empty description is a failure
5. Persist completed + enrichment_text + resolved context, apply to the
   linked chunk(s)
6. Embed re-opened chunks, then check readiness in the background
7. Any unexpected error fails the item and the queue moves on

Dependencies: sqlalchemy, kb_pipeline.boundary.providers, kb_pipeline.core
System role: "process-vision-queue" pipeline stage
"""

import base64
import binascii
import logging
from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from kb_pipeline.application.services.embedding_service import EmbeddingStageService
from kb_pipeline.boundary.db.base import utcnow
from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.boundary.db.CRUD.visual_job_crud import visual_job_crud
from kb_pipeline.boundary.providers.vision_provider import VisionProvider
from kb_pipeline.configs.pipeline import PipelineSettings
from kb_pipeline.core.document_processing.database.chunk_store_writer import ChunkStoreWriter
from kb_pipeline.core.document_processing.database.document_status_updater import truncate_error
from kb_pipeline.core.document_processing.database.readiness import DocumentReadinessChecker
from kb_pipeline.core.document_processing.models import DocumentScopeRequest, StageResult
from kb_pipeline.core.document_processing.tasks.context_task import resolve_document_context
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher
from kb_pipeline.core.exceptions import ValidationError, VisionError
from kb_pipeline.core.stages import Stage
from kb_pipeline.core.state_machine import VisualJobStatus

logger = logging.getLogger(__name__)


@dataclass
class _ClaimedItem:
    job_id: UUID
    document_id: UUID
    image_base64: str
    element_type: str
    page_number: int | None
    document_context: dict | None
    folder: str | None
    category: str | None


@dataclass
class _ItemOutcome:
    document_id: UUID
    completed: bool
    error: str | None = None
    chunks_embedded: int = 0
    chunks_failed: int = 0


class VisionQueueService:
    """Describe queued visual elements and fold the text into chunks."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        vision_provider: VisionProvider,
        embedding_service: EmbeddingStageService,
        dispatcher: EventTriggerDispatcher,
        settings: PipelineSettings,
    ) -> None:
        """
        Initialize vision queue service.

        Args:
            session_factory: Factory for per-unit-of-work sessions
            vision_provider: Image description provider
            embedding_service: Embeds re-opened chunks inline
            dispatcher: Detached readiness checks and downstream triggers
            settings: Batch size, iteration cap and stuck threshold
        """
        self._session_factory = session_factory
        self._vision = vision_provider
        self._embedding = embedding_service
        self._dispatcher = dispatcher
        self._settings = settings
        self._readiness = DocumentReadinessChecker(session_factory, dispatcher)

    async def process_queue(self, request: DocumentScopeRequest | None = None) -> StageResult:
        """
        Process pending queue items until none remain or the iteration cap is hit.

        Args:
            request: Optional document scope and batch size

        Returns:
            StageResult: processed = completed items, failed = failed items;
            fatal summary when vision or embedding credentials are missing
        """
        request = request or DocumentScopeRequest()

        if not self._vision.has_credentials:
            logger.error(f"{__name__}:process_queue - Vision API key not configured")
            return StageResult.fatal("Vision API key not configured")
        if not self._embedding.has_credentials:
            logger.error(f"{__name__}:process_queue - Embedding API key not configured")
            return StageResult.fatal("Embedding API key not configured")

        cutoff = utcnow() - timedelta(minutes=self._settings.vision_stuck_threshold_minutes)
        async with self._session_factory() as session:
            try:
                reset = await visual_job_crud.reset_stuck(session, cutoff)
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:process_queue - {type(e).__name__}: {e}")
                await session.rollback()
                raise
        if reset:
            logger.warning(f"{__name__}:process_queue - Reset {reset} stuck queue items")

        batch_size = request.batch_size or self._settings.vision_batch_size
        limit = self._settings.error_detail_limit
        result = StageResult()
        touched: dict[UUID, None] = {}
        skipped = embedded = embed_failed = iterations = 0

        while iterations < self._settings.vision_max_iterations:
            async with self._session_factory() as session:
                batch = await visual_job_crud.get_active_batch(
                    session, batch_size, request.document_id
                )
                job_ids = [job.id for job in batch]
            if not job_ids:
                break
            iterations += 1

            for job_id in job_ids:
                outcome = await self._process_item(job_id)
                if outcome is None:
                    skipped += 1
                    continue
                if outcome.completed:
                    result.processed += 1
                    touched[outcome.document_id] = None
                else:
                    result.record_failure(job_id, outcome.error or "unknown error", limit)
                embedded += outcome.chunks_embedded
                embed_failed += outcome.chunks_failed

        if iterations >= self._settings.vision_max_iterations:
            logger.info(f"{__name__}:process_queue - Iteration cap reached, continuing next run")

        for document_id in touched:
            self._dispatcher.fire(Stage.GENERATE_EMBEDDINGS, {"documentId": str(document_id)})

        result.details = {
            "reset_stuck": reset,
            "iterations": iterations,
            "skipped": skipped,
            "chunks_embedded": embedded,
            "chunks_failed": embed_failed,
        }
        result.message = (
            f"Processed {result.processed} visual elements, {result.failed} failed"
        )
        logger.info(f"{__name__}:process_queue - {result.message}", extra=result.details)
        return result

    async def _process_item(self, job_id: UUID) -> _ItemOutcome | None:
        item = await self._claim(job_id)
        if item is None:
            return None

        try:
            return await self._enrich(item)
        except Exception as e:
            logger.error(
                f"{__name__}:process_item - {type(e).__name__}: {e}",
                extra={"job_id": str(item.job_id), "document_id": str(item.document_id)},
            )
            return await self._fail(item, f"{type(e).__name__}: {e}")

    async def _enrich(self, item: _ClaimedItem) -> _ItemOutcome:
        try:
            image = base64.b64decode(item.image_base64, validate=True)
        except (binascii.Error, ValueError) as e:
            return await self._fail(item, f"Invalid base64 image payload: {e}")
        if not image:
            return await self._fail(item, "Image payload is empty")

        context = resolve_document_context(item.document_context, item.folder, item.category)

        try:
            description = await self._vision.describe(
                image, item.element_type, context.domain, item.page_number
            )
        except VisionError as e:
            return await self._fail(item, e.message)
        if not description or not description.strip():
            return await self._fail(item, "Vision provider returned an empty description")

        reopened = await self._complete(item, description, context.as_payload())
        outcome = _ItemOutcome(document_id=item.document_id, completed=True)

        for chunk_id in reopened:
            if await self._embedding.embed_chunk(chunk_id):
                outcome.chunks_embedded += 1
            else:
                outcome.chunks_failed += 1

        self._readiness.check_detached(item.document_id)
        return outcome

    async def _claim(self, job_id: UUID) -> _ClaimedItem | None:
        async with self._session_factory() as session:
            try:
                claimed = await visual_job_crud.transition_by_id(
                    session, job_id, VisualJobStatus.PROCESSING
                )
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:claim - {type(e).__name__}: {e}")
                await session.rollback()
                raise

            if not claimed:
                logger.info(f"{__name__}:claim - Item {job_id} claimed elsewhere")
                return None

            job = await visual_job_crud.get_by_id(session, job_id)
            document = await document_crud.get_by_id(session, job.document_id)
            return _ClaimedItem(
                job_id=job.id,
                document_id=job.document_id,
                image_base64=job.image_base64,
                element_type=job.element_type,
                page_number=job.page_number,
                document_context=job.document_context,
                folder=document.folder if document else None,
                category=document.category if document else None,
            )

    async def _complete(
        self, item: _ClaimedItem, description: str, context: dict
    ) -> list[UUID]:
        async with self._session_factory() as session:
            try:
                await visual_job_crud.transition_by_id(
                    session,
                    item.job_id,
                    VisualJobStatus.COMPLETED,
                    enrichment_text=description,
                    document_context=context,
                    error_message=None,
                    processed_at=utcnow(),
                )
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:complete - {type(e).__name__}: {e}")
                await session.rollback()
                raise

            job = await visual_job_crud.get_by_id(session, item.job_id)
            try:
                return await ChunkStoreWriter(session).apply_enrichment(job, description)
            except ValidationError as e:
                logger.error(
                    f"{__name__}:complete - Enrichment not applied: {e.message}",
                    extra={"job_id": str(item.job_id)},
                )
                return []

    async def _fail(self, item: _ClaimedItem, error: str) -> _ItemOutcome:
        logger.warning(
            f"{__name__}:process_item - Item failed: {error}",
            extra={"job_id": str(item.job_id), "document_id": str(item.document_id)},
        )
        async with self._session_factory() as session:
            try:
                await visual_job_crud.transition_by_id(
                    session,
                    item.job_id,
                    VisualJobStatus.FAILED,
                    error_message=truncate_error(error),
                    processed_at=utcnow(),
                )
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:fail - {type(e).__name__}: {e}")
                await session.rollback()
                raise
        return _ItemOutcome(document_id=item.document_id, completed=False, error=error)
