"""
Ingestion service.

Turns an ingestion request into persisted chunks and queued visual work,
then hands off to the embedding and vision stages.

Steps:
1. Create document record (INGESTED)
2. Download text from object storage when only a key is given (DOWNLOADED)
3. Chunk text, summarize tables, add one dedicated chunk per image (PROCESSING)
4. Upsert chunks and create a linked visual enrichment job per image
5. Mark CHUNKED and fire generate-embeddings (+ process-vision-queue)

Dependencies: sqlalchemy, boto3, kb_pipeline.core.document_processing
System role: "ingest-document" pipeline stage
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from kb_pipeline.boundary.aws.s3_client import S3DocumentClient
from kb_pipeline.boundary.db.CRUD.visual_job_crud import visual_job_crud
from kb_pipeline.boundary.providers.vision_provider import TableSummarizer
from kb_pipeline.core.document_processing.database.chunk_store_writer import ChunkStoreWriter
from kb_pipeline.core.document_processing.database.document_status_updater import (
    DocumentStatusUpdater,
)
from kb_pipeline.core.document_processing.models import (
    IngestDocumentRequest,
    StageResult,
    TextChunk,
    VisualElementInput,
)
from kb_pipeline.core.document_processing.tasks.chunking_task import ChunkingTask, to_text_chunks
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher
from kb_pipeline.core.exceptions import ChunkingError, ObjectStorageError, ValidationError
from kb_pipeline.core.stages import Stage
from kb_pipeline.core.state_machine import VisualJobStatus

logger = logging.getLogger(__name__)


def visual_chunk_content(element: VisualElementInput) -> str:
    """Stand-in content for a visual chunk until its description arrives."""
    label = element.image_name or element.element_type
    if element.page_number is not None:
        return f"[Visual element pending enrichment: {label} (page {element.page_number})]"
    return f"[Visual element pending enrichment: {label}]"


class IngestionService:
    """Document intake for the ingestion pipeline."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        chunker: ChunkingTask,
        table_summarizer: TableSummarizer,
        dispatcher: EventTriggerDispatcher,
        s3_client: S3DocumentClient | None = None,
        text_encoding: str = "utf-8",
    ) -> None:
        """
        Initialize ingestion service.

        Args:
            session_factory: Factory for per-unit-of-work sessions
            chunker: Sliding-window chunker
            table_summarizer: Produces semantic summaries for tables
            dispatcher: Fires embedding and vision stages after intake
            s3_client: Object storage reader (required only for source_locator intake)
            text_encoding: Encoding of text objects in the documents bucket
        """
        self._session_factory = session_factory
        self._chunker = chunker
        self._summarizer = table_summarizer
        self._dispatcher = dispatcher
        self._s3_client = s3_client
        self._text_encoding = text_encoding

    async def ingest_document(self, request: IngestDocumentRequest) -> StageResult:
        """
        Ingest one document.

        Args:
            request: Name, text or object key, and extracted visuals/tables

        Returns:
            StageResult: processed = chunks persisted; success=False with the
            failure reason when the document had to be failed
        """
        async with self._session_factory() as session:
            updater = DocumentStatusUpdater(session)
            document = await updater.create_document(
                name=request.name,
                source_locator=request.source_locator,
                category=request.category,
                folder=request.folder,
            )
            document_id = document.id

            try:
                text = await self._resolve_text(updater, document_id, request)
                if not (text and text.strip()) and not request.visual_elements and not request.tables:
                    raise ValidationError(
                        "Document has no text, images or tables to ingest", field="text"
                    )

                await updater.mark_processing(document_id)
                chunks = await self._build_chunks(document_id, text, request)
                if not chunks:
                    raise ChunkingError("No valid chunks produced", document_id=str(document_id))

                chunk_ids = await ChunkStoreWriter(session).upsert_chunks(document_id, chunks)
                visual_ids = chunk_ids[len(chunks) - len(request.visual_elements):]
                jobs = await self._queue_visual_jobs(session, document_id, request, visual_ids)

                await updater.mark_chunked(document_id)

            except (ValidationError, ChunkingError, ObjectStorageError) as e:
                logger.warning(
                    f"{__name__}:ingest_document - {type(e).__name__}: {e.message}",
                    extra={"document_id": str(document_id)},
                )
                await updater.mark_failed(document_id, e.message)
                return StageResult(
                    success=False,
                    failed=1,
                    message=f"Document {document_id} failed: {e.message}",
                    error=e.message,
                    details={"documentId": str(document_id)},
                )

        payload = {"documentId": str(document_id)}
        self._dispatcher.fire(Stage.GENERATE_EMBEDDINGS, payload)
        if jobs:
            self._dispatcher.fire(Stage.PROCESS_VISION_QUEUE, payload)

        result = StageResult(
            processed=len(chunks),
            message=f"Ingested '{request.name}' into {len(chunks)} chunks",
            details={
                "documentId": str(document_id),
                "chunks": len(chunks),
                "tables": len(request.tables),
                "visualJobs": jobs,
            },
        )
        logger.info(f"{__name__}:ingest_document - {result.message}", extra=result.details)
        return result

    async def _resolve_text(
        self,
        updater: DocumentStatusUpdater,
        document_id: UUID,
        request: IngestDocumentRequest,
    ) -> str:
        if request.text is not None:
            return request.text
        if not request.source_locator:
            return ""
        if self._s3_client is None:
            raise ValidationError(
                "Object storage is not configured for source_locator intake",
                field="source_locator",
            )

        text = await self._s3_client.download_text(request.source_locator, self._text_encoding)
        await updater.mark_downloaded(document_id)
        return text

    async def _build_chunks(
        self,
        document_id: UUID,
        text: str,
        request: IngestDocumentRequest,
    ) -> list[TextChunk]:
        """Text chunks, then table chunks, then one visual chunk per image."""
        chunks: list[TextChunk] = []
        if text and text.strip():
            chunks = to_text_chunks(
                self._chunker.chunk(text, metadata={"document_id": str(document_id)})
            )

        for table in request.tables:
            summary = await self._summarizer.summarize(table.markdown)
            chunks.append(
                TextChunk(
                    chunk_index=len(chunks),
                    content=table.markdown,
                    chunk_kind="table",
                    semantic_summary=summary if summary != table.markdown else None,
                )
            )

        for element in request.visual_elements:
            chunks.append(
                TextChunk(
                    chunk_index=len(chunks),
                    content=visual_chunk_content(element),
                    chunk_kind="visual",
                    image_ref=element.image_name,
                )
            )
        return chunks

    async def _queue_visual_jobs(
        self,
        session: AsyncSession,
        document_id: UUID,
        request: IngestDocumentRequest,
        chunk_ids: list[UUID],
    ) -> int:
        if not request.visual_elements:
            return 0

        try:
            for element, chunk_id in zip(request.visual_elements, chunk_ids):
                await visual_job_crud.create(
                    session,
                    document_id=document_id,
                    chunk_id=chunk_id,
                    image_base64=element.image_base64,
                    element_type=element.element_type,
                    document_context=element.document_context,
                    page_number=element.page_number,
                    status=VisualJobStatus.PENDING,
                )
            await session.commit()
        except Exception as e:
            logger.error(f"{__name__}:queue_visual_jobs - {type(e).__name__}: {e}")
            await session.rollback()
            raise

        logger.info(
            f"{__name__}:queue_visual_jobs - Queued {len(request.visual_elements)} visual elements",
            extra={"document_id": str(document_id)},
        )
        return len(request.visual_elements)
