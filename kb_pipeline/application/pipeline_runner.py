"""
Pipeline runner.

Composition root for the ingestion pipeline: builds providers and services
from settings, maps each stage name to its service call, and parses
camelCase stage payloads into request models.

Used by the HTTP stage endpoint, the Celery tasks, and (through the local
stage invoker) by chained stages in single-process deployments.

Dependencies: pydantic, sqlalchemy, kb_pipeline.application.services
System role: Stage dispatch table
"""

import logging
from typing import Any, Awaitable, Callable

from pydantic import ValidationError as RequestValidationError
from sqlalchemy.ext.asyncio import async_sessionmaker

from kb_pipeline.application.services.batch_split_service import BatchSplitService
from kb_pipeline.application.services.embedding_service import EmbeddingStageService
from kb_pipeline.application.services.ingestion_service import IngestionService
from kb_pipeline.application.services.job_queue_service import JobQueueService
from kb_pipeline.application.services.maintenance_service import MaintenanceService
from kb_pipeline.application.services.reconciliation_service import ReconciliationService
from kb_pipeline.application.services.vision_queue_service import VisionQueueService
from kb_pipeline.boundary.aws.s3_client import S3DocumentClient
from kb_pipeline.boundary.providers.embedding_provider import (
    EmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from kb_pipeline.boundary.providers.stage_invoker import LocalStageInvoker, StageInvoker
from kb_pipeline.boundary.providers.vision_provider import (
    GeminiVisionProvider,
    TableSummarizer,
    VisionProvider,
)
from kb_pipeline.configs.settings import Settings
from kb_pipeline.core.document_processing.models import (
    DocumentScopeRequest,
    IngestDocumentRequest,
    SplitDocumentRequest,
    StageResult,
)
from kb_pipeline.core.document_processing.tasks.chunking_task import ChunkingTask
from kb_pipeline.core.document_processing.tasks.embedding_task import EmbeddingClient
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher
from kb_pipeline.core.exceptions import PipelineError, StageInvocationError
from kb_pipeline.core.stages import Stage

logger = logging.getLogger(__name__)

StageCall = Callable[[dict[str, Any]], Awaitable[StageResult]]


class PipelineRunner:
    """Run pipeline stages by name."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        settings: Settings,
        invoker: StageInvoker | None = None,
        embedding_provider: EmbeddingProvider | None = None,
        vision_provider: VisionProvider | None = None,
        table_summarizer: TableSummarizer | None = None,
        s3_client: S3DocumentClient | None = None,
    ) -> None:
        """
        Wire providers and services.

        Args:
            session_factory: Async session factory shared by every service
            settings: Application settings
            invoker: Downstream stage invoker; a LocalStageInvoker routed back
                into this runner when omitted
            embedding_provider: Override for the OpenAI-compatible provider
            vision_provider: Override for the Gemini vision provider
            table_summarizer: Override for the Gemini table summarizer
            s3_client: Override for the documents bucket reader
        """
        providers = settings.providers
        pipeline = settings.pipeline

        self.invoker = invoker or LocalStageInvoker()
        self.dispatcher = EventTriggerDispatcher(self.invoker)

        self._embedding_provider = embedding_provider or OpenAIEmbeddingProvider(
            base_url=providers.embedding_base_url,
            model=providers.embedding_model,
            dimensions=providers.embedding_dimensions,
            timeout_seconds=providers.embedding_timeout_seconds,
        )
        self.embedding_client = EmbeddingClient(
            self._embedding_provider,
            api_key=providers.embedding_api_key,
            dimensions=providers.embedding_dimensions,
            max_attempts=providers.embedding_max_attempts,
            retry_base_delay=providers.embedding_retry_base_delay_seconds,
            group_size=pipeline.embedding_group_size,
            group_delay=pipeline.embedding_group_delay_seconds,
        )
        vision_provider = vision_provider or GeminiVisionProvider(
            api_key=providers.google_api_key,
            model_name=providers.vision_model,
            timeout_seconds=providers.vision_timeout_seconds,
        )
        table_summarizer = table_summarizer or TableSummarizer(
            api_key=providers.google_api_key,
            model_name=providers.summary_model,
        )
        s3_client = s3_client or S3DocumentClient(
            bucket=settings.s3_documents.bucket,
            region=settings.s3_documents.region,
        )

        self.reconciliation = ReconciliationService(
            session_factory, self.dispatcher, error_limit=pipeline.error_detail_limit
        )
        self.embedding = EmbeddingStageService(
            session_factory,
            self.embedding_client,
            self.dispatcher,
            pipeline,
            reconciler=self.reconciliation,
        )
        self.vision = VisionQueueService(
            session_factory, vision_provider, self.embedding, self.dispatcher, pipeline
        )
        self.ingestion = IngestionService(
            session_factory,
            ChunkingTask(pipeline.chunk_size, pipeline.chunk_overlap, pipeline.max_chunk_chars),
            table_summarizer,
            self.dispatcher,
            s3_client=s3_client,
            text_encoding=settings.s3_documents.text_encoding,
        )
        self.batch_split = BatchSplitService(session_factory, pipeline.pages_per_batch)
        self.job_queue = JobQueueService(session_factory, self.invoker, self.dispatcher, pipeline)
        self.maintenance = MaintenanceService(
            session_factory,
            batch_size=pipeline.orphan_chunk_delete_batch,
            max_per_run=pipeline.orphan_chunk_delete_cap,
        )

        self._stages: dict[Stage, StageCall] = {
            Stage.INGEST_DOCUMENT: lambda p: self.ingestion.ingest_document(
                IngestDocumentRequest.model_validate(p)
            ),
            Stage.SPLIT_DOCUMENT: lambda p: self.batch_split.split_document(
                SplitDocumentRequest.model_validate(p)
            ),
            Stage.GENERATE_EMBEDDINGS: lambda p: self.embedding.generate_embeddings(
                DocumentScopeRequest.model_validate(p)
            ),
            Stage.PROCESS_VISION_QUEUE: lambda p: self.vision.process_queue(
                DocumentScopeRequest.model_validate(p)
            ),
            Stage.RECONCILE_DOCUMENTS: lambda p: self.reconciliation.reconcile(
                DocumentScopeRequest.model_validate(p)
            ),
            Stage.PROCESS_JOB_QUEUE: lambda p: self.job_queue.process_queue(p),
            Stage.RUN_MAINTENANCE: lambda p: self.maintenance.cleanup_orphaned_knowledge(p),
        }

        if isinstance(self.invoker, LocalStageInvoker):
            for stage in self._stages:
                self.invoker.register(stage, self._local_handler(stage))

    @property
    def stages(self) -> list[Stage]:
        return list(self._stages)

    def handles(self, stage: str | Stage) -> bool:
        try:
            return Stage(stage) in self._stages
        except ValueError:
            return False

    async def run(self, stage: str | Stage, payload: dict[str, Any] | None = None) -> StageResult:
        """
        Run one stage.

        Args:
            stage: Stage enum or its name
            payload: camelCase (or snake_case) request

        Returns:
            StageResult: The stage summary; fatal errors become success=False

        Raises:
            StageInvocationError: The stage is not run by this package
        """
        if not self.handles(stage):
            raise StageInvocationError(f"Unknown stage '{stage}'", stage=str(stage))
        stage = Stage(stage)

        logger.info(f"{__name__}:run - Running '{stage.value}'")
        try:
            return await self._stages[stage](payload or {})
        except RequestValidationError as e:
            logger.warning(f"{__name__}:run - Invalid request for '{stage.value}': {e}")
            return StageResult.fatal(f"Invalid request: {e.error_count()} validation error(s)")
        except PipelineError as e:
            logger.error(
                f"{__name__}:run - '{stage.value}' aborted: {type(e).__name__}: {e}",
                exc_info=True,
            )
            return StageResult.fatal(e.message)

    async def drain(self) -> None:
        """Wait for fire-and-forget work spawned by stages."""
        await self.dispatcher.drain()

    async def aclose(self) -> None:
        await self.drain()
        close = getattr(self._embedding_provider, "aclose", None)
        if close is not None:
            await close()

    def _local_handler(self, stage: Stage):
        async def handler(payload: dict[str, Any]) -> dict[str, Any]:
            result = await self.run(stage, payload)
            return result.model_dump(mode="json")

        return handler
