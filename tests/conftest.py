"""
Shared test fixtures and configuration for entire test suite.

Provides: In-memory database, session factory, row seeding helpers, fake
providers, and a dispatcher that runs detached work only on drain()
Dependencies: pytest, sqlalchemy, aiosqlite
System role: Test infrastructure and fixture management
"""

import uuid
from datetime import timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from kb_pipeline.application.pipeline_runner import PipelineRunner
from kb_pipeline.boundary.aws.s3_client import S3DocumentClient
from kb_pipeline.boundary.db.base import Base, utcnow
from kb_pipeline.boundary.db.connection import create_session_factory
from kb_pipeline.boundary.db.models import (
    AgentDocumentLinkModel,
    AgentKnowledgeChunkModel,
    ChunkKind,
    ChunkModel,
    DocumentModel,
    ProcessingJobModel,
    VisualEnrichmentJobModel,
)
from kb_pipeline.boundary.providers.stage_invoker import LocalStageInvoker
from kb_pipeline.configs import Settings
from kb_pipeline.configs.pipeline import PipelineSettings
from kb_pipeline.configs.providers import ProviderSettings
from kb_pipeline.core.document_processing.tasks.embedding_task import EmbeddingClient
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher
from kb_pipeline.core.exceptions import EmbeddingProviderError
from kb_pipeline.core.stages import Stage
from kb_pipeline.core.state_machine import (
    ChunkStatus,
    DocumentStatus,
    ProcessingJobStatus,
    VisualJobStatus,
)

TEST_DIMENSIONS = 8


@pytest.fixture
async def test_engine():
    """
    Create in-memory SQLite async engine with all tables.

    Yields:
        AsyncEngine: Engine sharing one connection across sessions
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return create_session_factory(test_engine)


@pytest.fixture
async def test_async_db(session_factory):
    """
    Create a session on the in-memory database for testing.

    Yields:
        AsyncSession: Test database session with cleanup
    """
    async with session_factory() as session:
        yield session
        await session.rollback()


class Seeder:
    """Insert and inspect rows through short-lived sessions."""

    def __init__(self, session_factory: async_sessionmaker) -> None:
        self._session_factory = session_factory

    async def _add(self, instance):
        async with self._session_factory() as session:
            session.add(instance)
            await session.commit()
        return instance

    async def document(self, **kwargs: Any) -> DocumentModel:
        kwargs.setdefault("name", "document.pdf")
        kwargs.setdefault("status", DocumentStatus.INGESTED)
        return await self._add(DocumentModel(**kwargs))

    async def chunk(self, document_id: uuid.UUID, chunk_index: int, **kwargs: Any) -> ChunkModel:
        kwargs.setdefault("content", f"chunk {chunk_index} content")
        kwargs.setdefault("chunk_kind", ChunkKind.TEXT)
        kwargs.setdefault("embedding_status", ChunkStatus.PENDING)
        return await self._add(
            ChunkModel(document_id=document_id, chunk_index=chunk_index, **kwargs)
        )

    async def visual_job(self, document_id: uuid.UUID, **kwargs: Any) -> VisualEnrichmentJobModel:
        kwargs.setdefault("image_base64", "iVBORw0KGgo=")
        kwargs.setdefault("status", VisualJobStatus.PENDING)
        return await self._add(VisualEnrichmentJobModel(document_id=document_id, **kwargs))

    async def processing_job(
        self,
        document_id: uuid.UUID,
        batch_index: int = 0,
        **kwargs: Any,
    ) -> ProcessingJobModel:
        kwargs.setdefault("status", ProcessingJobStatus.PENDING)
        return await self._add(
            ProcessingJobModel(document_id=document_id, batch_index=batch_index, **kwargs)
        )

    async def knowledge_chunk(self, agent_id: uuid.UUID, **kwargs: Any) -> AgentKnowledgeChunkModel:
        kwargs.setdefault("content", "knowledge")
        return await self._add(AgentKnowledgeChunkModel(agent_id=agent_id, **kwargs))

    async def link(self, agent_id: uuid.UUID, document_id: uuid.UUID) -> AgentDocumentLinkModel:
        return await self._add(AgentDocumentLinkModel(agent_id=agent_id, document_id=document_id))

    async def get(self, model, id: uuid.UUID):
        async with self._session_factory() as session:
            return await session.get(model, id)

    async def backdate(self, model, id: uuid.UUID, minutes: int, column: str = "updated_at") -> None:
        """Move a timestamp column ``minutes`` into the past."""
        async with self._session_factory() as session:
            await session.execute(
                update(model)
                .where(model.id == id)
                .values({column: utcnow() - timedelta(minutes=minutes)})
            )
            await session.commit()


@pytest.fixture
def seed(session_factory) -> Seeder:
    """Row seeding helper bound to the test database."""
    return Seeder(session_factory)


class DeferredDispatcher(EventTriggerDispatcher):
    """Queues detached work and runs it sequentially on drain()."""

    def __init__(self, invoker) -> None:
        super().__init__(invoker)
        self.queued: list[tuple[str, Any]] = []

    def spawn(self, coro, label: str):
        self.queued.append((label, coro))
        return None

    async def drain(self) -> None:
        while self.queued:
            label, coro = self.queued.pop(0)
            await self._guard(coro, label)

    def close(self) -> None:
        for _, coro in self.queued:
            coro.close()
        self.queued.clear()


@pytest.fixture
def stage_calls() -> list[tuple[str, dict]]:
    """(stage, payload) pairs received by the recording invoker."""
    return []


@pytest.fixture
def recording_invoker(stage_calls) -> LocalStageInvoker:
    """Local invoker whose handlers record their payload and succeed."""
    invoker = LocalStageInvoker()

    def recorder(stage: Stage):
        async def handler(payload: dict) -> dict:
            stage_calls.append((stage.value, payload))
            return {"success": True}

        return handler

    for stage in Stage:
        invoker.register(stage, recorder(stage))
    return invoker


@pytest.fixture
def dispatcher(recording_invoker):
    """Deferred dispatcher over the recording invoker."""
    deferred = DeferredDispatcher(recording_invoker)
    yield deferred
    deferred.close()


class FakeEmbeddingProvider:
    """Returns a constant vector; texts containing a failure marker always fail."""

    def __init__(self, dimensions: int = TEST_DIMENSIONS) -> None:
        self.dimensions = dimensions
        self.fail_markers: set[str] = set()
        self.vector_override: list[float] | None = None
        self.calls: list[str] = []

    async def create_embedding(self, text: str, api_key: str) -> tuple[list[float], str]:
        self.calls.append(text)
        if any(marker in text for marker in self.fail_markers):
            raise EmbeddingProviderError("Embedding provider error: 500 - boom", status_code=500)
        if self.vector_override is not None:
            return list(self.vector_override), "fake-embedding"
        return [0.1] * self.dimensions, "fake-embedding"


class FakeVisionProvider:
    """Scripted vision provider."""

    def __init__(self, description: str = "A bar chart of revenue by quarter") -> None:
        self.description = description
        self.has_credentials = True
        self.error: Exception | None = None
        self.calls: list[dict] = []

    async def describe(
        self,
        image: bytes,
        element_type: str,
        domain: str,
        page_number: int | None = None,
    ) -> str:
        self.calls.append(
            {"element_type": element_type, "domain": domain, "page_number": page_number}
        )
        if self.error is not None:
            raise self.error
        return self.description


class FakeTableSummarizer:
    async def summarize(self, markdown: str) -> str:
        return f"Summary of a {markdown.count('|')}-cell table"


@pytest.fixture
def fake_embedding_provider() -> FakeEmbeddingProvider:
    return FakeEmbeddingProvider()


@pytest.fixture
def fake_vision_provider() -> FakeVisionProvider:
    return FakeVisionProvider()


@pytest.fixture
def fake_table_summarizer() -> FakeTableSummarizer:
    return FakeTableSummarizer()


@pytest.fixture
def embedding_client(fake_embedding_provider) -> EmbeddingClient:
    """Embedding client with zero backoff over the fake provider."""
    return EmbeddingClient(
        fake_embedding_provider,
        api_key="test-key",
        dimensions=TEST_DIMENSIONS,
        max_attempts=3,
        retry_base_delay=0,
        group_size=4,
        group_delay=0,
    )


@pytest.fixture
def pipeline_settings() -> PipelineSettings:
    """Pipeline thresholds with small batches for tests."""
    return PipelineSettings(
        chunk_size=100,
        chunk_overlap=20,
        embedding_group_size=4,
        embedding_group_delay_seconds=0,
        embedding_batch_size=50,
        vision_batch_size=5,
        vision_max_iterations=5,
        job_max_retries=3,
        self_heal_skip_patterns=["page count unknown"],
    )


@pytest.fixture
def runner_settings(pipeline_settings) -> Settings:
    """Application settings with a test embedding key and no backoff."""
    return Settings(
        providers=ProviderSettings(
            embedding_api_key="test-key",
            embedding_dimensions=TEST_DIMENSIONS,
            embedding_retry_base_delay_seconds=0,
        ),
        pipeline=pipeline_settings,
    )


@pytest.fixture
def s3_client() -> MagicMock:
    client = MagicMock(spec=S3DocumentClient)
    client.download_text = AsyncMock(return_value="# Stored\n" + "stored text " * 20)
    return client


@pytest.fixture
async def pipeline_runner(
    session_factory,
    runner_settings,
    fake_embedding_provider,
    fake_vision_provider,
    fake_table_summarizer,
    s3_client,
):
    """In-process runner over fakes; chained stages run through the local invoker."""
    runner = PipelineRunner(
        session_factory,
        runner_settings,
        embedding_provider=fake_embedding_provider,
        vision_provider=fake_vision_provider,
        table_summarizer=fake_table_summarizer,
        s3_client=s3_client,
    )
    yield runner
    await runner.drain()
