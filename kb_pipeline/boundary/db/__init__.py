"""
Database boundary layer: ORM models, CRUD operations, and connection management.

Exports:
  - Base, UUIDMixin, TimestampMixin: Model building blocks
  - get_async_engine(), get_async_session_factory(), get_async_db(): Async connection management
  - DocumentModel, ChunkModel, VisualEnrichmentJobModel, ProcessingJobModel: Pipeline entities
  - document_crud, chunk_crud, visual_job_crud, processing_job_crud, knowledge_crud: CRUD singletons

Dependencies: sqlalchemy, kb_pipeline.configs
System role: Database adapter providing persistent storage for documents,
chunks, and the two work queues.
"""

from kb_pipeline.boundary.db.base import Base, TimestampMixin, UUIDMixin
from kb_pipeline.boundary.db.connection import (
    create_session_factory,
    create_task_engine,
    get_async_db,
    get_async_engine,
    get_async_session_factory,
)
from kb_pipeline.boundary.db.models import (
    AgentDocumentLinkModel,
    AgentKnowledgeChunkModel,
    ChunkKind,
    ChunkModel,
    DocumentModel,
    ProcessingJobModel,
    VisualEnrichmentJobModel,
)
from kb_pipeline.boundary.db.CRUD import (
    chunk_crud,
    document_crud,
    knowledge_crud,
    processing_job_crud,
    visual_job_crud,
)

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    "create_session_factory",
    "create_task_engine",
    "get_async_db",
    "get_async_engine",
    "get_async_session_factory",
    "AgentDocumentLinkModel",
    "AgentKnowledgeChunkModel",
    "ChunkKind",
    "ChunkModel",
    "DocumentModel",
    "ProcessingJobModel",
    "VisualEnrichmentJobModel",
    "chunk_crud",
    "document_crud",
    "knowledge_crud",
    "processing_job_crud",
    "visual_job_crud",
]
