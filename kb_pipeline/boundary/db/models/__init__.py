"""
Database models package.

Exports:
  - DocumentModel: Document ORM model
  - ChunkModel, ChunkKind: Chunk ORM model and representation kinds
  - VisualEnrichmentJobModel: Visual enrichment queue item
  - ProcessingJobModel: Batch processing job
  - AgentDocumentLinkModel, AgentKnowledgeChunkModel: Agent knowledge tables

Dependencies: sqlalchemy, kb_pipeline.boundary.db.base
System role: Database model definitions for pipeline entities
"""

from kb_pipeline.boundary.db.models.chunk_model import ChunkKind, ChunkModel
from kb_pipeline.boundary.db.models.document_model import DocumentModel
from kb_pipeline.boundary.db.models.knowledge_model import (
    AgentDocumentLinkModel,
    AgentKnowledgeChunkModel,
)
from kb_pipeline.boundary.db.models.processing_job_model import ProcessingJobModel
from kb_pipeline.boundary.db.models.visual_job_model import VisualEnrichmentJobModel

__all__ = [
    "AgentDocumentLinkModel",
    "AgentKnowledgeChunkModel",
    "ChunkKind",
    "ChunkModel",
    "DocumentModel",
    "ProcessingJobModel",
    "VisualEnrichmentJobModel",
]
