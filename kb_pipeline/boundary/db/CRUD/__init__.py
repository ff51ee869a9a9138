"""
CRUD operations for database models.

Exports base CRUD class and model-specific CRUD implementations
with pre-instantiated singletons for direct use.

Usage:
    from kb_pipeline.boundary.db.CRUD import document_crud, chunk_crud

    document = await document_crud.get_by_id(db, document_id)
"""

from kb_pipeline.boundary.db.CRUD.base_crud import BaseCRUD
from kb_pipeline.boundary.db.CRUD.chunk_crud import ChunkCRUD, chunk_crud
from kb_pipeline.boundary.db.CRUD.document_crud import DocumentCRUD, document_crud
from kb_pipeline.boundary.db.CRUD.knowledge_crud import KnowledgeCRUD, OrphanedChunk, knowledge_crud
from kb_pipeline.boundary.db.CRUD.processing_job_crud import ProcessingJobCRUD, processing_job_crud
from kb_pipeline.boundary.db.CRUD.visual_job_crud import VisualJobCRUD, visual_job_crud

__all__ = [
    "BaseCRUD",
    "ChunkCRUD",
    "chunk_crud",
    "DocumentCRUD",
    "document_crud",
    "KnowledgeCRUD",
    "OrphanedChunk",
    "knowledge_crud",
    "ProcessingJobCRUD",
    "processing_job_crud",
    "VisualJobCRUD",
    "visual_job_crud",
]
