"""
Models for the document processing pipeline.

Exports: TextChunk, HeadingEntry, HeadingMarker, ChunkValidation,
EmbeddingResult, EmbeddingFailure, BatchEmbeddingResult, EmbeddingValidation,
StageResult, ItemError, and the stage request schemas.
"""

from .chunk import ChunkValidation, HeadingEntry, HeadingMarker, TextChunk
from .embedding import BatchEmbeddingResult, EmbeddingFailure, EmbeddingResult, EmbeddingValidation
from .requests import (
    DocumentScopeRequest,
    IngestDocumentRequest,
    SplitDocumentRequest,
    StageRequest,
    TableInput,
    VisualElementInput,
)
from .stage_result import ItemError, StageResult

__all__ = [
    "BatchEmbeddingResult",
    "ChunkValidation",
    "DocumentScopeRequest",
    "EmbeddingFailure",
    "EmbeddingResult",
    "EmbeddingValidation",
    "HeadingEntry",
    "HeadingMarker",
    "IngestDocumentRequest",
    "ItemError",
    "SplitDocumentRequest",
    "StageRequest",
    "StageResult",
    "TableInput",
    "TextChunk",
    "VisualElementInput",
]
