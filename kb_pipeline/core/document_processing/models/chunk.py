"""
Chunk domain models for the ingestion pipeline.

Represents a chunk produced by the chunker before it is persisted, plus the
heading context attached to it.

Dependencies: pydantic
System role: Data structure passed from the chunker to the chunk store writer
"""

from pydantic import BaseModel, Field


class HeadingEntry(BaseModel):
    """One level of heading context."""

    level: int = Field(ge=1, le=6, description="Markdown heading level")
    text: str = Field(description="Heading text")


class HeadingMarker(HeadingEntry):
    """Heading captured during extraction, anchored at a character offset."""

    offset: int = Field(ge=0, description="Character offset of the heading in the text")


class TextChunk(BaseModel):
    """Chunk ready to be upserted by the chunk store writer."""

    chunk_index: int = Field(description="Sequential position within the document")
    content: str = Field(description="Chunk text content")
    start_char: int | None = Field(default=None, description="Span start in the source text")
    end_char: int | None = Field(default=None, description="Span end (exclusive)")
    total_chunks: int | None = Field(default=None, description="Chunks produced for the document")
    heading_hierarchy: list[HeadingEntry] = Field(
        default_factory=list,
        description="Headings active at the chunk start, outermost first",
    )
    chunk_kind: str = Field(default="text", description="text, visual or table")
    semantic_summary: str | None = Field(
        default=None,
        description="Text embedded instead of content (tables, images)",
    )
    image_ref: str | None = Field(default=None, description="Image payload reference")


class ChunkValidation(BaseModel):
    """Outcome of validating a candidate chunk."""

    valid: bool
    reason: str | None = None
