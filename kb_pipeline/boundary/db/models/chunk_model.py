"""
Chunk ORM model.

A retrievable unit derived from one document: text window, table, or
visual element description, together with its embedding state.

Dependencies: sqlalchemy, kb_pipeline.boundary.db.base
System role: Chunk persistence and embedding status tracking
"""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from kb_pipeline.boundary.db.base import Base, TimestampMixin, UUIDMixin, value_enum
from kb_pipeline.core.state_machine import ChunkStatus


class ChunkKind(str, enum.Enum):
    """
    Chunk representation kinds.

    TEXT: Sliding-window text segment (may carry legacy placeholder tokens)
    VISUAL: Dedicated chunk for one image element
    TABLE: Markdown table with a generated semantic summary
    """

    TEXT = "text"
    VISUAL = "visual"
    TABLE = "table"


class ChunkModel(Base, UUIDMixin, TimestampMixin):
    """
    Chunk ORM model.

    embedding_status moves forward through {pending|waiting_enrichment} →
    processing → {ready|failed}; READY rows always carry a validated vector.

    Attributes:
        document_id: Owning document (cascade delete)
        chunk_index: Position within the document; unique per document
        chunk_kind: Representation kind (text/visual/table)
        content: Text used for retrieval (visual chunks: the description)
        original_content: Content before enrichment replaced it
        heading_hierarchy: Ordered [{"level": int, "text": str}] context
        image_ref: Image payload reference for visual chunks
        start_char: Span start in the source text
        end_char: Span end (exclusive) in the source text
        embedding_status: Current embedding state
        embedding: Vector as a JSON list of floats
        embedding_error: Last embedding failure message
        embedded_at: When the vector was stored
        semantic_summary: Generated text that supersedes content for embedding
    """

    __tablename__ = "chunks"
    __table_args__ = (
        UniqueConstraint("document_id", "chunk_index", name="uq_chunks_document_index"),
        Index("ix_chunks_document_status", "document_id", "embedding_status"),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    chunk_index: Mapped[int] = mapped_column(Integer, nullable=False)

    chunk_kind: Mapped[ChunkKind] = mapped_column(
        value_enum(ChunkKind),
        nullable=False,
        default=ChunkKind.TEXT,
    )

    content: Mapped[str] = mapped_column(Text, nullable=False)

    original_content: Mapped[str | None] = mapped_column(Text, nullable=True)

    heading_hierarchy: Mapped[list[dict] | None] = mapped_column(JSON, nullable=True)

    image_ref: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    start_char: Mapped[int | None] = mapped_column(Integer, nullable=True)

    end_char: Mapped[int | None] = mapped_column(Integer, nullable=True)

    embedding_status: Mapped[ChunkStatus] = mapped_column(
        value_enum(ChunkStatus),
        nullable=False,
        default=ChunkStatus.PENDING,
    )

    embedding: Mapped[list[float] | None] = mapped_column(JSON, nullable=True)

    embedding_error: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    embedded_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    semantic_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
