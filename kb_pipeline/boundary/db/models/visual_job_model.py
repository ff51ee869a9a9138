"""
Visual enrichment queue ORM model.

One queued image element awaiting a description from the vision provider.

Dependencies: sqlalchemy, kb_pipeline.boundary.db.base
System role: Visual enrichment queue persistence
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from kb_pipeline.boundary.db.base import Base, TimestampMixin, UUIDMixin, value_enum
from kb_pipeline.core.state_machine import VisualJobStatus


class VisualEnrichmentJobModel(Base, UUIDMixin, TimestampMixin):
    """
    Visual enrichment queue item.

    Links an image payload to the chunk it enriches. Rows with a NULL
    chunk_id are legacy/orphaned and are never selected for processing.

    Attributes:
        document_id: Owning document (cascade delete)
        chunk_id: Linked chunk; NULL means orphaned
        image_base64: Base64-encoded image bytes
        element_type: Layout element hint (layout_picture, chart, table, ...)
        document_context: Explicit context, e.g. {"domain": "finance"}
        page_number: Source page, when known
        status: pending → processing → completed|failed
        enrichment_text: Description returned by the vision provider
        error_message: Failure reason
        processed_at: When the item reached a terminal state
    """

    __tablename__ = "visual_enrichment_jobs"
    __table_args__ = (
        Index("ix_visual_jobs_status_created", "status", "created_at"),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    chunk_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("chunks.id", ondelete="SET NULL"),
        nullable=True,
    )

    image_base64: Mapped[str] = mapped_column(Text, nullable=False)

    element_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default="layout_picture",
    )

    document_context: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    page_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[VisualJobStatus] = mapped_column(
        value_enum(VisualJobStatus),
        nullable=False,
        default=VisualJobStatus.PENDING,
    )

    enrichment_text: Mapped[str | None] = mapped_column(Text, nullable=True)

    error_message: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
