"""
Document ORM model.

Represents ingested documents with lifecycle status and domain hints.
Tracks a document from intake through chunking and embedding to READY.

Dependencies: sqlalchemy, kb_pipeline.boundary.db.base
System role: Document persistence for ingestion tracking
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from kb_pipeline.boundary.db.base import Base, TimestampMixin, UUIDMixin, value_enum
from kb_pipeline.core.state_machine import DocumentStatus


class DocumentModel(Base, UUIDMixin, TimestampMixin):
    """
    Document ORM model tracking ingestion pipeline state.

    Lifecycle: INGESTED → DOWNLOADED → PROCESSING → CHUNKED → READY, with
    FAILED reachable from every non-terminal state. Only pipeline stages
    mutate the row; it is never deleted except by explicit cleanup.

    Attributes:
        id: UUID primary key (auto-generated)
        name: Display name (original filename or page title)
        source_locator: Object storage key or URL of the raw document
        status: Current lifecycle state
        category: Optional category hint used for domain inference
        folder: Optional folder name used for domain inference
        total_pages: Page count for batch-split documents
        error_message: Human-readable reason when FAILED (2048 char limit)
        recovery_attempts: Orphan-recovery re-triggers issued so far
        aggregated_at: When batch aggregation was last triggered (None until it has been)
        created_at: Ingestion timestamp (UTC)
        updated_at: Last status change timestamp (UTC)
    """

    __tablename__ = "documents"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        doc="Display name",
    )

    source_locator: Mapped[str | None] = mapped_column(
        String(1024),
        nullable=True,
        doc="S3 key or URL for raw document",
    )

    status: Mapped[DocumentStatus] = mapped_column(
        value_enum(DocumentStatus),
        nullable=False,
        default=DocumentStatus.INGESTED,
        index=True,
    )

    category: Mapped[str | None] = mapped_column(String(255), nullable=True)

    folder: Mapped[str | None] = mapped_column(String(255), nullable=True)

    total_pages: Mapped[int | None] = mapped_column(Integer, nullable=True)

    error_message: Mapped[str | None] = mapped_column(
        String(2048),
        nullable=True,
        doc="Error details if processing failed",
    )

    recovery_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        doc="Split re-triggers issued by orphan recovery",
    )

    aggregated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        doc="Set when the job queue triggers batch aggregation",
    )
