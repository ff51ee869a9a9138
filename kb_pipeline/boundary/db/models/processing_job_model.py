"""
Processing job ORM model.

One batch (page range) of a large document's extraction work, dispatched
one at a time by the job queue worker.

Dependencies: sqlalchemy, kb_pipeline.boundary.db.base
System role: Batch job tracking for split documents
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from kb_pipeline.boundary.db.base import Base, TimestampMixin, UUIDMixin, value_enum
from kb_pipeline.core.state_machine import ProcessingJobStatus


class ProcessingJobModel(Base, UUIDMixin, TimestampMixin):
    """
    Processing job for a single document batch.

    Attributes:
        document_id: Owning document (cascade delete)
        batch_index: Zero-based batch position; dispatch preserves this order
        page_start: First page of the batch (1-based, inclusive)
        page_end: Last page of the batch (inclusive)
        status: pending → processing → completed|failed
        retry_count: Stuck-job resets so far
        error_message: Last failure reason
        completed_at: When the job reached a terminal state

    Constraints:
        (document_id, batch_index): UNIQUE
    """

    __tablename__ = "processing_jobs"
    __table_args__ = (
        UniqueConstraint("document_id", "batch_index", name="uq_processing_jobs_batch"),
    )

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )

    batch_index: Mapped[int] = mapped_column(Integer, nullable=False)

    page_start: Mapped[int | None] = mapped_column(Integer, nullable=True)

    page_end: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[ProcessingJobStatus] = mapped_column(
        value_enum(ProcessingJobStatus),
        nullable=False,
        default=ProcessingJobStatus.PENDING,
        index=True,
    )

    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    error_message: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
