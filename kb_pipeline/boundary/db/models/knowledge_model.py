"""
Agent knowledge ORM models.

Agents retrieve from copies of document chunks scoped to the agent. A
knowledge chunk is valid only while a link between its agent and its pool
document exists; chunks without that link are orphans.

Dependencies: sqlalchemy, kb_pipeline.boundary.db.base
System role: Agent knowledge persistence (maintenance target)
"""

import uuid

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from kb_pipeline.boundary.db.base import Base, TimestampMixin, UUIDMixin


class AgentDocumentLinkModel(Base, UUIDMixin, TimestampMixin):
    """Assignment of a pool document to an agent."""

    __tablename__ = "agent_document_links"
    __table_args__ = (
        UniqueConstraint("agent_id", "document_id", name="uq_agent_document_links"),
    )

    agent_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("documents.id", ondelete="CASCADE"),
        nullable=False,
    )


class AgentKnowledgeChunkModel(Base, UUIDMixin, TimestampMixin):
    """Chunk copied into an agent's knowledge base."""

    __tablename__ = "agent_knowledge_chunks"

    agent_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)

    pool_document_id: Mapped[uuid.UUID | None] = mapped_column(Uuid(as_uuid=True), nullable=True)

    document_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    content: Mapped[str] = mapped_column(Text, nullable=False)
