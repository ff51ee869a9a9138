"""
Chunk store writer.

Persists chunks and every change to their embedding status:

    upsert_chunks        idempotent on (document_id, chunk_index)
    claim_chunk          → PROCESSING
    mark_chunk_ready     → READY, only with a validated vector
    mark_chunk_failed    → FAILED with the error retained
    reset_stuck_chunks   PROCESSING → PENDING for rows untouched too long
    apply_enrichment     writes a visual description through the linked
                         chunk's representation (dedicated or placeholder)

Each helper derives its allowed source states from the chunk transition
table and issues a conditional UPDATE, then commits or rolls back.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Chunk persistence for ingestion, embedding and vision stages
"""

import logging
from datetime import datetime
from typing import Callable, Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.base import utcnow
from kb_pipeline.boundary.db.CRUD.chunk_crud import chunk_crud
from kb_pipeline.boundary.db.models.chunk_model import ChunkKind, ChunkModel
from kb_pipeline.boundary.db.models.visual_job_model import VisualEnrichmentJobModel
from kb_pipeline.core.document_processing.database.document_status_updater import truncate_error
from kb_pipeline.core.document_processing.enrichment import (
    DedicatedVisual,
    LegacyPlaceholder,
    has_placeholders,
    replace_placeholder,
    select_representation,
)
from kb_pipeline.core.document_processing.models.chunk import TextChunk
from kb_pipeline.core.document_processing.models.embedding import EmbeddingValidation
from kb_pipeline.core.exceptions import ValidationError
from kb_pipeline.core.state_machine import ChunkStatus, Entity, can_transition

logger = logging.getLogger(__name__)

VectorValidator = Callable[[Sequence[float] | None], EmbeddingValidation]


def initial_status(chunk: TextChunk) -> ChunkStatus:
    """Status a newly persisted chunk starts in."""
    if chunk.chunk_kind == ChunkKind.VISUAL.value or has_placeholders(chunk.content):
        return ChunkStatus.WAITING_ENRICHMENT
    return ChunkStatus.PENDING


class ChunkStoreWriter:
    """Chunk persistence with guarded status transitions."""

    def __init__(self, db_session: AsyncSession, validator: VectorValidator | None = None) -> None:
        """
        Initialize with database session.

        Args:
            db_session: AsyncSession for the pipeline database
            validator: Vector check used by mark_chunk_ready
                (normally ``EmbeddingClient.validate``)
        """
        self.db = db_session
        self._validator = validator

    async def upsert_chunks(self, document_id: UUID, chunks: Sequence[TextChunk]) -> list[UUID]:
        """
        Insert new chunks and refresh the content of existing, not-yet-ready ones.

        Args:
            document_id: Owning document
            chunks: Chunks keyed by chunk_index

        Returns:
            list[UUID]: Row ids in input order
        """
        ids: list[UUID] = []
        created = updated = skipped = 0
        try:
            for chunk in chunks:
                fields = {
                    "chunk_kind": ChunkKind(chunk.chunk_kind),
                    "content": chunk.content,
                    "heading_hierarchy": [h.model_dump() for h in chunk.heading_hierarchy],
                    "image_ref": chunk.image_ref,
                    "start_char": chunk.start_char,
                    "end_char": chunk.end_char,
                    "semantic_summary": chunk.semantic_summary,
                }
                existing = await chunk_crud.get_by_document_and_index(
                    self.db, document_id, chunk.chunk_index
                )

                if existing is None:
                    row = await chunk_crud.create(
                        self.db,
                        document_id=document_id,
                        chunk_index=chunk.chunk_index,
                        embedding_status=initial_status(chunk),
                        **fields,
                    )
                    ids.append(row.id)
                    created += 1
                elif existing.embedding_status == ChunkStatus.READY:
                    ids.append(existing.id)
                    skipped += 1
                else:
                    await chunk_crud.update_by_id(self.db, existing.id, **fields)
                    ids.append(existing.id)
                    updated += 1

            await self.db.commit()

            logger.info(
                f"{__name__}:upsert_chunks - Chunks persisted",
                extra={
                    "document_id": str(document_id),
                    "created": created,
                    "updated": updated,
                    "skipped_ready": skipped,
                },
            )
            return ids

        except Exception as e:
            logger.error(f"{__name__}:upsert_chunks - {type(e).__name__}: {e}")
            await self.db.rollback()
            raise

    async def claim_chunk(self, chunk_id: UUID) -> bool:
        """
        Claim a chunk for embedding.

        Returns:
            bool: False when another worker already claimed or finished it
        """
        return await self._transition(chunk_id, ChunkStatus.PROCESSING, "claim_chunk")

    async def mark_chunk_ready(self, chunk_id: UUID, vector: Sequence[float]) -> bool:
        """
        Store a vector and mark the chunk READY.

        Args:
            chunk_id: Chunk UUID
            vector: Embedding returned by the provider

        Returns:
            bool: True if the chunk moved to READY

        Raises:
            ValidationError: The vector is empty, mis-sized, or not finite
        """
        if self._validator is None:
            raise ValueError("ChunkStoreWriter needs a validator to mark chunks ready")

        validation = self._validator(vector)
        if not validation.valid:
            raise ValidationError(validation.reason or "Invalid embedding", field="embedding")

        return await self._transition(
            chunk_id,
            ChunkStatus.READY,
            "mark_chunk_ready",
            embedding=[float(v) for v in vector],
            embedded_at=utcnow(),
            embedding_error=None,
        )

    async def mark_chunk_failed(self, chunk_id: UUID, error: str) -> bool:
        return await self._transition(
            chunk_id,
            ChunkStatus.FAILED,
            "mark_chunk_failed",
            embedding_error=truncate_error(error),
        )

    async def reset_stuck_chunks(self, older_than: datetime) -> int:
        """
        Return chunks stuck in PROCESSING to PENDING.

        Args:
            older_than: updated_at cutoff

        Returns:
            int: Chunks reset
        """
        try:
            count = await chunk_crud.transition_where(
                self.db,
                ChunkStatus.PENDING,
                ChunkModel.updated_at < older_than,
                retry=True,
                sources=frozenset({ChunkStatus.PROCESSING.value}),
            )
            await self.db.commit()
        except Exception as e:
            logger.error(f"{__name__}:reset_stuck_chunks - {type(e).__name__}: {e}")
            await self.db.rollback()
            raise

        if count:
            logger.warning(f"{__name__}:reset_stuck_chunks - Reset {count} stuck chunks")
        return count

    async def apply_enrichment(
        self,
        job: VisualEnrichmentJobModel,
        description: str,
    ) -> list[UUID]:
        """
        Write a visual description into the chunk(s) the job enriches.

        Args:
            job: Completed visual enrichment job
            description: Text returned by the vision provider

        Returns:
            list[UUID]: Chunks now PENDING and ready for embedding

        Raises:
            ValidationError: The job has no linked chunk or it no longer exists
        """
        if job.chunk_id is None:
            raise ValidationError(f"Visual job {job.id} has no linked chunk", field="chunk_id")

        try:
            linked = await chunk_crud.get_by_id(self.db, job.chunk_id)
            if linked is None:
                raise ValidationError(
                    f"Linked chunk {job.chunk_id} not found for visual job {job.id}",
                    field="chunk_id",
                )

            representation = select_representation(
                linked.id, ChunkKind(linked.chunk_kind).value, linked.content, job.id
            )
            if isinstance(representation, DedicatedVisual):
                reopened = await self._apply_dedicated(linked, description)
            else:
                reopened = await self._apply_legacy(job.document_id, representation, description)

            await self.db.commit()

        except Exception as e:
            logger.error(f"{__name__}:apply_enrichment - {type(e).__name__}: {e}")
            await self.db.rollback()
            raise

        logger.info(
            f"{__name__}:apply_enrichment - Enrichment applied",
            extra={
                "job_id": str(job.id),
                "strategy": type(representation).__name__,
                "reopened": len(reopened),
            },
        )
        return reopened

    async def _apply_dedicated(self, chunk: ChunkModel, description: str) -> list[UUID]:
        reopened = await self._rewrite(
            chunk,
            ChunkStatus.PENDING,
            content=description,
            original_content=chunk.original_content or chunk.content,
        )
        return [chunk.id] if reopened else []

    async def _apply_legacy(
        self,
        document_id: UUID,
        representation: LegacyPlaceholder,
        description: str,
    ) -> list[UUID]:
        chunks = await chunk_crud.find_containing(self.db, document_id, representation.token)
        if not chunks:
            logger.warning(
                f"{__name__}:apply_enrichment - No chunk contains {representation.token}",
                extra={"document_id": str(document_id)},
            )
            return []

        reopened: list[UUID] = []
        for chunk in chunks:
            content, _ = replace_placeholder(chunk.content, representation.token, description)
            original = chunk.original_content
            if original:
                original, _ = replace_placeholder(original, representation.token, description)

            # Other images in the same chunk are still outstanding
            target = (
                ChunkStatus.WAITING_ENRICHMENT if has_placeholders(content) else ChunkStatus.PENDING
            )
            moved = await self._rewrite(chunk, target, content=content, original_content=original)
            if moved and target == ChunkStatus.PENDING:
                reopened.append(chunk.id)
        return reopened

    async def _rewrite(self, chunk: ChunkModel, target: ChunkStatus, **values) -> bool:
        """
        Update a chunk's text and move it to ``target`` where the table allows.

        Returns:
            bool: True if the chunk ends up in ``target``
        """
        current = ChunkStatus(chunk.embedding_status)
        if current == target:
            await chunk_crud.update_by_id(self.db, chunk.id, **values)
            return True

        if can_transition(Entity.CHUNK, current, target, retry=True):
            moved = await chunk_crud.transition_by_id(
                self.db,
                chunk.id,
                target,
                retry=True,
                embedding=None,
                embedded_at=None,
                embedding_error=None,
                **values,
            )
            if moved:
                return True

        await chunk_crud.update_by_id(self.db, chunk.id, **values)
        logger.warning(
            f"{__name__}:apply_enrichment - Chunk kept status {current.value}",
            extra={"chunk_id": str(chunk.id), "target": target.value},
        )
        return False

    async def _transition(self, chunk_id: UUID, target: ChunkStatus, method: str, **values) -> bool:
        try:
            moved = await chunk_crud.transition_by_id(self.db, chunk_id, target, **values)
            await self.db.commit()
        except Exception as e:
            logger.error(f"{__name__}:{method} - {type(e).__name__}: {e}")
            await self.db.rollback()
            raise

        if not moved:
            logger.debug(
                f"{__name__}:{method} - Conditional update matched no row",
                extra={"chunk_id": str(chunk_id), "target": target.value},
            )
        return moved
