"""
Document status updater.

Moves documents through their lifecycle:
INGESTED → DOWNLOADED → PROCESSING → CHUNKED → READY (or FAILED with error message)

Every change is a conditional update guarded by the document transition
table, committed on success and rolled back on error.

Dependencies: sqlalchemy, kb_pipeline.boundary.db
System role: Document persistence for pipeline stages
"""

import logging
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.boundary.db.models.document_model import DocumentModel
from kb_pipeline.core.exceptions import DocumentNotFoundError
from kb_pipeline.core.state_machine import DocumentStatus

logger = logging.getLogger(__name__)

ERROR_MESSAGE_LIMIT = 2000


def truncate_error(message: str, limit: int = ERROR_MESSAGE_LIMIT) -> str:
    """Trim an error message to fit the 2048-char columns."""
    return message[:limit] if len(message) > limit else message


class DocumentStatusUpdater:
    """Update document status during processing."""

    def __init__(self, db_session: AsyncSession) -> None:
        """
        Initialize with database session.

        Args:
            db_session: AsyncSession bound to the pipeline database
        """
        self.db = db_session

    async def create_document(
        self,
        name: str,
        source_locator: str | None = None,
        category: str | None = None,
        folder: str | None = None,
        total_pages: int | None = None,
    ) -> DocumentModel:
        """
        Create a new document record in INGESTED.

        Args:
            name: Display name
            source_locator: Object storage key of the raw document
            category: Category hint
            folder: Folder hint
            total_pages: Page count, when known

        Returns:
            DocumentModel: The committed row
        """
        try:
            document = await document_crud.create(
                self.db,
                name=name,
                source_locator=source_locator,
                category=category,
                folder=folder,
                total_pages=total_pages,
                status=DocumentStatus.INGESTED,
            )
            await self.db.commit()

            logger.info(
                f"{__name__}:create_document - Document created",
                extra={"document_id": str(document.id), "document_name": name},
            )
            return document

        except Exception as e:
            logger.error(f"{__name__}:create_document - {type(e).__name__}: {e}")
            await self.db.rollback()
            raise

    async def advance(self, document_id: UUID, target: DocumentStatus) -> bool:
        """
        Move a document forward to ``target``.

        Args:
            document_id: Document UUID
            target: Requested status

        Returns:
            bool: True if this call moved the document, False if it was
            already at or past ``target``

        Raises:
            DocumentNotFoundError: Document not found
        """
        try:
            moved = await document_crud.transition_by_id(self.db, document_id, target)
            if not moved and not await document_crud.exists(self.db, document_id):
                raise DocumentNotFoundError(str(document_id))
            await self.db.commit()

            if moved:
                logger.info(
                    f"{__name__}:advance - Document marked as {target.value.upper()}",
                    extra={"document_id": str(document_id)},
                )
            else:
                logger.info(
                    f"{__name__}:advance - Document not moved to {target.value}",
                    extra={"document_id": str(document_id)},
                )
            return moved

        except Exception as e:
            logger.error(f"{__name__}:advance - {type(e).__name__}: {e}")
            await self.db.rollback()
            raise

    async def mark_downloaded(self, document_id: UUID) -> bool:
        return await self.advance(document_id, DocumentStatus.DOWNLOADED)

    async def mark_processing(self, document_id: UUID) -> bool:
        return await self.advance(document_id, DocumentStatus.PROCESSING)

    async def mark_chunked(self, document_id: UUID) -> bool:
        return await self.advance(document_id, DocumentStatus.CHUNKED)

    async def mark_failed(self, document_id: UUID, error_message: str) -> bool:
        """
        Mark document as FAILED with error details.

        Args:
            document_id: Document UUID
            error_message: Human-readable error description

        Returns:
            bool: True if this call failed the document, False if it was
            already terminal

        Raises:
            DocumentNotFoundError: Document not found
        """
        try:
            truncated_error = truncate_error(error_message)
            moved = await document_crud.transition_by_id(
                self.db,
                document_id,
                DocumentStatus.FAILED,
                error_message=truncated_error,
            )
            if not moved and not await document_crud.exists(self.db, document_id):
                raise DocumentNotFoundError(str(document_id))
            await self.db.commit()

            logger.info(
                f"{__name__}:mark_failed - Document marked as FAILED",
                extra={"document_id": str(document_id), "error_message": truncated_error},
            )
            return moved

        except Exception as e:
            logger.error(f"{__name__}:mark_failed - {type(e).__name__}: {e}")
            await self.db.rollback()
            raise
