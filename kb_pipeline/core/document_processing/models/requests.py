"""
Stage request models.

Stage payloads arrive as camelCase JSON (``documentId``, ``batchSize``) from
HTTP callers and chained stages; they are also accepted in snake_case.

Dependencies: pydantic
System role: Input schemas for pipeline stages
"""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StageRequest(BaseModel):
    """Base for stage payloads."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class DocumentScopeRequest(StageRequest):
    """Optional scoping shared by most stages."""

    document_id: UUID | None = Field(default=None, description="Restrict to one document")
    batch_size: int | None = Field(default=None, ge=1, description="Override the batch size")


class VisualElementInput(StageRequest):
    """Image element extracted from a document."""

    image_base64: str = Field(description="Base64-encoded image bytes")
    element_type: str = Field(default="layout_picture", description="Layout element hint")
    page_number: int | None = Field(default=None, description="Source page")
    image_name: str | None = Field(default=None, description="Original image file name")
    document_context: dict | None = Field(default=None, description="Explicit context")


class TableInput(StageRequest):
    """Markdown table extracted from a document."""

    markdown: str = Field(min_length=1, description="Table as markdown")
    page_number: int | None = Field(default=None, description="Source page")


class IngestDocumentRequest(StageRequest):
    """Request to ingest one document."""

    name: str = Field(min_length=1, description="Display name")
    text: str | None = Field(default=None, description="Extracted text, when already available")
    source_locator: str | None = Field(default=None, description="Object storage key")
    category: str | None = Field(default=None, description="Category hint")
    folder: str | None = Field(default=None, description="Folder hint")
    visual_elements: list[VisualElementInput] = Field(default_factory=list)
    tables: list[TableInput] = Field(default_factory=list)


class SplitDocumentRequest(StageRequest):
    """Request to split a large document into processing jobs."""

    document_id: UUID
    total_pages: int | None = Field(default=None, ge=1, description="Defaults to the stored count")
    pages_per_batch: int | None = Field(default=None, ge=1)
