"""
Text chunking task using a fixed sliding window.

Splits extracted document text into overlapping windows of a target size,
recording each window's exact character span and the markdown heading
context active where it starts.

Dependencies: langchain_text_splitters, langchain_core
System role: First transformation stage of document ingestion
"""

import logging
import re
from typing import Any

from langchain_core.documents import Document
from langchain_text_splitters import TextSplitter

from kb_pipeline.core.document_processing.models.chunk import (
    ChunkValidation,
    HeadingEntry,
    HeadingMarker,
    TextChunk,
)
from kb_pipeline.core.exceptions import ChunkingError

logger = logging.getLogger(__name__)

HEADING_PATTERN = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t#]*$", re.MULTILINE)


class SlidingWindowSplitter(TextSplitter):
    """
    Fixed-size character windows with a fixed overlap.

    Unlike separator-based splitters, every window is an exact substring
    ``text[start:end]`` so spans can be stored and the source rebuilt.
    """

    def __init__(self, chunk_size: int = 1000, chunk_overlap: int = 200, **kwargs: Any) -> None:
        if chunk_size <= 0:
            raise ChunkingError(f"chunk_size must be positive, got {chunk_size}")
        if chunk_overlap < 0 or chunk_overlap >= chunk_size:
            raise ChunkingError(
                f"chunk_overlap must be in [0, chunk_size), got {chunk_overlap} for size {chunk_size}"
            )
        super().__init__(
            chunk_size=chunk_size,
            chunk_overlap=chunk_overlap,
            strip_whitespace=False,
            **kwargs,
        )

    def split_spans(self, text: str) -> list[tuple[int, int]]:
        """
        Window boundaries for ``text``.

        Returns:
            list[tuple[int, int]]: (start, end) pairs, end exclusive
        """
        spans: list[tuple[int, int]] = []
        length = len(text)
        start = 0
        while start < length:
            end = min(start + self._chunk_size, length)
            spans.append((start, end))
            if end == length:
                break
            start = end - self._chunk_overlap
        return spans

    def split_text(self, text: str) -> list[str]:
        return [text[start:end] for start, end in self.split_spans(text)]


def extract_headings(text: str) -> list[HeadingMarker]:
    """Markdown ATX headings in ``text`` with their offsets."""
    return [
        HeadingMarker(level=len(m.group(1)), text=m.group(2).strip(), offset=m.start())
        for m in HEADING_PATTERN.finditer(text)
    ]


def heading_context(headings: list[HeadingMarker], position: int) -> list[HeadingEntry]:
    """
    Heading stack active at ``position``.

    Args:
        headings: Headings sorted by offset
        position: Character offset

    Returns:
        list[HeadingEntry]: Outermost heading first
    """
    stack: list[HeadingEntry] = []
    for heading in headings:
        if heading.offset > position:
            break
        while stack and stack[-1].level >= heading.level:
            stack.pop()
        stack.append(HeadingEntry(level=heading.level, text=heading.text))
    return stack


class ChunkingTask:
    """Split document text into overlapping chunks with span and heading metadata."""

    def __init__(
        self,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        max_chunk_chars: int = 10000,
    ) -> None:
        """
        Initialize chunking task with splitter configuration.

        Args:
            chunk_size: Target chunk size in characters
            chunk_overlap: Overlap between consecutive chunks
            max_chunk_chars: Chunks longer than this are dropped by validation

        Raises:
            ChunkingError: When the window configuration is invalid
        """
        self._splitter = SlidingWindowSplitter(chunk_size=chunk_size, chunk_overlap=chunk_overlap)
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_chunk_chars = max_chunk_chars

    def chunk(
        self,
        text: str,
        metadata: dict | None = None,
        headings: list[HeadingMarker] | None = None,
    ) -> list[Document]:
        """
        Split text into validated chunks.

        Args:
            text: Full extracted document text
            metadata: Metadata copied onto every chunk (document id, source)
            headings: Headings captured during extraction; parsed from
                markdown when omitted

        Returns:
            list[Document]: Chunks in order; metadata carries chunk_index,
            total_chunks, start_char, end_char, chunk_size, overlap and
            heading_hierarchy

        Raises:
            ChunkingError: When text is empty
        """
        if not text or not text.strip():
            raise ChunkingError(
                "Empty text provided for chunking",
                document_id=(metadata or {}).get("document_id"),
            )

        markers = sorted(headings if headings is not None else extract_headings(text), key=lambda h: h.offset)
        spans = self._splitter.split_spans(text)

        kept: list[tuple[int, int, str]] = []
        for start, end in spans:
            content = text[start:end]
            validation = self.validate_chunk(content)
            if not validation.valid:
                logger.warning(
                    f"{__name__}:chunk - Dropping chunk at {start}-{end}: {validation.reason}"
                )
                continue
            kept.append((start, end, content))

        documents: list[Document] = []
        for index, (start, end, content) in enumerate(kept):
            chunk_metadata = dict(metadata or {})
            chunk_metadata.update(
                {
                    "chunk_index": index,
                    "total_chunks": len(kept),
                    "start_char": start,
                    "end_char": end,
                    "chunk_size": len(content),
                    "overlap": self.chunk_overlap if index > 0 else 0,
                    "heading_hierarchy": [
                        h.model_dump() for h in heading_context(markers, start)
                    ],
                }
            )
            documents.append(Document(page_content=content, metadata=chunk_metadata))

        logger.info(
            f"{__name__}:chunk - Created {len(documents)} chunks",
            extra={"chars": len(text), "dropped": len(spans) - len(kept)},
        )
        return documents

    def validate_chunk(self, content: str) -> ChunkValidation:
        """
        Check a candidate chunk before persistence.

        Args:
            content: Chunk text

        Returns:
            ChunkValidation: valid flag with a reason when invalid
        """
        if not content or not content.strip():
            return ChunkValidation(valid=False, reason="Chunk is empty")
        if len(content) > self.max_chunk_chars:
            return ChunkValidation(
                valid=False,
                reason=f"Chunk too long: {len(content)} characters (max {self.max_chunk_chars})",
            )
        return ChunkValidation(valid=True)


def to_text_chunks(documents: list[Document]) -> list[TextChunk]:
    """Convert chunker output into writer input."""
    return [
        TextChunk(
            chunk_index=doc.metadata["chunk_index"],
            content=doc.page_content,
            start_char=doc.metadata.get("start_char"),
            end_char=doc.metadata.get("end_char"),
            total_chunks=doc.metadata.get("total_chunks"),
            heading_hierarchy=[HeadingEntry(**h) for h in doc.metadata.get("heading_hierarchy", [])],
        )
        for doc in documents
    ]
