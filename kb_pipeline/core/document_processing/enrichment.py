"""
Visual enrichment chunk representations.

Two representations of an image-bearing chunk coexist:

    DedicatedVisual      the chunk exists only for the image; its content is
                         replaced wholesale by the description
    LegacyPlaceholder    a text chunk carries an inline token
                         ``[VISUAL_ENRICHMENT_PENDING: <job-id>]`` followed by
                         ``(Image: <name>)``; the token is swapped for the
                         description wherever it appears in the document

Dependencies: re
System role: Enrichment strategy selection for the chunk store writer
"""

import re
from dataclasses import dataclass
from uuid import UUID

PLACEHOLDER_MARKER = "[VISUAL_ENRICHMENT_PENDING:"


@dataclass(frozen=True)
class DedicatedVisual:
    chunk_id: UUID


@dataclass(frozen=True)
class LegacyPlaceholder:
    token: str

    @classmethod
    def for_job(cls, job_id: UUID | str) -> "LegacyPlaceholder":
        return cls(token=placeholder_token(job_id))


ChunkRepresentation = DedicatedVisual | LegacyPlaceholder


def placeholder_token(job_id: UUID | str) -> str:
    return f"{PLACEHOLDER_MARKER} {job_id}]"


def legacy_placeholder(job_id: UUID | str, image_name: str) -> str:
    """Inline placeholder text as written by legacy ingestion."""
    return f"{placeholder_token(job_id)}\n(Image: {image_name})"


def _placeholder_regex(token: str) -> re.Pattern[str]:
    return re.compile(re.escape(token) + r"\n?(?:\(Image: [^)]+\)\n?)?")


def replace_placeholder(text: str, token: str, description: str) -> tuple[str, int]:
    """
    Swap every occurrence of ``token`` (and its image reference) for the description.

    Returns:
        tuple[str, int]: New text and the number of replacements
    """
    replacement = f"\n\n{description}\n\n"
    return _placeholder_regex(token).subn(lambda _: replacement, text)


def has_placeholders(text: str | None) -> bool:
    return PLACEHOLDER_MARKER in (text or "")


def select_representation(
    chunk_id: UUID,
    chunk_kind: str,
    content: str,
    job_id: UUID | str,
) -> ChunkRepresentation:
    """
    Decide how a job's description reaches its linked chunk.

    Args:
        chunk_id: Linked chunk id
        chunk_kind: Linked chunk kind value
        content: Linked chunk content
        job_id: Visual enrichment job id

    Returns:
        ChunkRepresentation: DedicatedVisual for visual chunks, otherwise
        LegacyPlaceholder for the job's token
    """
    if chunk_kind == "visual" and placeholder_token(job_id) not in content:
        return DedicatedVisual(chunk_id=chunk_id)
    return LegacyPlaceholder.for_job(job_id)
