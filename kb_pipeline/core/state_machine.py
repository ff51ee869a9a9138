"""
Status enums and transition tables.

Every pipeline entity has an explicit status enum and a transition table.
Writers never assign a status directly: they ask this module which source
states may move to a target and issue a conditional UPDATE restricted to
those sources. That makes the table the single authority on ordering, and
turns a concurrent claim into an optimistic compare-and-set.

Transitions come in two kinds:
    forward: normal progress; always permitted
    retry:   recovery edges (stuck resets, self-healing, re-enrichment);
             permitted only when the caller asks for them explicitly

Dependencies: None
System role: Lifecycle rules for documents, chunks, and queue items
"""

import enum
from dataclasses import dataclass, field
from typing import Mapping

from kb_pipeline.core.exceptions import InvalidTransitionError


class DocumentStatus(str, enum.Enum):
    """
    Document lifecycle states.

    INGESTED: Row created, nothing downloaded yet
    DOWNLOADED: Raw content fetched from object storage
    PROCESSING: Extraction/chunking (or batch extraction) in progress
    CHUNKED: Chunks persisted, embeddings outstanding
    READY: Every chunk embedded
    FAILED: Permanent failure; see error_message
    """

    INGESTED = "ingested"
    DOWNLOADED = "downloaded"
    PROCESSING = "processing"
    CHUNKED = "chunked"
    READY = "ready"
    FAILED = "failed"


class ChunkStatus(str, enum.Enum):
    """Chunk embedding states."""

    PENDING = "pending"
    WAITING_ENRICHMENT = "waiting_enrichment"
    PROCESSING = "processing"
    READY = "ready"
    FAILED = "failed"


class VisualJobStatus(str, enum.Enum):
    """Visual enrichment queue item states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingJobStatus(str, enum.Enum):
    """Batch processing job states."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class Entity(str, enum.Enum):
    DOCUMENT = "document"
    CHUNK = "chunk"
    VISUAL_JOB = "visual_job"
    PROCESSING_JOB = "processing_job"


@dataclass(frozen=True)
class TransitionTable:
    """Allowed transitions and partial-order rank for one entity."""

    forward: Mapping[str, frozenset[str]]
    retry: Mapping[str, frozenset[str]] = field(default_factory=dict)
    rank: Mapping[str, int] = field(default_factory=dict)

    def targets(self, current: str, retry: bool = False) -> frozenset[str]:
        allowed = self.forward.get(current, frozenset())
        if retry:
            allowed = allowed | self.retry.get(current, frozenset())
        return allowed


def _edges(table: dict[enum.Enum, set[enum.Enum]]) -> dict[str, frozenset[str]]:
    return {src.value: frozenset(t.value for t in targets) for src, targets in table.items()}


_D, _C, _V, _P = DocumentStatus, ChunkStatus, VisualJobStatus, ProcessingJobStatus

TABLES: dict[Entity, TransitionTable] = {
    Entity.DOCUMENT: TransitionTable(
        forward=_edges({
            _D.INGESTED: {_D.DOWNLOADED, _D.PROCESSING, _D.CHUNKED, _D.READY, _D.FAILED},
            _D.DOWNLOADED: {_D.PROCESSING, _D.CHUNKED, _D.READY, _D.FAILED},
            _D.PROCESSING: {_D.CHUNKED, _D.READY, _D.FAILED},
            _D.CHUNKED: {_D.READY, _D.FAILED},
        }),
        retry=_edges({_D.FAILED: {_D.INGESTED}}),
        rank={
            _D.INGESTED.value: 0,
            _D.DOWNLOADED.value: 1,
            _D.PROCESSING.value: 2,
            _D.CHUNKED.value: 3,
            _D.READY.value: 4,
            _D.FAILED.value: 4,
        },
    ),
    Entity.CHUNK: TransitionTable(
        forward=_edges({
            _C.PENDING: {_C.PROCESSING, _C.FAILED},
            _C.WAITING_ENRICHMENT: {_C.PENDING, _C.PROCESSING, _C.FAILED},
            _C.PROCESSING: {_C.READY, _C.FAILED},
        }),
        retry=_edges({
            _C.PROCESSING: {_C.PENDING},
            _C.FAILED: {_C.PENDING, _C.WAITING_ENRICHMENT},
            _C.READY: {_C.PENDING, _C.WAITING_ENRICHMENT},
        }),
        rank={
            _C.PENDING.value: 0,
            _C.WAITING_ENRICHMENT.value: 0,
            _C.PROCESSING.value: 1,
            _C.READY.value: 2,
            _C.FAILED.value: 2,
        },
    ),
    Entity.VISUAL_JOB: TransitionTable(
        forward=_edges({
            _V.PENDING: {_V.PROCESSING},
            _V.PROCESSING: {_V.COMPLETED, _V.FAILED},
        }),
        retry=_edges({_V.PROCESSING: {_V.PENDING}}),
        rank={
            _V.PENDING.value: 0,
            _V.PROCESSING.value: 1,
            _V.COMPLETED.value: 2,
            _V.FAILED.value: 2,
        },
    ),
    Entity.PROCESSING_JOB: TransitionTable(
        forward=_edges({
            _P.PENDING: {_P.PROCESSING, _P.FAILED},
            _P.PROCESSING: {_P.COMPLETED, _P.FAILED},
        }),
        retry=_edges({
            _P.PROCESSING: {_P.PENDING},
            _P.FAILED: {_P.PENDING},
        }),
        rank={
            _P.PENDING.value: 0,
            _P.PROCESSING.value: 1,
            _P.COMPLETED.value: 2,
            _P.FAILED.value: 2,
        },
    ),
}


def _value(status: str | enum.Enum) -> str:
    return status.value if isinstance(status, enum.Enum) else status


def can_transition(
    entity: Entity,
    current: str | enum.Enum,
    target: str | enum.Enum,
    retry: bool = False,
) -> bool:
    """Return True if ``current -> target`` is in the entity's table."""
    return _value(target) in TABLES[entity].targets(_value(current), retry=retry)


def ensure_transition(
    entity: Entity,
    current: str | enum.Enum,
    target: str | enum.Enum,
    retry: bool = False,
) -> None:
    """
    Validate a status change.

    Args:
        entity: Entity whose table applies
        current: Status the row holds now
        target: Requested status
        retry: Also permit recovery edges

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    if not can_transition(entity, current, target, retry=retry):
        raise InvalidTransitionError(entity.value, _value(current), _value(target))


def allowed_sources(
    entity: Entity,
    target: str | enum.Enum,
    retry: bool = False,
) -> frozenset[str]:
    """
    All statuses from which ``target`` is reachable in one step.

    Used to build ``WHERE status IN (...)`` guards for conditional updates.
    """
    table = TABLES[entity]
    wanted = _value(target)
    return frozenset(
        src for src in table.rank if wanted in table.targets(src, retry=retry)
    )


def is_regression(entity: Entity, current: str | enum.Enum, target: str | enum.Enum) -> bool:
    """True if ``target`` sits strictly below ``current`` in the partial order."""
    rank = TABLES[entity].rank
    return rank[_value(target)] < rank[_value(current)]


def is_terminal(entity: Entity, status: str | enum.Enum) -> bool:
    """True if no forward transition leaves ``status``."""
    return not TABLES[entity].targets(_value(status))
