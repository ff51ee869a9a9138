"""
Stage result model.

Every pipeline stage returns the same summary shape so schedulers, the HTTP
endpoint, and chained stages can treat them uniformly.

Dependencies: pydantic
System role: Return type for every pipeline stage
"""

from typing import Any

from pydantic import BaseModel, Field

DEFAULT_ERROR_LIMIT = 20


class ItemError(BaseModel):
    """Failure detail for one item in a batch."""

    item_id: str = Field(description="Chunk, job, or document identifier")
    error: str = Field(description="Human-readable failure reason")


class StageResult(BaseModel):
    """Summary returned by a pipeline stage."""

    success: bool = Field(default=True, description="False only for fatal invocation errors")
    processed: int = Field(default=0, description="Items handled successfully")
    failed: int = Field(default=0, description="Items that failed")
    message: str = Field(default="", description="One-line summary")
    errors: list[ItemError] = Field(default_factory=list, description="Per-item errors (capped)")
    details: dict[str, Any] = Field(default_factory=dict, description="Stage-specific counters")
    error: str | None = Field(default=None, description="Fatal error, when success is False")

    def record_failure(
        self,
        item_id: Any,
        error: str,
        limit: int = DEFAULT_ERROR_LIMIT,
    ) -> None:
        """Count a failed item and keep its detail while under ``limit``."""
        self.failed += 1
        if len(self.errors) < limit:
            self.errors.append(ItemError(item_id=str(item_id), error=error[:500]))

    @classmethod
    def fatal(cls, error: str) -> "StageResult":
        """Top-level error summary for an aborted invocation."""
        return cls(success=False, message=error, error=error)
