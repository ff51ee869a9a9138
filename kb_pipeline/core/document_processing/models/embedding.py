"""
Embedding result models.

Dependencies: pydantic
System role: Return types for the embedding client
"""

from pydantic import BaseModel, Field


class EmbeddingResult(BaseModel):
    """A successfully embedded text."""

    index: int = Field(default=0, description="Position of the text in the batch input")
    embedding: list[float] = Field(description="Embedding vector")
    model: str = Field(description="Model that produced the vector")


class EmbeddingFailure(BaseModel):
    """A text whose embedding failed after all attempts."""

    index: int = Field(description="Position of the text in the batch input")
    text: str = Field(description="Truncated text preview")
    error: str = Field(description="Final error message")
    attempt_number: int = Field(description="Attempts made before giving up")


class BatchEmbeddingResult(BaseModel):
    """Successes and failures of a batch; never raised as a whole."""

    successes: list[EmbeddingResult] = Field(default_factory=list)
    failures: list[EmbeddingFailure] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)


class EmbeddingValidation(BaseModel):
    """Outcome of validating an embedding vector."""

    valid: bool
    reason: str | None = None
