"""
Exception hierarchy for the ingestion pipeline.

Provides layered exception structure for pipeline errors. The hierarchy
mirrors the failure taxonomy the stages act on: fatal configuration errors
abort an invocation, permanent input errors fail the item immediately,
provider errors are retried, and everything carries context for logging.

Dependencies: None (pure domain layer)
System role: Centralized exception handling across the pipeline
"""

from typing import Any


class PipelineError(Exception):
    """Base exception for all ingestion pipeline errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        """
        Initialize base exception with message and optional context.

        Args:
            message: Human-readable error message
            details: Optional dictionary of additional context for debugging
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation including details."""
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(PipelineError):
    """Raised when required configuration (e.g. credentials) is missing."""

    def __init__(
        self,
        message: str,
        setting: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if setting:
            details["setting"] = setting
        super().__init__(message, details)


class ValidationError(PipelineError):
    """Raised when input validation fails."""

    def __init__(
        self,
        message: str,
        field: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize validation error.

        Args:
            message: Error message
            field: Field name that failed validation
            details: Additional context
        """
        details = details or {}
        if field:
            details["field"] = field
        super().__init__(message, details)


class DocumentNotFoundError(PipelineError):
    """Raised when a document cannot be found."""

    def __init__(self, document_id: str, details: dict[str, Any] | None = None) -> None:
        details = details or {}
        details["document_id"] = document_id
        super().__init__(f"Document not found: {document_id}", details)


class DocumentProcessingError(PipelineError):
    """Base exception for document processing errors."""

    def __init__(
        self,
        message: str,
        document_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize document processing error.

        Args:
            message: Error message
            document_id: ID of the document that failed
            details: Additional context
        """
        details = details or {}
        if document_id:
            details["document_id"] = document_id
        super().__init__(message, details)


class ChunkingError(DocumentProcessingError):
    """Raised when text cannot be chunked (empty input, bad window)."""

    pass


class EmbeddingError(DocumentProcessingError):
    """Raised when embedding generation fails terminally."""

    def __init__(
        self,
        message: str,
        attempts: int = 1,
        document_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """
        Initialize embedding error.

        Args:
            message: Error message
            attempts: Provider attempts made before giving up
            document_id: ID of the owning document, when known
            details: Additional context
        """
        self.attempts = attempts
        details = details or {}
        details["attempts"] = attempts
        super().__init__(message, document_id, details)


class EmbeddingProviderError(PipelineError):
    """Raised for a single failed provider call; retryable."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body
        details: dict[str, Any] = {}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message, details)


class VisionError(DocumentProcessingError):
    """Raised when a visual element cannot be described."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        document_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if job_id:
            details["job_id"] = job_id
        super().__init__(message, document_id, details)


class StageInvocationError(PipelineError):
    """Raised when a downstream stage cannot be invoked or reports failure."""

    def __init__(
        self,
        message: str,
        stage: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if stage:
            details["stage"] = stage
        super().__init__(message, details)


class InvalidTransitionError(PipelineError):
    """Raised when a status change is outside an entity's transition table."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            f"Invalid {entity} transition: {current} -> {target}",
            {"entity": entity, "current": current, "target": target},
        )


class ObjectStorageError(PipelineError):
    """Raised when raw document bytes cannot be read from object storage."""

    def __init__(
        self,
        message: str,
        key: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        details = details or {}
        if key:
            details["key"] = key
        super().__init__(message, details)
