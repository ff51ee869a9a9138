"""
Embedding client with retry, batching, and vector validation.

Wraps an embedding provider with:
    - immediate rejection of empty text and missing credentials
    - linear-backoff retries (delay = base * attempt) for failed calls
    - grouped concurrent batches that report per-item failures
    - dimensionality and finiteness checks for returned vectors

Dependencies: tenacity, asyncio
System role: Embedding stage of document ingestion pipeline
"""

import asyncio
import logging
import math
from typing import Callable, Sequence

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from kb_pipeline.boundary.providers.embedding_provider import EmbeddingProvider
from kb_pipeline.core.document_processing.models.embedding import (
    BatchEmbeddingResult,
    EmbeddingFailure,
    EmbeddingResult,
    EmbeddingValidation,
)
from kb_pipeline.core.exceptions import EmbeddingError, EmbeddingProviderError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]

FAILURE_PREVIEW_CHARS = 100


def build_embedding_input(
    content: str,
    heading_hierarchy: Sequence[dict] | None = None,
    semantic_summary: str | None = None,
    document_name: str | None = None,
) -> str:
    """
    Text sent to the provider for a chunk.

    The semantic summary, when present, replaces the raw content. Heading
    context is prepended as ``A > B`` so sections embed near their topic.

    Args:
        content: Chunk content
        heading_hierarchy: [{"level", "text"}] outermost first
        semantic_summary: Generated summary that supersedes content
        document_name: Prefix ``Document: <name>`` when given

    Returns:
        str: Provider input
    """
    body = semantic_summary.strip() if semantic_summary and semantic_summary.strip() else content
    parts: list[str] = []
    if document_name:
        parts.append(f"Document: {document_name}")
    headings = [h.get("text", "") for h in heading_hierarchy or [] if h.get("text")]
    if headings:
        parts.append(" > ".join(headings))
    parts.append(body)
    return "\n\n".join(parts)


class EmbeddingClient:
    """Generate and validate embeddings through an EmbeddingProvider."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        api_key: str | None,
        dimensions: int = 1536,
        max_attempts: int = 3,
        retry_base_delay: float = 1.0,
        group_size: int = 10,
        group_delay: float = 0.1,
    ) -> None:
        """
        Initialize embedding client.

        Args:
            provider: Provider adapter performing single calls
            api_key: Provider credential
            dimensions: Expected vector length
            max_attempts: Calls per text before giving up
            retry_base_delay: Backoff base in seconds; attempt n waits base * n
            group_size: Default concurrency for embed_batch
            group_delay: Pause between batch groups in seconds
        """
        self._provider = provider
        self._api_key = api_key
        self.dimensions = dimensions
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.group_size = group_size
        self.group_delay = group_delay

    @property
    def has_credentials(self) -> bool:
        return bool(self._api_key)

    async def embed(self, text: str) -> EmbeddingResult:
        """
        Embed one text, retrying failed provider calls.

        Args:
            text: Input text

        Returns:
            EmbeddingResult: Vector and model

        Raises:
            EmbeddingError: Empty text or missing API key (no retry), or every
                attempt failed
        """
        if not text or not text.strip():
            raise EmbeddingError("Empty text provided for embedding generation", attempts=0)
        if not self._api_key:
            raise EmbeddingError("API key not provided", attempts=0)

        retryer = AsyncRetrying(
            retry=retry_if_exception_type(EmbeddingProviderError),
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_incrementing(start=self.retry_base_delay, increment=self.retry_base_delay),
            before_sleep=lambda state: logger.warning(
                f"{__name__}:embed - Attempt {state.attempt_number}/{self.max_attempts} failed: "
                f"{state.outcome.exception()}"
            ),
            reraise=True,
        )

        attempts = 0
        try:
            async for attempt in retryer:
                with attempt:
                    attempts = attempt.retry_state.attempt_number
                    vector, model = await self._provider.create_embedding(text, self._api_key)
        except EmbeddingProviderError as e:
            raise EmbeddingError(
                f"Failed to generate embedding after {attempts} attempts: {e.message}",
                attempts=attempts,
            ) from e

        return EmbeddingResult(embedding=vector, model=model)

    async def embed_batch(
        self,
        texts: Sequence[str],
        concurrency: int | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> BatchEmbeddingResult:
        """
        Embed many texts in concurrent groups.

        Failures are collected per item and never abort the batch.

        Args:
            texts: Inputs in order
            concurrency: Group size (defaults to the client's group_size)
            on_progress: Called with (completed, total) after each group

        Returns:
            BatchEmbeddingResult: Successes and failures, each tagged with the
            input index
        """
        group_size = max(1, concurrency or self.group_size)
        total = len(texts)
        result = BatchEmbeddingResult()

        for group_start in range(0, total, group_size):
            group = list(enumerate(texts[group_start:group_start + group_size], start=group_start))
            outcomes = await asyncio.gather(*(self._embed_item(i, t) for i, t in group))

            for outcome in outcomes:
                if isinstance(outcome, EmbeddingResult):
                    result.successes.append(outcome)
                else:
                    result.failures.append(outcome)

            completed = min(group_start + group_size, total)
            if on_progress is not None:
                on_progress(completed, total)
            if completed < total and self.group_delay > 0:
                await asyncio.sleep(self.group_delay)

        if result.failures:
            logger.warning(
                f"{__name__}:embed_batch - {len(result.failures)}/{total} embeddings failed"
            )
        return result

    async def _embed_item(self, index: int, text: str) -> EmbeddingResult | EmbeddingFailure:
        try:
            embedded = await self.embed(text)
        except EmbeddingError as e:
            preview = text[:FAILURE_PREVIEW_CHARS] + "..." if len(text) > FAILURE_PREVIEW_CHARS else text
            return EmbeddingFailure(
                index=index,
                text=preview,
                error=e.message,
                attempt_number=e.attempts,
            )
        return embedded.model_copy(update={"index": index})

    def validate(self, vector: Sequence[float] | None) -> EmbeddingValidation:
        """
        Check a vector before it is persisted.

        Args:
            vector: Candidate embedding

        Returns:
            EmbeddingValidation: valid flag and reason
        """
        if not vector:
            return EmbeddingValidation(valid=False, reason="Embedding is empty")
        if len(vector) != self.dimensions:
            return EmbeddingValidation(
                valid=False,
                reason=f"Invalid embedding dimension: {len(vector)} (expected {self.dimensions})",
            )
        if not all(isinstance(v, (int, float)) and math.isfinite(v) for v in vector):
            return EmbeddingValidation(
                valid=False,
                reason="Embedding contains invalid values (NaN or Infinity)",
            )
        return EmbeddingValidation(valid=True)
