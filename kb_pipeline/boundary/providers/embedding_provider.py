"""
Embedding provider adapter.

Posts one text to an OpenAI-compatible ``/embeddings`` endpoint and returns
the vector. Every failure of a single call (transport error, timeout,
non-2xx status, malformed payload) surfaces as EmbeddingProviderError so the
embedding client can decide whether to retry.

Dependencies: httpx
System role: HTTP boundary to the embedding provider
"""

import logging
from typing import Any, Mapping, Protocol

import httpx

from kb_pipeline.core.exceptions import EmbeddingProviderError

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
    """Anything that turns one text into one vector."""

    async def create_embedding(self, text: str, api_key: str) -> tuple[list[float], str]:
        ...


def _extract_vector(payload: Mapping[str, Any]) -> list[float]:
    data = payload.get("data") if isinstance(payload, Mapping) else None
    if not isinstance(data, list) or not data:
        raise EmbeddingProviderError("Invalid response format from embedding provider")
    item = data[0]
    if not isinstance(item, Mapping) or not isinstance(item.get("embedding"), list):
        raise EmbeddingProviderError("Embedding item missing embedding field")
    try:
        return [float(value) for value in item["embedding"]]
    except (TypeError, ValueError) as e:
        raise EmbeddingProviderError(f"Embedding vector is not numeric: {e}") from e


class OpenAIEmbeddingProvider:
    """OpenAI-compatible embeddings over httpx."""

    def __init__(
        self,
        base_url: str = "https://api.openai.com/v1",
        model: str = "text-embedding-3-small",
        dimensions: int | None = 1536,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            base_url: Provider base URL (``/embeddings`` is appended)
            model: Embedding model identifier
            dimensions: Requested output dimensionality (None to omit)
            timeout_seconds: Per-request timeout
            client: Shared AsyncClient; one is created when omitted
        """
        self.url = f"{base_url.rstrip('/')}/embeddings"
        self.model = model
        self.dimensions = dimensions
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout_seconds))

    async def create_embedding(self, text: str, api_key: str) -> tuple[list[float], str]:
        """
        Embed one text.

        Args:
            text: Input text
            api_key: Bearer token

        Returns:
            tuple[list[float], str]: Vector and the model reported by the provider

        Raises:
            EmbeddingProviderError: On any failed call
        """
        payload: dict[str, Any] = {"model": self.model, "input": text}
        if self.dimensions:
            payload["dimensions"] = self.dimensions

        try:
            response = await self._client.post(
                self.url,
                json=payload,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.TimeoutException as e:
            raise EmbeddingProviderError(f"Embedding request timed out: {e}") from e
        except httpx.HTTPError as e:
            raise EmbeddingProviderError(f"Embedding request failed: {e}") from e

        if response.status_code >= 300:
            body = response.text[:1000]
            raise EmbeddingProviderError(
                f"Embedding provider error: {response.status_code} - {body}",
                status_code=response.status_code,
                body=body,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingProviderError("Embedding provider returned invalid JSON") from e

        return _extract_vector(data), str(data.get("model") or self.model)

    async def aclose(self) -> None:
        await self._client.aclose()
