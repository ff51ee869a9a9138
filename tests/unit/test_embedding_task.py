"""
Test suite for the embedding client and the OpenAI-compatible provider.

Provider calls go through httpx.MockTransport; client behaviour is tested
against a scripted provider with zero backoff.

System role: Verification of embedding generation, retry and validation
"""

import json
import math

import httpx
import pytest

from kb_pipeline.boundary.providers.embedding_provider import OpenAIEmbeddingProvider
from kb_pipeline.core.document_processing.tasks.embedding_task import (
    EmbeddingClient,
    build_embedding_input,
)
from kb_pipeline.core.exceptions import EmbeddingError, EmbeddingProviderError


class FlakyProvider:
    """Fails the first ``failures`` calls, then returns a vector."""

    def __init__(self, failures: int, dimensions: int = 4) -> None:
        self.failures = failures
        self.dimensions = dimensions
        self.calls = 0

    async def create_embedding(self, text: str, api_key: str):
        self.calls += 1
        if self.calls <= self.failures:
            raise EmbeddingProviderError(f"attempt {self.calls} failed", status_code=503)
        return [0.5] * self.dimensions, "flaky-model"


def make_client(provider, api_key: str | None = "key", **kwargs) -> EmbeddingClient:
    kwargs.setdefault("dimensions", 4)
    kwargs.setdefault("retry_base_delay", 0)
    kwargs.setdefault("group_delay", 0)
    return EmbeddingClient(provider, api_key=api_key, **kwargs)


def embeddings_transport(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestBuildEmbeddingInput:
    """Test suite for build_embedding_input()."""

    def test_should_prefix_heading_path(self) -> None:
        text = build_embedding_input(
            "body",
            [{"level": 1, "text": "Guide"}, {"level": 2, "text": "Setup"}],
        )

        assert text == "Guide > Setup\n\nbody"

    def test_semantic_summary_should_replace_content(self) -> None:
        text = build_embedding_input("| a | b |", None, semantic_summary="Compares a and b")

        assert text == "Compares a and b"

    def test_blank_summary_should_fall_back_to_content(self) -> None:
        assert build_embedding_input("content", [], semantic_summary="  ") == "content"

    def test_document_name_should_come_first(self) -> None:
        text = build_embedding_input("body", [{"level": 1, "text": "H"}], document_name="report.pdf")

        assert text == "Document: report.pdf\n\nH\n\nbody"


class TestEmbeddingClientEmbed:
    """Test suite for EmbeddingClient.embed()."""

    @pytest.mark.asyncio
    async def test_embed_should_retry_until_success(self) -> None:
        provider = FlakyProvider(failures=2)
        client = make_client(provider, max_attempts=3)

        result = await client.embed("hello")

        assert provider.calls == 3
        assert result.embedding == [0.5] * 4
        assert result.model == "flaky-model"

    @pytest.mark.asyncio
    async def test_embed_should_raise_after_max_attempts(self) -> None:
        provider = FlakyProvider(failures=10)
        client = make_client(provider, max_attempts=3)

        with pytest.raises(EmbeddingError) as exc_info:
            await client.embed("hello")

        assert provider.calls == 3
        assert exc_info.value.attempts == 3
        assert "after 3 attempts" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   "])
    async def test_empty_text_should_fail_without_calling_provider(self, text: str) -> None:
        provider = FlakyProvider(failures=0)
        client = make_client(provider)

        with pytest.raises(EmbeddingError) as exc_info:
            await client.embed(text)

        assert provider.calls == 0
        assert exc_info.value.attempts == 0

    @pytest.mark.asyncio
    async def test_missing_api_key_should_fail_without_retry(self) -> None:
        provider = FlakyProvider(failures=0)
        client = make_client(provider, api_key=None)

        with pytest.raises(EmbeddingError, match="API key not provided"):
            await client.embed("hello")

        assert provider.calls == 0
        assert not client.has_credentials


class TestEmbeddingClientBatch:
    """Test suite for EmbeddingClient.embed_batch()."""

    @pytest.mark.asyncio
    async def test_partial_failure_should_not_abort_batch(self) -> None:
        client = make_client(FlakyProvider(failures=0), group_size=2)
        texts = ["a", "", "b", "  ", "c", "d", ""]

        result = await client.embed_batch(texts)

        assert len(result.successes) == 4
        assert len(result.failures) == 3
        assert sorted(s.index for s in result.successes) == [0, 2, 4, 5]
        assert sorted(f.index for f in result.failures) == [1, 3, 6]
        assert all(f.attempt_number == 0 for f in result.failures)
        assert result.total == len(texts)

    @pytest.mark.asyncio
    async def test_progress_should_be_reported_per_group(self) -> None:
        client = make_client(FlakyProvider(failures=0))
        progress: list[tuple[int, int]] = []

        await client.embed_batch(
            ["t"] * 5, concurrency=2, on_progress=lambda done, total: progress.append((done, total))
        )

        assert progress == [(2, 5), (4, 5), (5, 5)]

    @pytest.mark.asyncio
    async def test_failure_preview_should_be_truncated(self) -> None:
        client = make_client(FlakyProvider(failures=100), max_attempts=1)

        result = await client.embed_batch(["x" * 150])

        assert result.failures[0].text == "x" * 100 + "..."
        assert result.failures[0].attempt_number == 1


class TestEmbeddingValidation:
    """Test suite for EmbeddingClient.validate()."""

    @pytest.fixture
    def client(self) -> EmbeddingClient:
        return make_client(FlakyProvider(failures=0), dimensions=3)

    def test_valid_vector(self, client: EmbeddingClient) -> None:
        assert client.validate([0.1, -0.2, 3]).valid

    @pytest.mark.parametrize(
        "vector,reason",
        [
            (None, "empty"),
            ([], "empty"),
            ([0.1, 0.2], "dimension"),
            ([0.1, math.nan, 0.3], "NaN"),
            ([0.1, math.inf, 0.3], "NaN or Infinity"),
        ],
    )
    def test_invalid_vectors(self, client: EmbeddingClient, vector, reason: str) -> None:
        validation = client.validate(vector)

        assert not validation.valid
        assert reason in validation.reason


class TestOpenAIEmbeddingProvider:
    """Test suite for the httpx-based provider."""

    @pytest.mark.asyncio
    async def test_create_embedding_should_post_model_and_input(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200, json={"data": [{"embedding": [1, 2, 3]}], "model": "text-embedding-3-small"}
            )

        provider = OpenAIEmbeddingProvider(
            base_url="https://embeddings.test/v1/", dimensions=3, client=embeddings_transport(handler)
        )

        vector, model = await provider.create_embedding("hello", "secret")

        assert vector == [1.0, 2.0, 3.0]
        assert model == "text-embedding-3-small"
        assert seen["url"] == "https://embeddings.test/v1/embeddings"
        assert seen["auth"] == "Bearer secret"
        assert seen["body"] == {"model": "text-embedding-3-small", "input": "hello", "dimensions": 3}
        await provider.aclose()

    @pytest.mark.asyncio
    async def test_non_2xx_should_raise_provider_error(self) -> None:
        provider = OpenAIEmbeddingProvider(
            client=embeddings_transport(lambda request: httpx.Response(429, text="rate limited"))
        )

        with pytest.raises(EmbeddingProviderError) as exc_info:
            await provider.create_embedding("hello", "secret")

        assert exc_info.value.status_code == 429
        assert "rate limited" in exc_info.value.message

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [{}, {"data": []}, {"data": [{"vector": [1]}]}, {"data": [{"embedding": ["x"]}]}],
    )
    async def test_malformed_payload_should_raise(self, payload: dict) -> None:
        provider = OpenAIEmbeddingProvider(
            client=embeddings_transport(lambda request: httpx.Response(200, json=payload))
        )

        with pytest.raises(EmbeddingProviderError):
            await provider.create_embedding("hello", "secret")

    @pytest.mark.asyncio
    async def test_transport_error_should_raise_provider_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        provider = OpenAIEmbeddingProvider(client=embeddings_transport(handler))

        with pytest.raises(EmbeddingProviderError, match="request failed"):
            await provider.create_embedding("hello", "secret")

    @pytest.mark.asyncio
    async def test_client_should_retry_provider_http_errors(self) -> None:
        responses = iter([
            httpx.Response(500, text="oops"),
            httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3, 0.4]}]}),
        ])
        provider = OpenAIEmbeddingProvider(
            dimensions=4, client=embeddings_transport(lambda request: next(responses))
        )
        client = make_client(provider, max_attempts=2)

        result = await client.embed("hello")

        assert result.embedding == [0.1, 0.2, 0.3, 0.4]
        assert client.validate(result.embedding).valid
