"""
External provider configuration.

Credentials, endpoints, and call policies for the embedding provider and
the Gemini models used for visual enrichment and table summarization.

Dependencies: pydantic, pydantic_settings
System role: Provider connection configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from kb_pipeline.configs.base import BaseSettings


class ProviderSettings(BaseSettings):
    """Embedding and vision provider configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PROVIDER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Embeddings (OpenAI-compatible /embeddings endpoint)
    embedding_api_key: str | None = Field(
        default=None,
        description="Bearer token for the embedding provider",
    )
    embedding_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Base URL of the embedding provider",
    )
    embedding_model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model identifier",
    )
    embedding_dimensions: int = Field(
        default=1536,
        description="Fixed output dimensionality expected from the provider",
    )
    embedding_timeout_seconds: float = Field(
        default=30.0,
        description="Per-request timeout for embedding calls",
    )
    embedding_max_attempts: int = Field(
        default=3,
        description="Attempts per text before an embedding is reported as failed",
    )
    embedding_retry_base_delay_seconds: float = Field(
        default=1.0,
        description="Linear backoff base; delay = base * attempt",
    )

    # Gemini (vision + summarization)
    google_api_key: str | None = Field(
        default=None,
        description="Google API key for Gemini models",
    )
    vision_model: str = Field(
        default="gemini-2.5-flash",
        description="Multimodal model used to describe visual elements",
    )
    summary_model: str = Field(
        default="gemini-2.5-flash-lite",
        description="Model used to summarize markdown tables",
    )
    vision_timeout_seconds: float = Field(
        default=60.0,
        description="Per-request timeout for vision calls",
    )
