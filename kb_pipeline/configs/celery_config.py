"""
Celery configuration settings.

Manages Celery broker and result backend configuration for pipeline stage tasks
and the beat schedule that drives the periodic sweeps.

Dependencies: pydantic, pydantic_settings
System role: Async task queue configuration for document ingestion
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from kb_pipeline.configs.base import BaseSettings


class CelerySettings(BaseSettings):
    """Celery and Redis configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CELERY_",
        case_sensitive=False,
        extra="ignore",
    )

    broker_url: str = Field(default="redis://localhost:6379/0", description="Celery broker URL")
    result_backend_url: str = Field(
        default="redis://localhost:6379/1",
        description="Celery result backend URL",
    )

    task_serializer: str = Field(default="json", description="Task serialization format")
    result_serializer: str = Field(default="json", description="Result serialization format")
    accept_content: list[str] = Field(
        default=["json"],
        description="Accepted content types",
    )
    timezone: str = Field(default="UTC", description="Celery timezone")

    stage_invoke_timeout_seconds: float = Field(
        default=900.0,
        description="How long a synchronous stage invocation waits for its result",
    )
    chain_via_celery: bool = Field(
        default=True,
        description="Route chained stages through Celery (False runs them in-process)",
    )

    # Beat schedule (seconds)
    vision_queue_interval: int = Field(default=60, description="Vision queue sweep interval")
    embeddings_interval: int = Field(default=60, description="Embedding sweep interval")
    job_queue_interval: int = Field(default=60, description="Job queue sweep interval")
    reconcile_interval: int = Field(default=300, description="Reconciliation sweep interval")
    maintenance_interval: int = Field(default=3600, description="Maintenance sweep interval")
