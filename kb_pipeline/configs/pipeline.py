"""
Ingestion pipeline configuration.

Chunking parameters, batch sizes, and the thresholds that drive stuck-item
recovery, self-healing, and orphan detection.

Dependencies: pydantic, pydantic_settings
System role: Pipeline behaviour configuration
"""

from pydantic import Field
from pydantic_settings import SettingsConfigDict

from kb_pipeline.configs.base import BaseSettings


class PipelineSettings(BaseSettings):
    """Settings for every ingestion stage."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PIPELINE_",
        case_sensitive=False,
        extra="ignore",
    )

    # Chunking
    chunk_size: int = Field(default=1000, description="Target chunk size in characters")
    chunk_overlap: int = Field(default=200, description="Overlap between consecutive chunks")
    max_chunk_chars: int = Field(default=10000, description="Chunks above this size are dropped")

    # Embedding stage
    embedding_group_size: int = Field(default=10, description="Concurrent calls per embedding group")
    embedding_group_delay_seconds: float = Field(
        default=0.1,
        description="Pause between embedding groups",
    )
    embedding_batch_size: int = Field(
        default=10,
        description="Pending chunks embedded per invocation when no document is given",
    )
    chunk_stuck_threshold_minutes: int = Field(
        default=10,
        description="Chunks left in processing longer than this are reset to pending",
    )

    # Visual enrichment queue
    vision_batch_size: int = Field(default=5, description="Queue items dequeued per iteration")
    vision_max_iterations: int = Field(default=20, description="Iteration cap per invocation")
    vision_stuck_threshold_minutes: int = Field(
        default=5,
        description="Queue items left in processing longer than this are reset",
    )

    # Processing job queue
    job_stuck_threshold_minutes: int = Field(default=10, description="Stuck job age threshold")
    job_max_retries: int = Field(default=3, description="Stuck resets before a job is failed")
    aggregation_retry_minutes: int = Field(
        default=10,
        description="Re-trigger aggregation for documents still PROCESSING after this long",
    )
    self_heal_enabled: bool = Field(default=True, description="Re-queue old failed jobs")
    failed_recovery_threshold_minutes: int = Field(
        default=10,
        description="Age after which a failed job is eligible for self-healing",
    )
    self_heal_skip_patterns: list[str] = Field(
        default_factory=list,
        description="Error substrings that mark a failure as permanent",
    )
    orphan_threshold_minutes: int = Field(
        default=10,
        description="Age after which an ingested document without jobs is an orphan",
    )
    orphan_recovery_limit: int = Field(default=5, description="Orphans re-triggered per cycle")
    orphan_max_attempts: int = Field(
        default=3,
        description="Split re-triggers before an orphaned document is failed",
    )
    pages_per_batch: int = Field(default=20, description="Pages per processing job")

    # Maintenance
    orphan_chunk_delete_batch: int = Field(default=100, description="Knowledge chunks per delete")
    orphan_chunk_delete_cap: int = Field(default=500, description="Knowledge chunks per run")

    # Reporting
    error_detail_limit: int = Field(
        default=20,
        description="Maximum per-item error entries returned in a stage summary",
    )
