"""
Unified application settings.

Aggregates all configuration modules into a single Settings class.
Provides dependency injection factory for FastAPI and the Celery workers.

Dependencies: All config modules
System role: Central configuration aggregator for the application
"""

from functools import lru_cache

from kb_pipeline.configs.base import BaseSettings
from kb_pipeline.configs.celery_config import CelerySettings
from kb_pipeline.configs.database import DatabaseSettings
from kb_pipeline.configs.pipeline import PipelineSettings
from kb_pipeline.configs.providers import ProviderSettings
from kb_pipeline.configs.s3_documents import S3DocumentsSettings


class Settings(BaseSettings):
    """Unified application settings aggregating all config modules."""

    database: DatabaseSettings = DatabaseSettings()
    providers: ProviderSettings = ProviderSettings()
    pipeline: PipelineSettings = PipelineSettings()
    celery: CelerySettings = CelerySettings()
    s3_documents: S3DocumentsSettings = S3DocumentsSettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get application settings singleton.

    Returns Settings instance, cached for dependency injection.
    Environment variables loaded once at startup.

    Returns:
        Settings: Application settings instance

    Usage:
        from kb_pipeline.configs import get_settings
        settings = get_settings()
    """
    return Settings()
