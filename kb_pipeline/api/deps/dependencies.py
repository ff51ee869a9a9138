"""
Dependency injection container.

Factory functions for FastAPI dependencies.

Dependencies: kb_pipeline.configs, kb_pipeline.application, kb_pipeline.boundary
System role: DI container for the pipeline runner
"""

from functools import lru_cache

from kb_pipeline.application.pipeline_runner import PipelineRunner
from kb_pipeline.boundary.db.connection import get_async_session_factory
from kb_pipeline.boundary.providers.stage_invoker import CeleryStageInvoker
from kb_pipeline.configs import Settings, get_settings


@lru_cache
def get_settings_dependency() -> Settings:
    """Get settings singleton."""
    return get_settings()


@lru_cache
def get_pipeline_runner() -> PipelineRunner:
    """
    Get the process-wide pipeline runner.

    Chained stages go to Celery workers unless chain_via_celery is off, in
    which case they run in this process.

    Returns:
        PipelineRunner: Cached runner bound to the application engine
    """
    settings = get_settings_dependency()
    invoker = None
    if settings.celery.chain_via_celery:
        from kb_pipeline.workers import celery_app

        invoker = CeleryStageInvoker(celery_app, settings.celery.stage_invoke_timeout_seconds)
    return PipelineRunner(get_async_session_factory(), settings, invoker=invoker)
