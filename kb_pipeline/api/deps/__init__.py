"""FastAPI dependency providers."""

from kb_pipeline.api.deps.dependencies import get_pipeline_runner, get_settings_dependency

__all__ = ["get_pipeline_runner", "get_settings_dependency"]
