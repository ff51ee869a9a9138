"""
Configuration management module.

Provides centralized, type-safe configuration using Pydantic Settings.
All config modules support environment variable mapping with validation.
"""

from kb_pipeline.configs.pipeline import PipelineSettings
from kb_pipeline.configs.providers import ProviderSettings
from kb_pipeline.configs.settings import Settings, get_settings

__all__ = ["PipelineSettings", "ProviderSettings", "Settings", "get_settings"]
