"""
External provider adapters.

Exports the embedding provider, the Gemini vision/summary providers, and
the stage invokers used for chaining.
"""

from kb_pipeline.boundary.providers.embedding_provider import EmbeddingProvider, OpenAIEmbeddingProvider
from kb_pipeline.boundary.providers.stage_invoker import (
    CeleryStageInvoker,
    LocalStageInvoker,
    StageInvoker,
)
from kb_pipeline.boundary.providers.vision_provider import (
    GeminiVisionProvider,
    TableSummarizer,
    VisionProvider,
)

__all__ = [
    "CeleryStageInvoker",
    "EmbeddingProvider",
    "GeminiVisionProvider",
    "LocalStageInvoker",
    "OpenAIEmbeddingProvider",
    "StageInvoker",
    "TableSummarizer",
    "VisionProvider",
]
