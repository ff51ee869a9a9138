"""
Observability module.

Provides structured logging and correlation ID tracking.
"""

from kb_pipeline.observability.correlation import (
    CorrelationIdFilter,
    clear_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from kb_pipeline.observability.logger import configure_logging, get_logger

__all__ = [
    "CorrelationIdFilter",
    "clear_correlation_id",
    "configure_logging",
    "get_correlation_id",
    "get_logger",
    "set_correlation_id",
]
