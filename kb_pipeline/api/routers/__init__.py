"""API routers."""

from .documents import router as documents_router
from .health import router as health_router
from .stages import router as stages_router

__all__ = [
    "documents_router",
    "health_router",
    "stages_router",
]
