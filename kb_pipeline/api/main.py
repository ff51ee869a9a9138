"""
FastAPI application with assembled routers.

Initializes FastAPI app with the pipeline routers and configures uvicorn server.

Dependencies: fastapi, kb_pipeline.api.routers, uvicorn
System role: API entry point with router assembly and server launch
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from kb_pipeline.api.deps.dependencies import get_pipeline_runner, get_settings_dependency
from kb_pipeline.observability.logger import configure_logging
from kb_pipeline.observability.middleware import CorrelationMiddleware, RequestLoggingMiddleware

from .routers import documents_router, health_router, stages_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan context manager.

    Handles startup and shutdown events.
    """
    configure_logging(get_settings_dependency().log_level)
    logger = logging.getLogger("uvicorn")

    # Startup
    runner = get_pipeline_runner()
    logger.info(f"Pipeline runner ready ({len(runner.stages)} stages)")

    yield

    # Shutdown
    await runner.aclose()
    get_pipeline_runner.cache_clear()
    logger.info("Pipeline runner closed")


def create_app() -> FastAPI:
    """
    Create and configure FastAPI application with routers.

    Returns:
        FastAPI: Configured application instance with all routers registered
    """
    app = FastAPI(
        title="Knowledge Base Ingestion API",
        description="Triggers for the document ingestion pipeline stages",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Add observability middleware
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(CorrelationMiddleware)

    # Register all routers with /api/v1 prefix for versioning
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(stages_router, prefix="/api/v1")
    app.include_router(documents_router, prefix="/api/v1")

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "kb_pipeline.api.main:app",
        host="0.0.0.0",
        port=8000,
    )
