"""
Pipeline stage Celery tasks.

One task per stage, named by the stage name so beat entries, send_task
chaining and the HTTP endpoint all share one vocabulary. Each task runs the
stage on a fresh event loop with its own unpooled engine, waits for any
fire-and-forget work the stage spawned, and returns the summary as JSON.

Async task: <stage>(payload)
Flow: correlation id -> runner.run(stage) -> drain detached work -> dispose engine

Dependencies: celery, kb_pipeline.application, kb_pipeline.boundary
System role: Background execution of pipeline stages
"""

import asyncio
import logging
from typing import Any

from kb_pipeline.application.pipeline_runner import PipelineRunner
from kb_pipeline.boundary.db.connection import create_session_factory, create_task_engine
from kb_pipeline.boundary.providers.stage_invoker import CeleryStageInvoker
from kb_pipeline.core.stages import Stage
from kb_pipeline.observability.correlation import clear_correlation_id, set_correlation_id
from kb_pipeline.workers import celery_app, settings

logger = logging.getLogger(__name__)


async def _execute(stage: Stage, payload: dict[str, Any], task_id: str | None) -> dict[str, Any]:
    set_correlation_id(task_id)
    engine = create_task_engine()
    invoker = None
    if settings.celery.chain_via_celery:
        invoker = CeleryStageInvoker(celery_app, settings.celery.stage_invoke_timeout_seconds)
    runner = PipelineRunner(create_session_factory(engine), settings, invoker=invoker)

    try:
        result = await runner.run(stage, payload)
        return result.model_dump(mode="json")
    finally:
        await runner.aclose()
        await engine.dispose()
        clear_correlation_id()


def run_stage(stage: Stage, payload: dict[str, Any] | None, task_id: str | None = None) -> dict:
    """
    Run a stage to completion on a new event loop.

    Args:
        stage: Stage to run
        payload: Stage request (camelCase keys)
        task_id: Celery task id, reused as the correlation id

    Returns:
        dict: StageResult as JSON
    """
    logger.info(f"{__name__}:run_stage - Starting '{stage.value}'", extra={"task_id": task_id})
    return asyncio.run(_execute(stage, payload or {}, task_id))


@celery_app.task(bind=True, name=Stage.INGEST_DOCUMENT.value)
def ingest_document(self, payload: dict | None = None) -> dict:
    """Ingest one document (name, text or sourceLocator, visuals, tables)."""
    return run_stage(Stage.INGEST_DOCUMENT, payload, self.request.id)


@celery_app.task(bind=True, name=Stage.SPLIT_DOCUMENT.value)
def split_document_into_batches(self, payload: dict | None = None) -> dict:
    return run_stage(Stage.SPLIT_DOCUMENT, payload, self.request.id)


@celery_app.task(bind=True, name=Stage.GENERATE_EMBEDDINGS.value)
def generate_embeddings(self, payload: dict | None = None) -> dict:
    return run_stage(Stage.GENERATE_EMBEDDINGS, payload, self.request.id)


@celery_app.task(bind=True, name=Stage.PROCESS_VISION_QUEUE.value)
def process_vision_queue(self, payload: dict | None = None) -> dict:
    return run_stage(Stage.PROCESS_VISION_QUEUE, payload, self.request.id)


@celery_app.task(bind=True, name=Stage.RECONCILE_DOCUMENTS.value)
def reconcile_documents(self, payload: dict | None = None) -> dict:
    return run_stage(Stage.RECONCILE_DOCUMENTS, payload, self.request.id)


@celery_app.task(bind=True, name=Stage.PROCESS_JOB_QUEUE.value)
def process_batch_jobs_queue(self, payload: dict | None = None) -> dict:
    """
    Run one job queue cycle.

    Dispatch is synchronous, so this task blocks until the dispatched batch
    finishes (bounded by stage_invoke_timeout_seconds).
    """
    return run_stage(Stage.PROCESS_JOB_QUEUE, payload, self.request.id)


@celery_app.task(bind=True, name=Stage.RUN_MAINTENANCE.value)
def auto_maintenance(self, payload: dict | None = None) -> dict:
    return run_stage(Stage.RUN_MAINTENANCE, payload, self.request.id)
