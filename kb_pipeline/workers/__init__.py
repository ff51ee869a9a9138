"""
Celery workers module.

Background execution of pipeline stages plus the beat schedule that drives
the periodic sweeps (vision queue, embeddings, job queue, reconciliation,
maintenance).

Dependencies: celery, kb_pipeline.configs
System role: Background task processing
"""

from celery import Celery
from celery.signals import setup_logging

from kb_pipeline.configs import get_settings
from kb_pipeline.core.stages import Stage
from kb_pipeline.observability.logger import configure_logging

settings = get_settings()
celery_config = settings.celery

celery_app = Celery(
    "kb_pipeline",
    broker=celery_config.broker_url,
    backend=celery_config.result_backend_url,
    include=["kb_pipeline.workers.tasks.pipeline_stages"],
)

celery_app.conf.update(
    task_serializer=celery_config.task_serializer,
    result_serializer=celery_config.result_serializer,
    accept_content=celery_config.accept_content,
    timezone=celery_config.timezone,
)

celery_app.conf.beat_schedule = {
    "vision-queue-sweep": {
        "task": Stage.PROCESS_VISION_QUEUE.value,
        "schedule": float(celery_config.vision_queue_interval),
    },
    "embedding-sweep": {
        "task": Stage.GENERATE_EMBEDDINGS.value,
        "schedule": float(celery_config.embeddings_interval),
    },
    "job-queue-sweep": {
        "task": Stage.PROCESS_JOB_QUEUE.value,
        "schedule": float(celery_config.job_queue_interval),
    },
    "reconciliation-sweep": {
        "task": Stage.RECONCILE_DOCUMENTS.value,
        "schedule": float(celery_config.reconcile_interval),
    },
    "maintenance-sweep": {
        "task": Stage.RUN_MAINTENANCE.value,
        "schedule": float(celery_config.maintenance_interval),
    },
}


@setup_logging.connect
def _configure_worker_logging(**kwargs) -> None:
    configure_logging(settings.log_level)
