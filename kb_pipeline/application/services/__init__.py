"""
Pipeline stage services.

Exports one service per stage run by this package.
"""

from kb_pipeline.application.services.batch_split_service import BatchSplitService
from kb_pipeline.application.services.embedding_service import EmbeddingStageService
from kb_pipeline.application.services.ingestion_service import IngestionService
from kb_pipeline.application.services.job_queue_service import JobQueueService
from kb_pipeline.application.services.maintenance_service import MaintenanceService
from kb_pipeline.application.services.reconciliation_service import ReconciliationService
from kb_pipeline.application.services.vision_queue_service import VisionQueueService

__all__ = [
    "BatchSplitService",
    "EmbeddingStageService",
    "IngestionService",
    "JobQueueService",
    "MaintenanceService",
    "ReconciliationService",
    "VisionQueueService",
]
