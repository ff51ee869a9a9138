"""
Pipeline stage names.

Every stage is addressable by name: Celery task names, the HTTP stage
endpoint, and the event dispatcher all use these values.

Dependencies: None
System role: Shared vocabulary for stage chaining
"""

import enum


class Stage(str, enum.Enum):
    """Stages the pipeline runs or triggers."""

    # Stages implemented in this package
    INGEST_DOCUMENT = "ingest-document"
    SPLIT_DOCUMENT = "split-document-into-batches"
    GENERATE_EMBEDDINGS = "generate-embeddings"
    PROCESS_VISION_QUEUE = "process-vision-queue"
    RECONCILE_DOCUMENTS = "reconcile-documents"
    PROCESS_JOB_QUEUE = "process-batch-jobs-queue"
    RUN_MAINTENANCE = "auto-maintenance"

    # Downstream consumers owned by other services
    PROCESS_BATCH = "process-document-batch"
    AGGREGATE_BATCHES = "aggregate-document-batches"
    ASSIGN_BENCHMARK_CHUNKS = "assign-benchmark-chunks"
