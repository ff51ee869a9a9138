"""
Processing job queue service.

One invocation runs five steps in order:
1. Stuck reset: PROCESSING jobs idle past the threshold go back to PENDING
   with retry_count + 1, or to FAILED once retries are exhausted
2. Self-healing: old FAILED jobs are re-queued with retry_count = 0
3. Aggregation sweep: PROCESSING documents whose jobs all completed are
   handed to aggregate-document-batches once, and again only if still
   PROCESSING after the retry window
4. Orphan recovery: INGESTED documents that never got jobs are re-split,
   or failed after too many attempts
5. Dispatch: exactly one PENDING job is claimed and run synchronously

Dependencies: sqlalchemy, kb_pipeline.boundary.providers, kb_pipeline.core
System role: "process-batch-jobs-queue" pipeline stage
"""

import logging
from datetime import timedelta
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from kb_pipeline.boundary.db.base import utcnow
from kb_pipeline.boundary.db.CRUD.document_crud import document_crud
from kb_pipeline.boundary.db.CRUD.processing_job_crud import processing_job_crud
from kb_pipeline.boundary.db.models.processing_job_model import ProcessingJobModel
from kb_pipeline.boundary.providers.stage_invoker import StageInvoker
from kb_pipeline.configs.pipeline import PipelineSettings
from kb_pipeline.core.document_processing.database.document_status_updater import (
    DocumentStatusUpdater,
    truncate_error,
)
from kb_pipeline.core.document_processing.models import StageResult
from kb_pipeline.core.event_dispatcher import EventTriggerDispatcher
from kb_pipeline.core.exceptions import StageInvocationError
from kb_pipeline.core.stages import Stage
from kb_pipeline.core.state_machine import ProcessingJobStatus

logger = logging.getLogger(__name__)

_PROCESSING = frozenset({ProcessingJobStatus.PROCESSING.value})
_FAILED = frozenset({ProcessingJobStatus.FAILED.value})


class JobQueueService:
    """Recover, heal and dispatch batch processing jobs."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        invoker: StageInvoker,
        dispatcher: EventTriggerDispatcher,
        settings: PipelineSettings,
    ) -> None:
        """
        Initialize job queue service.

        Args:
            session_factory: Factory for per-unit-of-work sessions
            invoker: Synchronous stage invocation (split, batch processing)
            dispatcher: Fire-and-forget triggers (aggregation)
            settings: Thresholds and self-healing switches
        """
        self._session_factory = session_factory
        self._invoker = invoker
        self._dispatcher = dispatcher
        self._settings = settings

    async def process_queue(self, request: Any = None) -> StageResult:
        """
        Run one queue cycle.

        Args:
            request: Unused; accepted for a uniform stage signature

        Returns:
            StageResult: Counts from every step plus the dispatched job
        """
        result = StageResult()
        stuck_reset, stuck_failed = await self.reset_stuck_jobs()
        healed = await self.self_heal() if self._settings.self_heal_enabled else 0
        aggregations = await self._sweep_aggregations()
        orphans = await self._recover_orphans(result)
        dispatched = await self._dispatch_next(result)

        result.details = {
            "stuck_reset": stuck_reset,
            "stuck_failed": stuck_failed,
            "self_healed": healed,
            "aggregations_triggered": aggregations,
            **orphans,
            "dispatched": dispatched,
        }
        result.message = (
            f"Reset {stuck_reset} stuck ({stuck_failed} failed), healed {healed}, "
            f"aggregations {aggregations}, orphans re-triggered {orphans['orphans_retriggered']}, "
            f"dispatched {dispatched['jobId'] if dispatched else 'none'}"
        )
        logger.info(f"{__name__}:process_queue - {result.message}")
        return result

    async def reset_stuck_jobs(self) -> tuple[int, int]:
        """
        Return stuck PROCESSING jobs to PENDING, failing them once retries run out.

        Returns:
            tuple[int, int]: (jobs returned to PENDING, jobs failed)
        """
        max_retries = self._settings.job_max_retries
        cutoff = utcnow() - timedelta(minutes=self._settings.job_stuck_threshold_minutes)
        reset = failed = 0

        async with self._session_factory() as session:
            try:
                for job in await processing_job_crud.get_stuck(session, cutoff):
                    retry_count = job.retry_count + 1
                    # retry_count guard makes a concurrent sweep a no-op
                    criteria = (
                        ProcessingJobModel.id == job.id,
                        ProcessingJobModel.retry_count == job.retry_count,
                    )
                    if retry_count > max_retries:
                        failed += await processing_job_crud.transition_where(
                            session,
                            ProcessingJobStatus.FAILED,
                            *criteria,
                            sources=_PROCESSING,
                            retry_count=retry_count,
                            error_message=f"Failed after {max_retries} retries (timeout/stuck)",
                            completed_at=utcnow(),
                        )
                        logger.warning(
                            f"{__name__}:reset_stuck - Job failed after {max_retries} retries",
                            extra={"job_id": str(job.id), "document_id": str(job.document_id)},
                        )
                    else:
                        reset += await processing_job_crud.transition_where(
                            session,
                            ProcessingJobStatus.PENDING,
                            *criteria,
                            retry=True,
                            sources=_PROCESSING,
                            retry_count=retry_count,
                        )
                        logger.warning(
                            f"{__name__}:reset_stuck - Job reset to pending (retry {retry_count})",
                            extra={"job_id": str(job.id), "document_id": str(job.document_id)},
                        )
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:reset_stuck - {type(e).__name__}: {e}")
                await session.rollback()
                raise
        return reset, failed

    def _is_permanent(self, error_message: str | None) -> bool:
        if not error_message:
            return False
        message = error_message.lower()
        return any(p.lower() in message for p in self._settings.self_heal_skip_patterns if p)

    async def self_heal(self) -> int:
        """Re-queue old FAILED jobs unless their error matches a skip pattern."""
        cutoff = utcnow() - timedelta(minutes=self._settings.failed_recovery_threshold_minutes)
        healed = 0

        async with self._session_factory() as session:
            try:
                for job in await processing_job_crud.get_failed_before(session, cutoff):
                    if self._is_permanent(job.error_message):
                        logger.info(
                            f"{__name__}:self_heal - Skipping permanent failure",
                            extra={"job_id": str(job.id), "error_message": job.error_message},
                        )
                        continue
                    if await processing_job_crud.transition_where(
                        session,
                        ProcessingJobStatus.PENDING,
                        ProcessingJobModel.id == job.id,
                        retry=True,
                        sources=_FAILED,
                        retry_count=0,
                        error_message=None,
                        completed_at=None,
                    ):
                        healed += 1
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:self_heal - {type(e).__name__}: {e}")
                await session.rollback()
                raise

        if healed:
            logger.info(f"{__name__}:self_heal - Re-queued {healed} failed jobs")
        return healed

    async def _sweep_aggregations(self) -> int:
        retry_before = utcnow() - timedelta(minutes=self._settings.aggregation_retry_minutes)
        triggered: list[UUID] = []

        async with self._session_factory() as session:
            try:
                documents = await document_crud.find_unaggregated_complete(session, retry_before)
                for document in documents:
                    if await document_crud.mark_aggregated(session, document.id, retry_before):
                        triggered.append(document.id)
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:_sweep_aggregations - {type(e).__name__}: {e}")
                await session.rollback()
                raise

        for document_id in triggered:
            self._dispatcher.fire(Stage.AGGREGATE_BATCHES, {"documentId": str(document_id)})
        return len(triggered)

    async def _recover_orphans(self, result: StageResult) -> dict[str, int]:
        cutoff = utcnow() - timedelta(minutes=self._settings.orphan_threshold_minutes)
        counts = {"orphans_retriggered": 0, "orphans_failed": 0, "orphan_errors": 0}

        async with self._session_factory() as session:
            orphans = await document_crud.find_orphaned_ingested(
                session, cutoff, self._settings.orphan_recovery_limit
            )
            orphans = [(d.id, d.recovery_attempts) for d in orphans]

        for document_id, attempts in orphans:
            async with self._session_factory() as session:
                if attempts >= self._settings.orphan_max_attempts:
                    reason = (
                        f"No processing jobs created after {attempts} recovery attempts"
                    )
                    await DocumentStatusUpdater(session).mark_failed(document_id, reason)
                    counts["orphans_failed"] += 1
                    continue

                try:
                    await document_crud.increment_recovery_attempts(session, document_id)
                    await session.commit()
                except Exception as e:
                    logger.error(f"{__name__}:recover_orphans - {type(e).__name__}: {e}")
                    await session.rollback()
                    raise

            logger.info(
                f"{__name__}:recover_orphans - Re-triggering split (attempt {attempts + 1})",
                extra={"document_id": str(document_id)},
            )
            try:
                await self._invoker.invoke(
                    Stage.SPLIT_DOCUMENT, {"documentId": str(document_id)}
                )
                counts["orphans_retriggered"] += 1
            except StageInvocationError as e:
                logger.error(
                    f"{__name__}:recover_orphans - {e.message}",
                    extra={"document_id": str(document_id)},
                )
                counts["orphan_errors"] += 1
                result.record_failure(document_id, e.message, self._settings.error_detail_limit)
        return counts

    async def _dispatch_next(self, result: StageResult) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            job = await processing_job_crud.get_next_pending(session)
            if job is None:
                return None
            job_id, document_id, batch_index = job.id, job.document_id, job.batch_index

            try:
                claimed = await processing_job_crud.transition_by_id(
                    session, job_id, ProcessingJobStatus.PROCESSING
                )
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:dispatch - {type(e).__name__}: {e}")
                await session.rollback()
                raise
        if not claimed:
            logger.info(f"{__name__}:dispatch - Job {job_id} claimed elsewhere")
            return None

        payload = {
            "jobId": str(job_id),
            "documentId": str(document_id),
            "batchIndex": batch_index,
        }
        logger.info(f"{__name__}:dispatch - Dispatching batch {batch_index}", extra=payload)

        try:
            await self._invoker.invoke(Stage.PROCESS_BATCH, payload)
        except StageInvocationError as e:
            await self._finalize(job_id, ProcessingJobStatus.FAILED, truncate_error(e.message))
            result.record_failure(job_id, e.message, self._settings.error_detail_limit)
            return {**payload, "status": ProcessingJobStatus.FAILED.value}

        # The batch step may already have finalized the job itself
        await self._finalize(job_id, ProcessingJobStatus.COMPLETED)
        result.processed += 1
        return {**payload, "status": ProcessingJobStatus.COMPLETED.value}

    async def _finalize(
        self,
        job_id,
        target: ProcessingJobStatus,
        error_message: str | None = None,
    ) -> bool:
        async with self._session_factory() as session:
            try:
                moved = await processing_job_crud.transition_where(
                    session,
                    target,
                    ProcessingJobModel.id == job_id,
                    sources=_PROCESSING,
                    error_message=error_message,
                    completed_at=utcnow(),
                )
                await session.commit()
            except Exception as e:
                logger.error(f"{__name__}:finalize - {type(e).__name__}: {e}")
                await session.rollback()
                raise
        return moved > 0
