"""
Test suite for the Celery stage tasks and beat schedule.

Tasks are executed eagerly with ``Task.apply``; the runner and engine are
patched so no broker or database is needed.

System role: Verification of background stage execution
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kb_pipeline.core.document_processing.models import StageResult
from kb_pipeline.core.stages import Stage
from kb_pipeline.observability.correlation import get_correlation_id
from kb_pipeline.workers import celery_app
from kb_pipeline.workers.tasks import pipeline_stages

TASKS_PATH = "kb_pipeline.workers.tasks.pipeline_stages"


@pytest.fixture
def mock_runner():
    runner = MagicMock()
    runner.run = AsyncMock(return_value=StageResult(processed=2, message="done"))
    runner.aclose = AsyncMock()
    return runner


@pytest.fixture
def mock_engine():
    engine = MagicMock()
    engine.dispose = AsyncMock()
    return engine


@pytest.fixture
def patched_worker(mock_runner, mock_engine):
    with patch(f"{TASKS_PATH}.create_task_engine", return_value=mock_engine), patch(
        f"{TASKS_PATH}.create_session_factory"
    ), patch(f"{TASKS_PATH}.PipelineRunner", return_value=mock_runner) as runner_cls:
        yield runner_cls


class TestTaskRegistry:
    """Test suite for task names and the beat schedule."""

    @pytest.mark.parametrize(
        "stage",
        [
            Stage.INGEST_DOCUMENT,
            Stage.SPLIT_DOCUMENT,
            Stage.GENERATE_EMBEDDINGS,
            Stage.PROCESS_VISION_QUEUE,
            Stage.RECONCILE_DOCUMENTS,
            Stage.PROCESS_JOB_QUEUE,
            Stage.RUN_MAINTENANCE,
        ],
    )
    def test_every_stage_has_a_task(self, stage: Stage) -> None:
        assert stage.value in celery_app.tasks

    def test_beat_schedule_covers_periodic_sweeps(self) -> None:
        scheduled = {entry["task"] for entry in celery_app.conf.beat_schedule.values()}

        assert scheduled == {
            "process-vision-queue",
            "generate-embeddings",
            "process-batch-jobs-queue",
            "reconcile-documents",
            "auto-maintenance",
        }


class TestRunStage:
    """Test suite for task execution."""

    def test_task_should_return_summary_json(self, patched_worker, mock_runner, mock_engine) -> None:
        result = pipeline_stages.generate_embeddings.apply(
            args=({"documentId": "d-1"},), task_id="task-123"
        ).get()

        assert result["success"] is True
        assert result["processed"] == 2
        mock_runner.run.assert_awaited_once_with(Stage.GENERATE_EMBEDDINGS, {"documentId": "d-1"})
        mock_runner.aclose.assert_awaited_once()
        mock_engine.dispose.assert_awaited_once()

    def test_task_without_payload_should_send_empty_request(self, patched_worker, mock_runner) -> None:
        pipeline_stages.auto_maintenance.apply().get()

        mock_runner.run.assert_awaited_once_with(Stage.RUN_MAINTENANCE, {})

    def test_cleanup_should_run_when_stage_raises(self, patched_worker, mock_runner, mock_engine) -> None:
        mock_runner.run.side_effect = RuntimeError("database unavailable")

        with pytest.raises(RuntimeError):
            pipeline_stages.run_stage(Stage.RECONCILE_DOCUMENTS, None, "task-9")

        mock_runner.aclose.assert_awaited_once()
        mock_engine.dispose.assert_awaited_once()
        assert get_correlation_id() == ""
