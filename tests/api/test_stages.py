import pytest
from fastapi.testclient import TestClient
from unittest.mock import MagicMock
from uuid import uuid4

import httpx

from kb_pipeline.api.deps import get_pipeline_runner
from kb_pipeline.api.main import create_app
from kb_pipeline.application.pipeline_runner import PipelineRunner
from kb_pipeline.core.document_processing.models import StageResult
from kb_pipeline.core.stages import Stage


@pytest.fixture
def client():
    app = create_app()
    return TestClient(app)


@pytest.fixture
def mock_runner():
    runner = MagicMock(spec=PipelineRunner)
    runner.stages = [Stage.GENERATE_EMBEDDINGS, Stage.RECONCILE_DOCUMENTS]
    runner.handles.side_effect = lambda stage: stage in {s.value for s in runner.stages}
    return runner


def test_list_stages(client, mock_runner):
    client.app.dependency_overrides[get_pipeline_runner] = lambda: mock_runner

    response = client.get("/api/v1/stages")

    assert response.status_code == 200
    assert response.json() == {"stages": ["generate-embeddings", "reconcile-documents"]}


def test_run_stage_should_pass_camel_case_payload(client, mock_runner):
    document_id = str(uuid4())
    mock_runner.run.return_value = StageResult(processed=3, message="Embedded 3 chunks")
    client.app.dependency_overrides[get_pipeline_runner] = lambda: mock_runner

    response = client.post(
        "/api/v1/stages/generate-embeddings",
        json={"documentId": document_id, "batchSize": 10},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["processed"] == 3
    mock_runner.run.assert_awaited_once_with(
        "generate-embeddings", {"documentId": document_id, "batchSize": 10}
    )


def test_run_stage_without_body(client, mock_runner):
    mock_runner.run.return_value = StageResult()
    client.app.dependency_overrides[get_pipeline_runner] = lambda: mock_runner

    response = client.post("/api/v1/stages/reconcile-documents")

    assert response.status_code == 200
    mock_runner.run.assert_awaited_once_with("reconcile-documents", {})


def test_unknown_stage_returns_404(client, mock_runner):
    client.app.dependency_overrides[get_pipeline_runner] = lambda: mock_runner

    response = client.post("/api/v1/stages/no-such-stage", json={})

    assert response.status_code == 404
    mock_runner.run.assert_not_called()


def test_fatal_stage_error_returns_500(client, mock_runner):
    mock_runner.run.return_value = StageResult.fatal("Embedding API key not provided")
    client.app.dependency_overrides[get_pipeline_runner] = lambda: mock_runner

    response = client.post("/api/v1/stages/generate-embeddings", json={})

    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["success"] is False
    assert detail["error"] == "Embedding API key not provided"


@pytest.mark.asyncio
async def test_reconcile_against_real_runner(pipeline_runner, seed):
    app = create_app()
    app.dependency_overrides[get_pipeline_runner] = lambda: pipeline_runner
    await seed.document()

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        response = await client.post("/api/v1/stages/reconcile-documents", json={})

    assert response.status_code == 200
    assert response.json()["details"] == {"checked": 1, "advanced": 0}
