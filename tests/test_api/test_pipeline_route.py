"""Tests for the pipeline invocation endpoint."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from regwatch.api.app import create_app
from regwatch.api import dependencies
from regwatch.api.dependencies import get_orchestrator
from regwatch.pipeline.scheduler import SourceRunState
from regwatch.pipeline.schemas import PipelineResult, SourceRunResult
from regwatch.storage.database import Database


def _result() -> PipelineResult:
    return PipelineResult(
        sources=[
            SourceRunResult(
                source_id="fda_recalls_rss",
                result_key="FDA_US",
                state=SourceRunState.SUCCEEDED,
                inserted=2,
            ),
            SourceRunResult(
                source_id="fsis_recalls",
                result_key="USDA_US",
                state=SourceRunState.FAILED,
                error="ClientError: HTTP 403",
            ),
        ],
        timestamp=datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def mock_orchestrator():
    orchestrator = MagicMock()
    orchestrator.run = AsyncMock(return_value=_result())
    return orchestrator


@pytest.fixture
def client(mock_orchestrator):
    app = create_app()
    app.dependency_overrides[get_orchestrator] = lambda: mock_orchestrator

    with TestClient(app) as c:
        yield c


class TestRunPipeline:
    def test_success_body(self, client):
        response = client.post("/pipeline/run", json={})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "totalAlertsProcessed": 2,
            "results": {"FDA_US": 2, "USDA_US": 0},
            "timestamp": "2026-03-10T12:00:00+00:00",
        }

    def test_no_body(self, client, mock_orchestrator):
        response = client.post("/pipeline/run")

        assert response.status_code == 200
        request = mock_orchestrator.run.call_args[0][0]
        assert request.force_refresh is False
        assert request.test_mode is False

    def test_options_forwarded(self, client, mock_orchestrator):
        client.post(
            "/pipeline/run",
            json={
                "action": "fetch",
                "region": "US",
                "agency": "FDA",
                "force_refresh": True,
                "test_mode": True,
            },
        )

        request = mock_orchestrator.run.call_args[0][0]
        assert (request.action, request.region, request.agency) == ("fetch", "US", "FDA")
        assert request.force_refresh is True
        assert request.test_mode is True

    def test_invocation_failure(self, client, mock_orchestrator):
        mock_orchestrator.run.side_effect = RuntimeError("registry unavailable")

        response = client.post("/pipeline/run", json={})

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "registry unavailable"
        assert "timestamp" in data

    def test_unreachable_store(self, monkeypatch):
        async def refuse(self):
            raise OSError("connection refused")

        monkeypatch.setattr(Database, "connect", refuse)
        monkeypatch.setattr(dependencies, "_database", None)
        monkeypatch.setattr(dependencies, "_orchestrator", None)

        with TestClient(create_app()) as client:
            response = client.post("/pipeline/run", json={})

        assert response.status_code == 500
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "connection refused"
        assert "timestamp" in data

    def test_invalid_body(self, client):
        response = client.post("/pipeline/run", json={"force_refresh": "sometimes"})
        assert response.status_code == 422


class TestMiddleware:
    def test_request_id_generated(self, client):
        response = client.post("/pipeline/run", json={})
        assert response.headers["X-Request-ID"]

    def test_request_id_propagated(self, client):
        response = client.post(
            "/pipeline/run", json={}, headers={"X-Request-ID": "req-123"}
        )
        assert response.headers["X-Request-ID"] == "req-123"

    def test_root(self, client):
        data = client.get("/").json()
        assert data["service"] == "Regwatch API"
        assert data["docs"] == "/docs"
