"""
Unit tests for the FastAPI ASGI application — REST endpoints.

Tests the /trigger endpoint for a manual reconciliation batch,
as well as /health, /ready, and /info probes.

Uses FastAPI's TestClient with a stubbed batch and scheduler state.
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from railway import ErrorCode, FailureDescription, Result

from cert_reconciler import asgi
from cert_reconciler.batch import BatchReport
from cert_reconciler.domain.models import ReconcileOutcome


@pytest.fixture(autouse=True)
def _reset_asgi_state() -> None:
    """Reset ASGI module-level state before each test."""
    asgi._scheduler_thread = None
    asgi._scheduler_started = False
    asgi._scheduler_ready = False
    asgi._error_message = None
    asgi._batch_fn = None


@pytest.fixture()
def client() -> TestClient:
    """Create a TestClient without running the lifespan (no real startup)."""
    return TestClient(asgi.app, raise_server_exceptions=False)


# ─────────────────────── POST /trigger ───────────────────────


class TestTriggerEndpoint:
    """Tests for the POST /trigger endpoint — manual batch execution."""

    def test_trigger_returns_503_when_not_initialized(self, client: TestClient) -> None:
        """
        GIVEN the application has not completed startup (_batch_fn is None)
        WHEN POST /trigger is called
        THEN it returns 503 with an unavailable status.
        """
        response = client.post("/trigger")

        assert response.status_code == 503
        body = response.json()
        assert body["status"] == "unavailable"
        assert "not initialized" in body["reason"]

    def test_trigger_returns_200_when_every_certificate_reconciled(
        self, client: TestClient,
    ) -> None:
        asgi._batch_fn = lambda: Result.success(
            BatchReport(
                outcomes={
                    "default/site": ReconcileOutcome.ISSUED,
                    "default/api": ReconcileOutcome.UP_TO_DATE,
                }
            )
        )

        response = client.post("/trigger")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert body["summary"]["issued"] == 1
        assert body["summary"]["up_to_date"] == 1
        assert body["outcomes"] == {"default/site": "issued", "default/api": "up-to-date"}
        assert "failures" not in body

    def test_trigger_returns_207_with_failures(self, client: TestClient) -> None:
        """
        GIVEN one certificate reconciled and one hit a hard error
        WHEN POST /trigger is called
        THEN it returns 207 listing the failure with its code.
        """
        asgi._batch_fn = lambda: Result.success(
            BatchReport(
                outcomes={"default/site": ReconcileOutcome.UP_TO_DATE},
                failures={
                    "default/api": FailureDescription(
                        ErrorCode.ISSUER_NOT_READY,
                        "issuer 'default/prod-ca' for certificate 'api' not ready",
                    )
                },
            )
        )

        response = client.post("/trigger")

        assert response.status_code == 207
        body = response.json()
        assert body["status"] == "partial"
        assert body["summary"]["failed"] == 1
        assert body["failures"]["default/api"]["error_code"] == "ISSUER_NOT_READY"
        assert "not ready" in body["failures"]["default/api"]["message"]

    def test_trigger_returns_500_on_batch_failure(self, client: TestClient) -> None:
        asgi._batch_fn = lambda: Result.failure(ErrorCode.TECHNICAL_ERROR, "loop crashed")

        response = client.post("/trigger")

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "failed"
        assert body["error_code"] == "TECHNICAL_ERROR"
        assert "loop crashed" in body["message"]

    def test_trigger_returns_500_on_unexpected_exception(self, client: TestClient) -> None:
        def _exploding_batch() -> Result[BatchReport]:
            raise RuntimeError("Unexpected kaboom")

        asgi._batch_fn = _exploding_batch

        response = client.post("/trigger")

        assert response.status_code == 500
        body = response.json()
        assert body["status"] == "error"
        assert "kaboom" in body["error"]


# ─────────────────────── GET /health ───────────────────────


class TestHealthEndpoint:
    """Tests for the GET /health liveness probe."""

    def test_health_returns_503_when_no_scheduler_thread(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 503

    def test_health_returns_503_on_error(self, client: TestClient) -> None:
        asgi._error_message = "Config broken"

        response = client.get("/health")

        assert response.status_code == 503
        assert "Config broken" in response.json()["error"]

    def test_health_returns_200_with_alive_thread(self, client: TestClient) -> None:
        mock_thread = MagicMock()
        mock_thread.is_alive.return_value = True
        asgi._scheduler_thread = mock_thread

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


# ─────────────────────── GET /ready ───────────────────────


class TestReadyEndpoint:
    """Tests for the GET /ready readiness probe."""

    def test_ready_returns_202_when_not_started(self, client: TestClient) -> None:
        response = client.get("/ready")
        assert response.status_code == 202

    def test_ready_returns_503_after_error(self, client: TestClient) -> None:
        asgi._scheduler_started = True
        asgi._scheduler_ready = True
        asgi._error_message = "Scheduler error: boom"

        response = client.get("/ready")

        assert response.status_code == 503

    def test_ready_returns_200_when_started(self, client: TestClient) -> None:
        mock_thread = MagicMock()
        mock_thread.is_alive.return_value = True
        asgi._scheduler_thread = mock_thread
        asgi._scheduler_started = True
        asgi._scheduler_ready = True

        response = client.get("/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"


# ─────────────────────── GET /info ───────────────────────


class TestInfoEndpoint:
    def test_info_returns_metadata(self, client: TestClient) -> None:
        response = client.get("/info")

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "cert-reconciler"
        assert body["version"] == "0.1.0"
        assert body["has_error"] is False
