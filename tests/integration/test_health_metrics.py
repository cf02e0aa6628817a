"""Integration tests for /health, /healthz and /metrics endpoints."""

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from backend.chatbot.api.routes.health import check_db, check_redis
from backend.chatbot.config import Settings
from backend.chatbot.main import app
from backend.chatbot.utils.metrics import session_close_total, template_publish_total


@pytest.fixture
def client() -> TestClient:
    """Create test client."""
    return TestClient(app)


class TestHealthEndpoint:
    """Test /health and /healthz endpoints."""

    def test_health_is_always_ok(self, client: TestClient) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    @patch("backend.chatbot.api.routes.health.check_db")
    @patch("backend.chatbot.api.routes.health.check_redis")
    def test_healthz_returns_200_when_all_ok(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        """Test /healthz returns 200 when DB and Redis are healthy."""
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["components"] == {"db": "ok", "redis": "ok"}

    @patch("backend.chatbot.api.routes.health.check_db")
    @patch("backend.chatbot.api.routes.health.check_redis")
    def test_healthz_returns_503_when_db_fails(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        mock_check_db.return_value = (False, "connection refused")
        mock_check_redis.return_value = (True, "ok")

        response = client.get("/healthz")

        assert response.status_code == 503
        data = response.json()
        assert data["status"] == "degraded"
        assert data["components"]["db"] == "connection refused"

    @patch("backend.chatbot.api.routes.health.check_db")
    @patch("backend.chatbot.api.routes.health.check_redis")
    def test_healthz_returns_503_when_redis_fails(
        self,
        mock_check_redis: MagicMock,
        mock_check_db: MagicMock,
        client: TestClient,
    ) -> None:
        mock_check_db.return_value = (True, "ok")
        mock_check_redis.return_value = (False, "timeout")

        response = client.get("/healthz")

        assert response.status_code == 503
        assert response.json()["components"]["redis"] == "timeout"

    @pytest.mark.asyncio
    async def test_redis_check_skipped_when_unconfigured(self) -> None:
        assert await check_redis(Settings(redis_url=None)) == (True, "not_configured")

    @pytest.mark.asyncio
    async def test_db_check_requires_url(self) -> None:
        assert await check_db(Settings(database_url=None)) == (False, "not_configured")


class TestMetricsEndpoint:
    """Test /metrics endpoint."""

    def test_metrics_includes_workflow_counters(self, client: TestClient) -> None:
        template_publish_total.labels(outcome="published").inc()
        session_close_total.labels(outcome="closed").inc()

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert "template_publish_total" in response.text
        assert "session_close_total" in response.text
        assert "jobs_enqueued_total" in response.text


def test_root_returns_api_info(client: TestClient) -> None:
    response = client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Chatbot API", "version": "0.1.0"}
