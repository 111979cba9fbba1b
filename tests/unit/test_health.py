"""Tests for health probes."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture
def client():
    return TestClient(app)


def patch_checks(db_ok, redis_ok):
    return (
        patch("app.api.routes.health.check_db_health", AsyncMock(return_value=db_ok)),
        patch("app.api.routes.health.check_redis_health", AsyncMock(return_value=redis_ok)),
    )


class TestHealth:

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_live(self, client):
        response = client.get("/health/live")

        assert response.status_code == 200
        assert response.json()["status"] == "alive"

    def test_ready(self, client):
        db, redis = patch_checks(True, True)
        with db, redis:
            response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_ready_without_redis_is_degraded(self, client):
        """Test conversation state falls back, so the service stays ready."""
        db, redis = patch_checks(True, False)
        with db, redis:
            response = client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
        assert response.json()["checks"]["redis"] == "failed"

    def test_not_ready_without_database(self, client):
        db, redis = patch_checks(False, True)
        with db, redis:
            response = client.get("/health/ready")

        assert response.status_code == 503
        assert response.json()["status"] == "not_ready"
