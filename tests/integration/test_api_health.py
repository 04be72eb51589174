"""Integration tests for Health check endpoints"""
import pytest
from fastapi.testclient import TestClient


@pytest.mark.integration
class TestHealthEndpoints:
    """Test health check endpoints"""

    def test_root_endpoint(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "brokerage-workflow"
        assert data["status"] == "running"
        assert "timestamp" in data

    def test_health_endpoint(self, client: TestClient) -> None:
        """Test detailed health endpoint"""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["orders"] == 0
        assert data["pending_tasks"] == 0
        assert data["worker_running"] is True
        assert data["database"] is False
        assert data["redis"] is False

    def test_health_without_worker(self, idle_client: TestClient) -> None:
        data = idle_client.get("/health").json()
        assert data["worker_running"] is False
