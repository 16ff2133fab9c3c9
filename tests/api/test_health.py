"""Tests for health check endpoints."""

from fastapi.testclient import TestClient


def test_health_check(client: TestClient) -> None:
    """Test health endpoint returns healthy status."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "storefront-api"
    assert "version" in data


def test_readiness_check(client: TestClient) -> None:
    """Test readiness endpoint returns ready status."""
    response = client.get("/ready")
    assert response.status_code == 200
    assert response.json() == {"status": "success", "data": {"status": "ready"}}


def test_unknown_route_is_fail_envelope(client: TestClient) -> None:
    """Framework 404s use the same envelope as domain errors."""
    response = client.get("/nowhere")
    assert response.status_code == 404
    assert response.json()["status"] == "fail"
