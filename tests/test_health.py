"""Tests for the /health endpoint."""

from fastapi.testclient import TestClient

from companion_engine import __version__


def test_health_returns_ok(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "connected"


def test_health_reports_version(client: TestClient) -> None:
    assert client.get("/health").json()["version"] == __version__
