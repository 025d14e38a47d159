"""
Basic tests for the AgroClim Risk API.

This module contains tests for the root, health and documentation
endpoints.
"""

import pytest
from fastapi.testclient import TestClient

from agroclim.dependencies.services import get_services
from agroclim.main import app


class StubCache:
    def __init__(self, healthy: bool):
        self.healthy = healthy

    async def health_check(self) -> bool:
        return self.healthy


class StubServices:
    def __init__(self, healthy: bool = True):
        self.cache = StubCache(healthy)


@pytest.fixture
def client():
    """Test client fixture."""
    yield TestClient(app)
    app.dependency_overrides.clear()


def test_root_endpoint(client):
    """Test the root endpoint returns correct response."""
    response = client.get("/")
    assert response.status_code == 200
    data = response.json()
    assert "message" in data
    assert "version" in data
    assert "docs" in data
    assert data["analyze"] == "/api/v1/weather/analyze"


def test_health_endpoint(client):
    """Test the health check endpoint."""
    app.dependency_overrides[get_services] = lambda: StubServices(healthy=True)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "cache": "ok"}


def test_health_endpoint_degraded(client):
    """Test the health check reports an unreachable cache store."""
    app.dependency_overrides[get_services] = lambda: StubServices(healthy=False)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "degraded"


def test_openapi_docs_available(client):
    """Test that OpenAPI documentation is available."""
    response = client.get("/docs")
    assert response.status_code == 200

    response = client.get("/redoc")
    assert response.status_code == 200

    # OpenAPI JSON is available at /api/v1/openapi.json
    response = client.get("/api/v1/openapi.json")
    assert response.status_code == 200

    data = response.json()
    assert "openapi" in data
    assert "/api/v1/weather/analyze" in data["paths"]
    assert "/api/v1/weather/stations" in data["paths"]
