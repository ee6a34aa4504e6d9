"""Tests for the liveness and readiness endpoints."""

import pytest
from fastapi.testclient import TestClient

from api.deps import get_settings
from backend.main import create_app
from tests.fakes import build_settings


@pytest.mark.integration
def test_health_returns_ok(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok", "service": "program-builder-api"}


@pytest.mark.integration
def test_ready_when_oracle_key_present(client):
    response = client.get("/health/ready")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ready"
    assert body["checks"] == {"provider": "openai", "oracle": "ok"}


@pytest.mark.integration
@pytest.mark.parametrize(
    "overrides",
    [
        {"openai_api_key": None},
        {"oracle_provider": "anthropic", "anthropic_api_key": None},
    ],
)
def test_not_ready_without_oracle_key(overrides):
    settings = build_settings(**overrides)
    app = create_app(settings=settings)
    app.dependency_overrides[get_settings] = lambda: settings

    response = TestClient(app).get("/health/ready")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "not_ready"
    assert body["checks"]["oracle"] == "not_configured"
    assert body["checks"]["provider"] == settings.oracle_provider
