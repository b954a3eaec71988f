"""
Unit tests for liveness and readiness checks.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from sync_beds24.errors import ConfigurationError
from sync_beds24.main import app

client = TestClient(app)


@pytest.mark.unit
def test_health_endpoint_returns_ok() -> None:
    """Test that /health returns 200 with status ok."""
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


@pytest.mark.unit
@patch("sync_beds24.routes.health.check_engine_health", return_value=True)
def test_ready_when_database_and_key_are_available(mock_health) -> None:
    """Test that /ready returns 200 when both checks pass."""
    response = client.get("/ready")

    assert response.status_code == 200
    assert response.json() == {
        "status": "ready",
        "checks": {"database": "ok", "credentials": "ok"},
    }


@pytest.mark.unit
@patch("sync_beds24.routes.health.check_engine_health", return_value=False)
def test_not_ready_when_database_is_down(mock_health) -> None:
    """Test that /ready returns 503 when the database does not answer."""
    response = client.get("/ready")

    assert response.status_code == 503
    assert response.json()["checks"]["database"] == "failed"


@pytest.mark.unit
@patch("sync_beds24.routes.health.check_engine_health", return_value=True)
@patch(
    "sync_beds24.routes.health.crypto.encrypt_token",
    side_effect=ConfigurationError("CREDENTIALS_ENCRYPTION_KEY is not set"),
)
def test_not_ready_without_encryption_key(mock_encrypt, mock_health) -> None:
    """Test that /ready returns 503 when stored credentials cannot be decrypted."""
    response = client.get("/ready")

    assert response.status_code == 503
    assert response.json()["checks"]["credentials"] == "failed"


@pytest.mark.unit
def test_request_id_is_echoed() -> None:
    """Test that the app echoes an incoming X-Request-ID."""
    response = client.get("/health", headers={"X-Request-ID": "req-123"})

    assert response.headers["X-Request-ID"] == "req-123"
