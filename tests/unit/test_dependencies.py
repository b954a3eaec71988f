"""
Unit tests for FastAPI dependency injection.
"""

from __future__ import annotations

from unittest.mock import Mock

import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine

from sync_beds24.db.engine import engine as shared_engine
from sync_beds24.dependencies import get_db_engine


@pytest.mark.unit
def test_get_db_engine_yields_shared_engine() -> None:
    """Test that get_db_engine yields the process-wide engine."""
    engine = next(get_db_engine())

    assert isinstance(engine, Engine)
    assert engine is shared_engine


@pytest.mark.unit
def test_dependency_injection_can_be_overridden() -> None:
    """Test that routes receive an overridden engine."""
    app = FastAPI()

    @app.get("/engine")
    def engine_endpoint(engine: Engine = Depends(get_db_engine)) -> dict[str, str]:
        return {"engine_name": engine.name}

    mock_engine = Mock(spec=Engine)
    mock_engine.name = "mock_engine"
    app.dependency_overrides[get_db_engine] = lambda: mock_engine

    response = TestClient(app).get("/engine")

    assert response.status_code == 200
    assert response.json() == {"engine_name": "mock_engine"}
