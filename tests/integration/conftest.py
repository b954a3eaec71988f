"""
Fixtures for integration tests against a real PostgreSQL database.

Tests are skipped when DATABASE_URL does not point at a reachable server.
The beds24 schema is created from the ORM models once per session.
"""

from __future__ import annotations

import uuid
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.schema import CreateSchema

from sync_beds24.config import SCHEMA
from sync_beds24.db.engine import check_engine_health, engine as shared_engine
from sync_beds24.db.writers.connections import insert_connection
from sync_beds24.models import (  # noqa: F401  registers every table on Base.metadata
    audit,
    bookings,
    connections,
    inventory,
    properties,
    sync_logs,
    sync_state,
)
from sync_beds24.models.base import Base


@pytest.fixture(scope="session")
def db_engine() -> Engine:
    if not check_engine_health():
        pytest.skip("PostgreSQL is not reachable at DATABASE_URL")

    with shared_engine.begin() as conn:
        conn.execute(CreateSchema(SCHEMA, if_not_exists=True))
    Base.metadata.create_all(shared_engine)
    return shared_engine


@pytest.fixture
def hotel_id() -> str:
    return f"hotel-{uuid.uuid4().hex[:8]}"


@pytest.fixture
def connection_id(db_engine: Engine, hotel_id: str) -> Generator[UUID, None, None]:
    """
    Create a connection for the test and remove it, with everything it owns, afterwards.
    """
    with db_engine.begin() as conn:
        new_id = insert_connection(conn, hotel_id)

    yield new_id

    with db_engine.begin() as conn:
        conn.execute(
            text("DELETE FROM beds24.sync_state WHERE hotel_id = :hotel_id"), {"hotel_id": hotel_id}
        )
        conn.execute(
            text("DELETE FROM beds24.audit_entries WHERE connection_id = :id"), {"id": new_id}
        )
        # bookings, properties and sync logs cascade
        conn.execute(text("DELETE FROM beds24.connections WHERE id = :id"), {"id": new_id})
