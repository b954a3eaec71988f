"""
Integration tests for sync log rows driven by SyncRun and the stale watchdog.
"""

from __future__ import annotations

from uuid import UUID

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine

from sync_beds24.db.readers.sync_logs import get_sync_log
from sync_beds24.db.writers.sync_logs import (
    create_sync_log,
    finish_sync_log,
    mark_sync_log_running,
)
from sync_beds24.errors import RateLimitError
from sync_beds24.services.sync_runs import SyncRun, fail_stale_syncs


def _log(engine: Engine, sync_log_id: UUID) -> dict:
    with engine.connect() as conn:
        row = get_sync_log(conn, sync_log_id)
    assert row is not None
    return row


@pytest.mark.integration
def test_completed_run(db_engine: Engine, connection_id: UUID) -> None:
    """Test that a clean run ends completed with accumulated counters."""
    with SyncRun(db_engine, connection_id, "bookings", "pull", sync_data={"properties": 1}) as run:
        assert _log(db_engine, run.sync_log_id)["status"] == "running"
        run.record(processed=2, succeeded=2)
        run.record(processed=1, failed=1, errors=[{"type": "invalid_booking", "remote_booking_id": 3}])

    row = _log(db_engine, run.sync_log_id)
    assert row["status"] == "completed"
    assert (row["records_processed"], row["records_succeeded"], row["records_failed"]) == (3, 2, 1)
    assert row["error_details"] == [{"type": "invalid_booking", "remote_booking_id": 3}]
    assert row["completed_at"] is not None
    assert row["sync_data"] == {"properties": 1}
    assert "duration_ms" in row["performance_metrics"]


@pytest.mark.integration
def test_failed_run_keeps_partial_counts(db_engine: Engine, connection_id: UUID) -> None:
    """Test that an exception marks the row failed while keeping the work done so far."""
    with pytest.raises(RateLimitError):
        with SyncRun(db_engine, connection_id, "inventory", "push") as run:
            run.record(processed=5, succeeded=5)
            raise RateLimitError(remaining=3, resets_in=100)

    row = _log(db_engine, run.sync_log_id)
    assert row["status"] == "failed"
    assert row["records_processed"] == 5
    assert row["error_details"][0]["type"] == "rate_limit"


@pytest.mark.integration
def test_terminal_rows_are_final(db_engine: Engine, connection_id: UUID) -> None:
    """Test that a completed row cannot be finished again."""
    with db_engine.begin() as conn:
        sync_log_id = create_sync_log(conn, connection_id, "rates", "pull")
        mark_sync_log_running(conn, sync_log_id)
        assert finish_sync_log(conn, sync_log_id, "completed") is True
        assert finish_sync_log(conn, sync_log_id, "failed") is False

    assert _log(db_engine, sync_log_id)["status"] == "completed"


@pytest.mark.integration
def test_watchdog_fails_only_stale_running_rows(db_engine: Engine, connection_id: UUID) -> None:
    """Test that rows running for longer than the limit are failed and fresh ones left alone."""
    with db_engine.begin() as conn:
        stale_id = create_sync_log(conn, connection_id, "bookings", "pull")
        mark_sync_log_running(conn, stale_id)
        conn.execute(
            text("UPDATE beds24.sync_logs SET started_at = NOW() - INTERVAL '2 hours' WHERE id = :id"),
            {"id": stale_id},
        )
        fresh_id = create_sync_log(conn, connection_id, "bookings", "pull")
        mark_sync_log_running(conn, fresh_id)

    assert fail_stale_syncs(db_engine, max_age_minutes=30) >= 1

    stale = _log(db_engine, stale_id)
    assert stale["status"] == "failed"
    assert stale["error_details"][0]["type"] == "stale"
    assert _log(db_engine, fresh_id)["status"] == "running"
