"""
Unit tests for the SyncRun sync log lifecycle.
"""

import uuid
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from sync_beds24.errors import RateLimitError
from sync_beds24.services.sync_runs import SyncRun, fail_stale_syncs

CONNECTION_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")


@pytest.mark.unit
def test_clean_exit_completes_log(mock_engine: MagicMock, sync_log_writers: dict[str, Any]) -> None:
    """Test that a run without exceptions moves pending -> running -> completed."""
    with SyncRun(mock_engine, CONNECTION_ID, "bookings", "pull", sync_data={"x": 1}) as run:
        assert run.status == "running"
        run.record(processed=3, succeeded=3)

    create_args = sync_log_writers["create"].call_args
    assert create_args[0][1:] == (CONNECTION_ID, "bookings", "pull")
    assert create_args[1]["sync_data"] == {"x": 1}
    sync_log_writers["running"].assert_called_once_with(
        mock_engine.conn, sync_log_writers["sync_log_id"]
    )

    increment = sync_log_writers["increment"].call_args[1]
    assert increment["processed"] == 3
    assert increment["succeeded"] == 3
    assert increment["failed"] == 0

    finish_args = sync_log_writers["finish"].call_args
    assert finish_args[0][2] == "completed"
    assert finish_args[1]["errors"] is None
    assert finish_args[1]["performance_metrics"]["records_processed"] == 3
    assert run.status == "completed"


@pytest.mark.unit
def test_counters_accumulate(mock_engine: MagicMock, sync_log_writers: dict[str, Any]) -> None:
    """Test that several record() calls add up on the run and each writes its own increment."""
    with SyncRun(mock_engine, CONNECTION_ID, "inventory", "push") as run:
        run.record(processed=5, succeeded=5)
        run.record(processed=2, failed=2, errors=[{"type": "batch_rejected"}])

    assert (run.processed, run.succeeded, run.failed) == (7, 5, 2)
    assert sync_log_writers["increment"].call_count == 2
    assert sync_log_writers["increment"].call_args[1]["errors"] == [{"type": "batch_rejected"}]


@pytest.mark.unit
def test_exception_fails_log_and_propagates(
    mock_engine: MagicMock, sync_log_writers: dict[str, Any]
) -> None:
    """Test that an escaping exception marks the log failed with its details and is re-raised."""
    with pytest.raises(RateLimitError):
        with SyncRun(mock_engine, CONNECTION_ID, "rates", "push") as run:
            run.record(processed=1, succeeded=1)
            raise RateLimitError(remaining=10, resets_in=60)

    finish_args = sync_log_writers["finish"].call_args
    assert finish_args[0][2] == "failed"
    errors = finish_args[1]["errors"]
    assert errors[0]["type"] == "rate_limit"
    assert errors[0]["resets_in"] == 60
    assert run.status == "failed"


@pytest.mark.unit
def test_unexpected_exception_is_recorded(
    mock_engine: MagicMock, sync_log_writers: dict[str, Any]
) -> None:
    """Test that non-integration exceptions are stored as type unexpected."""
    with pytest.raises(KeyError):
        with SyncRun(mock_engine, CONNECTION_ID, "properties", "pull"):
            raise KeyError("id")

    errors = sync_log_writers["finish"].call_args[1]["errors"]
    assert errors[0]["type"] == "unexpected"


@pytest.mark.unit
def test_record_outside_block_is_rejected(mock_engine: MagicMock) -> None:
    """Test that record() before entering the run is a programming error."""
    run = SyncRun(mock_engine, CONNECTION_ID, "bookings", "pull")
    with pytest.raises(RuntimeError):
        run.record(processed=1)


@pytest.mark.unit
@patch("sync_beds24.services.sync_runs.fail_stale_sync_logs", return_value=2)
def test_fail_stale_syncs(mock_fail: MagicMock, mock_engine: MagicMock) -> None:
    """Test that the watchdog forwards the age limit and returns the number of rows closed."""
    assert fail_stale_syncs(mock_engine, max_age_minutes=45) == 2
    mock_fail.assert_called_once_with(mock_engine.conn, 45)
