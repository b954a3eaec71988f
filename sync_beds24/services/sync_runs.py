"""
Sync log lifecycle for orchestrator runs.

    with SyncRun(engine, connection_id, "bookings", "pull") as run:
        ...
        run.record(processed=3, succeeded=3)

The row is created pending and moved to running on entry, gets per-batch
counter increments, and ends completed on a clean exit or failed when an
exception escapes. Each write is its own short transaction so progress stays
visible while the run is still going.
"""

from __future__ import annotations

import time
from types import TracebackType
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Engine

from sync_beds24.config import STALE_SYNC_MINUTES
from sync_beds24.db.writers.sync_logs import (
    create_sync_log,
    fail_stale_sync_logs,
    finish_sync_log,
    increment_sync_log_counts,
    mark_sync_log_running,
)
from sync_beds24.metrics import sync_runs

logger = structlog.get_logger(__name__)


class SyncRun:
    """Context manager driving one SyncLog row from pending to a terminal status."""

    def __init__(
        self,
        engine: Engine,
        connection_id: UUID,
        sync_type: str,
        direction: str,
        remote_property_id: Optional[int] = None,
        sync_data: Optional[dict[str, Any]] = None,
    ):
        self.engine = engine
        self.connection_id = connection_id
        self.sync_type = sync_type
        self.direction = direction
        self.remote_property_id = remote_property_id
        self.sync_data = sync_data or {}
        self.sync_log_id: Optional[UUID] = None
        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self.status = "pending"
        self._started = 0.0

    def __enter__(self) -> "SyncRun":
        with self.engine.begin() as conn:
            self.sync_log_id = create_sync_log(
                conn,
                self.connection_id,
                self.sync_type,
                self.direction,
                remote_property_id=self.remote_property_id,
                sync_data=self.sync_data,
            )
            mark_sync_log_running(conn, self.sync_log_id)
        self.status = "running"
        self._started = time.monotonic()

        logger.info(
            "sync_run_started",
            sync_log_id=str(self.sync_log_id),
            connection_id=str(self.connection_id),
            sync_type=self.sync_type,
            direction=self.direction,
        )
        return self

    def record(
        self,
        processed: int = 0,
        succeeded: int = 0,
        failed: int = 0,
        errors: Optional[list[dict[str, Any]]] = None,
    ) -> None:
        """Add one batch of results to the run."""
        if self.sync_log_id is None:
            raise RuntimeError("SyncRun.record() called outside the with block")
        self.processed += processed
        self.succeeded += succeeded
        self.failed += failed
        with self.engine.begin() as conn:
            increment_sync_log_counts(
                conn,
                self.sync_log_id,
                processed=processed,
                succeeded=succeeded,
                failed=failed,
                errors=errors,
            )

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> bool:
        if self.sync_log_id is None:
            return False

        metrics = {
            "duration_ms": int((time.monotonic() - self._started) * 1000),
            "records_processed": self.processed,
        }
        if exc is None:
            self.status = "completed"
            errors = None
        else:
            self.status = "failed"
            errors = [
                exc.to_details()  # type: ignore[attr-defined]
                if hasattr(exc, "to_details")
                else {"type": "unexpected", "message": str(exc)}
            ]

        with self.engine.begin() as conn:
            finish_sync_log(
                conn,
                self.sync_log_id,
                self.status,
                errors=errors,
                performance_metrics=metrics,
            )
        sync_runs.labels(
            sync_type=self.sync_type, direction=self.direction, status=self.status
        ).inc()

        log = logger.info if exc is None else logger.error
        log(
            "sync_run_finished",
            sync_log_id=str(self.sync_log_id),
            sync_type=self.sync_type,
            status=self.status,
            processed=self.processed,
            succeeded=self.succeeded,
            failed=self.failed,
        )
        return False


def fail_stale_syncs(engine: Engine, max_age_minutes: int = STALE_SYNC_MINUTES) -> int:
    """
    Close sync logs left running by crashed workers.

    Args:
        engine: SQLAlchemy engine
        max_age_minutes: Age after which a running row counts as abandoned

    Returns:
        int: Number of rows marked failed
    """
    with engine.begin() as conn:
        return fail_stale_sync_logs(conn, max_age_minutes)
