from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import cast, func, update
from sqlalchemy.dialects.postgresql import JSONB, insert
from sqlalchemy.engine import Connection

from sync_beds24.models.sync_logs import SyncLog
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

TERMINAL_STATUSES = ("completed", "failed")


def create_sync_log(
    conn: Connection,
    connection_id: UUID,
    sync_type: str,
    direction: str,
    remote_property_id: Optional[int] = None,
    sync_data: Optional[dict[str, Any]] = None,
) -> UUID:
    """
    Insert a pending sync log row.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        connection_id (UUID): Local connection ID.
        sync_type (str): properties, inventory, bookings, rates or bootstrap.
        direction (str): pull or push.
        remote_property_id (Optional[int]): Beds24 property the run targets.
        sync_data (Optional[dict[str, Any]]): Run parameters worth keeping.

    Returns:
        UUID: ID of the new sync log.
    """
    stmt = (
        insert(SyncLog)
        .values(
            connection_id=connection_id,
            remote_property_id=remote_property_id,
            sync_type=sync_type,
            direction=direction,
            status="pending",
            started_at=utc_now(),
            sync_data=sync_data or {},
        )
        .returning(SyncLog.id)
    )
    sync_log_id: UUID = conn.execute(stmt).scalar_one()
    return sync_log_id


def mark_sync_log_running(conn: Connection, sync_log_id: UUID) -> None:
    """Move a pending sync log to running."""
    conn.execute(
        update(SyncLog)
        .where(SyncLog.id == sync_log_id, SyncLog.status == "pending")
        .values(status="running", started_at=utc_now())
    )


def increment_sync_log_counts(
    conn: Connection,
    sync_log_id: UUID,
    processed: int = 0,
    succeeded: int = 0,
    failed: int = 0,
    errors: Optional[list[dict[str, Any]]] = None,
) -> None:
    """
    Add one batch worth of counters to a running sync log.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        sync_log_id (UUID): Sync log ID.
        processed (int): Records handled in the batch.
        succeeded (int): Records that made it.
        failed (int): Records that did not.
        errors (Optional[list[dict[str, Any]]]): Per-item errors to append.
    """
    values: dict[str, Any] = {
        "records_processed": SyncLog.records_processed + processed,
        "records_succeeded": SyncLog.records_succeeded + succeeded,
        "records_failed": SyncLog.records_failed + failed,
    }
    if errors:
        values["error_details"] = SyncLog.error_details.op("||")(cast(errors, JSONB))

    conn.execute(
        update(SyncLog)
        .where(SyncLog.id == sync_log_id, SyncLog.status.notin_(TERMINAL_STATUSES))
        .values(**values)
    )


def finish_sync_log(
    conn: Connection,
    sync_log_id: UUID,
    status: str,
    errors: Optional[list[dict[str, Any]]] = None,
    performance_metrics: Optional[dict[str, Any]] = None,
) -> bool:
    """
    Move a sync log to completed or failed.

    Rows already in a terminal status are left untouched.

    Returns:
        bool: True if the row was updated
    """
    if status not in TERMINAL_STATUSES:
        raise ValueError(f"{status!r} is not a terminal sync status")

    values: dict[str, Any] = {
        "status": status,
        "completed_at": utc_now(),
        "performance_metrics": performance_metrics or {},
    }
    if errors:
        values["error_details"] = SyncLog.error_details.op("||")(cast(errors, JSONB))

    result = conn.execute(
        update(SyncLog)
        .where(SyncLog.id == sync_log_id, SyncLog.status.notin_(TERMINAL_STATUSES))
        .values(**values)
    )
    return bool(result.rowcount)


def fail_stale_sync_logs(conn: Connection, max_age_minutes: int) -> int:
    """
    Mark sync logs stuck in running for longer than max_age_minutes as failed.

    A worker that crashed mid-run leaves its row running forever; this is the
    watchdog that closes such rows.

    Returns:
        int: Number of rows marked failed
    """
    cutoff = utc_now() - timedelta(minutes=max_age_minutes)
    stale_error = [
        {
            "type": "stale",
            "message": f"Sync still running after {max_age_minutes} minutes",
        }
    ]
    result = conn.execute(
        update(SyncLog)
        .where(SyncLog.status == "running", SyncLog.started_at < cutoff)
        .values(
            status="failed",
            completed_at=func.now(),
            error_details=SyncLog.error_details.op("||")(cast(stale_error, JSONB)),
        )
    )
    count = int(result.rowcount or 0)
    if count:
        logger.warning("stale_sync_logs_failed", count=count, max_age_minutes=max_age_minutes)
    return count
