from typing import Any, Optional
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.engine import Connection


def get_sync_log(conn: Connection, sync_log_id: UUID) -> Optional[dict[str, Any]]:
    """
    Fetch a single sync log row.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        sync_log_id (UUID): Sync log ID.

    Returns:
        Optional[dict[str, Any]]: Row as a dict, or None
    """
    result = conn.execute(
        text(
            """
            SELECT id, connection_id, remote_property_id, sync_type, direction, status,
                   started_at, completed_at, records_processed, records_succeeded,
                   records_failed, sync_data, error_details, performance_metrics
            FROM beds24.sync_logs
            WHERE id = :sync_log_id
            """
        ),
        {"sync_log_id": sync_log_id},
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None
