from typing import Any
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.engine import Connection


def recent_audit_outcomes(
    conn: Connection, connection_id: UUID, limit: int = 20
) -> list[dict[str, Any]]:
    """
    Fetch the most recent gateway call outcomes for a connection.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        connection_id (UUID): Local connection ID.
        limit (int): Number of entries to return.

    Returns:
        list[dict[str, Any]]: Newest first, with status, http_status,
            credits_remaining, error_details and created_at
    """
    result = conn.execute(
        text(
            """
            SELECT status, http_status, credits_remaining, error_details, created_at
            FROM beds24.audit_entries
            WHERE connection_id = :connection_id
            ORDER BY created_at DESC, id DESC
            LIMIT :limit
            """
        ),
        {"connection_id": connection_id, "limit": limit},
    )
    return [dict(row) for row in result.mappings().all()]
