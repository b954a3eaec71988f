from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.engine import Connection

_CONNECTION_COLUMNS = """
    id, hotel_id, organization_id, account_id, account_email,
    refresh_token_encrypted, access_token_encrypted, token_expires_at,
    credits_remaining, credits_limit, credits_reset_at, status, scopes,
    allow_linked_properties, is_active, last_error, last_sync_at
"""


def get_connection(conn: Connection, connection_id: UUID) -> Optional[dict[str, Any]]:
    """
    Fetch a connection row, active or not.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        connection_id (UUID): Local connection ID.

    Returns:
        Optional[dict[str, Any]]: Row as a dict, or None if not found.
    """
    result = conn.execute(
        text(f"SELECT {_CONNECTION_COLUMNS} FROM beds24.connections WHERE id = :connection_id"),
        {"connection_id": connection_id},
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None


def get_active_connection_for_hotel(conn: Connection, hotel_id: str) -> Optional[dict[str, Any]]:
    """
    Fetch the single active connection for a hotel.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        hotel_id (str): Platform hotel identifier.

    Returns:
        Optional[dict[str, Any]]: Row as a dict, or None if the hotel is not connected.
    """
    result = conn.execute(
        text(
            f"""
            SELECT {_CONNECTION_COLUMNS}
            FROM beds24.connections
            WHERE hotel_id = :hotel_id AND is_active = TRUE
            """
        ),
        {"hotel_id": hotel_id},
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None


def get_connection_credentials(
    conn: Connection, connection_id: UUID
) -> Optional[dict[str, Any]]:
    """
    Fetch the encrypted tokens and lifecycle status of an active connection.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        connection_id (UUID): Local connection ID.

    Returns:
        Optional[dict[str, Any]]: Dict with 'refresh_token_encrypted',
            'access_token_encrypted', 'token_expires_at' and 'status', or None
    """
    result = conn.execute(
        text(
            """
            SELECT refresh_token_encrypted, access_token_encrypted, token_expires_at, status
            FROM beds24.connections
            WHERE id = :connection_id AND is_active = TRUE
        """
        ),
        {"connection_id": connection_id},
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None


def list_active_connection_ids(conn: Connection) -> list[UUID]:
    """Return ids of every active connection, oldest first."""
    result = conn.execute(
        text(
            """
            SELECT id FROM beds24.connections
            WHERE is_active = TRUE
            ORDER BY created_at
            """
        )
    )
    return list(result.scalars().all())


def list_idle_connection_ids(conn: Connection, cutoff: datetime) -> list[UUID]:
    """
    Return active connections whose access token was last issued before the cutoff.

    An access token lives for a day, so token_expires_at trails the last
    refresh token exchange by at most that much. Connections that never
    stored an access token are included.
    """
    result = conn.execute(
        text(
            """
            SELECT id FROM beds24.connections
            WHERE is_active = TRUE
              AND status IN ('active', 'expiring')
              AND refresh_token_encrypted IS NOT NULL
              AND (token_expires_at IS NULL OR token_expires_at < :cutoff)
            ORDER BY token_expires_at NULLS FIRST
            """
        ),
        {"cutoff": cutoff},
    )
    return list(result.scalars().all())
