from typing import Any, Optional
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.engine import Connection


def get_active_property(conn: Connection, remote_property_id: int) -> Optional[dict[str, Any]]:
    """
    Fetch a Beds24 property that belongs to an active connection.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        remote_property_id (int): Beds24 property ID.

    Returns:
        Optional[dict[str, Any]]: Property row joined with its hotel and
            connection ids, or None
    """
    result = conn.execute(
        text(
            """
            SELECT p.id, p.hotel_id, p.connection_id, p.remote_property_id, p.name,
                   p.status, p.sync_enabled, p.sync_settings, p.raw_payload,
                   p.last_inventory_sync_at, p.last_rates_sync_at, p.last_bookings_sync_at
            FROM beds24.properties p
            JOIN beds24.connections c ON c.id = p.connection_id
            WHERE p.remote_property_id = :remote_property_id AND c.is_active = TRUE
            """
        ),
        {"remote_property_id": remote_property_id},
    )
    row = result.mappings().fetchone()
    return dict(row) if row else None


def list_sync_enabled_properties(conn: Connection, connection_id: UUID) -> list[dict[str, Any]]:
    """
    List properties under a connection that are enabled for sync.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        connection_id (UUID): Local connection ID.

    Returns:
        list[dict[str, Any]]: Property rows ordered by Beds24 property ID
    """
    result = conn.execute(
        text(
            """
            SELECT id, hotel_id, connection_id, remote_property_id, name, sync_settings,
                   last_bookings_sync_at
            FROM beds24.properties
            WHERE connection_id = :connection_id AND sync_enabled = TRUE
            ORDER BY remote_property_id
            """
        ),
        {"connection_id": connection_id},
    )
    return [dict(row) for row in result.mappings().all()]


def room_ids_for_property(property_row: dict[str, Any]) -> list[int]:
    """Extract Beds24 room ids from a stored property payload."""
    rooms = (property_row.get("raw_payload") or {}).get("roomTypes") or []
    return sorted(int(room["id"]) for room in rooms if room.get("id") is not None)
