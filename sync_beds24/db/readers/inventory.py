from datetime import date, datetime
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection


def get_fresh_cells(
    conn: Connection,
    remote_property_id: int,
    date_from: date,
    date_to: date,
    now: datetime,
    remote_room_id: Optional[int] = None,
) -> list[dict[str, Any]]:
    """
    Fetch cached inventory cells that have not expired.

    Args:
        conn (Connection): An active SQLAlchemy database connection.
        remote_property_id (int): Beds24 property ID.
        date_from (date): First night, inclusive.
        date_to (date): Last night, inclusive.
        now (datetime): Reference time for expiry.
        remote_room_id (Optional[int]): Restrict to one room.

    Returns:
        list[dict[str, Any]]: Cells ordered by room and date
    """
    query = """
        SELECT remote_property_id, remote_room_id, date, available, price, min_stay,
               max_stay, closed_to_arrival, closed_to_departure, restrictions,
               synced_from_remote, expires_at
        FROM beds24.inventory_cells
        WHERE remote_property_id = :remote_property_id
          AND date BETWEEN :date_from AND :date_to
          AND expires_at > :now
    """
    params: dict[str, Any] = {
        "remote_property_id": remote_property_id,
        "date_from": date_from,
        "date_to": date_to,
        "now": now,
    }
    if remote_room_id is not None:
        query += " AND remote_room_id = :remote_room_id"
        params["remote_room_id"] = remote_room_id
    query += " ORDER BY remote_room_id, date"

    result = conn.execute(text(query), params)
    return [dict(row) for row in result.mappings().all()]
