from datetime import datetime, timedelta
from typing import Any, Iterable

import structlog
from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection

from sync_beds24.config import INVENTORY_CACHE_TTL_HOURS
from sync_beds24.models.inventory import InventoryCell
from sync_beds24.schemas.remote import CalendarDay
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

CELL_VALUE_COLUMNS = [
    "available",
    "price",
    "min_stay",
    "max_stay",
    "closed_to_arrival",
    "closed_to_departure",
    "restrictions",
]


def cell_rows(
    remote_property_id: int,
    days: Iterable[CalendarDay],
    synced_from_remote: bool,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """
    Build inventory_cells rows from calendar days.

    Args:
        remote_property_id: Beds24 property ID
        days: Calendar days, pulled or about to be pushed
        synced_from_remote: True for pulled values, False for pushed ones
        now: Cache timestamp; expiry is now + INVENTORY_CACHE_TTL_HOURS

    Returns:
        list[dict[str, Any]]: One row per (room, date), last value wins
    """
    now = now or utc_now()
    expires_at = now + timedelta(hours=INVENTORY_CACHE_TTL_HOURS)
    rows: dict[tuple[int, Any], dict[str, Any]] = {}
    for day in days:
        rows[(day.room_id, day.date)] = {
            "remote_property_id": remote_property_id,
            "remote_room_id": day.room_id,
            "date": day.date,
            "available": day.num_avail,
            "price": day.price1,
            "min_stay": day.min_stay,
            "max_stay": day.max_stay,
            "closed_to_arrival": day.closed_arrival,
            "closed_to_departure": day.closed_departure,
            "restrictions": day.restrictions,
            "synced_from_remote": synced_from_remote,
            "cached_at": now,
            "expires_at": expires_at,
        }
    return list(rows.values())


def upsert_cells(conn: Connection, rows: list[dict[str, Any]], partial: bool = False) -> int:
    """
    Upsert inventory cells keyed by (remote_property_id, remote_room_id, date).

    Pulled rows replace every value. Pushed rows are partial updates: a None
    value keeps what the cell already holds.

    Args:
        conn: Active DB connection (within transaction)
        rows: Rows built by cell_rows
        partial: Keep existing values where the new row has None

    Returns:
        int: Number of rows written
    """
    if not rows:
        return 0

    stmt = insert(InventoryCell).values(rows)
    set_: dict[str, Any] = {}
    for column in CELL_VALUE_COLUMNS:
        excluded = getattr(stmt.excluded, column)
        set_[column] = (
            func.coalesce(excluded, getattr(InventoryCell, column)) if partial else excluded
        )
    set_["synced_from_remote"] = stmt.excluded.synced_from_remote
    set_["cached_at"] = stmt.excluded.cached_at
    set_["expires_at"] = stmt.excluded.expires_at

    stmt = stmt.on_conflict_do_update(
        index_elements=["remote_property_id", "remote_room_id", "date"],
        set_=set_,
    )
    result = conn.execute(stmt)

    logger.debug("inventory_cells_upserted", count=len(rows), partial=partial)
    return int(result.rowcount or 0)
