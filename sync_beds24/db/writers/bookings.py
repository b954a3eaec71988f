from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Connection

from sync_beds24.db.writers._upsert import upsert_with_distinct_check
from sync_beds24.models.bookings import Booking
from sync_beds24.schemas.remote import RemoteBooking
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

BOOKING_UPDATE_COLUMNS = [
    "remote_room_id",
    "arrival",
    "departure",
    "status",
    "num_adult",
    "num_child",
    "last_modified",
    "raw_payload",
    "updated_at",
]


def booking_row(
    booking: RemoteBooking,
    connection_id: UUID,
    hotel_id: str,
    remote_property_id: Optional[int],
) -> dict[str, Any]:
    """
    Build a bookings row from a parsed Beds24 booking.

    Raises:
        ValueError: If the booking has no arrival or departure date, or no
            property can be attributed to it.
    """
    if booking.arrival is None or booking.departure is None:
        raise ValueError(f"Booking {booking.id} is missing arrival or departure")
    if (booking.property_id or remote_property_id) is None:
        raise ValueError(f"Booking {booking.id} has no propertyId")

    now = utc_now()
    return {
        "remote_booking_id": booking.id,
        "connection_id": connection_id,
        "hotel_id": hotel_id,
        "remote_property_id": booking.property_id or remote_property_id,
        "remote_room_id": booking.room_id,
        "arrival": booking.arrival,
        "departure": booking.departure,
        "status": booking.local_status,
        "num_adult": booking.num_adult,
        "num_child": booking.num_child,
        "last_modified": booking.modified_time,
        "raw_payload": booking.raw,
        "created_at": now,
        "updated_at": now,
    }


def upsert_bookings(conn: Connection, rows: list[dict[str, Any]], dry_run: bool = False) -> int:
    """
    Upsert bookings keyed by Beds24 booking id. Only update if raw_payload has changed.

    Args:
        conn: Active DB connection (within transaction)
        rows: Rows built by booking_row
        dry_run: If True, skip DB writes and log only

    Returns:
        int: Number of rows inserted or changed
    """
    if not rows:
        logger.info("no_bookings_to_upsert")
        return 0

    if dry_run:
        logger.info("dry_run_bookings_upsert", count=len(rows))
        return 0

    # Beds24 can return the same booking twice when it moves between pages
    unique_rows = list({row["remote_booking_id"]: row for row in rows}.values())
    if len(unique_rows) != len(rows):
        logger.warning("duplicate_bookings_in_batch", duplicates=len(rows) - len(unique_rows))

    changed = upsert_with_distinct_check(
        conn=conn,
        table=Booking,
        rows=unique_rows,
        conflict_columns=["remote_booking_id"],
        update_columns=BOOKING_UPDATE_COLUMNS,
    )
    logger.info("bookings_upserted", received=len(unique_rows), changed=changed)
    return changed
