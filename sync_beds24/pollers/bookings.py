import json
from datetime import date, datetime
from typing import Any, Optional

import structlog

from sync_beds24.config import DEBUG
from sync_beds24.metrics import poll_duration, poll_total, records_synced
from sync_beds24.network.client import Beds24Client

logger = structlog.get_logger(__name__)


def poll_bookings(
    client: Beds24Client,
    remote_property_id: int,
    modified_from: Optional[datetime] = None,
    arrival_from: Optional[date] = None,
    arrival_to: Optional[date] = None,
) -> list[dict[str, Any]]:
    """
    Fetch bookings for one Beds24 property.

    Payloads are returned unparsed; the caller validates them one by one so
    a malformed booking is counted as a failed item.

    Args:
        client (Beds24Client): Client bound to a connection
        remote_property_id (int): Beds24 property ID
        modified_from (Optional[datetime]): Only bookings changed since then
        arrival_from (Optional[date]): Earliest arrival
        arrival_to (Optional[date]): Latest arrival

    Returns:
        list[dict[str, Any]]: Raw Beds24 booking payloads
    """
    with poll_duration.labels(entity_type="bookings").time():
        try:
            bookings = client.get_booking_payloads(
                property_id=remote_property_id,
                modified_from=modified_from,
                arrival_from=arrival_from,
                arrival_to=arrival_to,
                include_guests=True,
            )

            if DEBUG and bookings:
                logger.debug("sample_booking", payload=json.dumps(bookings[0], default=str))

            logger.info(
                "bookings_polled",
                remote_property_id=remote_property_id,
                count=len(bookings),
                incremental=modified_from is not None,
            )
            records_synced.labels(entity_type="bookings").inc(len(bookings))
            poll_total.labels(entity_type="bookings", status="success").inc()

            return bookings
        except Exception:
            poll_total.labels(entity_type="bookings", status="failure").inc()
            raise
