from datetime import date

import structlog

from sync_beds24.metrics import poll_duration, poll_total, records_synced
from sync_beds24.network.client import Beds24Client
from sync_beds24.schemas.remote import CalendarDay

logger = structlog.get_logger(__name__)


def poll_calendar(
    client: Beds24Client, remote_property_id: int, date_from: date, date_to: date
) -> list[CalendarDay]:
    """
    Fetch availability, prices and restrictions for a property.

    Args:
        client (Beds24Client): Client bound to a connection
        remote_property_id (int): Beds24 property ID
        date_from (date): First night, inclusive
        date_to (date): Last night, inclusive

    Returns:
        list[CalendarDay]: One entry per room-night
    """
    with poll_duration.labels(entity_type="calendar").time():
        try:
            days = client.get_rooms_calendar(remote_property_id, date_from, date_to)

            logger.info(
                "calendar_polled",
                remote_property_id=remote_property_id,
                date_from=date_from.isoformat(),
                date_to=date_to.isoformat(),
                cells=len(days),
            )
            records_synced.labels(entity_type="calendar").inc(len(days))
            poll_total.labels(entity_type="calendar", status="success").inc()

            return days
        except Exception:
            poll_total.labels(entity_type="calendar", status="failure").inc()
            raise
