from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection

from sync_beds24.models.properties import DEFAULT_SYNC_SETTINGS, RemoteProperty
from sync_beds24.schemas.remote import RemoteProperty as RemotePropertyPayload
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)

SYNC_TIMESTAMP_COLUMNS = {
    "inventory": "last_inventory_sync_at",
    "rates": "last_rates_sync_at",
    "bookings": "last_bookings_sync_at",
}


def upsert_properties(
    conn: Connection,
    connection_id: UUID,
    hotel_id: str,
    properties: list[RemotePropertyPayload],
    dry_run: bool = False,
) -> dict[int, UUID]:
    """
    Upsert Beds24 properties for a connection, keyed by (connection_id, remote_property_id).

    Name and payload are only rewritten when the payload changed; sync_enabled
    and sync_settings set by operators are never overwritten.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        connection_id (UUID): Local connection ID.
        hotel_id (str): Platform hotel identifier.
        properties (list[RemotePropertyPayload]): Parsed Beds24 properties.
        dry_run (bool): If True, skip DB writes and log only.

    Returns:
        dict[int, UUID]: Local property id by Beds24 property id for rows
            inserted or changed by this call
    """
    now = utc_now()
    rows: list[dict[str, Any]] = [
        {
            "hotel_id": hotel_id,
            "connection_id": connection_id,
            "remote_property_id": prop.id,
            "name": prop.name,
            "status": "active",
            "sync_settings": dict(DEFAULT_SYNC_SETTINGS),
            "raw_payload": prop.raw,
            "created_at": now,
            "updated_at": now,
        }
        for prop in properties
    ]

    if not rows:
        logger.info("no_properties_to_upsert", connection_id=str(connection_id))
        return {}

    if dry_run:
        logger.info("dry_run_properties_upsert", count=len(rows))
        return {}

    stmt = insert(RemoteProperty).values(rows)
    stmt = stmt.on_conflict_do_update(
        index_elements=["connection_id", "remote_property_id"],
        set_={
            "name": stmt.excluded.name,
            "raw_payload": stmt.excluded.raw_payload,
            "updated_at": stmt.excluded.updated_at,
        },
        where=RemoteProperty.raw_payload.is_distinct_from(stmt.excluded.raw_payload),
    ).returning(RemoteProperty.remote_property_id, RemoteProperty.id)

    result = conn.execute(stmt)
    changed = {int(remote_id): local_id for remote_id, local_id in result.all()}

    logger.info(
        "properties_upserted",
        connection_id=str(connection_id),
        received=len(rows),
        changed=len(changed),
    )
    return changed


def mark_property_synced(
    conn: Connection,
    connection_id: UUID,
    remote_property_id: int,
    sync_type: str,
    synced_at: Optional[datetime] = None,
) -> None:
    """
    Stamp the per-type last sync timestamp of a property.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        connection_id (UUID): Local connection ID.
        remote_property_id (int): Beds24 property ID.
        sync_type (str): inventory, rates or bookings.
        synced_at (Optional[datetime]): Timestamp to write; defaults to now.
    """
    column = SYNC_TIMESTAMP_COLUMNS[sync_type]
    conn.execute(
        update(RemoteProperty)
        .where(
            RemoteProperty.connection_id == connection_id,
            RemoteProperty.remote_property_id == remote_property_id,
        )
        .values({column: synced_at or utc_now()})
    )
