from typing import Any
from uuid import UUID

import structlog
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection

from sync_beds24.config import PROVIDER
from sync_beds24.models.sync_state import SyncState
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def upsert_sync_state(
    conn: Connection,
    hotel_id: str,
    connection_id: UUID,
    remote_property_id: int,
    details: dict[str, Any],
    provider: str = PROVIDER,
) -> None:
    """
    Record a completed bootstrap for a hotel, keyed by (provider, hotel_id).

    Running a bootstrap again updates the same row.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        hotel_id (str): Platform hotel identifier.
        connection_id (UUID): Local connection ID.
        remote_property_id (int): Beds24 property ID.
        details (dict[str, Any]): Import counts and other bootstrap details.
        provider (str): Channel provider name.
    """
    now = utc_now()
    stmt = insert(SyncState).values(
        provider=provider,
        hotel_id=hotel_id,
        connection_id=connection_id,
        remote_property_id=remote_property_id,
        sync_enabled=True,
        bootstrap_completed_at=now,
        details=details,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["provider", "hotel_id"],
        set_={
            "connection_id": stmt.excluded.connection_id,
            "remote_property_id": stmt.excluded.remote_property_id,
            "bootstrap_completed_at": stmt.excluded.bootstrap_completed_at,
            "details": stmt.excluded.details,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    conn.execute(stmt)

    logger.info("sync_state_upserted", provider=provider, hotel_id=hotel_id)
