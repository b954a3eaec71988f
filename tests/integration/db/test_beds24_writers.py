"""
Integration tests for the database writers against PostgreSQL.
"""

from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Generator
from uuid import UUID

import pytest
from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from sync_beds24.db.readers.connections import get_active_connection_for_hotel, list_idle_connection_ids
from sync_beds24.db.readers.inventory import get_fresh_cells
from sync_beds24.db.readers.properties import get_active_property, list_sync_enabled_properties
from sync_beds24.db.writers.bookings import booking_row, upsert_bookings
from sync_beds24.db.writers.connections import (
    deactivate_connection,
    insert_connection,
    store_connection_tokens,
)
from sync_beds24.db.writers.inventory import cell_rows, upsert_cells
from sync_beds24.db.writers.properties import mark_property_synced, upsert_properties
from sync_beds24.db.writers.sync_state import upsert_sync_state
from sync_beds24.schemas.remote import CalendarDay, RemoteBooking, RemoteProperty
from sync_beds24.utils.datetime import utc_now


@pytest.fixture
def remote_property_id(db_engine: Engine) -> Generator[int, None, None]:
    rp_id = random.randint(10_000_000, 99_999_999)
    yield rp_id
    with db_engine.begin() as conn:
        conn.execute(
            text("DELETE FROM beds24.inventory_cells WHERE remote_property_id = :id"), {"id": rp_id}
        )


def _booking(booking_id: int, rp_id: int, status: str = "confirmed") -> RemoteBooking:
    return RemoteBooking.from_payload(
        {
            "id": booking_id,
            "propertyId": rp_id,
            "roomId": 1,
            "status": status,
            "arrival": "2024-01-10",
            "departure": "2024-01-12",
        }
    )


@pytest.mark.integration
def test_upsert_bookings_skips_unchanged_payloads(
    db_engine: Engine, connection_id: UUID, hotel_id: str, remote_property_id: int
) -> None:
    """Test that re-upserting an identical booking changes nothing and a new status updates it."""
    booking_id = remote_property_id * 10
    row = booking_row(_booking(booking_id, remote_property_id), connection_id, hotel_id, remote_property_id)

    with db_engine.begin() as conn:
        assert upsert_bookings(conn, [row]) == 1
    with db_engine.begin() as conn:
        assert upsert_bookings(conn, [row]) == 0

    cancelled = booking_row(
        _booking(booking_id, remote_property_id, status="cancelled"),
        connection_id,
        hotel_id,
        remote_property_id,
    )
    with db_engine.begin() as conn:
        assert upsert_bookings(conn, [cancelled]) == 1
        status = conn.execute(
            text("SELECT status FROM beds24.bookings WHERE remote_booking_id = :id"),
            {"id": booking_id},
        ).scalar_one()

    assert status == "cancelled"


@pytest.mark.integration
def test_partial_cell_update_keeps_unset_values(db_engine: Engine, remote_property_id: int) -> None:
    """Test that pushing only a price keeps the cached availability of the cell."""
    night = date(2024, 5, 1)
    pulled = [CalendarDay(room_id=1, date=night, num_avail=4, price1=100, min_stay=2)]
    pushed = [CalendarDay(room_id=1, date=night, price1=120)]

    with db_engine.begin() as conn:
        upsert_cells(conn, cell_rows(remote_property_id, pulled, synced_from_remote=True))
        upsert_cells(conn, cell_rows(remote_property_id, pushed, synced_from_remote=False), partial=True)

    with db_engine.connect() as conn:
        cells = get_fresh_cells(conn, remote_property_id, night, night, utc_now())

    assert len(cells) == 1
    assert cells[0]["available"] == 4
    assert float(cells[0]["price"]) == 120
    assert cells[0]["min_stay"] == 2
    assert cells[0]["synced_from_remote"] is False


@pytest.mark.integration
def test_expired_cells_are_not_fresh(db_engine: Engine, remote_property_id: int) -> None:
    """Test that cells past their expiry are not served from the cache."""
    night = date(2024, 5, 2)
    stale_now = utc_now() - timedelta(days=2)

    with db_engine.begin() as conn:
        upsert_cells(
            conn,
            cell_rows(remote_property_id, [CalendarDay(room_id=1, date=night, num_avail=1)], True, now=stale_now),
        )

    with db_engine.connect() as conn:
        assert get_fresh_cells(conn, remote_property_id, night, night, utc_now()) == []


@pytest.mark.integration
def test_properties_upsert_and_sync_stamps(
    db_engine: Engine, connection_id: UUID, hotel_id: str, remote_property_id: int
) -> None:
    """Test that a property is stored once and its per-type sync timestamp is stamped."""
    prop = RemoteProperty.from_payload(
        {"id": remote_property_id, "name": "Seaside", "roomTypes": [{"id": 1}, {"id": 2}]}
    )

    with db_engine.begin() as conn:
        first = upsert_properties(conn, connection_id, hotel_id, [prop])
        second = upsert_properties(conn, connection_id, hotel_id, [prop])
        mark_property_synced(conn, connection_id, remote_property_id, "inventory")

    assert list(first) == [remote_property_id]
    assert second == {}

    with db_engine.connect() as conn:
        row = get_active_property(conn, remote_property_id)
        enabled = list_sync_enabled_properties(conn, connection_id)

    assert row is not None
    assert row["hotel_id"] == hotel_id
    assert row["last_inventory_sync_at"] is not None
    assert row["sync_settings"]["sync_bookings"] is True
    assert [p["remote_property_id"] for p in enabled] == [remote_property_id]


@pytest.mark.integration
def test_sync_state_is_one_row_per_hotel(
    db_engine: Engine, connection_id: UUID, hotel_id: str, remote_property_id: int
) -> None:
    """Test that bootstrapping the same hotel twice leaves a single sync state row."""
    with db_engine.begin() as conn:
        upsert_sync_state(conn, hotel_id, connection_id, remote_property_id, details={"bookings": 1})
        upsert_sync_state(conn, hotel_id, connection_id, remote_property_id, details={"bookings": 3})

    with db_engine.connect() as conn:
        rows = conn.execute(
            text("SELECT details FROM beds24.sync_state WHERE provider = 'beds24' AND hotel_id = :h"),
            {"h": hotel_id},
        ).all()

    assert len(rows) == 1
    assert rows[0][0] == {"bookings": 3}


@pytest.mark.integration
def test_one_active_connection_per_hotel(
    db_engine: Engine, connection_id: UUID, hotel_id: str
) -> None:
    """Test that a second active connection for a hotel violates the partial unique index."""
    with pytest.raises(IntegrityError):
        with db_engine.begin() as conn:
            insert_connection(conn, hotel_id)

    with db_engine.begin() as conn:
        deactivate_connection(conn, connection_id)
        assert get_active_connection_for_hotel(conn, hotel_id) is None
        replacement = insert_connection(conn, hotel_id)
        conn.execute(text("DELETE FROM beds24.connections WHERE id = :id"), {"id": replacement})


@pytest.mark.integration
def test_list_idle_connection_ids_selects_stale_active_tokens(
    db_engine: Engine, connection_id: UUID
) -> None:
    """Test that only active connections with a refresh token issued before the cutoff are idle."""
    now = utc_now()
    with db_engine.begin() as conn:
        conn.execute(
            text("UPDATE beds24.connections SET refresh_token_encrypted = 'enc' WHERE id = :id"),
            {"id": connection_id},
        )
        store_connection_tokens(
            conn, connection_id, "enc", now - timedelta(days=25), status="active"
        )

    with db_engine.connect() as conn:
        assert connection_id in list_idle_connection_ids(conn, now - timedelta(days=20))
        assert connection_id not in list_idle_connection_ids(conn, now - timedelta(days=30))

    with db_engine.begin() as conn:
        conn.execute(
            text("UPDATE beds24.connections SET status = 'error' WHERE id = :id"),
            {"id": connection_id},
        )

    with db_engine.connect() as conn:
        assert connection_id not in list_idle_connection_ids(conn, now - timedelta(days=20))
