"""
Sync orchestrator for the Beds24 integration.

Each public function is one sync pass. It wraps its Beds24 calls in a SyncRun
so the sync log records progress and outcome, and persists results through
upserts keyed by Beds24 identifiers, so re-running a pass after a partial
failure converges instead of duplicating.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Iterable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError
from sqlalchemy.engine import Engine

from sync_beds24.cache import TokenCache
from sync_beds24.config import (
    BOOTSTRAP_CALENDAR_DAYS,
    CALENDAR_BATCH_RETRIES,
    CALENDAR_BATCH_SIZE,
)
from sync_beds24.db.engine import engine as default_engine
from sync_beds24.db.readers.connections import (
    get_active_connection_for_hotel,
    get_connection,
    list_active_connection_ids,
)
from sync_beds24.db.readers.inventory import get_fresh_cells
from sync_beds24.db.readers.properties import (
    get_active_property,
    list_sync_enabled_properties,
    room_ids_for_property,
)
from sync_beds24.db.writers.bookings import booking_row, upsert_bookings
from sync_beds24.db.writers.connections import update_last_sync
from sync_beds24.db.writers.inventory import cell_rows, upsert_cells
from sync_beds24.db.writers.properties import mark_property_synced, upsert_properties
from sync_beds24.db.writers.sync_state import upsert_sync_state
from sync_beds24.errors import (
    NotFoundError,
    ProviderError,
    RateLimitError,
    TransientNetworkError,
)
from sync_beds24.network.auth import TokenManager
from sync_beds24.network.client import Beds24Client
from sync_beds24.pollers.bookings import poll_bookings
from sync_beds24.pollers.calendar import poll_calendar
from sync_beds24.pollers.properties import poll_properties
from sync_beds24.schemas.inventory import InventoryUpdate
from sync_beds24.schemas.remote import RemoteBooking
from sync_beds24.services.calendar import (
    CalendarLine,
    batch_body,
    batch_errors,
    chunk_lines,
    daily_lines,
    merge_contiguous_lines,
)
from sync_beds24.services.sync_runs import SyncRun
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------


def build_client(
    connection: dict[str, Any],
    engine: Engine = default_engine,
    cache: Optional[TokenCache] = None,
) -> Beds24Client:
    """Create a client for a connection with a fresh per-invocation token cache."""
    tokens = TokenManager.for_connection(connection["id"], engine=engine, cache=cache or TokenCache())
    return Beds24Client(
        tokens,
        connection_id=connection["id"],
        hotel_id=connection["hotel_id"],
        engine=engine,
    )


def load_active_connection(engine: Engine, connection_id: UUID) -> dict[str, Any]:
    with engine.connect() as conn:
        connection = get_connection(conn, connection_id)
    if not connection or not connection["is_active"]:
        raise NotFoundError(f"Connection {connection_id} not found or inactive")
    return connection


def load_property(engine: Engine, remote_property_id: int) -> dict[str, Any]:
    with engine.connect() as conn:
        prop = get_active_property(conn, remote_property_id)
    if not prop:
        raise NotFoundError(f"Beds24 property {remote_property_id} is not imported")
    return prop


def booking_rows(
    payloads: Iterable[dict[str, Any]],
    connection: dict[str, Any],
    remote_property_id: Optional[int] = None,
) -> tuple[list[dict[str, Any]], list[dict[str, Any]]]:
    """
    Validate raw Beds24 booking payloads one by one.

    Returns:
        (rows, errors): upsert rows for usable bookings and one
        ``invalid_booking`` error per payload that failed validation.
    """
    rows: list[dict[str, Any]] = []
    errors: list[dict[str, Any]] = []
    for payload in payloads:
        remote_booking_id = payload.get("id") if isinstance(payload, dict) else None
        try:
            booking = RemoteBooking.from_payload(payload)
            rows.append(
                booking_row(
                    booking,
                    connection["id"],
                    connection["hotel_id"],
                    remote_property_id or booking.property_id,
                )
            )
        except ValidationError as e:
            errors.append(
                {
                    "type": "invalid_booking",
                    "remote_booking_id": remote_booking_id,
                    "message": "; ".join(
                        f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
                        for err in e.errors()
                    ),
                }
            )
        except ValueError as e:
            errors.append(
                {"type": "invalid_booking", "remote_booking_id": remote_booking_id, "message": str(e)}
            )
    return rows, errors


def _store_bookings(
    engine: Engine,
    run: SyncRun,
    connection: dict[str, Any],
    remote_property_id: int,
    payloads: list[dict[str, Any]],
    dry_run: bool = False,
) -> int:
    """Upsert a batch of bookings; unusable payloads are counted as failed items."""
    rows, errors = booking_rows(payloads, connection, remote_property_id)

    with engine.begin() as conn:
        upsert_bookings(conn, rows, dry_run=dry_run)

    run.record(
        processed=len(payloads),
        succeeded=len(rows),
        failed=len(errors),
        errors=errors or None,
    )
    return len(rows)


# -----------------------------------------------------------------------------
# Properties and bootstrap
# -----------------------------------------------------------------------------


def sync_properties(
    connection_id: UUID,
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """
    Pull every Beds24 property of a connection and upsert it locally.

    Args:
        connection_id (UUID): Local connection ID.
        engine (Engine): SQLAlchemy engine.
        client (Optional[Beds24Client]): Client override, mainly for tests.
        dry_run (bool): If True, skip DB writes.

    Returns:
        dict[str, Any]: sync_log_id, properties received and rows changed.
    """
    connection = load_active_connection(engine, connection_id)
    client = client or build_client(connection, engine)

    with SyncRun(engine, connection_id, "properties", "pull") as run:
        properties = poll_properties(client)
        with engine.begin() as conn:
            changed = upsert_properties(
                conn, connection_id, connection["hotel_id"], properties, dry_run=dry_run
            )
        run.record(processed=len(properties), succeeded=len(properties))

    return {
        "sync_log_id": str(run.sync_log_id),
        "properties": len(properties),
        "changed": len(changed),
    }


def bootstrap_hotel(
    hotel_id: str,
    remote_property_id: int,
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
    calendar_days: int = BOOTSTRAP_CALENDAR_DAYS,
) -> dict[str, Any]:
    """
    Import a Beds24 property for a hotel and record the hotel's sync state.

    Imports the property with its rooms, the next ``calendar_days`` nights of
    calendar and upcoming bookings, under a single bootstrap sync log. The
    sync state row is keyed by (provider, hotel_id), so bootstrapping twice
    leaves one row.

    Args:
        hotel_id (str): Platform hotel identifier.
        remote_property_id (int): Beds24 property ID.
        engine (Engine): SQLAlchemy engine.
        client (Optional[Beds24Client]): Client override, mainly for tests.
        calendar_days (int): Nights of calendar to import, starting today.

    Returns:
        dict[str, Any]: sync_log_id and import counts.

    Raises:
        NotFoundError: If the hotel has no active connection or the property
            does not exist in Beds24.
    """
    with engine.connect() as conn:
        connection = get_active_connection_for_hotel(conn, hotel_id)
    if not connection:
        raise NotFoundError(f"Hotel {hotel_id} has no active Beds24 connection")

    client = client or build_client(connection, engine)
    connection_id = connection["id"]
    today = utc_now().date()
    last_night = today + timedelta(days=max(calendar_days, 1) - 1)

    logger.info("bootstrap_started", hotel_id=hotel_id, remote_property_id=remote_property_id)

    with SyncRun(
        engine,
        connection_id,
        "bootstrap",
        "pull",
        remote_property_id=remote_property_id,
        sync_data={"hotel_id": hotel_id, "calendar_days": calendar_days},
    ) as run:
        prop = client.get_property(remote_property_id)
        with engine.begin() as conn:
            upsert_properties(conn, connection_id, hotel_id, [prop])
        run.record(processed=1, succeeded=1)

        days = poll_calendar(client, remote_property_id, today, last_night)
        with engine.begin() as conn:
            upsert_cells(conn, cell_rows(remote_property_id, days, synced_from_remote=True))
            mark_property_synced(conn, connection_id, remote_property_id, "inventory")
        run.record(processed=len(days), succeeded=len(days))

        bookings = poll_bookings(client, remote_property_id, arrival_from=today)
        stored = _store_bookings(engine, run, connection, remote_property_id, bookings)
        with engine.begin() as conn:
            mark_property_synced(conn, connection_id, remote_property_id, "bookings")

        imported = {
            "properties": 1,
            "rooms": len(prop.rooms),
            "calendar_days": len(days),
            "bookings": stored,
        }
        with engine.begin() as conn:
            upsert_sync_state(conn, hotel_id, connection_id, remote_property_id, details=imported)

    logger.info("bootstrap_completed", hotel_id=hotel_id, **imported)
    return {"sync_log_id": str(run.sync_log_id), "imported": imported}


# -----------------------------------------------------------------------------
# Bookings
# -----------------------------------------------------------------------------


def pull_bookings(
    connection_id: UUID,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
    dry_run: bool = False,
) -> dict[str, Any]:
    """
    Pull bookings for every sync-enabled property of a connection.

    With a date window, bookings arriving inside it are pulled. Without one,
    the pull is incremental from each property's last_bookings_sync_at.

    Args:
        connection_id (UUID): Local connection ID.
        date_from (Optional[date]): Earliest arrival, inclusive.
        date_to (Optional[date]): Latest arrival, inclusive.
        engine (Engine): SQLAlchemy engine.
        client (Optional[Beds24Client]): Client override, mainly for tests.
        dry_run (bool): If True, skip DB writes.

    Returns:
        dict[str, Any]: sync_log_id and processed/succeeded/failed counts.
    """
    connection = load_active_connection(engine, connection_id)
    client = client or build_client(connection, engine)
    windowed = date_from is not None or date_to is not None

    with engine.connect() as conn:
        properties = list_sync_enabled_properties(conn, connection_id)

    sync_data = {
        "date_from": date_from.isoformat() if date_from else None,
        "date_to": date_to.isoformat() if date_to else None,
        "properties": len(properties),
    }

    with SyncRun(engine, connection_id, "bookings", "pull", sync_data=sync_data) as run:
        for prop in properties:
            if not (prop.get("sync_settings") or {}).get("sync_bookings", True):
                continue

            remote_property_id = prop["remote_property_id"]
            cursor = utc_now()
            bookings = poll_bookings(
                client,
                remote_property_id,
                modified_from=None if windowed else prop.get("last_bookings_sync_at"),
                arrival_from=date_from,
                arrival_to=date_to,
            )
            _store_bookings(engine, run, connection, remote_property_id, bookings, dry_run=dry_run)

            if not dry_run:
                with engine.begin() as conn:
                    mark_property_synced(
                        conn, connection_id, remote_property_id, "bookings", synced_at=cursor
                    )

        if not dry_run:
            with engine.begin() as conn:
                update_last_sync(conn, connection_id)

    return {
        "sync_log_id": str(run.sync_log_id),
        "records_processed": run.processed,
        "records_succeeded": run.succeeded,
        "records_failed": run.failed,
    }


# -----------------------------------------------------------------------------
# Calendar: inventory and rates
# -----------------------------------------------------------------------------


def _refresh_calendar(
    engine: Engine,
    client: Beds24Client,
    prop: dict[str, Any],
    date_from: date,
    date_to: date,
    sync_type: str,
) -> int:
    remote_property_id = prop["remote_property_id"]
    with SyncRun(
        engine,
        prop["connection_id"],
        sync_type,
        "pull",
        remote_property_id=remote_property_id,
        sync_data={"date_from": date_from.isoformat(), "date_to": date_to.isoformat()},
    ) as run:
        days = poll_calendar(client, remote_property_id, date_from, date_to)
        with engine.begin() as conn:
            upsert_cells(conn, cell_rows(remote_property_id, days, synced_from_remote=True))
            mark_property_synced(conn, prop["connection_id"], remote_property_id, sync_type)
        run.record(processed=len(days), succeeded=len(days))
    return len(days)


def get_inventory(
    remote_property_id: int,
    date_from: date,
    date_to: date,
    room_id: Optional[int] = None,
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
) -> list[dict[str, Any]]:
    """
    Read inventory through the local cache.

    Cached cells are served only when every known room has an unexpired cell
    for every night in the range; otherwise the range is pulled from Beds24
    first.

    Args:
        remote_property_id (int): Beds24 property ID.
        date_from (date): First night, inclusive.
        date_to (date): Last night, inclusive.
        room_id (Optional[int]): Restrict to one room.
        engine (Engine): SQLAlchemy engine.
        client (Optional[Beds24Client]): Client override, mainly for tests.

    Returns:
        list[dict[str, Any]]: Inventory cells ordered by room and date.
    """
    prop = load_property(engine, remote_property_id)

    with engine.connect() as conn:
        cells = get_fresh_cells(conn, remote_property_id, date_from, date_to, utc_now(), room_id)

    rooms = [room_id] if room_id is not None else room_ids_for_property(prop)
    nights = (date_to - date_from).days + 1
    if rooms and len(cells) >= len(rooms) * nights:
        logger.debug("inventory_cache_hit", remote_property_id=remote_property_id, cells=len(cells))
        return cells

    logger.info(
        "inventory_cache_miss",
        remote_property_id=remote_property_id,
        cached=len(cells),
        expected=len(rooms) * nights,
    )
    if client is None:
        client = build_client(load_active_connection(engine, prop["connection_id"]), engine)
    _refresh_calendar(engine, client, prop, date_from, date_to, "inventory")

    with engine.connect() as conn:
        return get_fresh_cells(conn, remote_property_id, date_from, date_to, utc_now(), room_id)


def pull_rates(
    remote_property_id: int,
    date_from: date,
    date_to: date,
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
) -> dict[str, Any]:
    """
    Pull prices and restrictions for a property, bypassing the cache.

    Returns:
        dict[str, Any]: Number of cells refreshed.
    """
    prop = load_property(engine, remote_property_id)
    if client is None:
        client = build_client(load_active_connection(engine, prop["connection_id"]), engine)
    cells = _refresh_calendar(engine, client, prop, date_from, date_to, "rates")
    return {"remote_property_id": remote_property_id, "cells": cells}


def _nights(lines: Iterable[CalendarLine]) -> int:
    return sum(line.nights for line in lines)


def _push_calendar(
    remote_property_id: int,
    updates: list[InventoryUpdate],
    sync_type: str,
    engine: Engine,
    client: Optional[Beds24Client],
    batch_size: int,
    max_batch_retries: int,
) -> dict[str, Any]:
    prop = load_property(engine, remote_property_id)
    connection_id = prop["connection_id"]
    if client is None:
        client = build_client(load_active_connection(engine, connection_id), engine)

    lines = merge_contiguous_lines(daily_lines(updates))
    batches = chunk_lines(lines, batch_size)
    sync_data = {"lines": len(lines), "batches": len(batches), "nights": _nights(lines)}

    with SyncRun(
        engine,
        connection_id,
        sync_type,
        "push",
        remote_property_id=remote_property_id,
        sync_data=sync_data,
    ) as run:
        pending = list(enumerate(batches, start=1))
        attempt = 0

        while pending:
            failed: list[tuple[int, list[CalendarLine], list[Any]]] = []

            for number, batch in pending:
                try:
                    errors = batch_errors(client.post_rooms_calendar(batch_body(batch)))
                except (ProviderError, TransientNetworkError) as e:
                    errors = [e.to_details()]

                if errors:
                    failed.append((number, batch, errors))
                    continue

                days = [day for line in batch for day in line.days()]
                with engine.begin() as conn:
                    upsert_cells(
                        conn,
                        cell_rows(remote_property_id, days, synced_from_remote=False),
                        partial=True,
                    )
                run.record(processed=len(days), succeeded=len(days))

            if not failed:
                break

            attempt += 1
            if attempt > max_batch_retries:
                for number, batch, errors in failed:
                    nights = _nights(batch)
                    run.record(
                        processed=nights,
                        failed=nights,
                        errors=[
                            {
                                "type": "batch_rejected",
                                "batch": number,
                                "room_ids": sorted({line.room_id for line in batch}),
                                "date_from": min(line.date_from for line in batch).isoformat(),
                                "date_to": max(line.date_to for line in batch).isoformat(),
                                "errors": errors,
                            }
                        ],
                    )
                break

            logger.warning(
                "calendar_batches_retrying",
                remote_property_id=remote_property_id,
                failed_batches=[number for number, _, _ in failed],
                attempt=attempt,
            )
            pending = [(number, batch) for number, batch, _ in failed]

        if run.succeeded:
            with engine.begin() as conn:
                mark_property_synced(conn, connection_id, remote_property_id, sync_type)

    return {
        "sync_log_id": str(run.sync_log_id),
        **sync_data,
        "records_succeeded": run.succeeded,
        "records_failed": run.failed,
    }


def push_inventory(
    remote_property_id: int,
    updates: list[InventoryUpdate],
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
    batch_size: int = CALENDAR_BATCH_SIZE,
    max_batch_retries: int = CALENDAR_BATCH_RETRIES,
) -> dict[str, Any]:
    """
    Push availability and restriction changes to Beds24.

    Nights are merged into ranges, sent in batches of at most ``batch_size``
    lines, and only rejected batches are retried (up to ``max_batch_retries``
    times). Batches still rejected after that are recorded as failed items;
    the run itself completes. A RateLimitError aborts the run.

    Args:
        remote_property_id (int): Beds24 property ID.
        updates (list[InventoryUpdate]): Requested changes.
        engine (Engine): SQLAlchemy engine.
        client (Optional[Beds24Client]): Client override, mainly for tests.
        batch_size (int): Maximum calendar lines per request.
        max_batch_retries (int): Extra attempts for rejected batches.

    Returns:
        dict[str, Any]: sync_log_id, line/batch/night counts and outcome counts.
    """
    return _push_calendar(
        remote_property_id, updates, "inventory", engine, client, batch_size, max_batch_retries
    )


def push_rates(
    remote_property_id: int,
    updates: list[InventoryUpdate],
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
    batch_size: int = CALENDAR_BATCH_SIZE,
    max_batch_retries: int = CALENDAR_BATCH_RETRIES,
) -> dict[str, Any]:
    """Push price changes to Beds24. Same batching and retry rules as push_inventory."""
    return _push_calendar(
        remote_property_id, updates, "rates", engine, client, batch_size, max_batch_retries
    )


# -----------------------------------------------------------------------------
# Scheduler entry points
# -----------------------------------------------------------------------------


def sync_connection(
    connection_id: UUID, engine: Engine = default_engine, dry_run: bool = False
) -> None:
    """
    Run a full pass for one connection: properties, then bookings.

    Both passes share one client, and with it one token cache.
    """
    logger.info("sync_started", connection_id=str(connection_id))

    connection = load_active_connection(engine, connection_id)
    client = build_client(connection, engine)

    properties = sync_properties(connection_id, engine=engine, client=client, dry_run=dry_run)
    bookings = pull_bookings(connection_id, engine=engine, client=client, dry_run=dry_run)

    logger.info(
        "sync_completed",
        connection_id=str(connection_id),
        properties_count=properties["properties"],
        bookings_count=bookings["records_succeeded"],
    )


def sync_all_connections(engine: Engine = default_engine, dry_run: bool = False) -> None:
    """
    Run sync_connection() for all active connections.

    A failing connection is logged and skipped. A RateLimitError stops the
    loop, because every connection shares the caller's Beds24 credit budget.
    """
    logger.info("sync_all_connections_started")

    with engine.connect() as conn:
        connection_ids = list_active_connection_ids(conn)

    logger.info("active_connections_found", count=len(connection_ids))

    for connection_id in connection_ids:
        try:
            sync_connection(connection_id, engine=engine, dry_run=dry_run)
        except RateLimitError:
            raise
        except Exception as e:
            logger.exception("connection_sync_failed", connection_id=str(connection_id), error=str(e))

    logger.info("sync_all_connections_completed", total_connections=len(connection_ids))
