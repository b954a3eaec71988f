"""
Connection lifecycle operations: connect, test, rotate, disconnect and keep-alive.

Every status write goes through connection_state.transition() first, so an
illegal move raises InvalidTransitionError before anything is persisted.
"""

from __future__ import annotations

import time
from datetime import timedelta
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from sync_beds24.config import BEDS24_DEVICE_NAME, KEEP_ALIVE_DELAY_SECONDS, KEEP_ALIVE_IDLE_DAYS
from sync_beds24.crypto import encrypt_token
from sync_beds24.db.engine import engine as default_engine
from sync_beds24.db.readers.audit import recent_audit_outcomes
from sync_beds24.db.readers.connections import (
    get_active_connection_for_hotel,
    get_connection,
    list_idle_connection_ids,
)
from sync_beds24.db.writers.connections import (
    deactivate_connection,
    insert_connection,
    store_connection_tokens,
    update_connection_account,
    update_connection_status,
)
from sync_beds24.errors import (
    AuthenticationError,
    Beds24Error,
    DuplicateConnectionError,
    NotFoundError,
)
from sync_beds24.metrics import keep_alive_refreshes
from sync_beds24.network.auth import InviteGrant, RefreshTokenProvider, exchange_invite_code
from sync_beds24.network.client import Beds24Client
from sync_beds24.services.connection_state import (
    ConnectionStatus,
    can_transition,
    derive_status,
    transition,
)
from sync_beds24.services.sync import build_client
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def _load(engine: Engine, connection_id: UUID) -> dict[str, Any]:
    with engine.connect() as conn:
        connection = get_connection(conn, connection_id)
    if not connection:
        raise NotFoundError(f"Connection {connection_id} not found")
    return connection


def _store_grant(engine: Engine, connection_id: UUID, current: str, grant: InviteGrant) -> None:
    target = transition(current, ConnectionStatus.ACTIVE.value)
    with engine.begin() as conn:
        store_connection_tokens(
            conn,
            connection_id,
            access_token_encrypted=encrypt_token(grant.token),
            token_expires_at=utc_now() + timedelta(seconds=grant.expires_in),
            refresh_token_encrypted=encrypt_token(grant.refresh_token),
            status=target.value,
        )


def _mark_error(engine: Engine, connection_id: UUID, current: str, error: Beds24Error) -> None:
    target = transition(current, ConnectionStatus.ERROR.value)
    with engine.begin() as conn:
        update_connection_status(conn, connection_id, target.value, last_error=error.message)


def connect_hotel(
    hotel_id: str,
    invite_code: str,
    device_name: Optional[str] = None,
    organization_id: Optional[str] = None,
    engine: Engine = default_engine,
) -> dict[str, Any]:
    """
    Connect a hotel to Beds24 with a one-time invite code.

    The code is exchanged first. Only when Beds24 issues tokens is the
    connection created, with both tokens encrypted and status active, in a
    single transaction. A failed exchange persists nothing, so the hotel can
    retry with a new code.

    Args:
        hotel_id (str): Platform hotel identifier.
        invite_code (str): Invite code generated in the Beds24 console.
        device_name (Optional[str]): Label for the refresh token in Beds24.
        organization_id (Optional[str]): Platform organization identifier.
        engine (Engine): SQLAlchemy engine.

    Returns:
        dict[str, Any]: connection_id and status.

    Raises:
        DuplicateConnectionError: If the hotel already has an active connection.
        AuthenticationError: If Beds24 rejects the invite code.
    """
    with engine.connect() as conn:
        if get_active_connection_for_hotel(conn, hotel_id):
            raise DuplicateConnectionError(f"Hotel {hotel_id} already has an active connection")

    try:
        grant = exchange_invite_code(invite_code, device_name=device_name or BEDS24_DEVICE_NAME)
    except Beds24Error as e:
        logger.warning("connection_invite_failed", hotel_id=hotel_id, error_type=type(e).__name__)
        raise

    target = transition(ConnectionStatus.PENDING.value, ConnectionStatus.ACTIVE.value)
    try:
        with engine.begin() as conn:
            connection_id = insert_connection(conn, hotel_id, organization_id=organization_id)
            store_connection_tokens(
                conn,
                connection_id,
                access_token_encrypted=encrypt_token(grant.token),
                token_expires_at=utc_now() + timedelta(seconds=grant.expires_in),
                refresh_token_encrypted=encrypt_token(grant.refresh_token),
                status=target.value,
            )
    except IntegrityError as e:
        # Another request connected the hotel while the code was being exchanged
        raise DuplicateConnectionError(f"Hotel {hotel_id} already has an active connection") from e

    logger.info("connection_established", hotel_id=hotel_id, connection_id=str(connection_id))

    return {"connection_id": str(connection_id), "status": target.value}


def check_connection(
    connection_id: UUID,
    engine: Engine = default_engine,
    client: Optional[Beds24Client] = None,
) -> dict[str, Any]:
    """
    Check a connection with GET /authentication/details and refresh its status.

    A failed check is not raised: it is reported in the result and, through
    the audit log, reflected in the derived status.

    Returns:
        dict[str, Any]: connection_id, ok flag, status, and error if any.
    """
    connection = _load(engine, connection_id)
    if not connection["is_active"]:
        return {
            "connection_id": str(connection_id),
            "ok": False,
            "status": ConnectionStatus.DISCONNECTED.value,
        }

    client = client or build_client(connection, engine)
    error: Optional[dict[str, Any]] = None
    try:
        details = client.get_authentication_details()
        account = details.get("account") or {}
        if account.get("id") is not None:
            with engine.begin() as conn:
                update_connection_account(conn, connection_id, account.get("id"), account.get("email"))
    except Beds24Error as e:
        error = e.to_details()
        logger.warning("connection_test_failed", connection_id=str(connection_id), error=e.message)

    connection = _load(engine, connection_id)
    with engine.connect() as conn:
        recent = recent_audit_outcomes(conn, connection_id)
    derived = derive_status(connection, recent)

    if derived.value != connection["status"] and can_transition(connection["status"], derived.value):
        with engine.begin() as conn:
            update_connection_status(
                conn,
                connection_id,
                derived.value,
                last_error=(error or {}).get("message") or connection.get("last_error"),
            )

    result: dict[str, Any] = {
        "connection_id": str(connection_id),
        "ok": error is None,
        "status": derived.value,
        "credits_remaining": connection.get("credits_remaining"),
        "token_expires_at": (
            connection["token_expires_at"].isoformat() if connection.get("token_expires_at") else None
        ),
    }
    if error:
        result["error"] = error
    return result


def rotate_credentials(
    connection_id: UUID,
    invite_code: str,
    device_name: Optional[str] = None,
    engine: Engine = default_engine,
) -> dict[str, Any]:
    """
    Replace a connection's tokens with ones issued for a new invite code.

    The connection keeps its id, so imported properties, bookings and sync
    history stay attached. It passes through pending while the code is
    exchanged and ends active, or in error if the exchange fails for any
    reason, from where it can be rotated again.

    Raises:
        NotFoundError: If the connection does not exist.
        InvalidTransitionError: If the connection is disconnected.
        AuthenticationError: If Beds24 rejects the invite code.
    """
    connection = _load(engine, connection_id)
    pending = transition(connection["status"], ConnectionStatus.PENDING.value)
    with engine.begin() as conn:
        update_connection_status(conn, connection_id, pending.value)

    try:
        grant = exchange_invite_code(invite_code, device_name=device_name or BEDS24_DEVICE_NAME)
    except Beds24Error as e:
        _mark_error(engine, connection_id, pending.value, e)
        logger.warning(
            "credential_rotation_failed",
            connection_id=str(connection_id),
            error_type=type(e).__name__,
        )
        raise

    _store_grant(engine, connection_id, pending.value, grant)
    logger.info("credentials_rotated", connection_id=str(connection_id))

    return {"connection_id": str(connection_id), "status": ConnectionStatus.ACTIVE.value}


def disconnect(connection_id: UUID, engine: Engine = default_engine) -> dict[str, Any]:
    """
    Disconnect a hotel: deactivate the connection and drop its tokens.

    Imported data is kept. Disconnecting twice is a no-op.

    Raises:
        NotFoundError: If the connection does not exist.
    """
    connection = _load(engine, connection_id)
    transition(connection["status"], ConnectionStatus.DISCONNECTED.value)

    if connection["is_active"]:
        with engine.begin() as conn:
            deactivate_connection(conn, connection_id)
        logger.info("connection_disconnected", connection_id=str(connection_id))

    return {"connection_id": str(connection_id), "status": ConnectionStatus.DISCONNECTED.value}


def keep_alive_connections(
    engine: Engine = default_engine,
    idle_days: int = KEEP_ALIVE_IDLE_DAYS,
    delay_seconds: float = KEEP_ALIVE_DELAY_SECONDS,
) -> dict[str, Any]:
    """
    Exchange the refresh token of every idle connection so Beds24 keeps it.

    A rejected refresh token moves the connection to error (done by the
    provider). Network and provider failures are counted and left for the
    next run.

    Returns:
        dict: total_connections, success_count, failure_count and up to ten errors
    """
    cutoff = utc_now() - timedelta(days=idle_days)
    with engine.connect() as conn:
        connection_ids = list_idle_connection_ids(conn, cutoff)

    logger.info("keep_alive_started", idle_connections=len(connection_ids), cutoff=cutoff.isoformat())

    succeeded = 0
    errors: list[dict[str, Any]] = []
    for index, connection_id in enumerate(connection_ids):
        if index:
            time.sleep(delay_seconds)

        provider = RefreshTokenProvider(connection_id=connection_id, engine=engine, force=True)
        try:
            if provider() is None:
                raise AuthenticationError(f"Connection {connection_id} has no refresh token")
            succeeded += 1
            keep_alive_refreshes.labels(status="success").inc()
        except Beds24Error as e:
            keep_alive_refreshes.labels(status="failure").inc()
            errors.append(
                {
                    "connection_id": str(connection_id),
                    "error_type": type(e).__name__,
                    "message": e.message,
                }
            )
            logger.warning(
                "keep_alive_refresh_failed",
                connection_id=str(connection_id),
                error_type=type(e).__name__,
            )

    summary = {
        "total_connections": len(connection_ids),
        "success_count": succeeded,
        "failure_count": len(errors),
        "errors": errors[:10],
    }
    logger.info(
        "keep_alive_finished",
        total_connections=summary["total_connections"],
        success_count=succeeded,
        failure_count=len(errors),
    )
    return summary
