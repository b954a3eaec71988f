from datetime import datetime
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection as DBConnection

from sync_beds24.models.connections import Connection
from sync_beds24.utils.datetime import utc_now

logger = structlog.get_logger(__name__)


def insert_connection(
    conn: DBConnection,
    hotel_id: str,
    organization_id: Optional[str] = None,
    scopes: Optional[list[str]] = None,
    allow_linked_properties: bool = False,
) -> UUID:
    """
    Create a pending connection for a hotel.

    Args:
        conn (DBConnection): SQLAlchemy DB connection.
        hotel_id (str): Platform hotel identifier.
        organization_id (Optional[str]): Platform organization identifier.
        scopes (Optional[list[str]]): Beds24 scopes granted by the invite code.
        allow_linked_properties (bool): Whether linked properties may be read.

    Returns:
        UUID: ID of the new connection row.
    """
    now = utc_now()
    stmt = (
        insert(Connection)
        .values(
            hotel_id=hotel_id,
            organization_id=organization_id,
            scopes=scopes or [],
            allow_linked_properties=allow_linked_properties,
            status="pending",
            is_active=True,
            created_at=now,
            updated_at=now,
        )
        .returning(Connection.id)
    )
    connection_id: UUID = conn.execute(stmt).scalar_one()
    logger.info("connection_inserted", connection_id=str(connection_id), hotel_id=hotel_id)
    return connection_id


def store_connection_tokens(
    conn: DBConnection,
    connection_id: UUID,
    access_token_encrypted: str,
    token_expires_at: datetime,
    refresh_token_encrypted: Optional[str] = None,
    status: Optional[str] = None,
) -> None:
    """
    Persist a freshly issued access token, and optionally a new refresh token.

    Keyed by connection id; concurrent refreshes overwrite each other, which is
    fine because any valid token is as good as another.

    Args:
        conn (DBConnection): SQLAlchemy DB connection.
        connection_id (UUID): Local connection ID.
        access_token_encrypted (str): Fernet ciphertext of the access token.
        token_expires_at (datetime): Absolute expiry of the access token.
        refresh_token_encrypted (Optional[str]): Fernet ciphertext of a new refresh token.
        status (Optional[str]): Lifecycle status to write in the same statement.
    """
    values: dict[str, Any] = {
        "access_token_encrypted": access_token_encrypted,
        "token_expires_at": token_expires_at,
        "updated_at": utc_now(),
    }
    if refresh_token_encrypted is not None:
        values["refresh_token_encrypted"] = refresh_token_encrypted
    if status is not None:
        values["status"] = status
        values["last_error"] = None

    conn.execute(update(Connection).where(Connection.id == connection_id).values(**values))
    logger.info(
        "connection_tokens_stored",
        connection_id=str(connection_id),
        token_expires_at=token_expires_at.isoformat(),
        refresh_token_rotated=refresh_token_encrypted is not None,
    )


def update_connection_status(
    conn: DBConnection,
    connection_id: UUID,
    status: str,
    last_error: Optional[str] = None,
) -> None:
    """
    Write a lifecycle status for a connection.

    Callers validate the move with services.connection_state.transition first.

    Args:
        conn (DBConnection): SQLAlchemy DB connection.
        connection_id (UUID): Local connection ID.
        status (str): New status.
        last_error (Optional[str]): Error message to keep alongside an error status.
    """
    conn.execute(
        update(Connection)
        .where(Connection.id == connection_id)
        .values(status=status, last_error=last_error, updated_at=utc_now())
    )


def update_connection_account(
    conn: DBConnection,
    connection_id: UUID,
    account_id: Optional[int],
    account_email: Optional[str],
) -> None:
    """Record the Beds24 owner account reported by /authentication/details."""
    conn.execute(
        update(Connection)
        .where(Connection.id == connection_id)
        .values(account_id=account_id, account_email=account_email, updated_at=utc_now())
    )


def update_connection_credits(
    conn: DBConnection,
    connection_id: UUID,
    remaining: int,
    limit: Optional[int],
    reset_at: datetime,
) -> None:
    """
    Record the latest credit telemetry reported by Beds24.

    Args:
        conn (DBConnection): SQLAlchemy DB connection.
        connection_id (UUID): Local connection ID.
        remaining (int): Credits left in the window.
        limit (Optional[int]): Window ceiling, kept as-is when unknown.
        reset_at (datetime): When the window resets.
    """
    values: dict[str, Any] = {"credits_remaining": remaining, "credits_reset_at": reset_at}
    if limit is not None:
        values["credits_limit"] = limit
    conn.execute(update(Connection).where(Connection.id == connection_id).values(**values))


def deactivate_connection(conn: DBConnection, connection_id: UUID) -> None:
    """
    Soft delete a connection: mark it disconnected and drop its tokens.

    Args:
        conn (DBConnection): SQLAlchemy DB connection.
        connection_id (UUID): Local connection ID.
    """
    conn.execute(
        update(Connection)
        .where(Connection.id == connection_id)
        .values(
            is_active=False,
            status="disconnected",
            access_token_encrypted=None,
            refresh_token_encrypted=None,
            token_expires_at=None,
            updated_at=utc_now(),
        )
    )


def update_last_sync(conn: DBConnection, connection_id: UUID) -> None:
    """Update the last_sync_at timestamp for a connection."""
    now = utc_now()
    conn.execute(
        update(Connection)
        .where(Connection.id == connection_id)
        .values(last_sync_at=now, updated_at=now)
    )
