"""
Lifecycle of a hotel's connection to Beds24.

    pending -> active        invite code exchanged
    active -> expiring       token or credit budget close to exhaustion
    expiring -> active       token refreshed
    any -> error             Beds24 rejected the credentials
    error -> pending         credentials rotated (also allowed from active/expiring)
    any -> disconnected      connection deleted

The status column is a cached reading of this machine; derive_status()
recomputes it from the stored credentials and recent gateway outcomes.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Iterable, Optional

from sync_beds24.config import RATE_LIMIT_THRESHOLD, TOKEN_EXPIRING_WINDOW_SECONDS
from sync_beds24.errors import InvalidTransitionError
from sync_beds24.utils.datetime import utc_now


class ConnectionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRING = "expiring"
    ERROR = "error"
    DISCONNECTED = "disconnected"


TRANSITIONS: dict[ConnectionStatus, frozenset[ConnectionStatus]] = {
    ConnectionStatus.PENDING: frozenset({ConnectionStatus.ACTIVE}),
    ConnectionStatus.ACTIVE: frozenset({ConnectionStatus.EXPIRING, ConnectionStatus.PENDING}),
    ConnectionStatus.EXPIRING: frozenset({ConnectionStatus.ACTIVE, ConnectionStatus.PENDING}),
    ConnectionStatus.ERROR: frozenset({ConnectionStatus.PENDING}),
    ConnectionStatus.DISCONNECTED: frozenset(),
}

# Reachable from every live state
UNIVERSAL_TARGETS = frozenset({ConnectionStatus.ERROR, ConnectionStatus.DISCONNECTED})


def can_transition(current: str, target: str) -> bool:
    """Return True if moving from current to target is allowed (or a no-op)."""
    current_status = ConnectionStatus(current)
    target_status = ConnectionStatus(target)
    if current_status == target_status:
        return True
    if current_status == ConnectionStatus.DISCONNECTED:
        return False
    return target_status in UNIVERSAL_TARGETS or target_status in TRANSITIONS[current_status]


def transition(current: str, target: str) -> ConnectionStatus:
    """
    Validate a status change.

    Args:
        current: Status stored on the connection
        target: Desired status

    Returns:
        ConnectionStatus: The target status

    Raises:
        InvalidTransitionError: If the lifecycle forbids the move
    """
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return ConnectionStatus(target)


def _is_auth_failure(entry: dict[str, Any]) -> bool:
    details = entry.get("error_details") or {}
    return entry.get("http_status") == 401 or details.get("type") == "authentication"


def derive_status(
    connection: dict[str, Any],
    recent_audit: Iterable[dict[str, Any]] = (),
    now: Optional[datetime] = None,
    threshold: int = RATE_LIMIT_THRESHOLD,
    expiring_window_seconds: int = TOKEN_EXPIRING_WINDOW_SECONDS,
) -> ConnectionStatus:
    """
    Recompute a connection's status from its credentials and recent calls.

    Args:
        connection: Connection row (see db.readers.connections)
        recent_audit: Audit outcomes, newest first
        now: Reference time
        threshold: Credit level at or below which the budget counts as near exhaustion
        expiring_window_seconds: Token lifetime below which the token counts as expiring

    Returns:
        ConnectionStatus
    """
    now = now or utc_now()

    if not connection.get("is_active", True):
        return ConnectionStatus.DISCONNECTED

    entries = list(recent_audit)
    if connection.get("status") == ConnectionStatus.ERROR.value:
        return ConnectionStatus.ERROR
    if entries and entries[0].get("status") == "error" and _is_auth_failure(entries[0]):
        return ConnectionStatus.ERROR

    if not connection.get("refresh_token_encrypted") and not connection.get(
        "access_token_encrypted"
    ):
        return ConnectionStatus.PENDING

    expires_at = connection.get("token_expires_at")
    if expires_at is not None and expires_at - now <= timedelta(seconds=expiring_window_seconds):
        return ConnectionStatus.EXPIRING

    credits = connection.get("credits_remaining")
    reset_at = connection.get("credits_reset_at")
    if credits is not None and credits <= threshold and (reset_at is None or reset_at > now):
        return ConnectionStatus.EXPIRING

    return ConnectionStatus.ACTIVE
