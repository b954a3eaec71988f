from typing import Any, Optional
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.engine import Connection

from sync_beds24.models.audit import AuditEntry
from sync_beds24.utils.redaction import redact


def insert_audit_entry(
    conn: Connection,
    *,
    operation: str,
    method: str,
    endpoint: str,
    status: str,
    duration_ms: int,
    connection_id: Optional[UUID] = None,
    hotel_id: Optional[str] = None,
    http_status: Optional[int] = None,
    request_cost: Optional[int] = None,
    credits_remaining: Optional[int] = None,
    credits_resets_in: Optional[int] = None,
    request_payload: Any = None,
    response_payload: Any = None,
    error_details: Optional[dict[str, Any]] = None,
) -> None:
    """
    Append one audit entry for a Beds24 API call.

    Payloads and error details pass through redact() before they are stored.

    Args:
        conn (Connection): SQLAlchemy DB connection.
        operation (str): Logical operation, e.g. "get_bookings".
        method (str): HTTP verb.
        endpoint (str): Beds24 path, e.g. "/bookings".
        status (str): success or error.
        duration_ms (int): Wall time of the call including retries.
    """
    conn.execute(
        insert(AuditEntry).values(
            connection_id=connection_id,
            hotel_id=hotel_id,
            operation=operation,
            method=method,
            endpoint=endpoint,
            status=status,
            http_status=http_status,
            request_cost=request_cost,
            credits_remaining=credits_remaining,
            credits_resets_in=credits_resets_in,
            duration_ms=duration_ms,
            request_payload=redact(request_payload),
            response_payload=redact(response_payload),
            error_details=redact(error_details),
        )
    )
