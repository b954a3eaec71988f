"""Beds24 webhook receiver route."""

import base64
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from sync_beds24.config import DRY_RUN, WEBHOOK_PASSWORD, WEBHOOK_USERNAME
from sync_beds24.db.readers.properties import get_active_property
from sync_beds24.db.writers.bookings import upsert_bookings
from sync_beds24.dependencies import get_db_engine
from sync_beds24.metrics import webhooks_received
from sync_beds24.services.sync import booking_rows

router = APIRouter()
logger = structlog.get_logger(__name__)


def validate_basic_auth(auth_header: str | None) -> bool:
    """
    Validate HTTP Basic Auth credentials against the webhook credentials.

    Always False while WEBHOOK_USERNAME or WEBHOOK_PASSWORD is unset.

    Args:
        auth_header: Authorization header value (e.g., "Basic dXNlcjpwYXNz")

    Returns:
        bool: True if credentials match, False otherwise
    """
    if not WEBHOOK_USERNAME or not WEBHOOK_PASSWORD:
        return False
    if not auth_header or not auth_header.startswith("Basic "):
        return False

    try:
        encoded_credentials = auth_header.replace("Basic ", "", 1)
        decoded_credentials = base64.b64decode(encoded_credentials).decode("utf-8")
        username, password = decoded_credentials.split(":", 1)
    except ValueError:
        logger.warning("webhook_auth_header_malformed")
        return False

    return username == WEBHOOK_USERNAME and password == WEBHOOK_PASSWORD


def webhook_type(payload: dict[str, Any]) -> str:
    """Classify a Beds24 webhook body by the keys it carries."""
    if payload.get("booking") or payload.get("bookingId"):
        return "booking"
    if payload.get("inventory") or payload.get("calendar"):
        return "inventory"
    if payload.get("rate") or payload.get("rates"):
        return "rate"
    if payload.get("message"):
        return "message"
    if payload.get("property") or payload.get("propertyId"):
        return "property"
    return "unknown"


def handle_booking(engine: Engine, payload: dict[str, Any]) -> JSONResponse:
    """
    Upsert the booking carried by a webhook into the local store.

    Beds24 sends either {"booking": {...}} or the booking object itself.

    Args:
        engine: Database engine
        payload: Parsed webhook body

    Returns:
        JSONResponse: accepted, or the reason the booking was refused
    """
    booking = payload.get("booking")
    if not isinstance(booking, dict):
        booking = payload

    if booking.get("id") is None:
        # Reference-only notification; the next bookings pull picks it up
        logger.info("webhook_booking_reference_only", booking_id=payload.get("bookingId"))
        webhooks_received.labels(webhook_type="booking", outcome="ignored").inc()
        return JSONResponse(content={"status": "accepted"})

    try:
        remote_property_id = int(booking.get("propertyId") or payload.get("propertyId") or 0)
    except (TypeError, ValueError):
        remote_property_id = 0
    if not remote_property_id:
        logger.warning("webhook_missing_property_id", booking_id=booking.get("id"))
        webhooks_received.labels(webhook_type="booking", outcome="rejected").inc()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Missing propertyId"},
        )

    with engine.connect() as conn:
        prop = get_active_property(conn, remote_property_id)

    if not prop:
        logger.warning("webhook_unknown_property", remote_property_id=remote_property_id)
        webhooks_received.labels(webhook_type="booking", outcome="rejected").inc()
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": f"Property {remote_property_id} not found"},
        )

    connection = {"id": prop["connection_id"], "hotel_id": prop["hotel_id"]}
    rows, errors = booking_rows([booking], connection, remote_property_id)
    if errors:
        logger.warning("webhook_invalid_booking", errors=errors)
        webhooks_received.labels(webhook_type="booking", outcome="rejected").inc()
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid booking", "details": errors},
        )

    with engine.begin() as conn:
        changed = upsert_bookings(conn, rows, dry_run=DRY_RUN)

    logger.info(
        "webhook_booking_stored",
        connection_id=str(prop["connection_id"]),
        remote_property_id=remote_property_id,
        booking_id=booking.get("id"),
        status=booking.get("status"),
        changed=changed,
    )
    webhooks_received.labels(webhook_type="booking", outcome="accepted").inc()
    return JSONResponse(content={"status": "accepted"})


@router.post("/webhooks")
async def receive_beds24_webhook(
    request: Request,
    engine: Engine = Depends(get_db_engine),
) -> JSONResponse:
    """
    Handle incoming Beds24 webhooks.

    Booking webhooks are upserted straight into the bookings table. Other
    kinds are acknowledged and left to the scheduled sync.

    Authentication: HTTP Basic Auth with WEBHOOK_USERNAME/WEBHOOK_PASSWORD

    Args:
        request: FastAPI request containing the webhook body
        engine: Database engine

    Returns:
        JSONResponse: Acknowledgment response
    """
    if not validate_basic_auth(request.headers.get("Authorization")):
        logger.warning("webhook_authentication_failed")
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"error": "Unauthorized"},
        )

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("webhook_invalid_json")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid JSON"},
        )

    if not isinstance(payload, dict):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Expected a JSON object"},
        )

    kind = webhook_type(payload)
    logger.info(
        "webhook_received",
        webhook_type=kind,
        remote_property_id=payload.get("propertyId"),
        event_type=payload.get("eventType") or payload.get("action"),
    )

    if kind != "booking":
        logger.warning("webhook_unsupported_type", webhook_type=kind)
        webhooks_received.labels(webhook_type=kind, outcome="ignored").inc()
        # Return 200 anyway so Beds24 does not retry
        return JSONResponse(content={"status": "accepted"})

    try:
        return handle_booking(engine, payload)
    except Exception as e:
        logger.exception("webhook_processing_failed", webhook_type=kind, error=str(e))
        webhooks_received.labels(webhook_type=kind, outcome="failed").inc()
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )
