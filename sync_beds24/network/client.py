"""
Gateway client for the Beds24 v2 API.

Every outbound call goes through Beds24Client.make_request, which picks the
read or write token by verb, guards the credit budget, retries transient
network failures a bounded number of times and writes exactly one audit entry
per call, whatever the outcome.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Optional
from uuid import UUID

import requests
import structlog
from sqlalchemy.engine import Engine

from sync_beds24.config import (
    BEDS24_BASE_URL,
    MAX_RETRIES,
    RATE_LIMIT_THRESHOLD,
    REQUEST_TIMEOUT_SECONDS,
)
from sync_beds24.db.engine import engine as default_engine
from sync_beds24.db.writers.audit import insert_audit_entry
from sync_beds24.db.writers.connections import update_connection_credits, update_connection_status
from sync_beds24.errors import (
    AuthenticationError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    TransientNetworkError,
)
from sync_beds24.metrics import api_credits_remaining, api_latency, api_requests, rate_limit_hits
from sync_beds24.network.auth import READ, WRITE, TokenManager
from sync_beds24.network.ratelimit import CreditInfo, parse_credit_headers, should_backoff
from sync_beds24.schemas.remote import (
    CalendarDay,
    CalendarPushResult,
    RemoteBooking,
    RemoteProperty,
)
from sync_beds24.services.connection_state import ConnectionStatus
from sync_beds24.utils.datetime import date_range, utc_now

logger = structlog.get_logger(__name__)

RETRY_DELAY = 1.0
MAX_PAGES = 100
READ_VERBS = frozenset({"GET", "HEAD", "OPTIONS"})
RETRYABLE_STATUSES = frozenset({502, 503, 504})


@dataclass(frozen=True)
class GatewayResponse:
    data: Any
    credit_info: CreditInfo
    status_code: int


def classify_verb(method: str) -> str:
    """Return the token class for an HTTP verb: GET is read, anything mutating is write."""
    return READ if method.upper() in READ_VERBS else WRITE


def should_retry(
    res: Optional[requests.Response], err: Optional[Exception], method: str
) -> bool:
    """
    Determine whether a request should be retried.

    Timeouts and connection resets are always retried. Gateway errors are only
    retried for read verbs so a write is never sent twice.
    """
    if isinstance(err, (requests.Timeout, requests.ConnectionError)):
        return True
    if res is not None and res.status_code in RETRYABLE_STATUSES:
        return method.upper() in READ_VERBS
    return False


def _modified_count(modified: Any) -> int:
    if isinstance(modified, (list, dict)):
        return len(modified)
    return int(modified or 0)


def _decode(res: requests.Response) -> Any:
    if not res.content:
        return None
    try:
        return res.json()
    except ValueError:
        return res.text


class Beds24Client:
    """
    Beds24 API client bound to one connection.

    Args:
        tokens: TokenManager for the connection
        connection_id: Local connection ID, used for audit and credit bookkeeping
        hotel_id: Platform hotel identifier, copied to audit entries
        engine: Engine for audit writes
        base_url: Beds24 API root
        threshold: Credit level at or below which calls raise RateLimitError
    """

    def __init__(
        self,
        tokens: TokenManager,
        connection_id: Optional[UUID] = None,
        hotel_id: Optional[str] = None,
        engine: Optional[Engine] = None,
        base_url: str = BEDS24_BASE_URL,
        threshold: int = RATE_LIMIT_THRESHOLD,
        max_retries: int = MAX_RETRIES,
    ):
        self.tokens = tokens
        self.connection_id = connection_id
        self.hotel_id = hotel_id
        self.engine = engine or default_engine
        self.base_url = base_url.rstrip("/")
        self.threshold = threshold
        self.max_retries = max_retries

    # ------------------------------------------------------------------
    # Core request path
    # ------------------------------------------------------------------

    def make_request(
        self,
        endpoint: str,
        method: str = "GET",
        headers: Optional[dict[str, str]] = None,
        body: Any = None,
        params: Optional[dict[str, Any]] = None,
        operation: Optional[str] = None,
    ) -> GatewayResponse:
        """
        Perform one Beds24 API call.

        Args:
            endpoint: Path below the API root, e.g. "/bookings"
            method: HTTP verb
            headers: Extra request headers
            body: JSON body for mutating verbs
            params: Query parameters
            operation: Logical operation name for the audit trail

        Returns:
            GatewayResponse with decoded JSON and parsed credit info

        Raises:
            ConfigurationError: No token source is configured
            AuthenticationError: Beds24 rejected the stored credentials
            RateLimitError: Credit budget at or below the threshold after the call
            ProviderError: Non-2xx response
            TransientNetworkError: Network failures outlasted the retries
        """
        method = method.upper()
        operation = operation or f"{method} {endpoint}"
        started = time.monotonic()
        credit_info: Optional[CreditInfo] = None
        res: Optional[requests.Response] = None
        data: Any = None

        try:
            token = self.tokens.get_token(classify_verb(method))
            res = self._send(endpoint, method, token, headers, body, params)
            credit_info = parse_credit_headers(res.headers)

            if should_backoff(credit_info.remaining, self.threshold) or res.status_code == 429:
                rate_limit_hits.inc()
                raise RateLimitError(
                    remaining=credit_info.remaining if credit_info.observed else 0,
                    resets_in=credit_info.resets_in,
                    request_cost=credit_info.request_cost,
                    limit=credit_info.limit,
                )

            data = _decode(res)
            if res.status_code == 401:
                self.tokens.invalidate()
                raise AuthenticationError(
                    f"Beds24 rejected the token at {endpoint}",
                    details={"status_code": 401, "endpoint": endpoint},
                )
            if not res.ok:
                raise ProviderError(res.status_code, data, endpoint=endpoint)

        except Exception as err:
            self._record(
                operation=operation,
                method=method,
                endpoint=endpoint,
                status="error",
                started=started,
                res=res,
                credit_info=credit_info,
                request_payload={"params": params, "body": body},
                response_payload=data,
                error_details=(
                    err.to_details()
                    if hasattr(err, "to_details")
                    else {"type": "unexpected", "message": str(err)}
                ),
            )
            logger.warning(
                "beds24_request_failed",
                operation=operation,
                endpoint=endpoint,
                error_type=type(err).__name__,
            )
            if isinstance(err, AuthenticationError) and res is not None:
                self._mark_rejected(err)
            raise

        self._record(
            operation=operation,
            method=method,
            endpoint=endpoint,
            status="success",
            started=started,
            res=res,
            credit_info=credit_info,
            request_payload={"params": params, "body": body},
            response_payload=data,
        )
        return GatewayResponse(data=data, credit_info=credit_info, status_code=res.status_code)

    def _send(
        self,
        endpoint: str,
        method: str,
        token: str,
        headers: Optional[dict[str, str]],
        body: Any,
        params: Optional[dict[str, Any]],
    ) -> requests.Response:
        url = f"{self.base_url}{endpoint}"
        request_headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {token}",
            "token": token,
            **(headers or {}),
        }
        retries = 0

        while True:
            res: Optional[requests.Response] = None
            err: Optional[Exception] = None
            start_time = time.time()
            try:
                res = requests.request(
                    method,
                    url,
                    headers=request_headers,
                    params=params,
                    json=body if method not in READ_VERBS else None,
                    timeout=REQUEST_TIMEOUT_SECONDS,
                )
            except requests.RequestException as e:
                err = e

            api_requests.labels(
                endpoint=endpoint, status_code=str(res.status_code) if res is not None else "error"
            ).inc()
            api_latency.labels(endpoint=endpoint).observe(time.time() - start_time)

            if not should_retry(res, err, method):
                if res is None:
                    raise TransientNetworkError(f"Beds24 {endpoint} failed: {err}")
                return res

            retries += 1
            if retries > self.max_retries:
                if res is None:
                    raise TransientNetworkError(
                        f"Beds24 {endpoint} failed after {self.max_retries} retries: {err}"
                    )
                return res

            logger.warning(
                "beds24_request_retry",
                endpoint=endpoint,
                attempt=retries,
                status_code=res.status_code if res is not None else None,
                error=str(err) if err else None,
            )
            time.sleep(RETRY_DELAY * retries)

    def _mark_rejected(self, error: AuthenticationError) -> None:
        """Move the connection to error after Beds24 refused its token."""
        if self.connection_id is None:
            return
        try:
            with self.engine.begin() as conn:
                update_connection_status(
                    conn, self.connection_id, ConnectionStatus.ERROR.value, last_error=error.message
                )
        except Exception as e:
            logger.exception(
                "connection_status_write_failed", connection_id=str(self.connection_id), error=str(e)
            )

    def _record(
        self,
        *,
        operation: str,
        method: str,
        endpoint: str,
        status: str,
        started: float,
        res: Optional[requests.Response],
        credit_info: Optional[CreditInfo],
        request_payload: Any,
        response_payload: Any,
        error_details: Optional[dict[str, Any]] = None,
    ) -> None:
        """Write the audit entry and credit telemetry for one call."""
        duration_ms = int((time.monotonic() - started) * 1000)
        observed = credit_info is not None and credit_info.observed

        if observed:
            api_credits_remaining.set(credit_info.remaining)  # type: ignore[union-attr]

        try:
            with self.engine.begin() as conn:
                if observed and self.connection_id is not None:
                    update_connection_credits(
                        conn,
                        self.connection_id,
                        remaining=credit_info.remaining,  # type: ignore[union-attr]
                        limit=credit_info.limit,  # type: ignore[union-attr]
                        reset_at=utc_now() + timedelta(seconds=credit_info.resets_in),  # type: ignore[union-attr]
                    )
                insert_audit_entry(
                    conn,
                    operation=operation,
                    method=method,
                    endpoint=endpoint,
                    status=status,
                    duration_ms=duration_ms,
                    connection_id=self.connection_id,
                    hotel_id=self.hotel_id,
                    http_status=res.status_code if res is not None else None,
                    request_cost=credit_info.request_cost if credit_info else None,
                    credits_remaining=credit_info.remaining if credit_info else None,
                    credits_resets_in=credit_info.resets_in if credit_info else None,
                    request_payload=request_payload,
                    response_payload=response_payload,
                    error_details=error_details,
                )
        except Exception as e:
            # The API call already happened; losing its audit row must not mask its outcome
            logger.exception("audit_write_failed", operation=operation, error=str(e))

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def _get_paged(
        self, endpoint: str, params: dict[str, Any], operation: str
    ) -> list[dict[str, Any]]:
        """Follow Beds24 ``pages.nextPageExists`` until the last page."""
        results: list[dict[str, Any]] = []
        page = 1
        while page <= MAX_PAGES:
            response = self.make_request(
                endpoint, "GET", params={**params, "page": page}, operation=operation
            )
            payload = response.data or {}
            results.extend(payload.get("data", []))
            if not (payload.get("pages") or {}).get("nextPageExists"):
                break
            page += 1
        return results

    def get_properties(self, property_ids: Optional[list[int]] = None) -> list[RemoteProperty]:
        """
        Fetch properties visible to the connection, with their room types.

        Args:
            property_ids: Restrict to these Beds24 property IDs

        Returns:
            list[RemoteProperty]
        """
        params: dict[str, Any] = {"includeAllRooms": "true"}
        if property_ids:
            params["id"] = property_ids
        items = self._get_paged("/properties", params, operation="get_properties")
        return [RemoteProperty.from_payload(item) for item in items]

    def get_property(self, property_id: int) -> RemoteProperty:
        """
        Fetch a single property.

        Raises:
            NotFoundError: If Beds24 does not return the property
        """
        properties = self.get_properties([property_id])
        for prop in properties:
            if prop.id == property_id:
                return prop
        raise NotFoundError(f"Beds24 property {property_id} not found")

    def get_rooms_calendar(
        self,
        property_id: int,
        start: date,
        end: date,
        room_ids: Optional[list[int]] = None,
    ) -> list[CalendarDay]:
        """
        Fetch availability, prices and restrictions, one CalendarDay per room-night.

        Beds24 returns ranges ({"from", "to", ...}); they are expanded here so
        callers only ever see single dates.
        """
        params: dict[str, Any] = {
            "propertyId": property_id,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "includeNumAvail": "true",
            "includePrices": "true",
            "includeMinStay": "true",
            "includeMaxStay": "true",
            "includeChannels": "false",
        }
        if room_ids:
            params["roomId"] = room_ids

        items = self._get_paged("/inventory/rooms/calendar", params, operation="get_rooms_calendar")

        days: list[CalendarDay] = []
        for item in items:
            room_id = item.get("roomId")
            if room_id is None:
                continue
            for entry in item.get("calendar", []):
                first = date.fromisoformat(entry.get("from") or entry["date"])
                last = date.fromisoformat(entry.get("to") or entry.get("from") or entry["date"])
                for day in date_range(max(first, start), min(last, end)):
                    days.append(
                        CalendarDay(
                            room_id=int(room_id),
                            date=day,
                            num_avail=entry.get("numAvail"),
                            price1=entry.get("price1"),
                            min_stay=entry.get("minStay"),
                            max_stay=entry.get("maxStay"),
                            closed_arrival=bool(entry.get("closedArrival", False)),
                            closed_departure=bool(entry.get("closedDeparture", False)),
                            restrictions={
                                k: entry[k]
                                for k in ("stopSell", "multiplier", "override")
                                if k in entry
                            },
                        )
                    )
        return days

    def post_rooms_calendar(self, rooms: list[dict[str, Any]]) -> list[CalendarPushResult]:
        """
        Push calendar lines.

        Args:
            rooms: Beds24 body items, ``[{"roomId": 1, "calendar": [{"from", "to", ...}]}]``

        Returns:
            list[CalendarPushResult]: One result per room item
        """
        response = self.make_request(
            "/inventory/rooms/calendar", "POST", body=rooms, operation="post_rooms_calendar"
        )
        items = response.data if isinstance(response.data, list) else [response.data or {}]
        return [
            CalendarPushResult(
                success=bool(item.get("success", not item.get("errors"))),
                modified=_modified_count(item.get("modified")),
                errors=item.get("errors") or [],
                warnings=item.get("warnings") or [],
            )
            for item in items
        ]

    def get_booking_payloads(
        self,
        property_id: Optional[int] = None,
        modified_from: Optional[datetime] = None,
        arrival_from: Optional[date] = None,
        arrival_to: Optional[date] = None,
        include_guests: bool = False,
        status: Optional[list[str]] = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch raw booking payloads, optionally only those modified since a timestamp.

        Payloads are not validated here so one malformed booking cannot hide
        the rest of the page; see get_bookings for the parsed form.

        Args:
            property_id: Beds24 property ID
            modified_from: Incremental pull cursor
            arrival_from: Earliest arrival date
            arrival_to: Latest arrival date
            include_guests: Ask Beds24 to embed guest records
            status: Booking statuses to include

        Returns:
            list[dict[str, Any]]
        """
        params: dict[str, Any] = {}
        if property_id is not None:
            params["propertyId"] = property_id
        if modified_from is not None:
            params["modifiedFrom"] = modified_from.strftime("%Y-%m-%dT%H:%M:%SZ")
        if arrival_from is not None:
            params["arrivalFrom"] = arrival_from.isoformat()
        if arrival_to is not None:
            params["arrivalTo"] = arrival_to.isoformat()
        if include_guests:
            params["includeGuests"] = "true"
        if status:
            params["status"] = status

        return self._get_paged("/bookings", params, operation="get_bookings")

    def get_bookings(self, **filters: Any) -> list[RemoteBooking]:
        """
        Fetch bookings parsed into RemoteBooking.

        Takes the same filters as get_booking_payloads.

        Raises:
            pydantic.ValidationError: If any booking on the page is malformed
        """
        return [RemoteBooking.from_payload(item) for item in self.get_booking_payloads(**filters)]

    def get_messages(self, booking_id: Optional[int] = None) -> list[dict[str, Any]]:
        """Fetch booking messages as raw payloads."""
        params: dict[str, Any] = {}
        if booking_id is not None:
            params["bookingId"] = booking_id
        return self._get_paged("/bookings/messages", params, operation="get_messages")

    def post_message(self, booking_id: int, message: str) -> Any:
        """Send a message on a booking. Returns the raw Beds24 response."""
        response = self.make_request(
            "/bookings/messages",
            "POST",
            body=[{"bookingId": booking_id, "message": message}],
            operation="post_message",
        )
        return response.data

    def get_authentication_details(self) -> dict[str, Any]:
        """Return token validity, scopes and owner account as reported by Beds24."""
        response = self.make_request(
            "/authentication/details", "GET", operation="get_authentication_details"
        )
        return dict(response.data or {})
