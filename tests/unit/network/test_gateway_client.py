"""
Unit tests for network/client.py: token selection, credit guard, retries and audit.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional
from unittest.mock import MagicMock, Mock, patch

import pytest
import requests

from sync_beds24.errors import (
    AuthenticationError,
    NotFoundError,
    ProviderError,
    RateLimitError,
    TransientNetworkError,
)
from sync_beds24.network.auth import READ, WRITE
from sync_beds24.network.client import Beds24Client, classify_verb, should_retry

CONNECTION_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
HEALTHY = {"x-request-cost": "1", "x-five-min-limit-remaining": "900", "x-five-min-limit-resets-in": "200"}


def _response(
    status_code: int = 200, payload: Any = None, headers: Optional[dict[str, str]] = None
) -> Mock:
    res = Mock()
    res.status_code = status_code
    res.ok = 200 <= status_code < 300
    res.headers = headers if headers is not None else dict(HEALTHY)
    res.content = b"{}" if payload is not None else b""
    res.json.return_value = payload
    res.text = str(payload)
    return res


@pytest.fixture
def tokens() -> Mock:
    manager = Mock()
    manager.get_token.side_effect = lambda token_class: f"{token_class}-token"
    return manager


@pytest.fixture
def client(tokens: Mock, mock_engine: MagicMock) -> Beds24Client:
    return Beds24Client(
        tokens,
        connection_id=CONNECTION_ID,
        hotel_id="hotel-1",
        engine=mock_engine,
        base_url="https://api.beds24.com/v2",
        max_retries=2,
    )


@pytest.mark.unit
def test_classify_verb() -> None:
    """Test that GET is a read and every mutating verb is a write."""
    assert classify_verb("get") == READ
    assert classify_verb("POST") == WRITE
    assert classify_verb("DELETE") == WRITE
    assert classify_verb("PATCH") == WRITE


@pytest.mark.unit
def test_should_retry_rules() -> None:
    """Test that gateway errors are retried for reads only and timeouts always."""
    assert should_retry(None, requests.Timeout(), "POST") is True
    assert should_retry(_response(503), None, "GET") is True
    assert should_retry(_response(503), None, "POST") is False
    assert should_retry(_response(500), None, "GET") is False
    assert should_retry(_response(200), None, "GET") is False


@pytest.mark.unit
@patch("sync_beds24.network.client.update_connection_credits")
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_get_uses_read_token_and_writes_one_audit(
    mock_request: Mock, mock_audit: Mock, mock_credits: Mock, client: Beds24Client, tokens: Mock
) -> None:
    """Test that a GET uses the read token and records exactly one successful audit entry."""
    mock_request.return_value = _response(payload={"data": [], "pages": {"nextPageExists": False}})

    response = client.make_request("/properties", "GET", params={"id": 1})

    tokens.get_token.assert_called_once_with(READ)
    headers = mock_request.call_args[1]["headers"]
    assert headers["Authorization"] == "Bearer read-token"
    assert headers["token"] == "read-token"
    assert response.credit_info.remaining == 900

    mock_audit.assert_called_once()
    audit = mock_audit.call_args[1]
    assert audit["status"] == "success"
    assert audit["request_cost"] == 1
    assert audit["credits_remaining"] == 900
    assert audit["connection_id"] == CONNECTION_ID
    assert audit["hotel_id"] == "hotel-1"

    credits = mock_credits.call_args[1]
    assert credits["remaining"] == 900


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_post_uses_write_token(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client, tokens: Mock
) -> None:
    """Test that a POST uses the write token and sends a JSON body."""
    mock_request.return_value = _response(payload=[{"success": True}])

    client.make_request("/inventory/rooms/calendar", "POST", body=[{"roomId": 1}])

    tokens.get_token.assert_called_once_with(WRITE)
    assert mock_request.call_args[1]["json"] == [{"roomId": 1}]
    assert mock_request.call_args[1]["headers"]["token"] == "write-token"


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_low_credits_raise_rate_limit_error(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that cost 2, remaining 40, resets in 120 raises RateLimitError(40, 120)."""
    mock_request.return_value = _response(
        payload={"data": [{"id": 1}]},
        headers={
            "x-request-cost": "2",
            "x-five-min-limit-remaining": "40",
            "x-five-min-limit-resets-in": "120",
            "x-five-min-limit": "1000",
        },
    )

    with pytest.raises(RateLimitError) as exc_info:
        client.make_request("/bookings", "GET")

    assert exc_info.value.remaining == 40
    assert exc_info.value.resets_in == 120
    assert exc_info.value.to_details()["limit"] == 1000

    mock_audit.assert_called_once()
    audit = mock_audit.call_args[1]
    assert audit["status"] == "error"
    assert audit["error_details"]["type"] == "rate_limit"
    assert audit["request_cost"] == 2
    assert audit["credits_remaining"] == 40
    # Body is never inspected once the budget is exhausted
    mock_request.return_value.json.assert_not_called()


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_remaining_at_threshold_raises(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that exactly 50 remaining already raises."""
    mock_request.return_value = _response(
        payload={}, headers={"x-five-min-limit-remaining": "50"}
    )

    with pytest.raises(RateLimitError):
        client.make_request("/properties")


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_missing_headers_use_defaults(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that a response without credit headers is audited with default values."""
    mock_request.return_value = _response(payload={"ok": True}, headers={})

    client.make_request("/authentication/details")

    audit = mock_audit.call_args[1]
    assert audit["request_cost"] == 1
    assert audit["credits_remaining"] == 1000
    assert audit["credits_resets_in"] == 300


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_429_raises_rate_limit_error(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that HTTP 429 is reported as RateLimitError even without credit headers."""
    mock_request.return_value = _response(429, payload={"error": "slow down"}, headers={})

    with pytest.raises(RateLimitError) as exc_info:
        client.make_request("/bookings")

    assert exc_info.value.remaining == 0
    mock_audit.assert_called_once()


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_non_2xx_raises_provider_error(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that a 4xx/5xx response raises ProviderError with status and body."""
    mock_request.return_value = _response(400, payload={"error": "bad roomId"})

    with pytest.raises(ProviderError) as exc_info:
        client.make_request("/inventory/rooms/calendar", "POST", body=[])

    assert exc_info.value.status_code == 400
    assert exc_info.value.body == {"error": "bad roomId"}
    audit = mock_audit.call_args[1]
    assert audit["status"] == "error"
    assert audit["http_status"] == 400
    assert audit["error_details"]["type"] == "provider"


@pytest.mark.unit
@patch("sync_beds24.network.client.update_connection_status")
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_401_raises_authentication_error_and_marks_connection(
    mock_request: Mock, mock_audit: Mock, mock_status: Mock, client: Beds24Client, tokens: Mock
) -> None:
    """Test that Beds24 rejecting a token drops it from the cache and moves the connection to error."""
    mock_request.return_value = _response(401, payload={"error": "token expired"})

    with pytest.raises(AuthenticationError) as exc_info:
        client.make_request("/properties")

    assert exc_info.value.details == {"status_code": 401, "endpoint": "/properties"}
    tokens.invalidate.assert_called_once()
    assert mock_audit.call_args[1]["error_details"]["type"] == "authentication"
    assert mock_status.call_args[0][1:] == (CONNECTION_ID, "error")


@pytest.mark.unit
@patch("sync_beds24.network.client.update_connection_status")
@patch("sync_beds24.network.client.insert_audit_entry")
def test_token_acquisition_failure_does_not_rewrite_status(
    mock_audit: Mock, mock_status: Mock, client: Beds24Client, tokens: Mock
) -> None:
    """Test that an AuthenticationError raised before any response leaves the stored status alone."""
    tokens.get_token.side_effect = AuthenticationError("Connection is in disconnected state")

    with pytest.raises(AuthenticationError):
        client.make_request("/properties")

    mock_status.assert_not_called()
    mock_audit.assert_called_once()


@pytest.mark.unit
@patch("sync_beds24.network.client.time.sleep")
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_timeouts_are_retried_then_raised(
    mock_request: Mock, mock_audit: Mock, mock_sleep: Mock, client: Beds24Client
) -> None:
    """Test that timeouts are retried max_retries times, then raise TransientNetworkError."""
    mock_request.side_effect = requests.Timeout("read timed out")

    with pytest.raises(TransientNetworkError):
        client.make_request("/properties")

    assert mock_request.call_count == 3
    assert mock_sleep.call_count == 2
    mock_audit.assert_called_once()
    assert mock_audit.call_args[1]["error_details"]["type"] == "network"


@pytest.mark.unit
@patch("sync_beds24.network.client.time.sleep")
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_gateway_error_on_write_is_not_retried(
    mock_request: Mock, mock_audit: Mock, mock_sleep: Mock, client: Beds24Client
) -> None:
    """Test that a 503 on POST is not resent."""
    mock_request.return_value = _response(503, payload={"error": "unavailable"})

    with pytest.raises(ProviderError):
        client.make_request("/bookings/messages", "POST", body=[])

    assert mock_request.call_count == 1
    mock_sleep.assert_not_called()


@pytest.mark.unit
@patch("sync_beds24.network.client.time.sleep")
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_gateway_error_on_read_recovers(
    mock_request: Mock, mock_audit: Mock, mock_sleep: Mock, client: Beds24Client
) -> None:
    """Test that a 502 on GET is retried and the later success is returned."""
    mock_request.side_effect = [
        _response(502, payload={"error": "bad gateway"}),
        _response(payload={"data": []}),
    ]

    response = client.make_request("/properties")

    assert response.status_code == 200
    assert mock_request.call_count == 2
    mock_audit.assert_called_once()


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_token_failure_is_audited(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client, tokens: Mock
) -> None:
    """Test that a call failing before the HTTP request still writes its audit entry."""
    from sync_beds24.errors import ConfigurationError

    tokens.get_token.side_effect = ConfigurationError("no token")

    with pytest.raises(ConfigurationError):
        client.make_request("/properties")

    mock_request.assert_not_called()
    mock_audit.assert_called_once()
    assert mock_audit.call_args[1]["error_details"]["type"] == "configuration"


@pytest.mark.unit
@patch("sync_beds24.network.client.requests.request")
def test_audit_write_failure_does_not_mask_result(
    mock_request: Mock, client: Beds24Client, mock_engine: MagicMock
) -> None:
    """Test that a failing audit insert is logged and the response still returned."""
    mock_request.return_value = _response(payload={"data": []})
    mock_engine.begin.side_effect = RuntimeError("db down")

    response = client.make_request("/properties")

    assert response.data == {"data": []}


# -----------------------------------------------------------------------------
# Endpoints
# -----------------------------------------------------------------------------


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_get_properties_follows_pages(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that pagination continues while nextPageExists is true."""
    mock_request.side_effect = [
        _response(payload={"data": [{"id": 1, "name": "A"}], "pages": {"nextPageExists": True}}),
        _response(
            payload={
                "data": [{"id": 2, "name": "B", "roomTypes": [{"id": 10, "name": "Double"}]}],
                "pages": {"nextPageExists": False},
            }
        ),
    ]

    properties = client.get_properties()

    assert [p.id for p in properties] == [1, 2]
    assert properties[1].rooms[0].id == 10
    assert properties[1].raw["roomTypes"][0]["name"] == "Double"
    assert mock_request.call_args_list[1][1]["params"]["page"] == 2
    assert mock_audit.call_count == 2


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_get_property_not_found(mock_request: Mock, mock_audit: Mock, client: Beds24Client) -> None:
    """Test that an unknown property raises NotFoundError."""
    mock_request.return_value = _response(payload={"data": []})

    with pytest.raises(NotFoundError):
        client.get_property(999)


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_get_rooms_calendar_expands_ranges(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that from/to calendar ranges become one CalendarDay per night within the window."""
    mock_request.return_value = _response(
        payload={
            "data": [
                {
                    "roomId": 10,
                    "calendar": [
                        {"from": "2024-01-01", "to": "2024-01-03", "numAvail": 2, "price1": 100},
                        {"from": "2024-01-04", "to": "2024-01-31", "numAvail": 0, "stopSell": True},
                    ],
                }
            ]
        }
    )

    days = client.get_rooms_calendar(5, date(2024, 1, 2), date(2024, 1, 5))

    assert [d.date.day for d in days] == [2, 3, 4, 5]
    assert days[0].num_avail == 2
    assert days[0].price1 == 100
    assert days[2].restrictions == {"stopSell": True}
    assert days[0].closed_arrival is False


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_post_rooms_calendar_parses_results(
    mock_request: Mock, mock_audit: Mock, client: Beds24Client
) -> None:
    """Test that per-room push outcomes are parsed into CalendarPushResult."""
    mock_request.return_value = _response(
        payload=[
            {"success": True, "modified": {"10": 3}},
            {"success": False, "errors": [{"field": "roomId", "message": "unknown"}]},
        ]
    )

    results = client.post_rooms_calendar([{"roomId": 10, "calendar": []}])

    assert results[0].success is True
    assert results[0].modified == 1
    assert results[1].success is False
    assert results[1].errors[0]["field"] == "roomId"


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_get_bookings_params(mock_request: Mock, mock_audit: Mock, client: Beds24Client) -> None:
    """Test that the incremental cursor and arrival window are sent to /bookings."""
    mock_request.return_value = _response(
        payload={
            "data": [
                {
                    "id": 77,
                    "propertyId": 5,
                    "roomId": 10,
                    "status": "confirmed",
                    "arrival": "2024-01-10",
                    "departure": "2024-01-12",
                    "email": "guest@example.com",
                }
            ]
        }
    )

    bookings = client.get_bookings(
        property_id=5,
        modified_from=datetime(2024, 1, 1, 8, 30, tzinfo=timezone.utc),
        arrival_from=date(2024, 1, 1),
        arrival_to=date(2024, 1, 31),
        include_guests=True,
    )

    params = mock_request.call_args[1]["params"]
    assert params["propertyId"] == 5
    assert params["modifiedFrom"] == "2024-01-01T08:30:00Z"
    assert params["arrivalFrom"] == "2024-01-01"
    assert params["arrivalTo"] == "2024-01-31"
    assert params["includeGuests"] == "true"
    assert bookings[0].id == 77
    assert bookings[0].local_status == "confirmed"
    assert bookings[0].raw["email"] == "guest@example.com"


@pytest.mark.unit
@patch("sync_beds24.network.client.insert_audit_entry")
@patch("sync_beds24.network.client.requests.request")
def test_message_endpoints(mock_request: Mock, mock_audit: Mock, client: Beds24Client) -> None:
    """Test that message reads and sends hit /bookings/messages."""
    mock_request.side_effect = [
        _response(payload={"data": [{"id": 1, "message": "hi"}]}),
        _response(payload=[{"success": True}]),
    ]

    messages = client.get_messages(booking_id=77)
    sent = client.post_message(77, "Welcome")

    assert messages == [{"id": 1, "message": "hi"}]
    assert sent == [{"success": True}]
    assert mock_request.call_args_list[1][1]["json"] == [{"bookingId": 77, "message": "Welcome"}]
