import uuid
from unittest.mock import MagicMock, patch

import pytest

from sync_beds24.errors import ProviderError, RateLimitError
from sync_beds24.services.sync import sync_all_connections, sync_connection

IDS = [uuid.uuid4(), uuid.uuid4(), uuid.uuid4()]


@pytest.mark.unit
@patch("sync_beds24.services.sync.sync_connection")
@patch("sync_beds24.services.sync.list_active_connection_ids", return_value=IDS)
def test_failing_connection_is_skipped(
    mock_ids: MagicMock, mock_sync: MagicMock, mock_engine: MagicMock
) -> None:
    """Test that one failing connection does not stop the others."""
    mock_sync.side_effect = [None, ProviderError(500, "down"), None]

    sync_all_connections(engine=mock_engine)

    assert [c[0][0] for c in mock_sync.call_args_list] == IDS


@pytest.mark.unit
@patch("sync_beds24.services.sync.sync_connection")
@patch("sync_beds24.services.sync.list_active_connection_ids", return_value=IDS)
def test_rate_limit_stops_the_loop(
    mock_ids: MagicMock, mock_sync: MagicMock, mock_engine: MagicMock
) -> None:
    """Test that an exhausted credit budget stops the pass and propagates."""
    mock_sync.side_effect = [None, RateLimitError(remaining=0, resets_in=60)]

    with pytest.raises(RateLimitError):
        sync_all_connections(engine=mock_engine)

    assert mock_sync.call_count == 2


@pytest.mark.unit
@patch("sync_beds24.services.sync.pull_bookings", return_value={"records_succeeded": 4})
@patch("sync_beds24.services.sync.sync_properties", return_value={"properties": 2})
@patch("sync_beds24.services.sync.build_client")
@patch("sync_beds24.services.sync.get_connection")
def test_sync_connection_shares_one_client(
    mock_get: MagicMock,
    mock_build: MagicMock,
    mock_properties: MagicMock,
    mock_bookings: MagicMock,
    mock_engine: MagicMock,
) -> None:
    """Test that properties and bookings run in order with the same client."""
    mock_get.return_value = {"id": IDS[0], "hotel_id": "hotel-1", "is_active": True}

    sync_connection(IDS[0], engine=mock_engine, dry_run=True)

    client = mock_build.return_value
    assert mock_properties.call_args[1]["client"] is client
    assert mock_bookings.call_args[1]["client"] is client
    assert mock_bookings.call_args[1]["dry_run"] is True
