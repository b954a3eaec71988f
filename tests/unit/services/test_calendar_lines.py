from datetime import date

import pytest
from pydantic import ValidationError

from sync_beds24.schemas.inventory import InventoryUpdate
from sync_beds24.schemas.remote import CalendarPushResult
from sync_beds24.services.calendar import (
    batch_body,
    batch_errors,
    chunk_lines,
    daily_lines,
    merge_contiguous_lines,
)


def _update(room_id: int, start: str, end: str, **values) -> InventoryUpdate:
    return InventoryUpdate(
        room_id=room_id,
        date_from=date.fromisoformat(start),
        date_to=date.fromisoformat(end),
        **values,
    )


@pytest.mark.unit
def test_daily_lines_expand_ranges() -> None:
    """Test that an update over three nights becomes three single-night lines."""
    lines = daily_lines([_update(1, "2024-01-01", "2024-01-03", available=2)])

    assert [line.date_from.day for line in lines] == [1, 2, 3]
    assert all(line.nights == 1 for line in lines)
    assert all(line.num_avail == 2 for line in lines)


@pytest.mark.unit
def test_later_update_wins_for_same_night() -> None:
    """Test that overlapping updates keep the last value for each night."""
    lines = daily_lines(
        [
            _update(1, "2024-01-01", "2024-01-03", price=100),
            _update(1, "2024-01-02", "2024-01-02", price=150),
        ]
    )

    assert [line.price1 for line in lines] == [100, 150, 100]


@pytest.mark.unit
def test_merge_contiguous_identical_nights() -> None:
    """Test that Jan 1-3 at 100 and Jan 4 at 120 collapse into two lines."""
    lines = merge_contiguous_lines(
        daily_lines(
            [
                _update(1, "2024-01-01", "2024-01-03", price=100),
                _update(1, "2024-01-04", "2024-01-04", price=120),
            ]
        )
    )

    assert len(lines) == 2
    assert (lines[0].date_from, lines[0].date_to, lines[0].price1) == (
        date(2024, 1, 1),
        date(2024, 1, 3),
        100,
    )
    assert lines[0].nights == 3
    assert lines[1].price1 == 120


@pytest.mark.unit
def test_merge_does_not_cross_rooms_or_gaps() -> None:
    """Test that lines for different rooms or with a gap stay separate."""
    lines = merge_contiguous_lines(
        daily_lines(
            [
                _update(1, "2024-01-01", "2024-01-01", available=1),
                _update(1, "2024-01-03", "2024-01-03", available=1),
                _update(2, "2024-01-02", "2024-01-02", available=1),
            ]
        )
    )

    assert [(line.room_id, line.date_from.day) for line in lines] == [(1, 1), (1, 3), (2, 2)]


@pytest.mark.unit
def test_chunk_lines_respects_batch_size() -> None:
    """Test that 120 lines split into 50, 50 and 20."""
    lines = daily_lines(
        [_update(room, "2024-01-01", "2024-01-20", available=room) for room in range(1, 7)]
    )
    assert len(lines) == 120

    batches = chunk_lines(lines, size=50)

    assert [len(batch) for batch in batches] == [50, 50, 20]


@pytest.mark.unit
def test_chunk_lines_rejects_non_positive_size() -> None:
    """Test that a zero batch size raises ValueError."""
    with pytest.raises(ValueError):
        chunk_lines([], size=0)


@pytest.mark.unit
def test_batch_body_groups_by_room_and_drops_unset_fields() -> None:
    """Test that the request body has one item per room and only set fields."""
    lines = merge_contiguous_lines(
        daily_lines(
            [
                _update(1, "2024-01-01", "2024-01-02", available=3, closed_to_arrival=True),
                _update(2, "2024-01-01", "2024-01-01", price=80.5),
            ]
        )
    )

    body = batch_body(lines)

    assert body == [
        {
            "roomId": 1,
            "calendar": [
                {"from": "2024-01-01", "to": "2024-01-02", "numAvail": 3, "closedArrival": True}
            ],
        },
        {"roomId": 2, "calendar": [{"from": "2024-01-01", "to": "2024-01-01", "price1": 80.5}]},
    ]


@pytest.mark.unit
def test_line_days_expand_back_to_cells() -> None:
    """Test that a merged line expands to one CalendarDay per night."""
    line = merge_contiguous_lines(daily_lines([_update(7, "2024-02-27", "2024-03-01", min_stay=2)]))[0]

    days = list(line.days())

    assert [d.date for d in days] == [
        date(2024, 2, 27),
        date(2024, 2, 28),
        date(2024, 2, 29),
        date(2024, 3, 1),
    ]
    assert all(d.min_stay == 2 and d.room_id == 7 for d in days)


@pytest.mark.unit
def test_batch_errors() -> None:
    """Test that failed results contribute their errors and silent failures a placeholder."""
    ok = CalendarPushResult(success=True, modified=1)
    rejected = CalendarPushResult(success=False, errors=[{"message": "bad room"}])
    silent = CalendarPushResult(success=False)

    assert batch_errors([ok]) == []
    assert batch_errors([ok, rejected]) == [{"message": "bad room"}]
    assert batch_errors([silent]) == ["rejected without error detail"]


@pytest.mark.unit
def test_update_rejects_reversed_range() -> None:
    """Test that date_to before date_from fails validation."""
    with pytest.raises(ValidationError):
        _update(1, "2024-01-05", "2024-01-01", available=1)
