"""
Calendar line preparation for pushes to /inventory/rooms/calendar.

Updates are expanded to one line per room-night, later updates win for the
same night, contiguous nights with identical values are merged into a single
from/to line, and the result is split into batches of at most
CALENDAR_BATCH_SIZE lines.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import Any, Iterable, Iterator, Optional

from sync_beds24.config import CALENDAR_BATCH_SIZE
from sync_beds24.schemas.inventory import InventoryUpdate
from sync_beds24.schemas.remote import CalendarDay, CalendarPushResult
from sync_beds24.utils.datetime import date_range


@dataclass(frozen=True)
class CalendarLine:
    room_id: int
    date_from: date
    date_to: date
    num_avail: Optional[int] = None
    price1: Optional[float] = None
    min_stay: Optional[int] = None
    max_stay: Optional[int] = None
    closed_arrival: Optional[bool] = None
    closed_departure: Optional[bool] = None

    @property
    def values(self) -> tuple[Any, ...]:
        return (
            self.num_avail,
            self.price1,
            self.min_stay,
            self.max_stay,
            self.closed_arrival,
            self.closed_departure,
        )

    @property
    def nights(self) -> int:
        return (self.date_to - self.date_from).days + 1

    def to_payload(self) -> dict[str, Any]:
        """Beds24 calendar entry with unset fields left out."""
        payload: dict[str, Any] = {
            "from": self.date_from.isoformat(),
            "to": self.date_to.isoformat(),
            "numAvail": self.num_avail,
            "price1": self.price1,
            "minStay": self.min_stay,
            "maxStay": self.max_stay,
            "closedArrival": self.closed_arrival,
            "closedDeparture": self.closed_departure,
        }
        return {k: v for k, v in payload.items() if v is not None}

    def days(self) -> Iterator[CalendarDay]:
        """Expand back to room-nights for the local inventory cache."""
        for day in date_range(self.date_from, self.date_to):
            yield CalendarDay(
                room_id=self.room_id,
                date=day,
                num_avail=self.num_avail,
                price1=self.price1,
                min_stay=self.min_stay,
                max_stay=self.max_stay,
                closed_arrival=self.closed_arrival,
                closed_departure=self.closed_departure,
            )


def daily_lines(updates: Iterable[InventoryUpdate]) -> list[CalendarLine]:
    """
    Expand updates to one line per room-night, sorted by room and date.

    When two updates cover the same night the later one wins.
    """
    lines: dict[tuple[int, date], CalendarLine] = {}
    for update in updates:
        for day in date_range(update.date_from, update.date_to):
            lines[(update.room_id, day)] = CalendarLine(
                room_id=update.room_id,
                date_from=day,
                date_to=day,
                num_avail=update.available,
                price1=update.price,
                min_stay=update.min_stay,
                max_stay=update.max_stay,
                closed_arrival=update.closed_to_arrival,
                closed_departure=update.closed_to_departure,
            )
    return [lines[key] for key in sorted(lines)]


def merge_contiguous_lines(lines: list[CalendarLine]) -> list[CalendarLine]:
    """
    Merge consecutive nights of the same room that carry identical values.

    Example:
        Jan 1, Jan 2, Jan 3 at 100 and Jan 4 at 120 become
        Jan 1-3 at 100 and Jan 4 at 120.
    """
    merged: list[CalendarLine] = []
    for line in lines:
        if merged:
            last = merged[-1]
            if (
                last.room_id == line.room_id
                and last.values == line.values
                and last.date_to + timedelta(days=1) == line.date_from
            ):
                merged[-1] = replace(last, date_to=line.date_to)
                continue
        merged.append(line)
    return merged


def chunk_lines(lines: list[CalendarLine], size: int = CALENDAR_BATCH_SIZE) -> list[list[CalendarLine]]:
    """Split lines into batches of at most ``size``."""
    if size < 1:
        raise ValueError("batch size must be positive")
    return [lines[i : i + size] for i in range(0, len(lines), size)]


def batch_body(batch: list[CalendarLine]) -> list[dict[str, Any]]:
    """Group a batch by room into the Beds24 request body."""
    rooms: dict[int, list[dict[str, Any]]] = {}
    for line in batch:
        rooms.setdefault(line.room_id, []).append(line.to_payload())
    return [{"roomId": room_id, "calendar": calendar} for room_id, calendar in rooms.items()]


def batch_errors(results: list[CalendarPushResult]) -> list[Any]:
    """Collect Beds24 errors from a push response; empty means the batch was accepted."""
    errors: list[Any] = []
    for result in results:
        if not result.success or result.errors:
            errors.extend(result.errors or ["rejected without error detail"])
    return errors
