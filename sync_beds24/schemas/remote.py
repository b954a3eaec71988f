"""
Typed views of Beds24 API responses.

Each model reads the fields the sync logic depends on and keeps the complete
response item in ``raw`` for storage. Unknown fields never influence sync logic.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

BOOKING_STATUS_MAP = {
    "confirmed": "confirmed",
    "new": "confirmed",
    "cancelled": "cancelled",
    "no-show": "no_show",
    "checked-in": "checked_in",
    "checked-out": "checked_out",
}


class RemoteModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Any:
        """Parse one API item and keep the untouched payload in ``raw``."""
        item = cls.model_validate(payload)
        item.raw = dict(payload)
        return item


class RemoteRoom(RemoteModel):
    id: int
    name: Optional[str] = None
    qty: Optional[int] = None
    room_type: Optional[str] = Field(None, alias="roomType")
    max_people: Optional[int] = Field(None, alias="maxPeople")


class RemoteProperty(RemoteModel):
    """A Beds24 property with its room types."""

    id: int
    name: Optional[str] = None
    property_type: Optional[str] = Field(None, alias="propertyType")
    currency: Optional[str] = None
    rooms: list[RemoteRoom] = Field(default_factory=list, alias="roomTypes")


class RemoteBooking(RemoteModel):
    """A Beds24 booking; guest contact fields stay in ``raw`` only."""

    id: int
    property_id: Optional[int] = Field(None, alias="propertyId")
    room_id: Optional[int] = Field(None, alias="roomId")
    status: Optional[str] = None
    arrival: Optional[date] = None
    departure: Optional[date] = None
    num_adult: Optional[int] = Field(None, alias="numAdult")
    num_child: Optional[int] = Field(None, alias="numChild")
    modified_time: Optional[datetime] = Field(None, alias="modifiedTime")

    @property
    def local_status(self) -> str:
        return BOOKING_STATUS_MAP.get((self.status or "").lower(), "pending")


class CalendarDay(BaseModel):
    """One room-night of the Beds24 calendar, expanded from a from/to range."""

    room_id: int
    date: date
    num_avail: Optional[int] = None
    price1: Optional[float] = None
    min_stay: Optional[int] = None
    max_stay: Optional[int] = None
    closed_arrival: Optional[bool] = None
    closed_departure: Optional[bool] = None
    restrictions: Optional[dict[str, Any]] = None


class CalendarPushResult(BaseModel):
    """Outcome of one POST /inventory/rooms/calendar call."""

    success: bool
    modified: int = 0
    errors: list[Any] = Field(default_factory=list)
    warnings: list[Any] = Field(default_factory=list)
