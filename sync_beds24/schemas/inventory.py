from datetime import date
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class InventoryUpdate(BaseModel):
    """
    Schema for one calendar change for a room over an inclusive date range.

    Only the fields that are set are sent to Beds24; the others keep their
    current value.
    """

    room_id: int = Field(..., description="Beds24 room ID")
    date_from: date = Field(..., description="First night, inclusive")
    date_to: date = Field(..., description="Last night, inclusive")
    available: Optional[int] = Field(None, ge=0, description="Units available to sell")
    price: Optional[float] = Field(None, ge=0, description="Nightly price (Beds24 price1)")
    min_stay: Optional[int] = Field(None, ge=1, description="Minimum length of stay")
    max_stay: Optional[int] = Field(None, ge=1, description="Maximum length of stay")
    closed_to_arrival: Optional[bool] = Field(None, description="Block arrivals on these nights")
    closed_to_departure: Optional[bool] = Field(None, description="Block departures on these nights")

    @model_validator(mode="after")
    def check_range(self) -> "InventoryUpdate":
        if self.date_to < self.date_from:
            raise ValueError("date_to must not be before date_from")
        return self


class InventoryPushPayload(BaseModel):
    updates: list[InventoryUpdate] = Field(..., min_length=1)


class DateRangePayload(BaseModel):
    """Optional inclusive date window; omit both for an incremental pull."""

    date_from: Optional[date] = Field(None, description="First date, inclusive")
    date_to: Optional[date] = Field(None, description="Last date, inclusive")
