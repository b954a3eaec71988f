from typing import Optional

from pydantic import BaseModel, Field


class ConnectPayload(BaseModel):
    """
    Schema for connecting a hotel to Beds24 with an invite code.
    """

    hotel_id: str = Field(..., min_length=1, description="Platform hotel identifier")
    invite_code: str = Field(..., min_length=1, description="One-time Beds24 invite code")
    device_name: Optional[str] = Field(None, description="Label shown for the token in Beds24")
    organization_id: Optional[str] = Field(None, description="Platform organization identifier")


class RotatePayload(BaseModel):
    """
    Schema for replacing a connection's credentials with a new invite code.
    """

    invite_code: str = Field(..., min_length=1, description="One-time Beds24 invite code")
    device_name: Optional[str] = Field(None, description="Label shown for the token in Beds24")


class BootstrapPayload(BaseModel):
    remote_property_id: int = Field(..., description="Beds24 property ID to import")
    calendar_days: Optional[int] = Field(
        None, ge=1, le=365, description="Nights of calendar to import (default 30)"
    )
