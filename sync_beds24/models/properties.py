import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from sync_beds24.config import SCHEMA
from sync_beds24.models.base import Base

DEFAULT_SYNC_SETTINGS = {
    "sync_rates": True,
    "sync_availability": True,
    "sync_restrictions": True,
    "sync_bookings": True,
    "sync_messages": True,
}


class RemoteProperty(Base):
    """
    ORM model for a Beds24 property imported under a connection.

    raw_payload keeps the full Beds24 property blob, including its roomTypes,
    so room ids can be resolved without another API call.
    """

    __tablename__ = "properties"
    __table_args__ = (
        UniqueConstraint(
            "connection_id", "remote_property_id", name="uq_properties_connection_remote"
        ),
        {"schema": SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hotel_id = Column(String, nullable=False, index=True)
    connection_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{SCHEMA}.connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    remote_property_id = Column(BigInteger, nullable=False, index=True)
    name = Column(String, nullable=True)
    status = Column(String, nullable=False, server_default=text("'active'"))
    sync_enabled = Column(Boolean, nullable=False, server_default=text("TRUE"))
    last_inventory_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_rates_sync_at = Column(DateTime(timezone=True), nullable=True)
    last_bookings_sync_at = Column(DateTime(timezone=True), nullable=True)
    sync_settings = Column(JSONB, nullable=False, default=lambda: dict(DEFAULT_SYNC_SETTINGS))
    raw_payload = Column(JSONB, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
