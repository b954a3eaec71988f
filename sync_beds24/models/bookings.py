from sqlalchemy import BigInteger, Column, Date, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from sync_beds24.config import SCHEMA
from sync_beds24.models.base import Base


class Booking(Base):
    """
    ORM model for Beds24 bookings.

    Keyed by the Beds24 booking id so repeated pulls upsert instead of
    duplicating. raw_payload holds the complete booking, guest details included;
    the typed columns are the subset the sync logic reads.
    """

    __tablename__ = "bookings"
    __table_args__ = {"schema": SCHEMA}

    remote_booking_id = Column(BigInteger, primary_key=True, autoincrement=False)
    connection_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{SCHEMA}.connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    hotel_id = Column(String, nullable=False, index=True)
    remote_property_id = Column(BigInteger, nullable=False, index=True)
    remote_room_id = Column(BigInteger, nullable=True)
    arrival = Column(Date, nullable=True)
    departure = Column(Date, nullable=True)
    status = Column(String, nullable=False)
    num_adult = Column(Integer, nullable=True)
    num_child = Column(Integer, nullable=True)
    last_modified = Column(DateTime(timezone=True), nullable=True)
    raw_payload = Column(JSONB, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
