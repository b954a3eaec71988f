from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func

from sync_beds24.config import SCHEMA
from sync_beds24.models.base import Base


class InventoryCell(Base):
    """
    ORM model for one room-night of Beds24 availability, price and restrictions.

    The table is a read-through cache: rows past expires_at are refetched
    from Beds24 and never served. Pushed values are written here too, with
    synced_from_remote=False until the next pull confirms them.
    """

    __tablename__ = "inventory_cells"
    __table_args__ = (
        UniqueConstraint(
            "remote_property_id", "remote_room_id", "date", name="uq_inventory_cells_room_date"
        ),
        {"schema": SCHEMA},
    )

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    remote_property_id = Column(BigInteger, nullable=False, index=True)
    remote_room_id = Column(BigInteger, nullable=False)
    date = Column(Date, nullable=False)
    available = Column(Integer, nullable=True)
    price = Column(Numeric(12, 2), nullable=True)
    min_stay = Column(Integer, nullable=True)
    max_stay = Column(Integer, nullable=True)
    closed_to_arrival = Column(Boolean, nullable=True)
    closed_to_departure = Column(Boolean, nullable=True)
    restrictions = Column(JSONB(none_as_null=True), nullable=True)
    synced_from_remote = Column(Boolean, nullable=False, server_default=text("TRUE"))
    cached_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
