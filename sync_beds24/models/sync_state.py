from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from sync_beds24.config import SCHEMA
from sync_beds24.models.base import Base


class SyncState(Base):
    """
    ORM model for a hotel's bootstrap state with a channel provider.

    One row per (provider, hotel_id); bootstrapping again updates it in place.
    """

    __tablename__ = "sync_state"
    __table_args__ = (
        UniqueConstraint("provider", "hotel_id", name="uq_sync_state_provider_hotel"),
        {"schema": SCHEMA},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(String, nullable=False)
    hotel_id = Column(String, nullable=False)
    connection_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{SCHEMA}.connections.id", ondelete="SET NULL"),
        nullable=True,
    )
    remote_property_id = Column(BigInteger, nullable=True)
    sync_enabled = Column(Boolean, nullable=False, server_default=text("TRUE"))
    bootstrap_completed_at = Column(DateTime(timezone=True), nullable=True)
    details = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
