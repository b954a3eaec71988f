"""SQLAlchemy model for hotel links to Beds24."""

import uuid

from sqlalchemy import TIMESTAMP, BigInteger, Boolean, Column, Index, Integer, String, Text, text
from sqlalchemy.dialects.postgresql import JSONB, UUID

from sync_beds24.config import SCHEMA
from sync_beds24.models.base import Base


class Connection(Base):
    """
    ORM model for a hotel's connection to a Beds24 account.

    Tokens are stored Fernet-encrypted. The status column mirrors the
    connection lifecycle (pending, active, expiring, error, disconnected) so
    dashboards can read it without replaying audit history. At most one
    active connection exists per hotel.
    """

    __tablename__ = "connections"
    __table_args__ = (
        Index(
            "uq_connections_active_hotel",
            "hotel_id",
            unique=True,
            postgresql_where=text("is_active"),
        ),
        {"schema": SCHEMA},
    )

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    hotel_id = Column(String, nullable=False, index=True)
    organization_id = Column(String, nullable=True, index=True)
    account_id = Column(BigInteger, nullable=True)  # Beds24 owner account
    account_email = Column(String, nullable=True)
    refresh_token_encrypted = Column(Text, nullable=True)
    access_token_encrypted = Column(Text, nullable=True)
    token_expires_at = Column(TIMESTAMP(timezone=True), nullable=True)
    credits_remaining = Column(Integer, nullable=True)
    credits_limit = Column(Integer, nullable=True)
    credits_reset_at = Column(TIMESTAMP(timezone=True), nullable=True)
    status = Column(String, nullable=False, server_default=text("'pending'"))
    scopes = Column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
    allow_linked_properties = Column(Boolean, nullable=False, server_default=text("FALSE"))
    is_active = Column(Boolean, nullable=False, server_default=text("TRUE"))
    last_error = Column(Text, nullable=True)
    last_sync_at = Column(TIMESTAMP(timezone=True), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()"))
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()"))
