from sqlalchemy import BigInteger, Column, DateTime, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from sync_beds24.config import SCHEMA
from sync_beds24.models.base import Base


class AuditEntry(Base):
    """
    ORM model for one outbound Beds24 API call.

    Append-only. Written exactly once per gateway call, whatever the outcome.
    Request and response payloads are redacted before insert.
    """

    __tablename__ = "audit_entries"
    __table_args__ = {"schema": SCHEMA}

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    connection_id = Column(UUID(as_uuid=True), nullable=True, index=True)
    hotel_id = Column(String, nullable=True, index=True)
    operation = Column(String, nullable=False)
    method = Column(String, nullable=False)
    endpoint = Column(String, nullable=False)
    status = Column(String, nullable=False)
    http_status = Column(Integer, nullable=True)
    request_cost = Column(Integer, nullable=True)
    credits_remaining = Column(Integer, nullable=True)
    credits_resets_in = Column(Integer, nullable=True)
    duration_ms = Column(Integer, nullable=False)
    request_payload = Column(JSONB, nullable=True)
    response_payload = Column(JSONB, nullable=True)
    error_details = Column(JSONB, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False, index=True)
