import uuid

from sqlalchemy import BigInteger, Column, DateTime, ForeignKey, Integer, String, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.sql import func

from sync_beds24.config import SCHEMA
from sync_beds24.models.base import Base


class SyncLog(Base):
    """
    ORM model for one sync pass against Beds24.

    Status only moves forward: pending, running, then completed or failed.
    Rows are never deleted; they are the record of whether a run succeeded.
    error_details is a list of per-item or run-level error dicts.
    """

    __tablename__ = "sync_logs"
    __table_args__ = {"schema": SCHEMA}

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    connection_id = Column(
        UUID(as_uuid=True),
        ForeignKey(f"{SCHEMA}.connections.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    remote_property_id = Column(BigInteger, nullable=True)
    sync_type = Column(String, nullable=False)
    direction = Column(String, nullable=False)
    status = Column(String, nullable=False, server_default=text("'pending'"), index=True)
    started_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    records_processed = Column(Integer, nullable=False, server_default=text("0"))
    records_succeeded = Column(Integer, nullable=False, server_default=text("0"))
    records_failed = Column(Integer, nullable=False, server_default=text("0"))
    sync_data = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
    error_details = Column(JSONB, nullable=False, server_default=text("'[]'::jsonb"))
    performance_metrics = Column(JSONB, nullable=False, server_default=text("'{}'::jsonb"))
