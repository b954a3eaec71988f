"""Create beds24 schema tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:03.418220

"""

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op  # type: ignore[attr-defined]

# revision identifiers, used by Alembic.
revision = "3f1c9a7d2b10"
down_revision = None
branch_labels = None
depends_on = None

SCHEMA = "beds24"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "connections",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("hotel_id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=True),
        sa.Column("account_id", sa.BigInteger(), nullable=True),
        sa.Column("account_email", sa.String(), nullable=True),
        sa.Column("refresh_token_encrypted", sa.Text(), nullable=True),
        sa.Column("access_token_encrypted", sa.Text(), nullable=True),
        sa.Column("token_expires_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("credits_remaining", sa.Integer(), nullable=True),
        sa.Column("credits_limit", sa.Integer(), nullable=True),
        sa.Column("credits_reset_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("status", sa.String(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("scopes", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column(
            "allow_linked_properties", sa.Boolean(), server_default=sa.text("FALSE"), nullable=False
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("last_sync_at", sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        schema=SCHEMA,
    )
    op.create_index("ix_beds24_connections_hotel_id", "connections", ["hotel_id"], schema=SCHEMA)
    op.create_index(
        "ix_beds24_connections_organization_id", "connections", ["organization_id"], schema=SCHEMA
    )
    op.create_index(
        "uq_connections_active_hotel",
        "connections",
        ["hotel_id"],
        unique=True,
        schema=SCHEMA,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "properties",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("hotel_id", sa.String(), nullable=False),
        sa.Column(
            "connection_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{SCHEMA}.connections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("remote_property_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("status", sa.String(), server_default=sa.text("'active'"), nullable=False),
        sa.Column("sync_enabled", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("last_inventory_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_rates_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_bookings_sync_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "sync_settings",
            postgresql.JSONB(),
            server_default=sa.text(
                "'{\"sync_rates\": true, \"sync_availability\": true, \"sync_restrictions\": true, "
                "\"sync_bookings\": true, \"sync_messages\": true}'::jsonb"
            ),
            nullable=False,
        ),
        sa.Column("raw_payload", postgresql.JSONB(), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint(
            "connection_id", "remote_property_id", name="uq_properties_connection_remote"
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_beds24_properties_hotel_id", "properties", ["hotel_id"], schema=SCHEMA)
    op.create_index(
        "ix_beds24_properties_connection_id", "properties", ["connection_id"], schema=SCHEMA
    )
    op.create_index(
        "ix_beds24_properties_remote_property_id", "properties", ["remote_property_id"], schema=SCHEMA
    )

    op.create_table(
        "inventory_cells",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("remote_property_id", sa.BigInteger(), nullable=False),
        sa.Column("remote_room_id", sa.BigInteger(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("available", sa.Integer(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("min_stay", sa.Integer(), nullable=True),
        sa.Column("max_stay", sa.Integer(), nullable=True),
        sa.Column("closed_to_arrival", sa.Boolean(), nullable=True),
        sa.Column("closed_to_departure", sa.Boolean(), nullable=True),
        sa.Column("restrictions", postgresql.JSONB(), nullable=True),
        sa.Column("synced_from_remote", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("cached_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint(
            "remote_property_id", "remote_room_id", "date", name="uq_inventory_cells_room_date"
        ),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_beds24_inventory_cells_remote_property_id",
        "inventory_cells",
        ["remote_property_id"],
        schema=SCHEMA,
    )

    op.create_table(
        "bookings",
        sa.Column("remote_booking_id", sa.BigInteger(), primary_key=True, autoincrement=False),
        sa.Column(
            "connection_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{SCHEMA}.connections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("hotel_id", sa.String(), nullable=False),
        sa.Column("remote_property_id", sa.BigInteger(), nullable=False),
        sa.Column("remote_room_id", sa.BigInteger(), nullable=True),
        sa.Column("arrival", sa.Date(), nullable=True),
        sa.Column("departure", sa.Date(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("num_adult", sa.Integer(), nullable=True),
        sa.Column("num_child", sa.Integer(), nullable=True),
        sa.Column("last_modified", sa.DateTime(timezone=True), nullable=True),
        sa.Column("raw_payload", postgresql.JSONB(), nullable=False),
        *_timestamps(),
        schema=SCHEMA,
    )
    op.create_index("ix_beds24_bookings_connection_id", "bookings", ["connection_id"], schema=SCHEMA)
    op.create_index("ix_beds24_bookings_hotel_id", "bookings", ["hotel_id"], schema=SCHEMA)
    op.create_index(
        "ix_beds24_bookings_remote_property_id", "bookings", ["remote_property_id"], schema=SCHEMA
    )

    op.create_table(
        "sync_state",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("hotel_id", sa.String(), nullable=False),
        sa.Column(
            "connection_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{SCHEMA}.connections.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("remote_property_id", sa.BigInteger(), nullable=True),
        sa.Column("sync_enabled", sa.Boolean(), server_default=sa.text("TRUE"), nullable=False),
        sa.Column("bootstrap_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("details", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("provider", "hotel_id", name="uq_sync_state_provider_hotel"),
        schema=SCHEMA,
    )

    op.create_table(
        "sync_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "connection_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey(f"{SCHEMA}.connections.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("remote_property_id", sa.BigInteger(), nullable=True),
        sa.Column("sync_type", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("status", sa.String(), server_default=sa.text("'pending'"), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("records_processed", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("records_succeeded", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("records_failed", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("sync_data", postgresql.JSONB(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column(
            "error_details", postgresql.JSONB(), server_default=sa.text("'[]'::jsonb"), nullable=False
        ),
        sa.Column(
            "performance_metrics",
            postgresql.JSONB(),
            server_default=sa.text("'{}'::jsonb"),
            nullable=False,
        ),
        schema=SCHEMA,
    )
    op.create_index("ix_beds24_sync_logs_connection_id", "sync_logs", ["connection_id"], schema=SCHEMA)
    op.create_index("ix_beds24_sync_logs_status", "sync_logs", ["status"], schema=SCHEMA)

    op.create_table(
        "audit_entries",
        sa.Column("id", sa.BigInteger(), primary_key=True, autoincrement=True),
        sa.Column("connection_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("hotel_id", sa.String(), nullable=True),
        sa.Column("operation", sa.String(), nullable=False),
        sa.Column("method", sa.String(), nullable=False),
        sa.Column("endpoint", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("http_status", sa.Integer(), nullable=True),
        sa.Column("request_cost", sa.Integer(), nullable=True),
        sa.Column("credits_remaining", sa.Integer(), nullable=True),
        sa.Column("credits_resets_in", sa.Integer(), nullable=True),
        sa.Column("duration_ms", sa.Integer(), nullable=False),
        sa.Column("request_payload", postgresql.JSONB(), nullable=True),
        sa.Column("response_payload", postgresql.JSONB(), nullable=True),
        sa.Column("error_details", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        schema=SCHEMA,
    )
    op.create_index(
        "ix_beds24_audit_entries_connection_id", "audit_entries", ["connection_id"], schema=SCHEMA
    )
    op.create_index("ix_beds24_audit_entries_hotel_id", "audit_entries", ["hotel_id"], schema=SCHEMA)
    op.create_index("ix_beds24_audit_entries_created_at", "audit_entries", ["created_at"], schema=SCHEMA)


def downgrade() -> None:
    """Downgrade schema."""
    for table in (
        "audit_entries",
        "sync_logs",
        "sync_state",
        "bookings",
        "inventory_cells",
        "properties",
        "connections",
    ):
        op.drop_table(table, schema=SCHEMA)
