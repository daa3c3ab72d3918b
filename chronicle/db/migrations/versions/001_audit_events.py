"""Create the append-only audit_events table.

Revision ID: 001
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects.postgresql import JSONB, UUID

revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create audit_events and its query indexes."""
    op.create_table(
        "audit_events",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("seq", sa.BigInteger, sa.Identity(always=True), nullable=False, unique=True),
        sa.Column("domain", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(100), nullable=False),
        sa.Column("entity_id", sa.BigInteger),
        sa.Column("event_kind", sa.String(16), nullable=False),
        sa.Column("payload", JSONB, nullable=False),
        sa.Column("summary", sa.Text, nullable=False),
        sa.Column("entity_version", sa.Integer, nullable=False),
        sa.Column("event_timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("entry_timestamp", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("initiator", sa.String(255), nullable=False, server_default="SYSTEM"),
        sa.CheckConstraint(
            "event_kind IN ('CREATED', 'UPDATED', 'DELETED')",
            name="ck_audit_events_kind",
        ),
    )
    op.create_index(
        "idx_audit_events_entity",
        "audit_events",
        ["entity_id", sa.text("event_timestamp DESC"), sa.text("seq DESC")],
    )
    op.create_index(
        "idx_audit_events_type_entity",
        "audit_events",
        ["entity_type", "entity_id"],
    )
    op.create_index("idx_audit_events_kind", "audit_events", ["event_kind"])
    op.create_index("idx_audit_events_initiator", "audit_events", ["initiator"])
    op.create_index(
        "idx_audit_events_timestamp",
        "audit_events",
        [sa.text("event_timestamp DESC")],
    )

    # Append-only: reject UPDATE and DELETE at the database level
    op.execute(
        """
        CREATE FUNCTION audit_events_immutable() RETURNS trigger AS $$
        BEGIN
            RAISE EXCEPTION 'audit_events is append-only';
        END;
        $$ LANGUAGE plpgsql;
        """
    )
    op.execute(
        """
        CREATE TRIGGER audit_events_no_mutation
        BEFORE UPDATE OR DELETE ON audit_events
        FOR EACH ROW EXECUTE FUNCTION audit_events_immutable();
        """
    )


def downgrade() -> None:
    """Drop audit_events."""
    op.execute("DROP TRIGGER IF EXISTS audit_events_no_mutation ON audit_events")
    op.execute("DROP FUNCTION IF EXISTS audit_events_immutable()")
    op.drop_table("audit_events")
