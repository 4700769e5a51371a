"""Ticket lifecycle schema with the three fixed areas."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20240214_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    areas = op.create_table(
        "areas",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False, unique=True),
        sa.Column("name", sa.String(length=255), nullable=False),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True, unique=True),
        sa.Column("role", sa.String(length=50), nullable=False),
        sa.Column("area_id", sa.String(length=36), sa.ForeignKey("areas.id"), nullable=True),
    )

    op.create_table(
        "tickets",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("human_id", sa.String(length=32), nullable=False, unique=True),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(length=255), nullable=False),
        sa.Column("equipment", sa.String(length=255), nullable=False),
        sa.Column("model", sa.String(length=255), nullable=False),
        sa.Column("asset_tag", sa.String(length=100), nullable=False),
        sa.Column("priority", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("area_id", sa.String(length=36), sa.ForeignKey("areas.id"), nullable=False),
        sa.Column("requester_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("technician_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("sla_deadline", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("satisfaction_rating", sa.Integer(), nullable=True),
    )
    op.create_index("ix_tickets_area_status", "tickets", ["area_id", "status"])
    op.create_index("ix_tickets_technician_id", "tickets", ["technician_id"])

    op.create_table(
        "ticket_audit_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("ticket_id", sa.String(length=36), sa.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("actor", sa.String(length=255), nullable=False),
        sa.Column("from_status", sa.String(length=20), nullable=True),
        sa.Column("to_status", sa.String(length=20), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False, server_default=sa.text("'{}'")),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "push_subscriptions",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("endpoint", sa.Text(), nullable=False, unique=True),
        sa.Column("p256dh", sa.String(length=255), nullable=False),
        sa.Column("auth", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )

    op.create_table(
        "area_counters",
        sa.Column("area_id", sa.String(length=36), sa.ForeignKey("areas.id"), primary_key=True, nullable=False),
        sa.Column("value", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )

    op.bulk_insert(
        areas,
        [
            {"id": "it", "code": "IT", "name": "Information Technology"},
            {"id": "building", "code": "BUILDING", "name": "Building Maintenance"},
            {"id": "electrical", "code": "ELECTRICAL", "name": "Electrical"},
        ],
    )


def downgrade() -> None:
    op.drop_table("area_counters")
    op.drop_table("push_subscriptions")
    op.drop_table("ticket_audit_logs")
    op.drop_index("ix_tickets_technician_id", table_name="tickets")
    op.drop_index("ix_tickets_area_status", table_name="tickets")
    op.drop_table("tickets")
    op.drop_table("users")
    op.drop_table("areas")
