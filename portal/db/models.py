"""SQLModel table definitions for the ticket portal data layer."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return a timezone aware UTC timestamp."""

    return datetime.now(timezone.utc)


class AreaTable(SQLModel, table=True):
    """Fixed organizational areas (IT, BUILDING, ELECTRICAL)."""

    __tablename__ = "areas"

    id: str = Field(primary_key=True, index=True)
    code: str = Field(sa_column=Column(String(50), nullable=False, unique=True))
    name: str = Field(sa_column=Column(String(255), nullable=False))


class UserTable(SQLModel, table=True):
    """Portal accounts; only the fields the lifecycle engine reads."""

    __tablename__ = "users"

    id: str = Field(primary_key=True, index=True)
    name: str = Field(sa_column=Column(String(255), nullable=False))
    email: str | None = Field(default=None, sa_column=Column(String(255), nullable=True, unique=True))
    role: str = Field(sa_column=Column(String(50), nullable=False))
    area_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("areas.id"), nullable=True)
    )


class TicketTable(SQLModel, table=True):
    """Maintenance tickets filed against an area."""

    __tablename__ = "tickets"

    id: str = Field(primary_key=True, index=True)
    human_id: str = Field(sa_column=Column(String(32), nullable=False, unique=True))
    title: str = Field(sa_column=Column(String(255), nullable=False))
    description: str = Field(sa_column=Column(Text, nullable=False))
    location: str = Field(sa_column=Column(String(255), nullable=False))
    equipment: str = Field(sa_column=Column(String(255), nullable=False))
    model: str = Field(sa_column=Column(String(255), nullable=False))
    asset_tag: str = Field(sa_column=Column(String(100), nullable=False))
    priority: str = Field(sa_column=Column(String(20), nullable=False))
    status: str = Field(sa_column=Column(String(20), nullable=False))
    area_id: str = Field(sa_column=Column(String(36), ForeignKey("areas.id"), nullable=False))
    requester_id: str = Field(sa_column=Column(String(36), ForeignKey("users.id"), nullable=False))
    technician_id: str | None = Field(
        default=None, sa_column=Column(String(36), ForeignKey("users.id"), nullable=True)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))
    sla_deadline: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    resolved_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True), nullable=True))
    satisfaction_rating: int | None = Field(default=None, sa_column=Column(Integer, nullable=True))


class TicketAuditLogTable(SQLModel, table=True):
    """Audit trail describing discrete ticket actions."""

    __tablename__ = "ticket_audit_logs"

    id: str = Field(primary_key=True, index=True)
    ticket_id: str = Field(
        sa_column=Column(String(36), ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False)
    )
    action: str = Field(sa_column=Column(String(100), nullable=False))
    actor: str = Field(sa_column=Column(String(255), nullable=False))
    from_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    to_status: str | None = Field(default=None, sa_column=Column(String(20), nullable=True))
    metadata_: dict[str, Any] = Field(
        default_factory=dict, sa_column=Column("metadata", JSON, nullable=False)
    )
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class PushSubscriptionTable(SQLModel, table=True):
    """Web push endpoints registered by user devices."""

    __tablename__ = "push_subscriptions"

    id: str = Field(primary_key=True, index=True)
    user_id: str = Field(
        sa_column=Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    )
    endpoint: str = Field(sa_column=Column(Text, nullable=False, unique=True))
    p256dh: str = Field(sa_column=Column(String(255), nullable=False))
    auth: str = Field(sa_column=Column(String(255), nullable=False))
    created_at: datetime = Field(default_factory=_utcnow, sa_column=Column(DateTime(timezone=True), nullable=False))


class AreaCounterTable(SQLModel, table=True):
    """Per-area sequence backing ticket identifiers."""

    __tablename__ = "area_counters"

    area_id: str = Field(primary_key=True, foreign_key="areas.id")
    value: int = Field(default=0, sa_column=Column(Integer, nullable=False))
