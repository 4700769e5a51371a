from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping, Protocol, Sequence

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.sql import Insert
from sqlmodel import SQLModel, select

from portal.db.models import (
    AreaCounterTable,
    AreaTable,
    PushSubscriptionTable,
    TicketAuditLogTable,
    TicketTable,
    UserTable,
)

from .errors import StaleTicketError
from .models import (
    Area,
    AreaCode,
    PushSubscription,
    Role,
    Ticket,
    TicketAuditLog,
    TicketPriority,
    TicketStatus,
    User,
)


class DuplicateTicketIdentifierError(RuntimeError):
    """Raised by a store when a ticket's human identifier is already taken."""


class TicketStore(Protocol):
    """Entity store consumed by the lifecycle engine."""

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        ...

    async def insert_ticket(self, ticket: Ticket, audit: TicketAuditLog) -> None:
        ...

    async def update_ticket(
        self,
        ticket_id: str,
        fields: Mapping[str, Any],
        audit: TicketAuditLog,
        *,
        expected_updated_at: datetime | None = None,
    ) -> Ticket | None:
        """Write ``fields`` and ``audit`` atomically.

        Returns ``None`` for an unknown ticket. With ``expected_updated_at`` the
        write is refused with :class:`StaleTicketError` when the stored ticket
        no longer carries that timestamp.
        """

    async def get_audit_log(self, ticket_id: str) -> Sequence[TicketAuditLog]:
        ...

    async def get_user(self, user_id: str) -> User | None:
        ...

    async def find_users(self, role: Role, area_id: str) -> Sequence[User]:
        ...

    async def get_area(self, area_id: str) -> Area | None:
        ...

    async def increment_area_counter(self, area_id: str) -> int:
        ...

    async def list_push_subscriptions(self, user_id: str) -> Sequence[PushSubscription]:
        ...

    async def save_push_subscription(self, subscription: PushSubscription) -> PushSubscription:
        ...

    async def delete_push_subscription(self, subscription_id: str) -> bool:
        ...


def counter_increment_statement(area_id: str) -> Insert:
    """Single-statement upsert returning the next sequence value for an area."""

    table = AreaCounterTable.__table__
    statement = pg_insert(table).values(area_id=area_id, value=1)
    return statement.on_conflict_do_update(
        index_elements=[table.c.area_id],
        set_={"value": table.c.value + 1},
    ).returning(table.c.value)


def _column_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class SqlTicketRepository:
    """Persistence helper wrapping tickets, users, areas, audit logs and push subscriptions."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._engine: AsyncEngine | None = engine

    async def ensure_schema(self) -> None:
        if self._engine is None:
            raise RuntimeError("Session factory is not bound to an async engine")
        async with self._engine.begin() as connection:
            await connection.run_sync(SQLModel.metadata.create_all)

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        async with self._session_factory() as session:
            row = await session.get(TicketTable, ticket_id)
            if row is None:
                return None
            return self._table_to_ticket(row)

    async def insert_ticket(self, ticket: Ticket, audit: TicketAuditLog) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(self._ticket_to_table(ticket))
                    await session.flush()
                    session.add(self._audit_to_table(audit))
        except IntegrityError as exc:
            if "human_id" in str(exc.orig):
                raise DuplicateTicketIdentifierError(ticket.human_id) from exc
            raise

    async def update_ticket(
        self,
        ticket_id: str,
        fields: Mapping[str, Any],
        audit: TicketAuditLog,
        *,
        expected_updated_at: datetime | None = None,
    ) -> Ticket | None:
        async with self._session_factory() as session:
            async with session.begin():
                row = await session.get(TicketTable, ticket_id, with_for_update=True)
                if row is None:
                    return None
                stored_at = _ensure_datetime(row.updated_at)
                if expected_updated_at is not None and stored_at != expected_updated_at:
                    raise StaleTicketError(f"Ticket {row.human_id} was modified concurrently")
                for name, value in fields.items():
                    setattr(row, name, _column_value(value))
                session.add(self._audit_to_table(audit))
            await session.refresh(row)
            return self._table_to_ticket(row)

    async def get_audit_log(self, ticket_id: str) -> Sequence[TicketAuditLog]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(TicketAuditLogTable)
                .where(TicketAuditLogTable.ticket_id == ticket_id)
                .order_by(TicketAuditLogTable.created_at.asc())
            )
            return [self._table_to_audit(row) for row in result.scalars().all()]

    async def get_user(self, user_id: str) -> User | None:
        async with self._session_factory() as session:
            row = await session.get(UserTable, user_id)
            return None if row is None else self._table_to_user(row)

    async def find_users(self, role: Role, area_id: str) -> Sequence[User]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(UserTable).where(UserTable.role == role.value).where(UserTable.area_id == area_id)
            )
            return [self._table_to_user(row) for row in result.scalars().all()]

    async def get_area(self, area_id: str) -> Area | None:
        async with self._session_factory() as session:
            row = await session.get(AreaTable, area_id)
            if row is None:
                return None
            return Area(id=row.id, code=AreaCode(row.code), name=row.name)

    async def increment_area_counter(self, area_id: str) -> int:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(counter_increment_statement(area_id))
                return int(result.scalar_one())

    async def list_push_subscriptions(self, user_id: str) -> Sequence[PushSubscription]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(PushSubscriptionTable).where(PushSubscriptionTable.user_id == user_id)
            )
            return [self._table_to_subscription(row) for row in result.scalars().all()]

    async def save_push_subscription(self, subscription: PushSubscription) -> PushSubscription:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    select(PushSubscriptionTable).where(PushSubscriptionTable.endpoint == subscription.endpoint)
                )
                row = result.scalars().first()
                if row is None:
                    row = PushSubscriptionTable(
                        id=subscription.id,
                        user_id=subscription.user_id,
                        endpoint=subscription.endpoint,
                        p256dh=subscription.p256dh,
                        auth=subscription.auth,
                    )
                    session.add(row)
                else:
                    row.user_id = subscription.user_id
                    row.p256dh = subscription.p256dh
                    row.auth = subscription.auth
            return self._table_to_subscription(row)

    async def delete_push_subscription(self, subscription_id: str) -> bool:
        async with self._session_factory() as session:
            row = await session.get(PushSubscriptionTable, subscription_id)
            if row is None:
                return False
            await session.delete(row)
            await session.commit()
            return True

    @staticmethod
    def _ticket_to_table(ticket: Ticket) -> TicketTable:
        return TicketTable(
            id=ticket.id,
            human_id=ticket.human_id,
            title=ticket.title,
            description=ticket.description,
            location=ticket.location,
            equipment=ticket.equipment,
            model=ticket.model,
            asset_tag=ticket.asset_tag,
            priority=ticket.priority.value,
            status=ticket.status.value,
            area_id=ticket.area_id,
            requester_id=ticket.requester_id,
            technician_id=ticket.technician_id,
            created_at=ticket.created_at,
            updated_at=ticket.updated_at,
            sla_deadline=ticket.sla_deadline,
            resolved_at=ticket.resolved_at,
            satisfaction_rating=ticket.satisfaction_rating,
        )

    @staticmethod
    def _audit_to_table(audit: TicketAuditLog) -> TicketAuditLogTable:
        return TicketAuditLogTable(
            id=audit.id,
            ticket_id=audit.ticket_id,
            action=audit.action,
            actor=audit.actor,
            from_status=audit.from_status.value if audit.from_status else None,
            to_status=audit.to_status.value if audit.to_status else None,
            metadata_=dict(audit.metadata),
            created_at=audit.created_at,
        )

    @staticmethod
    def _table_to_ticket(row: TicketTable) -> Ticket:
        return Ticket(
            id=row.id,
            human_id=row.human_id,
            title=row.title,
            description=row.description,
            location=row.location,
            equipment=row.equipment,
            model=row.model,
            asset_tag=row.asset_tag,
            priority=TicketPriority(row.priority),
            status=TicketStatus(row.status),
            area_id=row.area_id,
            requester_id=row.requester_id,
            technician_id=row.technician_id,
            created_at=_ensure_datetime(row.created_at),
            updated_at=_ensure_datetime(row.updated_at),
            sla_deadline=_ensure_datetime(row.sla_deadline),
            resolved_at=_ensure_datetime(row.resolved_at) if row.resolved_at is not None else None,
            satisfaction_rating=row.satisfaction_rating,
        )

    @staticmethod
    def _table_to_user(row: UserTable) -> User:
        return User(
            id=row.id,
            name=row.name,
            email=row.email,
            role=Role(row.role),
            area_id=row.area_id,
        )

    @staticmethod
    def _table_to_audit(row: TicketAuditLogTable) -> TicketAuditLog:
        return TicketAuditLog(
            id=row.id,
            ticket_id=row.ticket_id,
            action=row.action,
            actor=row.actor,
            from_status=TicketStatus(row.from_status) if row.from_status else None,
            to_status=TicketStatus(row.to_status) if row.to_status else None,
            metadata=dict(row.metadata_ or {}),
            created_at=_ensure_datetime(row.created_at),
        )

    @staticmethod
    def _table_to_subscription(row: PushSubscriptionTable) -> PushSubscription:
        return PushSubscription(
            id=row.id,
            user_id=row.user_id,
            endpoint=row.endpoint,
            p256dh=row.p256dh,
            auth=row.auth,
        )


def _ensure_datetime(value: datetime | None) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    raise TypeError("Expected datetime value from database")
