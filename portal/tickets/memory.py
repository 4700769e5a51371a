"""In-memory implementation of the ticket store."""

from __future__ import annotations

import asyncio
from collections import defaultdict
from dataclasses import replace
from datetime import datetime
from typing import Any, Iterable, Mapping, Sequence

from .errors import StaleTicketError
from .models import Area, PushSubscription, Role, Ticket, TicketAuditLog, User
from .repository import DuplicateTicketIdentifierError


class InMemoryTicketRepository:
    """Dictionary backed store, used for local runs and tests."""

    def __init__(
        self,
        *,
        areas: Iterable[Area] = (),
        users: Iterable[User] = (),
        tickets: Iterable[Ticket] = (),
    ) -> None:
        self._areas: dict[str, Area] = {area.id: area for area in areas}
        self._users: dict[str, User] = {user.id: user for user in users}
        self._tickets: dict[str, Ticket] = {ticket.id: replace(ticket) for ticket in tickets}
        self._audit: dict[str, list[TicketAuditLog]] = defaultdict(list)
        self._subscriptions: dict[str, PushSubscription] = {}
        self._counters: dict[str, int] = defaultdict(int)
        self._counter_lock = asyncio.Lock()

    def add_user(self, user: User) -> None:
        self._users[user.id] = user

    def add_area(self, area: Area) -> None:
        self._areas[area.id] = area

    async def get_ticket(self, ticket_id: str) -> Ticket | None:
        ticket = self._tickets.get(ticket_id)
        return None if ticket is None else replace(ticket)

    async def insert_ticket(self, ticket: Ticket, audit: TicketAuditLog) -> None:
        if any(existing.human_id == ticket.human_id for existing in self._tickets.values()):
            raise DuplicateTicketIdentifierError(ticket.human_id)
        self._tickets[ticket.id] = replace(ticket)
        self._audit[ticket.id].append(audit)

    async def update_ticket(
        self,
        ticket_id: str,
        fields: Mapping[str, Any],
        audit: TicketAuditLog,
        *,
        expected_updated_at: datetime | None = None,
    ) -> Ticket | None:
        current = self._tickets.get(ticket_id)
        if current is None:
            return None
        if expected_updated_at is not None and current.updated_at != expected_updated_at:
            raise StaleTicketError(f"Ticket {current.human_id} was modified concurrently")
        updated = replace(current, **dict(fields))
        self._tickets[ticket_id] = updated
        self._audit[ticket_id].append(audit)
        return replace(updated)

    async def get_audit_log(self, ticket_id: str) -> Sequence[TicketAuditLog]:
        return list(self._audit.get(ticket_id, ()))

    async def get_user(self, user_id: str) -> User | None:
        return self._users.get(user_id)

    async def find_users(self, role: Role, area_id: str) -> Sequence[User]:
        return [user for user in self._users.values() if user.role == role and user.area_id == area_id]

    async def get_area(self, area_id: str) -> Area | None:
        return self._areas.get(area_id)

    async def increment_area_counter(self, area_id: str) -> int:
        async with self._counter_lock:
            self._counters[area_id] += 1
            return self._counters[area_id]

    async def list_push_subscriptions(self, user_id: str) -> Sequence[PushSubscription]:
        return [sub for sub in self._subscriptions.values() if sub.user_id == user_id]

    async def save_push_subscription(self, subscription: PushSubscription) -> PushSubscription:
        for existing in self._subscriptions.values():
            if existing.endpoint == subscription.endpoint:
                subscription = replace(subscription, id=existing.id)
                break
        self._subscriptions[subscription.id] = subscription
        return subscription

    async def delete_push_subscription(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None
