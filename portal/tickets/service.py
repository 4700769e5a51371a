from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Protocol, Sequence
from uuid import uuid4

from opentelemetry import trace

from portal.metrics import MetricsRegistry, metrics_registry
from portal.metrics.base import track_duration
from portal.metrics.definitions import (
    TICKET_TRANSITION_DURATION,
    TICKET_TRANSITION_FAILURES,
    TICKET_TRANSITIONS,
    TICKETS_CREATED,
)

from .bulk import BulkTicketUpdater, BulkUpdateResult
from .errors import (
    AreaNotFoundError,
    TicketConflictError,
    TicketNotFoundError,
    TicketServiceError,
    TicketValidationError,
    UserNotFoundError,
)
from .events import NotificationEvent, NotificationSink, TransitionParties, derive_creation_events
from .identifiers import TicketIdentifierAllocator
from .models import (
    Area,
    PushSubscription,
    Role,
    Ticket,
    TicketAuditLog,
    TicketChange,
    TicketDraft,
    User,
)
from .repository import DuplicateTicketIdentifierError, TicketStore
from .sla import sla_deadline
from .state import TicketStateMachine

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

_REQUIRED_DRAFT_FIELDS = ("title", "description", "location", "equipment", "model", "asset_tag")


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class TicketService:
    """High level orchestration for ticket lifecycle operations.

    Every write follows the same path: guards, reference lookups, the pure
    state machine step, one store call that persists the ticket together with
    its audit row, and finally a non-blocking hand-off of the resulting
    notification events.
    """

    def __init__(
        self,
        store: TicketStore,
        *,
        notifier: NotificationSink | None = None,
        state_machine: TicketStateMachine | None = None,
        allocator: TicketIdentifierAllocator | None = None,
        clock: Clock | None = None,
        base_url: str = "",
        identifier_max_attempts: int = 3,
        bulk_timeout: float | None = None,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        if identifier_max_attempts < 1:
            raise ValueError("identifier_max_attempts must be at least 1")
        self._store = store
        self._notifier = notifier
        self._state_machine = state_machine or TicketStateMachine()
        self._allocator = allocator or TicketIdentifierAllocator(store)
        self._clock = clock or SystemClock()
        self._base_url = base_url.rstrip("/")
        self._identifier_max_attempts = identifier_max_attempts
        self._bulk_timeout = bulk_timeout
        metrics = metrics or metrics_registry
        self._metrics = metrics
        self._created = metrics.counter(TICKETS_CREATED)
        self._transitions = metrics.counter(TICKET_TRANSITIONS)
        self._failures = metrics.counter(TICKET_TRANSITION_FAILURES, label_names=("reason",))
        self._duration = metrics.distribution(TICKET_TRANSITION_DURATION)

    def ticket_url(self, ticket_id: str) -> str:
        return f"{self._base_url}/tickets/{ticket_id}"

    async def get_ticket(self, ticket_id: str) -> Ticket:
        ticket = await self._store.get_ticket(ticket_id)
        if ticket is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def get_user(self, user_id: str) -> User:
        user = await self._store.get_user(user_id)
        if user is None:
            raise UserNotFoundError(f"User {user_id} not found")
        return user

    async def get_area(self, area_id: str) -> Area:
        area = await self._store.get_area(area_id)
        if area is None:
            raise AreaNotFoundError(f"Area {area_id} not found")
        return area

    async def create_ticket(self, requester_id: str, draft: TicketDraft) -> Ticket:
        with tracer.start_as_current_span("tickets.create") as span:
            span.set_attribute("ticket.area_id", draft.area_id)
            for name in _REQUIRED_DRAFT_FIELDS:
                if not str(getattr(draft, name) or "").strip():
                    raise TicketValidationError(f"Field '{name}' is required")

            requester = await self.get_user(requester_id)
            area = await self.get_area(draft.area_id)
            now = self._clock.now()
            ticket_id = str(uuid4())

            for attempt in range(1, self._identifier_max_attempts + 1):
                human_id = await self._allocator.allocate(area.id)
                ticket = Ticket(
                    id=ticket_id,
                    human_id=human_id,
                    title=draft.title.strip(),
                    description=draft.description.strip(),
                    location=draft.location.strip(),
                    equipment=draft.equipment.strip(),
                    model=draft.model.strip(),
                    asset_tag=draft.asset_tag.strip(),
                    priority=draft.priority,
                    status=self._state_machine.initial_state(),
                    area_id=area.id,
                    requester_id=requester.id,
                    technician_id=None,
                    created_at=now,
                    updated_at=now,
                    sla_deadline=sla_deadline(now, draft.priority),
                )
                audit = TicketAuditLog(
                    id=str(uuid4()),
                    ticket_id=ticket.id,
                    action="created",
                    actor=requester.id,
                    from_status=None,
                    to_status=ticket.status,
                    metadata={"human_id": human_id, "priority": ticket.priority.value},
                    created_at=now,
                )
                try:
                    await self._store.insert_ticket(ticket, audit)
                except DuplicateTicketIdentifierError:
                    logger.warning(
                        "Identifier %s already taken (attempt %d/%d)",
                        human_id,
                        attempt,
                        self._identifier_max_attempts,
                    )
                    continue
                break
            else:
                raise TicketConflictError(f"Could not allocate a unique identifier for area {area.id}")

            span.set_attribute("ticket.human_id", ticket.human_id)
            self._created.inc()
            logger.info("Ticket %s created by %s", ticket.human_id, requester.id)

            managers = await self._store.find_users(Role.MANAGER, area.id)
            self._notify(
                derive_creation_events(
                    ticket, requester, area, managers, ticket_url=self.ticket_url(ticket.id)
                )
            )
            return ticket

    async def update_ticket(self, actor: User, ticket_id: str, change: TicketChange) -> Ticket:
        with tracer.start_as_current_span("tickets.update") as span:
            span.set_attribute("ticket.id", ticket_id)
            span.set_attribute("actor.role", actor.role.value)
            try:
                with track_duration(self._duration):
                    return await self._update_ticket(actor, ticket_id, change)
            except TicketServiceError as exc:
                self._failures.inc(labels={"reason": type(exc).__name__})
                span.record_exception(exc)
                raise

    async def _update_ticket(self, actor: User, ticket_id: str, change: TicketChange) -> Ticket:
        ticket = await self.get_ticket(ticket_id)
        self._state_machine.check(actor, ticket, change)
        parties = await self._resolve_parties(ticket, change)

        result = self._state_machine.apply(actor, ticket, change, now=self._clock.now(), parties=parties)
        if not result.changed_fields:
            logger.debug("Update of ticket %s changed nothing", ticket.human_id)
            return ticket

        updated = result.ticket
        fields = dict(result.changed_fields)
        fields["updated_at"] = updated.updated_at
        audit = TicketAuditLog(
            id=str(uuid4()),
            ticket_id=ticket.id,
            action="updated",
            actor=actor.id,
            from_status=ticket.status,
            to_status=updated.status,
            metadata={"fields": sorted(result.changed_fields)},
            created_at=updated.updated_at,
        )
        persisted = await self._store.update_ticket(
            ticket.id, fields, audit, expected_updated_at=ticket.updated_at
        )
        if persisted is None:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        self._transitions.inc()
        logger.info(
            "Ticket %s updated by %s: %s",
            persisted.human_id,
            actor.id,
            ", ".join(sorted(result.changed_fields)),
        )
        self._notify(result.events)
        return persisted

    async def _resolve_parties(self, ticket: Ticket, change: TicketChange) -> TransitionParties:
        technician = None
        if change.has("technician_id") and change.technician_id is not None:
            technician = await self.get_user(str(change.technician_id))
        area_id = str(change.area_id) if change.has("area_id") else ticket.area_id
        area = await self.get_area(area_id)
        requester = await self._store.get_user(ticket.requester_id)
        return TransitionParties(
            requester=requester,
            technician=technician,
            area=area,
            ticket_url=self.ticket_url(ticket.id),
        )

    async def bulk_update_tickets(
        self,
        actor: User,
        ticket_ids: Sequence[str],
        change: TicketChange,
        *,
        timeout: float | None = None,
    ) -> BulkUpdateResult:
        updater = BulkTicketUpdater(self, metrics=self._metrics)
        return await updater.apply_bulk(
            actor, ticket_ids, change, timeout=timeout if timeout is not None else self._bulk_timeout
        )

    async def get_audit_log(self, ticket_id: str) -> list[TicketAuditLog]:
        await self.get_ticket(ticket_id)
        return list(await self._store.get_audit_log(ticket_id))

    async def register_push_subscription(
        self, user: User, *, endpoint: str, p256dh: str, auth: str
    ) -> PushSubscription:
        if not endpoint or not p256dh or not auth:
            raise TicketValidationError("Push subscription requires endpoint, p256dh and auth")
        subscription = PushSubscription(
            id=str(uuid4()), user_id=user.id, endpoint=endpoint, p256dh=p256dh, auth=auth
        )
        saved = await self._store.save_push_subscription(subscription)
        logger.info("Push subscription %s registered for user %s", saved.id, user.id)
        return saved

    def _notify(self, events: Sequence[NotificationEvent]) -> None:
        if not events or self._notifier is None:
            return
        try:
            accepted = self._notifier.submit(events)
        except Exception:
            logger.exception("Failed to hand off %d notification event(s)", len(events))
            return
        if not accepted:
            logger.error("Notification hand-off rejected %d event(s)", len(events))
