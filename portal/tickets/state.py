from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Sequence

from .authorization import AuthorizationMatrix
from .errors import InvalidTicketTransitionError, TicketValidationError
from .events import NotificationEvent, TransitionParties, derive_transition_events
from .models import Ticket, TicketChange, TicketStatus, User
from .sla import sla_deadline

logger = logging.getLogger(__name__)

_TRACKED_FIELDS: tuple[str, ...] = (
    "status",
    "technician_id",
    "priority",
    "area_id",
    "sla_deadline",
    "resolved_at",
)


@dataclass(slots=True)
class TransitionResult:
    """New ticket snapshot plus the side effects the transition implies."""

    ticket: Ticket
    events: Sequence[NotificationEvent]
    changed_fields: dict[str, object]


class TicketStateMachine:
    """Validate and apply ticket transitions.

    The machine is permissive about adjacency: staff may move a ticket between
    any non-terminal statuses. What it does enforce is the reserved CLOSED
    transition, terminal states, and the cross-field rules between status,
    technician, priority and area.
    """

    TERMINAL_STATES: frozenset[TicketStatus] = frozenset({TicketStatus.CLOSED, TicketStatus.CANCELLED})

    def __init__(self, authorization: AuthorizationMatrix | None = None) -> None:
        self._authorization = authorization or AuthorizationMatrix()

    @staticmethod
    def initial_state() -> TicketStatus:
        return TicketStatus.OPEN

    def validate_change(self, change: TicketChange) -> None:
        if change.is_empty:
            raise TicketValidationError("No fields provided for update")
        for name in ("status", "priority", "area_id"):
            if change.has(name) and getattr(change, name) is None:
                raise TicketValidationError(f"Field '{name}' cannot be null")

    def assert_mutable(self, ticket: Ticket, change: TicketChange) -> None:
        if ticket.status == TicketStatus.CLOSED:
            raise InvalidTicketTransitionError(f"Ticket {ticket.human_id} is closed")
        if ticket.status == TicketStatus.CANCELLED and change.has("status"):
            raise InvalidTicketTransitionError(f"Ticket {ticket.human_id} is cancelled")

    def check(self, actor: User, ticket: Ticket, change: TicketChange) -> None:
        """Run every guard that precedes a transition without applying it."""

        self.validate_change(change)
        self._authorization.ensure_can_apply(actor, ticket, change)
        self.assert_mutable(ticket, change)

    def apply(
        self,
        actor: User,
        ticket: Ticket,
        change: TicketChange,
        *,
        now: datetime,
        parties: TransitionParties | None = None,
    ) -> TransitionResult:
        self.check(actor, ticket, change)

        updated = replace(ticket)

        if change.has("status"):
            updated.status = change.status  # type: ignore[assignment]
            if change.status == TicketStatus.RESOLVED and updated.resolved_at is None:
                updated.resolved_at = now

        if change.has("technician_id"):
            if change.technician_id is None:
                updated.technician_id = None
            else:
                updated.technician_id = str(change.technician_id)
                if not change.has("status") and ticket.status == TicketStatus.OPEN:
                    updated.status = TicketStatus.ASSIGNED

        if change.has("priority"):
            updated.priority = change.priority  # type: ignore[assignment]
            updated.sla_deadline = sla_deadline(ticket.created_at, updated.priority)

        if change.has("area_id"):
            updated.area_id = str(change.area_id)
            if not change.has("technician_id") and ticket.technician_id is not None:
                updated.technician_id = None
                if updated.status != TicketStatus.CANCELLED:
                    if updated.status in (TicketStatus.RESOLVED, TicketStatus.ON_HOLD):
                        logger.info(
                            "Area transfer reopens ticket %s from %s", ticket.human_id, updated.status.value
                        )
                    updated.status = TicketStatus.OPEN

        changed = {
            name: getattr(updated, name)
            for name in _TRACKED_FIELDS
            if getattr(updated, name) != getattr(ticket, name)
        }
        if changed:
            updated.updated_at = now

        events = derive_transition_events(ticket, updated, actor, parties)
        return TransitionResult(ticket=updated, events=events, changed_fields=changed)
