"""Authorization matrix deciding who may apply which ticket change."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Mapping, Protocol

from .errors import DenialReason, TicketAuthorizationError
from .models import Role, Ticket, TicketChange, TicketStatus, User

logger = logging.getLogger(__name__)

# Fields a technician may never touch, in the order they are reported.
_MANAGER_ONLY_FIELDS: tuple[str, ...] = ("technician_id", "priority", "area_id")


class AreaExceptionPolicy(Protocol):
    """Lookup of additional areas governed by specific manager identities."""

    def extra_areas(self, identity: str | None) -> frozenset[str]:
        ...


class StaticAreaExceptionPolicy:
    """Exception table backed by a configured ``{email: [area_id, ...]}`` mapping."""

    def __init__(self, table: Mapping[str, Iterable[str]] | None = None) -> None:
        self._table: dict[str, frozenset[str]] = {
            identity.strip().lower(): frozenset(areas) for identity, areas in (table or {}).items()
        }

    def extra_areas(self, identity: str | None) -> frozenset[str]:
        if not identity:
            return frozenset()
        return self._table.get(identity.strip().lower(), frozenset())


@dataclass(slots=True, frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: DenialReason | None = None
    field: str | None = None

    @classmethod
    def allow(cls) -> "AuthorizationDecision":
        return cls(allowed=True)

    @classmethod
    def deny(cls, reason: DenialReason, field: str | None = None) -> "AuthorizationDecision":
        return cls(allowed=False, reason=reason, field=field)


class AuthorizationMatrix:
    """Evaluate a change against the actor's role, area and assignment.

    The reserved CLOSED transition is refused for every role, including
    super administrators, because closing belongs to the requester
    confirmation flow.
    """

    def __init__(self, policy: AreaExceptionPolicy | None = None) -> None:
        self._policy = policy or StaticAreaExceptionPolicy()

    def governed_areas(self, actor: User) -> frozenset[str]:
        areas = set(self._policy.extra_areas(actor.email))
        if actor.area_id:
            areas.add(actor.area_id)
        return frozenset(areas)

    def can_apply(self, actor: User, ticket: Ticket, change: TicketChange) -> AuthorizationDecision:
        if change.has("status") and change.status == TicketStatus.CLOSED:
            return AuthorizationDecision.deny(DenialReason.RESERVED_TRANSITION, "status")

        if actor.role == Role.SUPER_ADMIN:
            return AuthorizationDecision.allow()

        if actor.role == Role.MANAGER:
            if ticket.area_id in self.governed_areas(actor):
                return AuthorizationDecision.allow()
            return AuthorizationDecision.deny(DenialReason.AREA_NOT_GOVERNED, "area_id")

        if actor.role == Role.TECHNICIAN:
            for name in _MANAGER_ONLY_FIELDS:
                if change.has(name):
                    return AuthorizationDecision.deny(DenialReason.FIELD_NOT_PERMITTED, name)
            if ticket.technician_id is not None and ticket.technician_id == actor.id:
                return AuthorizationDecision.allow()
            return AuthorizationDecision.deny(DenialReason.NOT_ASSIGNED_TECHNICIAN)

        return AuthorizationDecision.deny(DenialReason.ROLE_NOT_PERMITTED)

    def ensure_can_apply(self, actor: User, ticket: Ticket, change: TicketChange) -> None:
        decision = self.can_apply(actor, ticket, change)
        if decision.allowed:
            return
        reason = decision.reason or DenialReason.ROLE_NOT_PERMITTED
        logger.info(
            "Denied %s on ticket %s for %s (%s): %s",
            ",".join(change.present_fields()),
            ticket.human_id,
            actor.id,
            actor.role.value,
            reason.value,
        )
        raise TicketAuthorizationError(reason, field=decision.field)
