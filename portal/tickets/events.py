from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Mapping, Protocol, Sequence

from .models import Area, Ticket, User


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    PUSH = "PUSH"


class NotificationTemplate(str, Enum):
    TICKET_ASSIGNED = "ticket_assigned"
    TICKET_STATUS_CHANGED = "ticket_status_changed"
    TICKET_CREATED = "ticket_created"
    NEW_TICKET = "new_ticket"


@dataclass(slots=True, frozen=True)
class Recipient:
    user_id: str
    name: str | None = None
    email: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "Recipient":
        return cls(user_id=user.id, name=user.name, email=user.email)


@dataclass(slots=True, frozen=True)
class NotificationEvent:
    """Ephemeral instruction to notify one recipient over one channel."""

    channel: NotificationChannel
    recipient: Recipient
    template: NotificationTemplate
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class TransitionParties:
    """Directory records resolved for a transition, used to fill payloads."""

    requester: User | None = None
    technician: User | None = None
    area: Area | None = None
    ticket_url: str = ""


def _both_channels(
    recipient: Recipient, template: NotificationTemplate, payload: Mapping[str, Any]
) -> list[NotificationEvent]:
    return [
        NotificationEvent(channel=channel, recipient=recipient, template=template, payload=dict(payload))
        for channel in (NotificationChannel.EMAIL, NotificationChannel.PUSH)
    ]


def derive_transition_events(
    before: Ticket,
    after: Ticket,
    actor: User,
    parties: TransitionParties | None = None,
) -> list[NotificationEvent]:
    """Events implied by the difference between two snapshots of a ticket.

    Only a newly assigned technician and a status change made by someone other
    than the requester notify anyone; priority or area changes alone are silent.
    """

    parties = parties or TransitionParties()
    events: list[NotificationEvent] = []

    if after.technician_id is not None and after.technician_id != before.technician_id:
        technician = parties.technician
        if technician is not None and technician.id == after.technician_id:
            recipient = Recipient.from_user(technician)
        else:
            recipient = Recipient(user_id=after.technician_id)
        payload = {
            "ticket_id": after.id,
            "human_id": after.human_id,
            "title": after.title,
            "priority": after.priority.value,
            "technician_name": recipient.name or "Technician",
            "requester_name": parties.requester.name if parties.requester else "Requester",
            "area_name": parties.area.name if parties.area else after.area_id,
            "location": after.location,
            "equipment": after.equipment,
            "ticket_url": parties.ticket_url,
        }
        events.extend(_both_channels(recipient, NotificationTemplate.TICKET_ASSIGNED, payload))

    if after.status != before.status and actor.id != after.requester_id:
        requester = parties.requester
        if requester is not None and requester.id == after.requester_id:
            recipient = Recipient.from_user(requester)
        else:
            recipient = Recipient(user_id=after.requester_id)
        payload = {
            "ticket_id": after.id,
            "human_id": after.human_id,
            "title": after.title,
            "requester_name": recipient.name or "Requester",
            "updater_name": actor.name or "Team",
            "old_status": before.status.value,
            "new_status": after.status.value,
            "old_status_label": before.status.label,
            "new_status_label": after.status.label,
            "ticket_url": parties.ticket_url,
        }
        events.extend(_both_channels(recipient, NotificationTemplate.TICKET_STATUS_CHANGED, payload))

    return events


def derive_creation_events(
    ticket: Ticket,
    requester: User,
    area: Area,
    managers: Iterable[User],
    *,
    ticket_url: str = "",
) -> list[NotificationEvent]:
    """Confirmation to the requester plus a heads-up to every manager of the area."""

    base = {
        "ticket_id": ticket.id,
        "human_id": ticket.human_id,
        "title": ticket.title,
        "description": ticket.description,
        "priority": ticket.priority.value,
        "requester_name": requester.name,
        "area_name": area.name,
        "location": ticket.location,
        "equipment": ticket.equipment,
        "created_at": ticket.created_at.isoformat(),
        "ticket_url": ticket_url,
    }
    events = [
        NotificationEvent(
            channel=NotificationChannel.EMAIL,
            recipient=Recipient.from_user(requester),
            template=NotificationTemplate.TICKET_CREATED,
            payload=dict(base),
        )
    ]
    for manager in managers:
        events.append(
            NotificationEvent(
                channel=NotificationChannel.EMAIL,
                recipient=Recipient.from_user(manager),
                template=NotificationTemplate.NEW_TICKET,
                payload={**base, "manager_name": manager.name},
            )
        )
    return events


class NotificationSink(Protocol):
    """Hand-off point for events produced by a committed ticket write."""

    def submit(self, events: Sequence[NotificationEvent]) -> bool:
        ...
