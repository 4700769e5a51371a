"""Shared fixtures data for the ticket engine tests."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from itertools import count

from portal.tickets import Role, Ticket, TicketPriority, TicketStatus, User
from portal.tickets.sla import sla_deadline

# Wednesday morning.
WEDNESDAY = datetime(2024, 5, 15, 10, 0, tzinfo=timezone.utc)

REQUESTER = User(id="u-req", name="Rita Requester", email="rita@example.com", role=Role.COMMON)
TECHNICIAN = User(id="u-tech", name="Tom Tech", email="tom@example.com", role=Role.TECHNICIAN, area_id="it")
OTHER_TECHNICIAN = User(
    id="u-tech2", name="Tina Tech", email="tina@example.com", role=Role.TECHNICIAN, area_id="it"
)
MANAGER = User(id="u-mgr", name="Mia Manager", email="mia@example.com", role=Role.MANAGER, area_id="it")
BUILDING_MANAGER = User(
    id="u-bmgr", name="Ben Builder", email="ben@example.com", role=Role.MANAGER, area_id="building"
)
MULTI_AREA_MANAGER = User(
    id="u-multi", name="Max Multi", email="Max.Multi@example.com", role=Role.MANAGER, area_id="building"
)
SUPER_ADMIN = User(id="u-admin", name="Ada Admin", email="ada@example.com", role=Role.SUPER_ADMIN)

ALL_USERS = (REQUESTER, TECHNICIAN, OTHER_TECHNICIAN, MANAGER, BUILDING_MANAGER, MULTI_AREA_MANAGER, SUPER_ADMIN)

_ids = count(1)


def make_ticket(**overrides) -> Ticket:
    number = next(_ids)
    priority = overrides.pop("priority", TicketPriority.MEDIUM)
    created_at = overrides.pop("created_at", WEDNESDAY)
    ticket = Ticket(
        id=f"t-{number}",
        human_id=f"IT-{number:06d}",
        title="Printer jammed",
        description="Paper stuck in tray 2",
        location="Floor 3",
        equipment="Printer",
        model="LaserJet 400",
        asset_tag="PR-0042",
        priority=priority,
        status=TicketStatus.OPEN,
        area_id="it",
        requester_id=REQUESTER.id,
        technician_id=None,
        created_at=created_at,
        updated_at=created_at,
        sla_deadline=sla_deadline(created_at, priority),
    )
    return replace(ticket, **overrides)


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs: float) -> None:
        self.current += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self, accept: bool = True) -> None:
        self.accept = accept
        self.batches: list[list] = []

    def submit(self, events) -> bool:
        self.batches.append(list(events))
        return self.accept

    @property
    def events(self) -> list:
        return [event for batch in self.batches for event in batch]
