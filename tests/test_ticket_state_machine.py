from datetime import timedelta

import pytest

from portal.tickets import (
    UNSET,
    InvalidTicketTransitionError,
    NotificationChannel,
    NotificationTemplate,
    TicketAuthorizationError,
    TicketChange,
    TicketPriority,
    TicketStateMachine,
    TicketStatus,
    TicketValidationError,
)
from portal.tickets.events import TransitionParties
from portal.tickets.sla import sla_deadline
from support import MANAGER, REQUESTER, SUPER_ADMIN, TECHNICIAN, WEDNESDAY, make_ticket

LATER = WEDNESDAY + timedelta(days=2, hours=3)


@pytest.fixture
def machine() -> TicketStateMachine:
    return TicketStateMachine()


def test_initial_state_is_open():
    assert TicketStateMachine.initial_state() == TicketStatus.OPEN


def test_assigning_technician_moves_open_ticket_to_assigned(machine):
    ticket = make_ticket()

    result = machine.apply(MANAGER, ticket, TicketChange(technician_id=TECHNICIAN.id), now=LATER)

    assert result.ticket.technician_id == TECHNICIAN.id
    assert result.ticket.status == TicketStatus.ASSIGNED
    assert result.ticket.updated_at == LATER
    assert ticket.status == TicketStatus.OPEN


def test_explicit_status_wins_over_implicit_assignment(machine):
    ticket = make_ticket()

    result = machine.apply(
        MANAGER,
        ticket,
        TicketChange(technician_id=TECHNICIAN.id, status=TicketStatus.IN_PROGRESS),
        now=LATER,
    )

    assert result.ticket.status == TicketStatus.IN_PROGRESS


def test_assignment_does_not_downgrade_progressed_ticket(machine):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, technician_id=TECHNICIAN.id)

    result = machine.apply(MANAGER, ticket, TicketChange(technician_id="u-tech2"), now=LATER)

    assert result.ticket.status == TicketStatus.IN_PROGRESS


def test_unassigning_keeps_status(machine):
    ticket = make_ticket(status=TicketStatus.ASSIGNED, technician_id=TECHNICIAN.id)

    result = machine.apply(MANAGER, ticket, TicketChange(technician_id=None), now=LATER)

    assert result.ticket.technician_id is None
    assert result.ticket.status == TicketStatus.ASSIGNED
    assert result.events == []


def test_resolved_at_is_set_once(machine):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, technician_id=TECHNICIAN.id)

    first = machine.apply(TECHNICIAN, ticket, TicketChange(status=TicketStatus.RESOLVED), now=LATER)
    reopened = machine.apply(
        TECHNICIAN, first.ticket, TicketChange(status=TicketStatus.IN_PROGRESS), now=LATER + timedelta(hours=1)
    )
    again = machine.apply(
        TECHNICIAN, reopened.ticket, TicketChange(status=TicketStatus.RESOLVED), now=LATER + timedelta(hours=2)
    )

    assert first.ticket.resolved_at == LATER
    assert reopened.ticket.resolved_at == LATER
    assert again.ticket.resolved_at == LATER


def test_priority_change_recomputes_sla_from_creation(machine):
    ticket = make_ticket(priority=TicketPriority.LOW)

    result = machine.apply(MANAGER, ticket, TicketChange(priority=TicketPriority.URGENT), now=LATER)

    assert result.ticket.sla_deadline == sla_deadline(WEDNESDAY, TicketPriority.URGENT)
    assert result.ticket.sla_deadline == WEDNESDAY + timedelta(days=1)
    assert result.events == []


def test_area_transfer_drops_technician_and_reopens(machine):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, technician_id=TECHNICIAN.id)

    result = machine.apply(SUPER_ADMIN, ticket, TicketChange(area_id="building"), now=LATER)

    assert result.ticket.area_id == "building"
    assert result.ticket.technician_id is None
    assert result.ticket.status == TicketStatus.OPEN


def test_area_transfer_with_explicit_technician_keeps_it(machine):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, technician_id=TECHNICIAN.id)

    result = machine.apply(
        SUPER_ADMIN, ticket, TicketChange(area_id="building", technician_id="u-tech2"), now=LATER
    )

    assert result.ticket.technician_id == "u-tech2"
    assert result.ticket.status == TicketStatus.IN_PROGRESS


def test_area_transfer_reopens_resolved_ticket(machine):
    ticket = make_ticket(status=TicketStatus.RESOLVED, technician_id=TECHNICIAN.id, resolved_at=WEDNESDAY)

    result = machine.apply(SUPER_ADMIN, ticket, TicketChange(area_id="electrical"), now=LATER)

    assert result.ticket.status == TicketStatus.OPEN
    assert result.ticket.resolved_at == WEDNESDAY


def test_area_transfer_of_cancelled_ticket_keeps_cancelled(machine):
    ticket = make_ticket(status=TicketStatus.CANCELLED, technician_id=TECHNICIAN.id)

    result = machine.apply(SUPER_ADMIN, ticket, TicketChange(area_id="building"), now=LATER)

    assert result.ticket.status == TicketStatus.CANCELLED
    assert result.ticket.technician_id is None


def test_closed_ticket_is_immutable(machine):
    ticket = make_ticket(status=TicketStatus.CLOSED)

    with pytest.raises(InvalidTicketTransitionError):
        machine.apply(SUPER_ADMIN, ticket, TicketChange(priority=TicketPriority.HIGH), now=LATER)


def test_cancelled_ticket_rejects_status_change(machine):
    ticket = make_ticket(status=TicketStatus.CANCELLED)

    with pytest.raises(InvalidTicketTransitionError):
        machine.apply(SUPER_ADMIN, ticket, TicketChange(status=TicketStatus.OPEN), now=LATER)


def test_closed_transition_is_denied_before_anything_else(machine):
    ticket = make_ticket(status=TicketStatus.RESOLVED)

    with pytest.raises(TicketAuthorizationError):
        machine.apply(SUPER_ADMIN, ticket, TicketChange(status=TicketStatus.CLOSED), now=LATER)


@pytest.mark.parametrize(
    "change",
    [TicketChange(), TicketChange(status=None), TicketChange(priority=None), TicketChange(area_id=None)],
)
def test_malformed_changes_are_rejected(machine, change):
    with pytest.raises(TicketValidationError):
        machine.apply(SUPER_ADMIN, make_ticket(), change, now=LATER)


def test_change_tracks_presence():
    change = TicketChange.from_mapping({"technician_id": None, "status": "IN_PROGRESS"})

    assert change.present_fields() == ("status", "technician_id")
    assert change.status == TicketStatus.IN_PROGRESS
    assert change.priority is UNSET
    assert not change.is_empty


def test_assignment_emits_email_and_push_to_technician(machine):
    ticket = make_ticket()
    parties = TransitionParties(requester=REQUESTER, technician=TECHNICIAN, ticket_url="https://x/tickets/1")

    result = machine.apply(MANAGER, ticket, TicketChange(technician_id=TECHNICIAN.id), now=LATER, parties=parties)

    assigned = [event for event in result.events if event.template == NotificationTemplate.TICKET_ASSIGNED]
    assert {event.channel for event in assigned} == {NotificationChannel.EMAIL, NotificationChannel.PUSH}
    assert all(event.recipient.user_id == TECHNICIAN.id for event in assigned)
    assert assigned[0].payload["technician_name"] == "Tom Tech"
    status_events = [event for event in result.events if event.template == NotificationTemplate.TICKET_STATUS_CHANGED]
    assert len(status_events) == 2
    assert status_events[0].recipient.user_id == REQUESTER.id
    assert status_events[0].payload["new_status_label"] == "Assigned"


def test_reassigning_same_technician_is_silent(machine):
    ticket = make_ticket(status=TicketStatus.ASSIGNED, technician_id=TECHNICIAN.id)

    result = machine.apply(MANAGER, ticket, TicketChange(technician_id=TECHNICIAN.id), now=LATER)

    assert result.events == []
    assert result.changed_fields == {}
    assert result.ticket.updated_at == ticket.updated_at


def test_successive_priority_changes_match_a_single_change(machine):
    ticket = make_ticket(priority=TicketPriority.LOW)

    urgent = machine.apply(MANAGER, ticket, TicketChange(priority=TicketPriority.URGENT), now=LATER)
    high = machine.apply(
        MANAGER, urgent.ticket, TicketChange(priority=TicketPriority.HIGH), now=LATER + timedelta(days=4)
    )
    direct = machine.apply(MANAGER, ticket, TicketChange(priority=TicketPriority.HIGH), now=LATER)

    assert high.ticket.sla_deadline == sla_deadline(WEDNESDAY, TicketPriority.HIGH)
    assert high.ticket.sla_deadline == direct.ticket.sla_deadline


def test_change_coerces_raw_status_and_priority():
    change = TicketChange(status="RESOLVED", priority="HIGH")

    assert change.status is TicketStatus.RESOLVED
    assert change.priority is TicketPriority.HIGH
    with pytest.raises(TicketValidationError):
        TicketChange(status="DONE")
    with pytest.raises(TicketValidationError):
        TicketChange(priority="CRITICAL")


def test_raw_status_string_resolves_ticket(machine):
    ticket = make_ticket(status=TicketStatus.IN_PROGRESS, technician_id=TECHNICIAN.id)

    result = machine.apply(TECHNICIAN, ticket, TicketChange(status="RESOLVED"), now=LATER)

    assert result.ticket.status is TicketStatus.RESOLVED
    assert result.ticket.resolved_at == LATER
