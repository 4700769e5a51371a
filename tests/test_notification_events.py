from dataclasses import replace

from portal.notifications import render_email, render_push
from portal.tickets import DEFAULT_AREAS, NotificationChannel, NotificationTemplate, TicketStatus
from portal.tickets.events import TransitionParties, derive_creation_events, derive_transition_events
from support import BUILDING_MANAGER, MANAGER, REQUESTER, TECHNICIAN, make_ticket

IT_AREA = DEFAULT_AREAS[0]


def test_status_change_by_requester_is_silent():
    before = make_ticket(status=TicketStatus.RESOLVED)
    after = replace(before, status=TicketStatus.IN_PROGRESS)

    assert derive_transition_events(before, after, REQUESTER) == []


def test_priority_and_area_changes_alone_are_silent():
    before = make_ticket()
    after = replace(before, area_id="building")

    assert derive_transition_events(before, after, MANAGER) == []


def test_status_change_notifies_requester_on_both_channels():
    before = make_ticket(status=TicketStatus.ASSIGNED, technician_id=TECHNICIAN.id)
    after = replace(before, status=TicketStatus.RESOLVED)
    parties = TransitionParties(requester=REQUESTER, area=IT_AREA, ticket_url="https://portal/tickets/t")

    events = derive_transition_events(before, after, TECHNICIAN, parties)

    assert [event.channel for event in events] == [NotificationChannel.EMAIL, NotificationChannel.PUSH]
    payload = events[0].payload
    assert events[0].recipient.email == REQUESTER.email
    assert payload["old_status_label"] == "Assigned"
    assert payload["new_status_label"] == "Resolved"
    assert payload["updater_name"] == TECHNICIAN.name
    assert payload["ticket_url"] == "https://portal/tickets/t"


def test_creation_notifies_requester_and_each_manager():
    ticket = make_ticket()

    events = derive_creation_events(ticket, REQUESTER, IT_AREA, [MANAGER, BUILDING_MANAGER])

    assert [event.template for event in events] == [
        NotificationTemplate.TICKET_CREATED,
        NotificationTemplate.NEW_TICKET,
        NotificationTemplate.NEW_TICKET,
    ]
    assert all(event.channel == NotificationChannel.EMAIL for event in events)
    assert events[1].payload["manager_name"] == MANAGER.name


def test_rendered_email_and_push_carry_ticket_details():
    before = make_ticket()
    after = replace(before, technician_id=TECHNICIAN.id, status=TicketStatus.ASSIGNED)
    parties = TransitionParties(
        requester=REQUESTER, technician=TECHNICIAN, area=IT_AREA, ticket_url="https://portal/tickets/x"
    )
    event = derive_transition_events(before, after, MANAGER, parties)[0]

    email = render_email(event.template, event.payload)
    push = render_push(event.template, event.payload)

    assert email.subject == f"You were assigned to ticket #{after.human_id}: {after.title}"
    assert "Information Technology" in email.text
    assert email.text.endswith("https://portal/tickets/x")
    assert push["url"] == f"/tickets/{after.id}"
