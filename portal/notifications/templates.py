"""Plain-text renderings of notification payloads.

The visual e-mail templates live with the web front-end; the engine only
needs a subject line, a text body and the push card.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from portal.tickets.events import NotificationTemplate


@dataclass(slots=True, frozen=True)
class RenderedEmail:
    subject: str
    text: str


def render_email(template: NotificationTemplate, payload: Mapping[str, Any]) -> RenderedEmail:
    human_id = payload.get("human_id", "")
    title = payload.get("title", "")
    url = payload.get("ticket_url", "")

    if template == NotificationTemplate.TICKET_ASSIGNED:
        subject = f"You were assigned to ticket #{human_id}: {title}"
        lines = [
            f"Hello {payload.get('technician_name', 'Technician')},",
            "",
            f"Ticket #{human_id} was assigned to you.",
            f"Title: {title}",
            f"Priority: {payload.get('priority', '')}",
            f"Requester: {payload.get('requester_name', '')}",
            f"Area: {payload.get('area_name', '')}",
            f"Location: {payload.get('location', '')}",
            f"Equipment: {payload.get('equipment', '')}",
        ]
    elif template == NotificationTemplate.TICKET_STATUS_CHANGED:
        new_label = payload.get("new_status_label", "")
        subject = f"Your ticket #{human_id} status updated to: {new_label}"
        lines = [
            f"Hello {payload.get('requester_name', 'Requester')},",
            "",
            f"{payload.get('updater_name', 'Team')} changed the status of \"{title}\"",
            f"from {payload.get('old_status_label', '')} to {new_label}.",
        ]
    elif template == NotificationTemplate.TICKET_CREATED:
        subject = f"Ticket created: {human_id}"
        lines = [
            f"Hello {payload.get('requester_name', '')},",
            "",
            f"We received your ticket \"{title}\" for {payload.get('area_name', '')}.",
            f"Priority: {payload.get('priority', '')}",
        ]
    elif template == NotificationTemplate.NEW_TICKET:
        subject = f"New ticket {human_id}: {title}"
        lines = [
            f"Hello {payload.get('manager_name', '')},",
            "",
            f"{payload.get('requester_name', '')} opened a ticket in {payload.get('area_name', '')}.",
            f"Priority: {payload.get('priority', '')}",
        ]
    else:  # pragma: no cover - enum is exhaustive
        raise ValueError(f"Unsupported template: {template}")

    if url:
        lines.extend(["", url])
    return RenderedEmail(subject=subject, text="\n".join(lines))


def render_push(template: NotificationTemplate, payload: Mapping[str, Any]) -> dict[str, str]:
    title = payload.get("title", "")
    ticket_id = payload.get("ticket_id", "")
    url = f"/tickets/{ticket_id}" if ticket_id else "/"

    if template == NotificationTemplate.TICKET_ASSIGNED:
        return {
            "title": "New ticket assigned to you",
            "body": f"New ticket from {payload.get('area_name', '')}: {title}",
            "url": url,
        }
    if template == NotificationTemplate.TICKET_STATUS_CHANGED:
        return {
            "title": "Your ticket changed status",
            "body": f"The status of ticket {title} is now: {payload.get('new_status_label', '')}",
            "url": url,
        }
    return {"title": f"Ticket {payload.get('human_id', '')}", "body": title, "url": url}
