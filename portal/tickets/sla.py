from __future__ import annotations

from datetime import datetime, timedelta
from typing import Mapping

from .models import TicketPriority

SLA_BUSINESS_DAYS: Mapping[TicketPriority, int] = {
    TicketPriority.URGENT: 1,
    TicketPriority.HIGH: 3,
    TicketPriority.MEDIUM: 5,
    TicketPriority.LOW: 10,
}

_SATURDAY = 5


def is_business_day(value: datetime) -> bool:
    return value.weekday() < _SATURDAY


def add_business_days(start: datetime, days: int) -> datetime:
    """Move ``days`` weekdays forward from ``start``, keeping the time of day.

    Saturdays and Sundays are skipped; there is no holiday calendar. A start
    on a weekend counts the following Monday as the first business day.
    """

    if days < 0:
        raise ValueError("days must be non-negative")
    current = start
    remaining = days
    while remaining > 0:
        current += timedelta(days=1)
        if is_business_day(current):
            remaining -= 1
    return current


def sla_deadline(created_at: datetime, priority: TicketPriority) -> datetime:
    """Absolute deadline for a ticket opened at ``created_at`` with ``priority``."""

    return add_business_days(created_at, SLA_BUSINESS_DAYS[priority])
