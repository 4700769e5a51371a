"""Database models and utilities."""

from .models import (
    AreaCounterTable,
    AreaTable,
    PushSubscriptionTable,
    TicketAuditLogTable,
    TicketTable,
    UserTable,
)

__all__ = [
    "AreaCounterTable",
    "AreaTable",
    "PushSubscriptionTable",
    "TicketAuditLogTable",
    "TicketTable",
    "UserTable",
]
