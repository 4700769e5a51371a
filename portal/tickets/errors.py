"""Error taxonomy for ticket lifecycle operations."""

from __future__ import annotations

from enum import Enum


class TicketServiceError(RuntimeError):
    """Base error for ticket service issues."""


class TicketValidationError(TicketServiceError):
    """Raised when a change is malformed or missing required fields."""


class InvalidTicketTransitionError(TicketValidationError):
    """Raised when attempting to mutate a ticket in a terminal state."""


class TicketNotFoundError(TicketServiceError):
    """Raised when an operation targets a non-existent ticket."""


class AreaNotFoundError(TicketNotFoundError):
    """Raised when a referenced area does not exist."""


class UserNotFoundError(TicketNotFoundError):
    """Raised when a referenced user (requester or technician) does not exist."""


class DenialReason(str, Enum):
    """Why the authorization matrix refused a change."""

    RESERVED_TRANSITION = "reserved transition"
    FIELD_NOT_PERMITTED = "field not permitted for role"
    NOT_ASSIGNED_TECHNICIAN = "technician is not assigned to this ticket"
    AREA_NOT_GOVERNED = "ticket area is not governed by this manager"
    ROLE_NOT_PERMITTED = "role may not update tickets"


class TicketAuthorizationError(TicketServiceError):
    """Raised when the actor lacks permission for the requested change."""

    def __init__(self, reason: DenialReason, *, field: str | None = None) -> None:
        message = reason.value if field is None else f"{reason.value}: {field}"
        super().__init__(message)
        self.reason = reason
        self.field = field


class TicketConflictError(TicketServiceError):
    """Raised when a write collides with a concurrent one."""


class StaleTicketError(TicketConflictError):
    """Raised when a ticket changed between being read and being written."""


class IdentifierUnavailableError(TicketServiceError):
    """Raised when the identifier counter store cannot be reached."""


class NotificationError(RuntimeError):
    """Delivery failure of a notification channel; logged, never surfaced."""
