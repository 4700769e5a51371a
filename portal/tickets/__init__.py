from .authorization import AuthorizationDecision, AuthorizationMatrix, StaticAreaExceptionPolicy
from .bulk import BulkFailureKind, BulkItemFailure, BulkTicketUpdater, BulkUpdateResult
from .errors import (
    AreaNotFoundError,
    DenialReason,
    IdentifierUnavailableError,
    InvalidTicketTransitionError,
    NotificationError,
    StaleTicketError,
    TicketAuthorizationError,
    TicketConflictError,
    TicketNotFoundError,
    TicketServiceError,
    TicketValidationError,
    UserNotFoundError,
)
from .events import NotificationChannel, NotificationEvent, NotificationTemplate, Recipient
from .identifiers import TicketIdentifierAllocator
from .memory import InMemoryTicketRepository
from .models import (
    DEFAULT_AREAS,
    UNSET,
    Area,
    AreaCode,
    PushSubscription,
    Role,
    Ticket,
    TicketAuditLog,
    TicketChange,
    TicketDraft,
    TicketPriority,
    TicketStatus,
    User,
)
from .repository import SqlTicketRepository, TicketStore
from .service import SystemClock, TicketService
from .sla import add_business_days, sla_deadline
from .state import TicketStateMachine, TransitionResult

__all__ = [
    "DEFAULT_AREAS",
    "UNSET",
    "Area",
    "AreaCode",
    "AreaNotFoundError",
    "AuthorizationDecision",
    "AuthorizationMatrix",
    "BulkFailureKind",
    "BulkItemFailure",
    "BulkTicketUpdater",
    "BulkUpdateResult",
    "DenialReason",
    "IdentifierUnavailableError",
    "InMemoryTicketRepository",
    "InvalidTicketTransitionError",
    "NotificationChannel",
    "NotificationError",
    "NotificationEvent",
    "NotificationTemplate",
    "PushSubscription",
    "Recipient",
    "Role",
    "SqlTicketRepository",
    "StaleTicketError",
    "StaticAreaExceptionPolicy",
    "SystemClock",
    "Ticket",
    "TicketAuditLog",
    "TicketAuthorizationError",
    "TicketChange",
    "TicketConflictError",
    "TicketDraft",
    "TicketIdentifierAllocator",
    "TicketNotFoundError",
    "TicketPriority",
    "TicketService",
    "TicketServiceError",
    "TicketStateMachine",
    "TicketStatus",
    "TicketStore",
    "TicketValidationError",
    "TransitionResult",
    "User",
    "UserNotFoundError",
    "add_business_days",
    "sla_deadline",
]
