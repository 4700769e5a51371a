from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Final, Mapping

from .errors import TicketValidationError


class TicketStatus(str, Enum):
    """Canonical states of the ticket lifecycle."""

    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    ON_HOLD = "ON_HOLD"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"
    CANCELLED = "CANCELLED"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS: Mapping[TicketStatus, str] = {
    TicketStatus.OPEN: "Open",
    TicketStatus.ASSIGNED: "Assigned",
    TicketStatus.IN_PROGRESS: "In Progress",
    TicketStatus.ON_HOLD: "On Hold",
    TicketStatus.RESOLVED: "Resolved",
    TicketStatus.CLOSED: "Closed",
    TicketStatus.CANCELLED: "Cancelled",
}


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class Role(str, Enum):
    """Roles known to the portal."""

    COMMON = "COMMON"
    TECHNICIAN = "TECHNICIAN"
    MANAGER = "MANAGER"
    SUPER_ADMIN = "SUPER_ADMIN"


class AreaCode(str, Enum):
    IT = "IT"
    BUILDING = "BUILDING"
    ELECTRICAL = "ELECTRICAL"


@dataclass(slots=True, frozen=True)
class Area:
    """Organizational department a ticket is routed to."""

    id: str
    code: AreaCode
    name: str


@dataclass(slots=True, frozen=True)
class User:
    """Portal user; acts as the authorization subject for transitions."""

    id: str
    name: str
    email: str | None
    role: Role
    area_id: str | None = None


@dataclass(slots=True)
class Ticket:
    """Primary ticket record."""

    id: str
    human_id: str
    title: str
    description: str
    location: str
    equipment: str
    model: str
    asset_tag: str
    priority: TicketPriority
    status: TicketStatus
    area_id: str
    requester_id: str
    technician_id: str | None
    created_at: datetime
    updated_at: datetime
    sla_deadline: datetime
    resolved_at: datetime | None = None
    satisfaction_rating: int | None = None


@dataclass(slots=True)
class TicketAuditLog:
    """Audit information describing discrete ticket actions."""

    id: str
    ticket_id: str
    action: str
    actor: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    metadata: Mapping[str, Any]
    created_at: datetime


@dataclass(slots=True, frozen=True)
class PushSubscription:
    """Browser push endpoint registered by a user device."""

    id: str
    user_id: str
    endpoint: str
    p256dh: str
    auth: str


class _Unset:
    _instance: "_Unset | None" = None

    def __new__(cls) -> "_Unset":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET: Final = _Unset()

CHANGE_FIELDS: tuple[str, ...] = ("status", "technician_id", "priority", "area_id")


@dataclass(slots=True, frozen=True)
class TicketChange:
    """Requested mutation of a ticket.

    Every field defaults to ``UNSET`` so that an omitted field can be told
    apart from one explicitly set to ``None``. Only ``technician_id`` may be
    explicitly ``None`` (unassign); the other fields must carry a value when
    present. Raw strings for ``status`` and ``priority`` are coerced to their
    enums, and unknown values raise :class:`TicketValidationError`.
    """

    status: TicketStatus | None | _Unset = UNSET
    technician_id: str | None | _Unset = UNSET
    priority: TicketPriority | None | _Unset = UNSET
    area_id: str | None | _Unset = UNSET

    def __post_init__(self) -> None:
        for name, enum_type in (("status", TicketStatus), ("priority", TicketPriority)):
            value = getattr(self, name)
            if value is UNSET or value is None or isinstance(value, enum_type):
                continue
            try:
                object.__setattr__(self, name, enum_type(value))
            except ValueError as exc:
                raise TicketValidationError(f"Invalid {name} {value!r}") from exc

    def has(self, name: str) -> bool:
        return getattr(self, name) is not UNSET

    def present_fields(self) -> tuple[str, ...]:
        return tuple(name for name in CHANGE_FIELDS if self.has(name))

    @property
    def is_empty(self) -> bool:
        return not self.present_fields()

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TicketChange":
        """Build a change from a mapping where absent keys mean "not requested"."""

        return cls(**{name: data[name] for name in CHANGE_FIELDS if name in data})


@dataclass(slots=True)
class TicketDraft:
    """Descriptive fields supplied by the requester at intake."""

    title: str
    description: str
    location: str
    equipment: str
    model: str
    asset_tag: str
    priority: TicketPriority
    area_id: str


DEFAULT_AREAS: tuple[Area, ...] = (
    Area(id="it", code=AreaCode.IT, name="Information Technology"),
    Area(id="building", code=AreaCode.BUILDING, name="Building Maintenance"),
    Area(id="electrical", code=AreaCode.ELECTRICAL, name="Electrical"),
)
