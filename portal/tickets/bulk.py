"""Apply one change to many tickets, collecting per-ticket outcomes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, Sequence

from portal.metrics import MetricsRegistry, metrics_registry
from portal.metrics.definitions import BULK_UPDATE_ITEMS

from .errors import (
    TicketAuthorizationError,
    TicketNotFoundError,
    TicketServiceError,
    TicketValidationError,
)
from .models import Ticket, TicketChange, User

logger = logging.getLogger(__name__)


class TicketUpdater(Protocol):
    async def update_ticket(self, actor: User, ticket_id: str, change: TicketChange) -> Ticket:
        ...


class BulkFailureKind(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    DENIED = "DENIED"
    INVALID = "INVALID"
    CONFLICT = "CONFLICT"


@dataclass(slots=True, frozen=True)
class BulkItemFailure:
    ticket_id: str
    kind: BulkFailureKind
    message: str


@dataclass(slots=True)
class BulkUpdateResult:
    succeeded: list[Ticket] = field(default_factory=list)
    failures: list[BulkItemFailure] = field(default_factory=list)
    not_attempted: list[str] = field(default_factory=list)

    @property
    def updated_count(self) -> int:
        return len(self.succeeded)


def classify_failure(exc: TicketServiceError) -> BulkFailureKind:
    if isinstance(exc, TicketNotFoundError):
        return BulkFailureKind.NOT_FOUND
    if isinstance(exc, TicketAuthorizationError):
        return BulkFailureKind.DENIED
    if isinstance(exc, TicketValidationError):
        return BulkFailureKind.INVALID
    return BulkFailureKind.CONFLICT


class BulkTicketUpdater:
    """Run the single-ticket update for each id in turn.

    Items are independent: a failed item is recorded and the next one is
    attempted. Once the optional deadline passes, the remaining ids are
    reported as not attempted and nothing already applied is rolled back.
    """

    def __init__(self, updater: TicketUpdater, *, metrics: MetricsRegistry | None = None) -> None:
        self._updater = updater
        metrics = metrics or metrics_registry
        self._items = metrics.counter(BULK_UPDATE_ITEMS, label_names=("outcome",))

    async def apply_bulk(
        self,
        actor: User,
        ticket_ids: Sequence[str],
        change: TicketChange,
        *,
        timeout: float | None = None,
    ) -> BulkUpdateResult:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        ordered = list(dict.fromkeys(ticket_ids))
        result = BulkUpdateResult()

        for index, ticket_id in enumerate(ordered):
            if deadline is not None and loop.time() >= deadline:
                result.not_attempted.extend(ordered[index:])
                logger.warning(
                    "Bulk update timed out; %d of %d ticket(s) not attempted",
                    len(ordered) - index,
                    len(ordered),
                )
                break
            try:
                ticket = await self._updater.update_ticket(actor, ticket_id, change)
            except TicketServiceError as exc:
                kind = classify_failure(exc)
                result.failures.append(BulkItemFailure(ticket_id=ticket_id, kind=kind, message=str(exc)))
                self._items.inc(labels={"outcome": kind.value.lower()})
                continue
            result.succeeded.append(ticket)
            self._items.inc(labels={"outcome": "success"})

        for _ in result.not_attempted:
            self._items.inc(labels={"outcome": "not_attempted"})
        logger.info(
            "Bulk update by %s: %d updated, %d failed, %d not attempted",
            actor.id,
            result.updated_count,
            len(result.failures),
            len(result.not_attempted),
        )
        return result
