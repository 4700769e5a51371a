from __future__ import annotations

import pytest

from portal.metrics import MetricsRegistry, register_default_metrics
from portal.tickets import DEFAULT_AREAS, InMemoryTicketRepository, TicketService
from support import ALL_USERS, WEDNESDAY, FixedClock, RecordingNotifier


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(WEDNESDAY)


@pytest.fixture
def metrics() -> MetricsRegistry:
    return register_default_metrics(MetricsRegistry())


@pytest.fixture
def store() -> InMemoryTicketRepository:
    return InMemoryTicketRepository(areas=DEFAULT_AREAS, users=ALL_USERS)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def service(store, notifier, clock, metrics) -> TicketService:
    return TicketService(
        store,
        notifier=notifier,
        clock=clock,
        base_url="https://portal.example.com",
        metrics=metrics,
    )
