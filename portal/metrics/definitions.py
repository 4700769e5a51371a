"""Metric definitions used across the ticket engine."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

TICKETS_CREATED = "tickets_created_total"
TICKET_TRANSITIONS = "ticket_transitions_total"
TICKET_TRANSITION_FAILURES = "ticket_transition_failures_total"
TICKET_TRANSITION_DURATION = "ticket_transition_duration_seconds"
NOTIFICATION_DELIVERIES = "notification_deliveries_total"
PUSH_SUBSCRIPTIONS_PRUNED = "push_subscriptions_pruned_total"
BULK_UPDATE_ITEMS = "bulk_update_items_total"


@dataclass(frozen=True)
class MetricDefinition:
    name: str
    metric_type: str
    description: str
    label_names: Tuple[str, ...] = ()


DEFAULT_METRIC_DEFINITIONS: Tuple[MetricDefinition, ...] = (
    MetricDefinition(
        name=TICKETS_CREATED,
        metric_type="counter",
        description="Tickets accepted by intake.",
    ),
    MetricDefinition(
        name=TICKET_TRANSITIONS,
        metric_type="counter",
        description="Ticket transitions committed to the store.",
    ),
    MetricDefinition(
        name=TICKET_TRANSITION_FAILURES,
        metric_type="counter",
        description="Ticket transitions rejected before persistence.",
        label_names=("reason",),
    ),
    MetricDefinition(
        name=TICKET_TRANSITION_DURATION,
        metric_type="distribution",
        description="Time spent applying a single ticket transition, in seconds.",
    ),
    MetricDefinition(
        name=NOTIFICATION_DELIVERIES,
        metric_type="counter",
        description="Notification delivery attempts by channel and outcome.",
        label_names=("channel", "outcome"),
    ),
    MetricDefinition(
        name=PUSH_SUBSCRIPTIONS_PRUNED,
        metric_type="counter",
        description="Push subscriptions removed after the endpoint reported them gone.",
    ),
    MetricDefinition(
        name=BULK_UPDATE_ITEMS,
        metric_type="counter",
        description="Items processed by bulk updates, by outcome.",
        label_names=("outcome",),
    ),
)
