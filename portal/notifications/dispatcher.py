"""Fire-and-forget delivery of notification events.

Ticket writes hand their events to :meth:`NotificationDispatcher.submit`
after the transaction commits. Delivery runs on background workers; a slow
or failing channel only produces log lines and metrics, never an error for
the request that triggered it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from portal.metrics import MetricsRegistry, metrics_registry
from portal.metrics.definitions import NOTIFICATION_DELIVERIES, PUSH_SUBSCRIPTIONS_PRUNED
from portal.tickets.errors import NotificationError
from portal.tickets.events import NotificationChannel, NotificationEvent
from portal.tickets.models import PushSubscription, User

from .senders import DeliveryStatus, EmailSender, PushSender
from .templates import render_email, render_push

logger = logging.getLogger(__name__)

DELIVERED = "delivered"
FAILED = "failed"
SKIPPED = "skipped"


class SubscriptionStore(Protocol):
    async def get_user(self, user_id: str) -> User | None:
        ...

    async def list_push_subscriptions(self, user_id: str) -> Sequence[PushSubscription]:
        ...

    async def delete_push_subscription(self, subscription_id: str) -> bool:
        ...


@dataclass(slots=True)
class DeliveryReport:
    delivered: int = 0
    failed: int = 0
    skipped: int = 0
    pruned: int = 0


class NotificationDispatcher:
    def __init__(
        self,
        store: SubscriptionStore,
        *,
        email_sender: EmailSender | None = None,
        push_sender: PushSender | None = None,
        workers: int = 1,
        queue_size: int = 1000,
        timeout: float = 10.0,
        metrics: MetricsRegistry | None = None,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._store = store
        self._email_sender = email_sender
        self._push_sender = push_sender
        self._worker_count = workers
        self._timeout = timeout
        self._queue: asyncio.Queue[list[NotificationEvent]] = asyncio.Queue(maxsize=queue_size)
        self._workers: list[asyncio.Task[None]] = []
        metrics = metrics or metrics_registry
        self._deliveries = metrics.counter(NOTIFICATION_DELIVERIES, label_names=("channel", "outcome"))
        self._pruned = metrics.counter(PUSH_SUBSCRIPTIONS_PRUNED)

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        self._ensure_workers()

    def _ensure_workers(self) -> None:
        if self._workers:
            return
        loop = asyncio.get_running_loop()
        self._workers = [
            loop.create_task(self._worker(), name=f"notification-worker-{index}")
            for index in range(self._worker_count)
        ]
        logger.info("Notification dispatcher started with %d worker(s)", self._worker_count)

    async def stop(self) -> None:
        """Drain queued events, then stop the workers."""

        if not self._workers:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Notification queue not drained; %d batch(es) dropped", self._queue.qsize())
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Notification dispatcher stopped")

    async def close(self) -> None:
        """Release HTTP clients owned by the channel senders."""

        for sender in (self._email_sender, self._push_sender):
            close = getattr(sender, "close", None)
            if close is not None:
                await close()

    async def join(self) -> None:
        await self._queue.join()

    def submit(self, events: Sequence[NotificationEvent]) -> bool:
        """Queue events for background delivery without waiting on any channel."""

        if not events:
            return True
        self._ensure_workers()
        try:
            self._queue.put_nowait(list(events))
        except asyncio.QueueFull:
            logger.error("Notification queue full; dropping %d event(s)", len(events))
            for event in events:
                self._deliveries.inc(labels={"channel": event.channel.value, "outcome": "dropped"})
            return False
        return True

    async def _worker(self) -> None:
        while True:
            events = await self._queue.get()
            try:
                await self.deliver(events)
            except Exception:
                logger.exception("Notification batch failed")
            finally:
                self._queue.task_done()

    async def deliver(self, events: Sequence[NotificationEvent]) -> DeliveryReport:
        """Deliver a batch concurrently; each event succeeds or fails on its own."""

        report = DeliveryReport()
        results = await asyncio.gather(*(self._deliver_guarded(event) for event in events))
        for event, (outcome, pruned) in zip(events, results):
            self._deliveries.inc(labels={"channel": event.channel.value, "outcome": outcome})
            report.pruned += pruned
            if outcome == DELIVERED:
                report.delivered += 1
            elif outcome == FAILED:
                report.failed += 1
            else:
                report.skipped += 1
        return report

    async def _deliver_guarded(self, event: NotificationEvent) -> tuple[str, int]:
        try:
            return await asyncio.wait_for(self._deliver_one(event), timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error(
                "%s notification %s to user %s timed out",
                event.channel.value,
                event.template.value,
                event.recipient.user_id,
            )
        except NotificationError as exc:
            logger.error(
                "%s notification %s to user %s failed: %s",
                event.channel.value,
                event.template.value,
                event.recipient.user_id,
                exc,
            )
        except Exception:
            logger.exception(
                "Unexpected error delivering %s notification to user %s",
                event.channel.value,
                event.recipient.user_id,
            )
        return FAILED, 0

    async def _deliver_one(self, event: NotificationEvent) -> tuple[str, int]:
        if event.channel == NotificationChannel.EMAIL:
            return await self._send_email(event), 0
        return await self._send_push(event)

    async def _send_email(self, event: NotificationEvent) -> str:
        if self._email_sender is None:
            logger.warning("Email channel not configured; skipping %s", event.template.value)
            return SKIPPED
        address = event.recipient.email
        if address is None:
            user = await self._store.get_user(event.recipient.user_id)
            address = user.email if user is not None else None
        if not address:
            logger.warning("User %s has no email address; skipping %s", event.recipient.user_id, event.template.value)
            return SKIPPED
        await self._email_sender.send(address, render_email(event.template, event.payload))
        return DELIVERED

    async def _send_push(self, event: NotificationEvent) -> tuple[str, int]:
        sender = self._push_sender
        if sender is None:
            logger.warning("Push channel not configured; skipping %s", event.template.value)
            return SKIPPED, 0
        subscriptions = await self._store.list_push_subscriptions(event.recipient.user_id)
        if not subscriptions:
            return SKIPPED, 0

        message = render_push(event.template, event.payload)
        statuses = await asyncio.gather(
            *(self._push_to(sender, subscription, message) for subscription in subscriptions)
        )
        pruned = 0
        for subscription, status in zip(subscriptions, statuses):
            if status != DeliveryStatus.GONE:
                continue
            if await self._store.delete_push_subscription(subscription.id):
                pruned += 1
                self._pruned.inc()
                logger.info("Removed expired push subscription %s", subscription.id)
        delivered = any(status == DeliveryStatus.SUCCESS for status in statuses)
        return (DELIVERED if delivered else FAILED), pruned

    async def _push_to(
        self, sender: PushSender, subscription: PushSubscription, message: dict[str, str]
    ) -> DeliveryStatus:
        try:
            return await sender.send(subscription, message)
        except NotificationError as exc:
            logger.error("Push to subscription %s failed: %s", subscription.id, exc)
        except Exception:
            logger.exception("Unexpected error pushing to subscription %s", subscription.id)
        return DeliveryStatus.FAILURE
