"""Outbound channel adapters for email and browser push."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Mapping, Protocol

import httpx

from portal.tickets.errors import NotificationError
from portal.tickets.models import PushSubscription

from .templates import RenderedEmail

logger = logging.getLogger(__name__)

# Push services answer with these when a subscription has expired or been revoked.
GONE_STATUS_CODES = frozenset({404, 410})


class DeliveryStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    GONE = "gone"


class EmailSender(Protocol):
    async def send(self, to: str, email: RenderedEmail) -> None:
        ...


class PushSender(Protocol):
    async def send(self, subscription: PushSubscription, message: Mapping[str, Any]) -> DeliveryStatus:
        ...


class HttpEmailSender:
    """Deliver email through a transactional email HTTP API."""

    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        sender: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def send(self, to: str, email: RenderedEmail) -> None:
        headers = {"Accept": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        payload = {"from": self._sender, "to": [to], "subject": email.subject, "text": email.text}
        try:
            response = await self._client.post(self._api_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise NotificationError(f"Email request failed: {exc}") from exc
        if response.status_code >= 400:
            raise NotificationError(f"Email API rejected message to {to}: [{response.status_code}] {response.text}")

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class WebPushGatewaySender:
    """Relay push messages through a web-push gateway that holds the VAPID keys.

    The gateway forwards the push service's status code, so a 404 or 410
    means the browser subscription no longer exists.
    """

    def __init__(
        self,
        gateway_url: str,
        token: str | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._gateway_url = gateway_url
        self._token = token
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def send(self, subscription: PushSubscription, message: Mapping[str, Any]) -> DeliveryStatus:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        payload = {
            "subscription": {
                "endpoint": subscription.endpoint,
                "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            },
            "message": dict(message),
        }
        try:
            response = await self._client.post(self._gateway_url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise NotificationError(f"Push request failed: {exc}") from exc
        if response.status_code in GONE_STATUS_CODES:
            return DeliveryStatus.GONE
        if response.status_code >= 400:
            logger.warning(
                "Push gateway returned %s for subscription %s", response.status_code, subscription.id
            )
            return DeliveryStatus.FAILURE
        return DeliveryStatus.SUCCESS

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
