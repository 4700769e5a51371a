from __future__ import annotations

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from portal.api.routes.tickets import to_http_error
from portal.dependencies.auth import CurrentUser
from portal.dependencies.tickets import TicketServiceDep
from portal.tickets.errors import TicketServiceError

router = APIRouter(prefix="/push", tags=["push"])


class PushKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscriptionRequest(BaseModel):
    """Shape of ``PushSubscription.toJSON()`` in the browser."""

    endpoint: str = Field(..., min_length=1)
    keys: PushKeys


class PushSubscriptionResponse(BaseModel):
    id: str
    endpoint: str


@router.post("/subscriptions", response_model=PushSubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def register_subscription(
    payload: PushSubscriptionRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> PushSubscriptionResponse:
    try:
        saved = await service.register_push_subscription(
            user, endpoint=payload.endpoint, p256dh=payload.keys.p256dh, auth=payload.keys.auth
        )
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return PushSubscriptionResponse(id=saved.id, endpoint=saved.endpoint)
