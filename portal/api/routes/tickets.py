from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from portal.dependencies.auth import CurrentUser
from portal.dependencies.tickets import TicketServiceDep
from portal.tickets.bulk import BulkUpdateResult
from portal.tickets.errors import (
    IdentifierUnavailableError,
    TicketAuthorizationError,
    TicketConflictError,
    TicketNotFoundError,
    TicketServiceError,
    TicketValidationError,
)
from portal.tickets.models import (
    Ticket,
    TicketAuditLog,
    TicketChange,
    TicketDraft,
    TicketPriority,
    TicketStatus,
)

router = APIRouter(prefix="/tickets", tags=["tickets"])


class TicketCreateRequest(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    location: str = Field(..., min_length=1, max_length=255)
    equipment: str = Field(..., min_length=1, max_length=255)
    model: str = Field(..., min_length=1, max_length=255)
    asset_tag: str = Field(..., min_length=1, max_length=100)
    priority: TicketPriority = Field(default=TicketPriority.MEDIUM)
    area_id: str = Field(..., min_length=1)

    def to_draft(self) -> TicketDraft:
        return TicketDraft(**self.model_dump())


class TicketUpdateRequest(BaseModel):
    """Partial update; a field left out of the body is not touched.

    ``technician_id: null`` unassigns the technician, whereas omitting it
    leaves the assignment alone.
    """

    model_config = ConfigDict(extra="forbid")

    status: TicketStatus | None = None
    technician_id: str | None = None
    priority: TicketPriority | None = None
    area_id: str | None = None

    def to_change(self) -> TicketChange:
        return TicketChange.from_mapping(self.model_dump(include=self.model_fields_set))


class BulkUpdateRequest(BaseModel):
    ticket_ids: list[str] = Field(..., min_length=1)
    changes: TicketUpdateRequest


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class TicketAuditResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ticket_id: str
    action: str
    actor: str
    from_status: TicketStatus | None
    to_status: TicketStatus | None
    metadata: dict[str, Any]
    created_at: datetime


class BulkFailureResponse(BaseModel):
    ticket_id: str
    kind: str
    message: str


class BulkUpdateResponse(BaseModel):
    updated_count: int
    updated: list[str]
    failures: list[BulkFailureResponse]
    not_attempted: list[str]

    @classmethod
    def from_result(cls, result: BulkUpdateResult) -> "BulkUpdateResponse":
        return cls(
            updated_count=result.updated_count,
            updated=[ticket.id for ticket in result.succeeded],
            failures=[
                BulkFailureResponse(ticket_id=item.ticket_id, kind=item.kind.value, message=item.message)
                for item in result.failures
            ],
            not_attempted=list(result.not_attempted),
        )


def to_http_error(exc: TicketServiceError) -> HTTPException:
    if isinstance(exc, TicketNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, TicketAuthorizationError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(exc))
    if isinstance(exc, TicketValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, TicketConflictError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, IdentifierUnavailableError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _to_response(ticket: Ticket) -> TicketResponse:
    return TicketResponse.model_validate(ticket)


def _to_audit_response(entry: TicketAuditLog) -> TicketAuditResponse:
    return TicketAuditResponse.model_validate(entry)


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
async def create_ticket(
    payload: TicketCreateRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> TicketResponse:
    try:
        ticket = await service.create_ticket(user.id, payload.to_draft())
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return _to_response(ticket)


@router.post("/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update_tickets(
    payload: BulkUpdateRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> BulkUpdateResponse:
    result = await service.bulk_update_tickets(user, payload.ticket_ids, payload.changes.to_change())
    return BulkUpdateResponse.from_result(result)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: str, service: TicketServiceDep, user: CurrentUser) -> TicketResponse:
    try:
        ticket = await service.get_ticket(ticket_id)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return _to_response(ticket)


@router.patch("/{ticket_id}", response_model=TicketResponse)
async def update_ticket(
    ticket_id: str,
    payload: TicketUpdateRequest,
    service: TicketServiceDep,
    user: CurrentUser,
) -> TicketResponse:
    try:
        ticket = await service.update_ticket(user, ticket_id, payload.to_change())
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return _to_response(ticket)


@router.get("/{ticket_id}/audit", response_model=list[TicketAuditResponse])
async def get_ticket_audit(
    ticket_id: str, service: TicketServiceDep, user: CurrentUser
) -> list[TicketAuditResponse]:
    try:
        entries = await service.get_audit_log(ticket_id)
    except TicketServiceError as exc:
        raise to_http_error(exc) from exc
    return [_to_audit_response(entry) for entry in entries]
