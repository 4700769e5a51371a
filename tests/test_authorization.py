import pytest

from portal.tickets import (
    AuthorizationMatrix,
    DenialReason,
    Role,
    StaticAreaExceptionPolicy,
    TicketAuthorizationError,
    TicketChange,
    TicketPriority,
    TicketStatus,
    User,
)
from support import (
    BUILDING_MANAGER,
    MANAGER,
    MULTI_AREA_MANAGER,
    REQUESTER,
    SUPER_ADMIN,
    TECHNICIAN,
    make_ticket,
)


@pytest.fixture
def matrix() -> AuthorizationMatrix:
    policy = StaticAreaExceptionPolicy({" max.multi@EXAMPLE.com ": ["building", "electrical"]})
    return AuthorizationMatrix(policy)


@pytest.mark.parametrize("actor", [SUPER_ADMIN, MANAGER, TECHNICIAN, REQUESTER])
def test_closed_is_reserved_for_every_role(matrix, actor):
    ticket = make_ticket(technician_id=TECHNICIAN.id, status=TicketStatus.RESOLVED)

    decision = matrix.can_apply(actor, ticket, TicketChange(status=TicketStatus.CLOSED))

    assert not decision.allowed
    assert decision.reason == DenialReason.RESERVED_TRANSITION


def test_super_admin_may_change_every_field(matrix):
    ticket = make_ticket(area_id="electrical")
    change = TicketChange(
        status=TicketStatus.IN_PROGRESS, technician_id=TECHNICIAN.id, priority=TicketPriority.HIGH, area_id="it"
    )

    assert matrix.can_apply(SUPER_ADMIN, ticket, change).allowed


def test_manager_is_limited_to_own_area(matrix):
    change = TicketChange(priority=TicketPriority.URGENT)

    assert matrix.can_apply(MANAGER, make_ticket(area_id="it"), change).allowed
    decision = matrix.can_apply(MANAGER, make_ticket(area_id="building"), change)
    assert decision.reason == DenialReason.AREA_NOT_GOVERNED


def test_multi_area_manager_governs_exception_areas(matrix):
    change = TicketChange(status=TicketStatus.IN_PROGRESS)

    assert matrix.can_apply(MULTI_AREA_MANAGER, make_ticket(area_id="electrical"), change).allowed
    assert matrix.can_apply(MULTI_AREA_MANAGER, make_ticket(area_id="building"), change).allowed
    assert not matrix.can_apply(MULTI_AREA_MANAGER, make_ticket(area_id="it"), change).allowed
    assert matrix.governed_areas(MULTI_AREA_MANAGER) == frozenset({"building", "electrical"})
    assert not matrix.can_apply(BUILDING_MANAGER, make_ticket(area_id="electrical"), change).allowed


def test_manager_without_area_governs_only_exceptions():
    unassigned = User(id="u-x", name="X", email="x@example.com", role=Role.MANAGER)
    matrix = AuthorizationMatrix(StaticAreaExceptionPolicy({"x@example.com": ["it"]}))

    assert matrix.governed_areas(unassigned) == frozenset({"it"})


@pytest.mark.parametrize(
    ("change", "field"),
    [
        (TicketChange(priority=TicketPriority.URGENT), "priority"),
        (TicketChange(technician_id="u-tech2"), "technician_id"),
        (TicketChange(area_id="building"), "area_id"),
        (TicketChange(status=TicketStatus.IN_PROGRESS, technician_id=None), "technician_id"),
    ],
)
def test_technician_cannot_touch_manager_fields(matrix, change, field):
    ticket = make_ticket(technician_id=TECHNICIAN.id)

    decision = matrix.can_apply(TECHNICIAN, ticket, change)

    assert decision.reason == DenialReason.FIELD_NOT_PERMITTED
    assert decision.field == field


def test_technician_updates_status_only_when_assigned(matrix):
    change = TicketChange(status=TicketStatus.IN_PROGRESS)

    assert matrix.can_apply(TECHNICIAN, make_ticket(technician_id=TECHNICIAN.id), change).allowed
    decision = matrix.can_apply(TECHNICIAN, make_ticket(technician_id="u-tech2"), change)
    assert decision.reason == DenialReason.NOT_ASSIGNED_TECHNICIAN
    assert not matrix.can_apply(TECHNICIAN, make_ticket(), change).allowed


def test_common_users_cannot_update(matrix):
    decision = matrix.can_apply(REQUESTER, make_ticket(), TicketChange(status=TicketStatus.CANCELLED))

    assert decision.reason == DenialReason.ROLE_NOT_PERMITTED


def test_ensure_can_apply_raises_with_reason(matrix):
    with pytest.raises(TicketAuthorizationError) as excinfo:
        matrix.ensure_can_apply(
            TECHNICIAN, make_ticket(technician_id=TECHNICIAN.id), TicketChange(priority=TicketPriority.LOW)
        )

    assert excinfo.value.reason == DenialReason.FIELD_NOT_PERMITTED
    assert excinfo.value.field == "priority"
    assert "field not permitted for role" in str(excinfo.value)
