"""Unit tests for the status transition tables"""
import pytest

from brokerage.core.transitions import (
    ADMIN_TRANSITIONS,
    EXCHANGE_TRANSITIONS,
    SYSTEM_ACTOR,
    action_for_transition,
    actor_allowed_statuses,
    is_terminal,
    is_transition_allowed,
    is_valid_transition,
    next_allowed_statuses,
)
from shared.enums import OrderAction, OrderStatus as S, UserRole
from shared.models import Actor

EXPECTED_ADMIN = {
    S.SUBMITTED: {S.PROCESSING, S.REJECTED, S.CANCELLED},
    S.PENDING_REVIEW: {S.PROCESSING, S.REJECTED, S.CANCELLED},
    S.APPROVED: {S.PROCESSING, S.CANCELLED},
    S.REJECTED: {S.PROCESSING},
    S.PROCESSING: {S.COMPLETED, S.CANCELLED},
    S.CANCELLATION_REQUESTED: {S.CANCELLED, S.PROCESSING},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
}

EXPECTED_EXCHANGE = {
    S.SUBMITTED: {S.CANCELLED},
    S.PENDING_REVIEW: set(),
    S.APPROVED: {S.CANCELLATION_REQUESTED},
    S.REJECTED: set(),
    S.PROCESSING: {S.CANCELLATION_REQUESTED},
    S.COMPLETED: set(),
    S.CANCELLED: set(),
    S.CANCELLATION_REQUESTED: set(),
}


@pytest.mark.unit
@pytest.mark.parametrize("status", list(S))
def test_admin_destinations_match_table(status: S) -> None:
    assert next_allowed_statuses(status, UserRole.ADMIN) == EXPECTED_ADMIN[status]


@pytest.mark.unit
@pytest.mark.parametrize("status", list(S))
def test_exchange_destinations_match_table(status: S) -> None:
    assert next_allowed_statuses(status,
                                 UserRole.EXCHANGE) == EXPECTED_EXCHANGE[status]


@pytest.mark.unit
def test_tables_cover_every_status() -> None:
    assert set(ADMIN_TRANSITIONS) == set(S)
    assert set(EXCHANGE_TRANSITIONS) == set(S)


@pytest.mark.unit
@pytest.mark.parametrize("role", list(UserRole))
@pytest.mark.parametrize("status", [S.COMPLETED, S.CANCELLED])
def test_terminal_statuses_have_no_exits(status: S, role: UserRole) -> None:
    assert is_terminal(status)
    assert next_allowed_statuses(status, role) == set()


@pytest.mark.unit
def test_exchange_never_reaches_completed() -> None:
    for status in S:
        assert not is_valid_transition(status, S.COMPLETED, UserRole.EXCHANGE)


@pytest.mark.unit
def test_every_transient_status_has_an_exit() -> None:
    """Non-terminal statuses are never dead ends for every role at once"""
    for status in S:
        if is_terminal(status):
            continue
        reachable = set()
        for role in UserRole:
            reachable |= next_allowed_statuses(status, role)
        assert reachable, status


@pytest.mark.unit
def test_returned_set_is_a_copy() -> None:
    allowed = next_allowed_statuses(S.SUBMITTED, UserRole.ADMIN)
    allowed.add(S.COMPLETED)
    assert S.COMPLETED not in next_allowed_statuses(S.SUBMITTED, UserRole.ADMIN)


@pytest.mark.unit
def test_system_principal_may_move_submitted_to_review() -> None:
    assert is_transition_allowed(S.SUBMITTED, S.PENDING_REVIEW, SYSTEM_ACTOR)
    assert S.PENDING_REVIEW in actor_allowed_statuses(S.SUBMITTED, SYSTEM_ACTOR)


@pytest.mark.unit
def test_regular_admin_may_not_move_submitted_to_review() -> None:
    admin = Actor(id="admin-1", role=UserRole.ADMIN)
    assert not is_transition_allowed(S.SUBMITTED, S.PENDING_REVIEW, admin)
    assert not is_valid_transition(S.SUBMITTED, S.PENDING_REVIEW, UserRole.ADMIN)


@pytest.mark.unit
def test_system_id_with_exchange_role_is_not_the_system_principal() -> None:
    impostor = Actor(id="system", role=UserRole.EXCHANGE)
    assert not is_transition_allowed(S.SUBMITTED, S.PENDING_REVIEW, impostor)


@pytest.mark.unit
def test_rejected_is_reopenable_by_admin_only() -> None:
    assert is_valid_transition(S.REJECTED, S.PROCESSING, UserRole.ADMIN)
    assert not is_valid_transition(S.REJECTED, S.PROCESSING, UserRole.EXCHANGE)
    assert not is_terminal(S.REJECTED)


@pytest.mark.unit
@pytest.mark.parametrize("target,action", [
    (S.PROCESSING, OrderAction.PROCESS),
    (S.COMPLETED, OrderAction.COMPLETE),
    (S.REJECTED, OrderAction.REJECT),
    (S.CANCELLED, OrderAction.CANCEL),
    (S.CANCELLATION_REQUESTED, OrderAction.REQUEST_CANCELLATION),
    (S.APPROVED, OrderAction.APPROVE),
])
def test_action_for_transition(target: S, action: OrderAction) -> None:
    assert action_for_transition(S.SUBMITTED, target) == action
