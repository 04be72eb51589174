"""Order status transition tables per actor role"""
from typing import Dict, FrozenSet, Optional, Set

from shared.enums import OrderAction, OrderStatus, UserRole
from shared.models import Actor

# Principal recorded for transitions fired by auto-transition rules
SYSTEM_ACTOR = Actor(id="system", role=UserRole.ADMIN)

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED})

ADMIN_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    # Admin approves by moving straight to processing
    OrderStatus.SUBMITTED: frozenset({
        OrderStatus.PROCESSING, OrderStatus.REJECTED, OrderStatus.CANCELLED
    }),
    # pending_review and approved are kept for older orders
    OrderStatus.PENDING_REVIEW: frozenset({
        OrderStatus.PROCESSING, OrderStatus.REJECTED, OrderStatus.CANCELLED
    }),
    OrderStatus.APPROVED: frozenset({
        OrderStatus.PROCESSING, OrderStatus.CANCELLED
    }),
    # Reopen a rejected order
    OrderStatus.REJECTED: frozenset({OrderStatus.PROCESSING}),
    OrderStatus.PROCESSING: frozenset({
        OrderStatus.COMPLETED, OrderStatus.CANCELLED
    }),
    # Approve or deny the exchange's cancellation request
    OrderStatus.CANCELLATION_REQUESTED: frozenset({
        OrderStatus.CANCELLED, OrderStatus.PROCESSING
    }),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

EXCHANGE_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.SUBMITTED: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.PENDING_REVIEW: frozenset(),
    OrderStatus.APPROVED: frozenset({OrderStatus.CANCELLATION_REQUESTED}),
    OrderStatus.REJECTED: frozenset(),
    OrderStatus.PROCESSING: frozenset({OrderStatus.CANCELLATION_REQUESTED}),
    OrderStatus.COMPLETED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.CANCELLATION_REQUESTED: frozenset(),
}

# Edges only the system principal may take, on top of the admin table.
# pending_review has no other way in.
SYSTEM_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.SUBMITTED: frozenset({OrderStatus.PENDING_REVIEW}),
}

_ROLE_TABLES = {
    UserRole.ADMIN: ADMIN_TRANSITIONS,
    UserRole.EXCHANGE: EXCHANGE_TRANSITIONS,
}

_ACTIONS_BY_TARGET = {
    OrderStatus.PENDING_REVIEW: OrderAction.SUBMIT,
    OrderStatus.APPROVED: OrderAction.APPROVE,
    OrderStatus.REJECTED: OrderAction.REJECT,
    OrderStatus.PROCESSING: OrderAction.PROCESS,
    OrderStatus.COMPLETED: OrderAction.COMPLETE,
    OrderStatus.CANCELLED: OrderAction.CANCEL,
    OrderStatus.CANCELLATION_REQUESTED: OrderAction.REQUEST_CANCELLATION,
}


def next_allowed_statuses(current_status: OrderStatus,
                          role: UserRole) -> Set[OrderStatus]:
    """Statuses the given role may move an order to from ``current_status``."""
    table = _ROLE_TABLES.get(UserRole(role), {})
    return set(table.get(OrderStatus(current_status), frozenset()))


def is_valid_transition(current_status: OrderStatus, target_status: OrderStatus,
                        role: UserRole) -> bool:
    """Check a status change against the role's transition table."""
    return OrderStatus(target_status) in next_allowed_statuses(
        current_status, role)


def is_system_actor(actor: Optional[Actor]) -> bool:
    return (actor is not None and actor.id == SYSTEM_ACTOR.id
            and actor.role == SYSTEM_ACTOR.role)


def actor_allowed_statuses(current_status: OrderStatus,
                           actor: Actor) -> Set[OrderStatus]:
    """Allowed destinations for a concrete actor.

    Equal to the role table, except that the system principal also gets
    the ``SYSTEM_TRANSITIONS`` edges.
    """
    allowed = next_allowed_statuses(current_status, actor.role)
    if is_system_actor(actor):
        allowed |= SYSTEM_TRANSITIONS.get(OrderStatus(current_status),
                                          frozenset())
    return allowed


def is_transition_allowed(current_status: OrderStatus,
                          target_status: OrderStatus, actor: Actor) -> bool:
    return OrderStatus(target_status) in actor_allowed_statuses(
        current_status, actor)


def action_for_transition(from_status: OrderStatus,
                          to_status: OrderStatus) -> OrderAction:
    """Map a status change to the action recorded in the workflow history."""
    return _ACTIONS_BY_TARGET.get(OrderStatus(to_status), OrderAction.EDIT)


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES
