"""Order store adapter: lookup, listing and transactional status updates"""
import asyncio
import logging
import math
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Callable, Dict, List, Optional, Tuple

from shared.enums import (
    FileCategory,
    OrderAction,
    OrderPriority,
    OrderStatus,
    OrderSortField,
    SortDirection,
    UserRole,
)
from shared.models import (
    Actor,
    Order,
    OrderDraft,
    OrderFile,
    OrderFilters,
    OrderSortOptions,
    OrderUpdate,
    OrderWorkflowAction,
    Page,
    PaginationOptions,
)
from brokerage.core.errors import (
    InvalidTransitionError,
    OrderNotEditableError,
    OrderNotFoundError,
)
from brokerage.core.monitoring import OrderChangeFeed
from brokerage.core.transitions import action_for_transition, is_transition_allowed
from brokerage.utils.commission import calculate_commission, calculate_net_amount
from brokerage.utils.order_ids import format_order_id, order_id_prefix

logger = logging.getLogger(__name__)

_PRIORITY_RANK = {
    OrderPriority.LOW: 0,
    OrderPriority.NORMAL: 1,
    OrderPriority.HIGH: 2,
    OrderPriority.URGENT: 3,
}


class OrderStore(ABC):
    """Boundary the workflow engine and API use to reach orders.

    Every mutation dispatches the committed order on ``feed``.
    """

    feed: OrderChangeFeed

    @abstractmethod
    async def create_order(self, draft: OrderDraft) -> Order:
        """Persist a new submitted order under a freshly generated id"""

    @abstractmethod
    async def insert_order(self, order: Order) -> Order:
        """Store an existing order record verbatim (imports, fixtures)"""

    @abstractmethod
    async def get_order(self, order_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    async def get_orders(self,
                         filters: Optional[OrderFilters] = None,
                         sort: Optional[OrderSortOptions] = None,
                         pagination: Optional[PaginationOptions] = None
                         ) -> Page[Order]:
        ...

    @abstractmethod
    async def update_order(self, order_id: str, updates: OrderUpdate,
                           edited_by: str) -> Order:
        """Edit order fields; only allowed while the order is submitted"""

    @abstractmethod
    async def update_order_status(self,
                                  order_id: str,
                                  new_status: OrderStatus,
                                  actor: Actor,
                                  notes: Optional[str] = None,
                                  reason: Optional[str] = None) -> Order:
        """Atomically re-validate against the stored status and write it.

        Raises:
            OrderNotFoundError: no such order
            InvalidTransitionError: the stored status does not allow the move
            StoreConflictError: the write was aborted and may be retried
        """

    @abstractmethod
    async def add_order_file(self, order_id: str, file: OrderFile) -> Order:
        ...

    @abstractmethod
    async def list_workflow_actions(self,
                                    order_id: str) -> List[OrderWorkflowAction]:
        ...

    @abstractmethod
    async def count_orders(self) -> int:
        ...


# ============================================================================
# Record construction shared by store implementations
# ============================================================================


def build_order(draft: OrderDraft, order_id: str, now: datetime) -> Order:
    """Create the initial record for a submitted order"""
    commission = calculate_commission(draft.submitted_amount,
                                      draft.commission_rate)
    return Order(
        order_id=order_id,
        status=OrderStatus.SUBMITTED,
        commission=commission,
        net_amount=calculate_net_amount(draft.submitted_amount, commission,
                                        draft.type),
        timestamps={
            "created": now,
            "updated": now,
            OrderStatus.SUBMITTED.value: now
        },
        **draft.model_dump(exclude_none=True),
    )


def build_workflow_action(order_id: str,
                          action: OrderAction,
                          actor: Actor,
                          previous_status: OrderStatus,
                          new_status: OrderStatus,
                          now: datetime,
                          notes: Optional[str] = None,
                          reason: Optional[str] = None,
                          metadata: Optional[dict] = None) -> OrderWorkflowAction:
    """Audit record; blank notes/reason/metadata are left out"""
    return OrderWorkflowAction(
        id=str(uuid.uuid4()),
        order_id=order_id,
        action=action,
        performed_by=actor.id,
        performed_by_role=actor.role,
        previous_status=previous_status,
        new_status=new_status,
        notes=notes if notes and notes.strip() else None,
        reason=reason if reason and reason.strip() else None,
        timestamp=now,
        metadata=metadata or None,
    )


def apply_status_change(order: Order, new_status: OrderStatus, actor: Actor,
                        notes: Optional[str], reason: Optional[str],
                        now: datetime) -> Tuple[Order, OrderWorkflowAction]:
    """Validate and apply a status change to an order record.

    Returns the updated copy and the audit record to write with it.
    """
    current = order.status
    if not is_transition_allowed(current, new_status, actor):
        raise InvalidTransitionError(
            f"Invalid status transition from {current.value} to {new_status.value} "
            f"for {actor.role.value}",
            details={
                "order_id": order.order_id,
                "from": current.value,
                "to": new_status.value
            })

    timestamps = dict(order.timestamps)
    timestamps["updated"] = now
    timestamps[new_status.value] = now

    updates = {"status": new_status, "timestamps": timestamps}
    if reason and reason.strip():
        if new_status == OrderStatus.REJECTED:
            updates["rejection_reason"] = reason
        elif new_status in (OrderStatus.CANCELLED,
                            OrderStatus.CANCELLATION_REQUESTED):
            updates["cancellation_reason"] = reason
    if notes and notes.strip() and actor.role == UserRole.ADMIN:
        updates["admin_notes"] = notes

    updated = order.model_copy(update=updates, deep=True)
    action = build_workflow_action(order.order_id,
                                   action_for_transition(current, new_status),
                                   actor, current, new_status, now, notes,
                                   reason)
    return updated, action


def apply_order_update(order: Order, updates: OrderUpdate, edited_by: str,
                       now: datetime) -> Tuple[Order, OrderWorkflowAction]:
    """Apply field edits to a submitted order"""
    if order.status != OrderStatus.SUBMITTED:
        raise OrderNotEditableError(
            "Only submitted orders can be edited",
            details={
                "order_id": order.order_id,
                "status": order.status.value
            })

    changes = updates.model_dump(exclude_unset=True)
    timestamps = dict(order.timestamps)
    timestamps["updated"] = now
    changes.update(timestamps=timestamps, edited_by=edited_by)
    updated = order.model_validate({**order.model_dump(), **changes})

    if "submitted_amount" in changes:
        commission = calculate_commission(updated.submitted_amount,
                                          updated.commission_rate)
        updated.commission = commission
        updated.net_amount = calculate_net_amount(updated.submitted_amount,
                                                  commission, updated.type)

    action = build_workflow_action(order.order_id,
                                   OrderAction.EDIT,
                                   Actor(id=edited_by, role=UserRole.EXCHANGE),
                                   order.status,
                                   order.status,
                                   now,
                                   notes="Order details updated")
    return updated, action


def attach_file(order: Order, file: OrderFile, now: datetime) -> Order:
    timestamps = dict(order.timestamps)
    timestamps["updated"] = now
    if file.category == FileCategory.SCREENSHOT:
        changes = {"screenshots": [*order.screenshots, file]}
    else:
        changes = {"documents": [*order.documents, file]}
    changes["timestamps"] = timestamps
    return order.model_copy(update=changes, deep=True)


# ============================================================================
# In-memory listing helpers
# ============================================================================


def matches_filters(order: Order, filters: OrderFilters) -> bool:
    if filters.status and order.status not in filters.status:
        return False
    if filters.type and order.type not in filters.type:
        return False
    if filters.exchange_id and order.exchange_id not in filters.exchange_id:
        return False
    if filters.priority and order.priority not in filters.priority:
        return False
    if filters.assigned_admin and order.assigned_admin != filters.assigned_admin:
        return False
    if filters.date_range:
        created = order.timestamps["created"]
        if not filters.date_range.start <= created <= filters.date_range.end:
            return False
    if filters.amount_range:
        if not (filters.amount_range.min <= order.submitted_amount <=
                filters.amount_range.max):
            return False
    if filters.search:
        needle = filters.search.lower()
        haystack = [order.order_id.lower(), str(order.submitted_amount)]
        if order.recipient_details and order.recipient_details.name:
            haystack.append(order.recipient_details.name.lower())
        if order.sender_details and order.sender_details.name:
            haystack.append(order.sender_details.name.lower())
        if not any(needle in value for value in haystack):
            return False
    return True


def sort_key(field: OrderSortField) -> Callable[[Order], object]:
    if field == OrderSortField.ORDER_ID:
        return lambda o: o.order_id
    if field == OrderSortField.UPDATED:
        return lambda o: o.timestamps.get("updated", o.timestamps["created"])
    if field == OrderSortField.AMOUNT:
        return lambda o: o.submitted_amount
    if field == OrderSortField.STATUS:
        return lambda o: o.status.value
    if field == OrderSortField.PRIORITY:
        return lambda o: _PRIORITY_RANK[o.priority]
    return lambda o: o.timestamps["created"]


def paginate(items: List[Order], pagination: PaginationOptions) -> Page[Order]:
    total = len(items)
    start = (pagination.page - 1) * pagination.limit
    page_items = items[start:start + pagination.limit]
    return Page[Order](
        items=page_items,
        total=total,
        page=pagination.page,
        limit=pagination.limit,
        total_pages=math.ceil(total / pagination.limit),
        has_next=start + len(page_items) < total,
        has_previous=pagination.page > 1,
    )


class InMemoryOrderStore(OrderStore):
    """Process-local order store.

    A single asyncio lock serialises every read-modify-write, which gives the
    same re-validate-then-write guarantee as a database transaction.
    """

    def __init__(self,
                 feed: Optional[OrderChangeFeed] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.feed = feed or OrderChangeFeed()
        self._now = clock or (lambda: datetime.now(UTC))
        self.orders: Dict[str, Order] = {}
        self.workflow_actions: List[OrderWorkflowAction] = []
        self.counters: Dict[str, int] = {}
        self._lock = asyncio.Lock()

    async def create_order(self, draft: OrderDraft) -> Order:
        now = self._now()
        prefix, counter_key = order_id_prefix(now)
        async with self._lock:
            sequence = self.counters.get(counter_key, 0) + 1
            self.counters[counter_key] = sequence
            order = build_order(draft, format_order_id(prefix, sequence), now)
            self.orders[order.order_id] = order
            self.workflow_actions.append(
                build_workflow_action(order.order_id,
                                      OrderAction.SUBMIT,
                                      Actor(id=draft.exchange_id,
                                            role=UserRole.EXCHANGE),
                                      OrderStatus.SUBMITTED,
                                      OrderStatus.SUBMITTED,
                                      now,
                                      metadata={"source": draft.source.value}))
        logger.info(f"Created order {order.order_id} for exchange {order.exchange_id}")
        self.feed.dispatch(order)
        return order.model_copy(deep=True)

    async def insert_order(self, order: Order) -> Order:
        async with self._lock:
            self.orders[order.order_id] = order.model_copy(deep=True)
        return order.model_copy(deep=True)

    async def get_order(self, order_id: str) -> Optional[Order]:
        order = self.orders.get(order_id)
        return order.model_copy(deep=True) if order else None

    async def get_orders(self,
                         filters: Optional[OrderFilters] = None,
                         sort: Optional[OrderSortOptions] = None,
                         pagination: Optional[PaginationOptions] = None
                         ) -> Page[Order]:
        filters = filters or OrderFilters()
        sort = sort or OrderSortOptions()
        pagination = pagination or PaginationOptions()

        items = [
            o.model_copy(deep=True) for o in self.orders.values()
            if matches_filters(o, filters)
        ]
        items.sort(key=sort_key(sort.field),
                   reverse=sort.direction == SortDirection.DESC)
        return paginate(items, pagination)

    async def update_order(self, order_id: str, updates: OrderUpdate,
                           edited_by: str) -> Order:
        async with self._lock:
            current = self._require(order_id)
            updated, action = apply_order_update(current, updates, edited_by,
                                                 self._now())
            self.orders[order_id] = updated
            self.workflow_actions.append(action)
        self.feed.dispatch(updated)
        return updated.model_copy(deep=True)

    async def update_order_status(self,
                                  order_id: str,
                                  new_status: OrderStatus,
                                  actor: Actor,
                                  notes: Optional[str] = None,
                                  reason: Optional[str] = None) -> Order:
        async with self._lock:
            current = self._require(order_id)
            updated, action = apply_status_change(current, new_status, actor,
                                                  notes, reason, self._now())
            self.orders[order_id] = updated
            self.workflow_actions.append(action)
        logger.info(
            f"Order {order_id} {action.previous_status.value} -> {new_status.value} by {actor.id}"
        )
        self.feed.dispatch(updated)
        return updated.model_copy(deep=True)

    async def add_order_file(self, order_id: str, file: OrderFile) -> Order:
        async with self._lock:
            updated = attach_file(self._require(order_id), file, self._now())
            self.orders[order_id] = updated
        self.feed.dispatch(updated)
        return updated.model_copy(deep=True)

    async def list_workflow_actions(self,
                                    order_id: str) -> List[OrderWorkflowAction]:
        return [a for a in self.workflow_actions if a.order_id == order_id]

    async def count_orders(self) -> int:
        return len(self.orders)

    def _require(self, order_id: str) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order {order_id} not found",
                                     details={"order_id": order_id})
        return order
