"""PostgreSQL database connection and store implementations"""
import logging
import math
from datetime import datetime, UTC
from typing import Callable, Optional, List
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.future import select
from sqlalchemy import String, cast, delete, func, or_
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import DBAPIError, IntegrityError

from brokerage.core.errors import OrderNotFoundError, StoreConflictError
from brokerage.core.monitoring import OrderChangeFeed
from brokerage.core.order_store import (
    OrderStore,
    apply_order_update,
    apply_status_change,
    attach_file,
    build_order,
    build_workflow_action,
)
from brokerage.core.sinks import EventSink, NotificationSink
from brokerage.core.task_store import TaskStore
from brokerage.db.models import (
    Base,
    NotificationModel,
    OrderCounterModel,
    OrderModel,
    OrderWorkflowActionModel,
    WorkflowEventModel,
    WorkflowTaskModel,
)
from brokerage.utils.order_ids import format_order_id, order_id_prefix
from shared.enums import (
    OrderAction,
    OrderSortField,
    OrderStatus,
    SortDirection,
    TaskStatus,
    UserRole,
)
from shared.models import (
    Actor,
    Notification,
    Order,
    OrderDraft,
    OrderFile,
    OrderFilters,
    OrderSortOptions,
    OrderUpdate,
    OrderWorkflowAction,
    Page,
    PaginationOptions,
    WorkflowCondition,
    WorkflowEvent,
    WorkflowTask,
)

logger = logging.getLogger(__name__)


class PostgresDB:
    """PostgreSQL database manager"""

    def __init__(self, database_url: str):
        self.engine = create_async_engine(database_url,
                                          echo=False,
                                          pool_pre_ping=True)
        self.async_session = async_sessionmaker(self.engine,
                                                class_=AsyncSession,
                                                expire_on_commit=False)

    async def init_db(self):
        """Initialize database schema"""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self):
        """Close database connections"""
        await self.engine.dispose()


# ============================================================================
# Orders
# ============================================================================


def _order_from_model(model: OrderModel) -> Order:
    return Order.model_validate(model.data)


def _write_order(model: OrderModel, order: Order) -> None:
    model.exchange_id = order.exchange_id
    model.type = order.type
    model.status = order.status
    model.priority = order.priority
    model.submitted_amount = order.submitted_amount
    model.assigned_admin = order.assigned_admin
    model.recipient_name = order.recipient_details.name if order.recipient_details else None
    model.sender_name = order.sender_details.name if order.sender_details else None
    model.data = order.model_dump(mode="json")
    model.created_at = order.timestamps["created"]
    model.updated_at = order.timestamps.get("updated",
                                            order.timestamps["created"])


def _action_model(action: OrderWorkflowAction) -> OrderWorkflowActionModel:
    return OrderWorkflowActionModel(
        id=action.id,
        order_id=action.order_id,
        action=action.action,
        performed_by=action.performed_by,
        performed_by_role=action.performed_by_role,
        previous_status=action.previous_status,
        new_status=action.new_status,
        notes=action.notes,
        reason=action.reason,
        timestamp=action.timestamp,
        action_metadata=action.metadata,
    )


_SORT_COLUMNS = {
    OrderSortField.ORDER_ID: OrderModel.order_id,
    OrderSortField.CREATED: OrderModel.created_at,
    OrderSortField.UPDATED: OrderModel.updated_at,
    OrderSortField.AMOUNT: OrderModel.submitted_amount,
    OrderSortField.STATUS: OrderModel.status,
    OrderSortField.PRIORITY: OrderModel.priority,
}


def _filter_clauses(filters: OrderFilters) -> list:
    clauses = []
    if filters.status:
        clauses.append(OrderModel.status.in_(filters.status))
    if filters.type:
        clauses.append(OrderModel.type.in_(filters.type))
    if filters.exchange_id:
        clauses.append(OrderModel.exchange_id.in_(filters.exchange_id))
    if filters.priority:
        clauses.append(OrderModel.priority.in_(filters.priority))
    if filters.assigned_admin:
        clauses.append(OrderModel.assigned_admin == filters.assigned_admin)
    if filters.date_range:
        clauses.append(
            OrderModel.created_at.between(filters.date_range.start,
                                          filters.date_range.end))
    if filters.amount_range:
        clauses.append(
            OrderModel.submitted_amount.between(filters.amount_range.min,
                                                filters.amount_range.max))
    if filters.search:
        pattern = f"%{filters.search}%"
        clauses.append(
            or_(OrderModel.order_id.ilike(pattern),
                cast(OrderModel.submitted_amount, String).ilike(pattern),
                OrderModel.recipient_name.ilike(pattern),
                OrderModel.sender_name.ilike(pattern)))
    return clauses


class PostgresOrderStore(OrderStore):
    """Order store with row-level locking for status changes"""

    def __init__(self,
                 db: PostgresDB,
                 feed: Optional[OrderChangeFeed] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.db = db
        self.feed = feed or OrderChangeFeed()
        self._now = clock or (lambda: datetime.now(UTC))

    async def create_order(self, draft: OrderDraft) -> Order:
        now = self._now()
        prefix, counter_key = order_id_prefix(now)
        try:
            async with self.db.async_session() as session:
                async with session.begin():
                    # Counter increment and order insert commit together
                    stmt = pg_insert(OrderCounterModel).values(
                        key=counter_key, count=1).on_conflict_do_update(
                            index_elements=[OrderCounterModel.key],
                            set_={
                                "count": OrderCounterModel.count + 1
                            }).returning(OrderCounterModel.count)
                    sequence = (await session.execute(stmt)).scalar_one()

                    order = build_order(draft,
                                        format_order_id(prefix, sequence), now)
                    model = OrderModel(order_id=order.order_id)
                    _write_order(model, order)
                    session.add(model)
                    session.add(
                        _action_model(
                            build_workflow_action(
                                order.order_id,
                                OrderAction.SUBMIT,
                                Actor(id=draft.exchange_id,
                                      role=UserRole.EXCHANGE),
                                OrderStatus.SUBMITTED,
                                OrderStatus.SUBMITTED,
                                now,
                                metadata={"source": draft.source.value})))
        except DBAPIError as e:
            raise StoreConflictError(f"Could not create order: {e}") from e

        logger.info(f"Created order {order.order_id} for exchange {order.exchange_id}")
        self.feed.dispatch(order)
        return order

    async def insert_order(self, order: Order) -> Order:
        async with self.db.async_session() as session:
            model = OrderModel(order_id=order.order_id)
            _write_order(model, order)
            await session.merge(model)
            await session.commit()
        return order

    async def get_order(self, order_id: str) -> Optional[Order]:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(OrderModel).where(OrderModel.order_id == order_id))
            model = result.scalar_one_or_none()
            return _order_from_model(model) if model else None

    async def get_orders(self,
                         filters: Optional[OrderFilters] = None,
                         sort: Optional[OrderSortOptions] = None,
                         pagination: Optional[PaginationOptions] = None
                         ) -> Page[Order]:
        filters = filters or OrderFilters()
        sort = sort or OrderSortOptions()
        pagination = pagination or PaginationOptions()

        clauses = _filter_clauses(filters)
        column = _SORT_COLUMNS[sort.field]
        order_by = column.desc() if sort.direction == SortDirection.DESC else column.asc()

        async with self.db.async_session() as session:
            total = (await session.execute(
                select(func.count()).select_from(OrderModel).where(
                    *clauses))).scalar_one()
            result = await session.execute(
                select(OrderModel).where(*clauses).order_by(order_by).offset(
                    (pagination.page - 1) * pagination.limit).limit(
                        pagination.limit))
            items = [_order_from_model(m) for m in result.scalars().all()]

        offset = (pagination.page - 1) * pagination.limit
        return Page[Order](
            items=items,
            total=total,
            page=pagination.page,
            limit=pagination.limit,
            total_pages=math.ceil(total / pagination.limit),
            has_next=offset + len(items) < total,
            has_previous=pagination.page > 1,
        )

    async def update_order(self, order_id: str, updates: OrderUpdate,
                           edited_by: str) -> Order:

        def change(order: Order):
            return apply_order_update(order, updates, edited_by, self._now())

        return await self._locked_update(order_id, change)

    async def update_order_status(self,
                                  order_id: str,
                                  new_status: OrderStatus,
                                  actor: Actor,
                                  notes: Optional[str] = None,
                                  reason: Optional[str] = None) -> Order:

        def change(order: Order):
            return apply_status_change(order, new_status, actor, notes, reason,
                                       self._now())

        updated = await self._locked_update(order_id, change)
        logger.info(f"Order {order_id} -> {new_status.value} by {actor.id}")
        return updated

    async def add_order_file(self, order_id: str, file: OrderFile) -> Order:

        def change(order: Order):
            return attach_file(order, file, self._now()), None

        return await self._locked_update(order_id, change)

    async def _locked_update(self, order_id: str, change) -> Order:
        """Read the row FOR UPDATE, apply ``change`` and write in one transaction"""
        try:
            async with self.db.async_session() as session:
                async with session.begin():
                    result = await session.execute(
                        select(OrderModel).where(
                            OrderModel.order_id == order_id).with_for_update())
                    model = result.scalar_one_or_none()
                    if model is None:
                        raise OrderNotFoundError(f"Order {order_id} not found",
                                                 details={"order_id": order_id})
                    updated, action = change(_order_from_model(model))
                    _write_order(model, updated)
                    if action is not None:
                        session.add(_action_model(action))
        except DBAPIError as e:
            raise StoreConflictError(
                f"Update of order {order_id} was aborted: {e}",
                details={"order_id": order_id}) from e

        self.feed.dispatch(updated)
        return updated

    async def list_workflow_actions(self,
                                    order_id: str) -> List[OrderWorkflowAction]:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(OrderWorkflowActionModel).where(
                    OrderWorkflowActionModel.order_id == order_id).order_by(
                        OrderWorkflowActionModel.timestamp))
            return [
                OrderWorkflowAction(
                    id=m.id,
                    order_id=m.order_id,
                    action=m.action,
                    performed_by=m.performed_by,
                    performed_by_role=m.performed_by_role,
                    previous_status=m.previous_status,
                    new_status=m.new_status,
                    notes=m.notes,
                    reason=m.reason,
                    timestamp=m.timestamp,
                    metadata=m.action_metadata,
                ) for m in result.scalars().all()
            ]

    async def count_orders(self) -> int:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(func.count()).select_from(OrderModel))
            return result.scalar_one()


# ============================================================================
# Tasks
# ============================================================================


def _task_model(task: WorkflowTask) -> WorkflowTaskModel:
    return WorkflowTaskModel(
        id=task.id,
        order_id=task.order_id,
        action=task.action,
        target_status=task.target_status,
        performed_by=task.performed_by,
        performed_by_role=task.performed_by_role,
        priority=task.priority,
        scheduled_at=task.scheduled_at,
        executed_at=task.executed_at,
        completed_at=task.completed_at,
        failed_at=task.failed_at,
        retry_count=task.retry_count,
        max_retries=task.max_retries,
        status=task.status,
        error=task.error,
        task_metadata=task.metadata,
        dependencies=task.dependencies,
        conditions=[c.model_dump(mode="json") for c in task.conditions],
        retry_of=task.retry_of,
        root_task_id=task.root_task_id,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def _task_from_model(model: WorkflowTaskModel) -> WorkflowTask:
    return WorkflowTask(
        id=model.id,
        order_id=model.order_id,
        action=model.action,
        target_status=model.target_status,
        performed_by=model.performed_by,
        performed_by_role=model.performed_by_role,
        priority=model.priority,
        scheduled_at=model.scheduled_at,
        executed_at=model.executed_at,
        completed_at=model.completed_at,
        failed_at=model.failed_at,
        retry_count=model.retry_count,
        max_retries=model.max_retries,
        status=model.status,
        error=model.error,
        metadata=model.task_metadata or {},
        dependencies=model.dependencies or [],
        conditions=[WorkflowCondition(**c) for c in model.conditions or []],
        retry_of=model.retry_of,
        root_task_id=model.root_task_id,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class PostgresTaskStore(TaskStore):
    """Workflow task table; pending rows survive restarts"""

    def __init__(self, db: PostgresDB):
        self.db = db

    async def create(self, task: WorkflowTask) -> WorkflowTask:
        try:
            async with self.db.async_session() as session:
                session.add(_task_model(task))
                await session.commit()
        except IntegrityError as e:
            raise StoreConflictError(f"Task {task.id} already exists",
                                     details={"task_id": task.id}) from e
        return task

    async def update(self, task: WorkflowTask) -> WorkflowTask:
        try:
            async with self.db.async_session() as session:
                await session.merge(_task_model(task))
                await session.commit()
        except DBAPIError as e:
            raise StoreConflictError(f"Could not update task {task.id}: {e}",
                                     details={"task_id": task.id}) from e
        return task

    async def get(self, task_id: str) -> Optional[WorkflowTask]:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(WorkflowTaskModel).where(WorkflowTaskModel.id == task_id))
            model = result.scalar_one_or_none()
            return _task_from_model(model) if model else None

    async def list_tasks(self,
                         status: Optional[TaskStatus] = None,
                         order_id: Optional[str] = None) -> List[WorkflowTask]:
        query = select(WorkflowTaskModel)
        if status is not None:
            query = query.where(WorkflowTaskModel.status == status)
        if order_id is not None:
            query = query.where(WorkflowTaskModel.order_id == order_id)
        async with self.db.async_session() as session:
            result = await session.execute(
                query.order_by(WorkflowTaskModel.created_at))
            return [_task_from_model(m) for m in result.scalars().all()]

    async def list_created_between(self, start: datetime,
                                   end: datetime) -> List[WorkflowTask]:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(WorkflowTaskModel).where(
                    WorkflowTaskModel.created_at.between(start, end)))
            return [_task_from_model(m) for m in result.scalars().all()]

    async def delete_completed_before(self, cutoff: datetime) -> int:
        async with self.db.async_session() as session:
            result = await session.execute(
                delete(WorkflowTaskModel).where(
                    WorkflowTaskModel.status == TaskStatus.COMPLETED,
                    WorkflowTaskModel.completed_at < cutoff))
            await session.commit()
            return result.rowcount


# ============================================================================
# Events and notifications
# ============================================================================


class PostgresEventSink(EventSink):

    def __init__(self, db: PostgresDB):
        self.db = db

    async def append(self, event: WorkflowEvent) -> None:
        async with self.db.async_session() as session:
            session.add(
                WorkflowEventModel(id=event.id,
                                   order_id=event.order_id,
                                   task_id=event.task_id,
                                   type=event.type,
                                   timestamp=event.timestamp,
                                   details=event.details,
                                   severity=event.severity))
            await session.commit()

    async def list_for_order(self, order_id: str) -> List[WorkflowEvent]:
        async with self.db.async_session() as session:
            result = await session.execute(
                select(WorkflowEventModel).where(
                    WorkflowEventModel.order_id == order_id).order_by(
                        WorkflowEventModel.seq))
            return [
                WorkflowEvent(id=m.id,
                              order_id=m.order_id,
                              task_id=m.task_id,
                              type=m.type,
                              timestamp=m.timestamp,
                              details=m.details or {},
                              severity=m.severity)
                for m in result.scalars().all()
            ]


def _notification_from_model(m: NotificationModel) -> Notification:
    return Notification(id=m.id,
                        user_id=m.user_id,
                        type=m.type,
                        title=m.title,
                        message=m.message,
                        order_id=m.order_id,
                        priority=m.priority,
                        is_read=m.is_read,
                        read_at=m.read_at,
                        action_url=m.action_url,
                        action_text=m.action_text,
                        metadata=m.notification_metadata or {},
                        created_at=m.created_at)


class PostgresNotificationSink(NotificationSink):

    def __init__(self, db: PostgresDB):
        self.db = db

    async def add(self, notification: Notification) -> None:
        async with self.db.async_session() as session:
            session.add(
                NotificationModel(
                    id=notification.id,
                    user_id=notification.user_id,
                    type=notification.type,
                    title=notification.title,
                    message=notification.message,
                    order_id=notification.order_id,
                    priority=notification.priority,
                    is_read=notification.is_read,
                    read_at=notification.read_at,
                    action_url=notification.action_url,
                    action_text=notification.action_text,
                    notification_metadata=notification.metadata,
                    created_at=notification.created_at,
                ))
            await session.commit()

    async def list_for_user(self,
                            user_id: str,
                            unread_only: bool = False) -> List[Notification]:
        query = select(NotificationModel).where(
            NotificationModel.user_id == user_id)
        if unread_only:
            query = query.where(NotificationModel.is_read.is_(False))
        async with self.db.async_session() as session:
            result = await session.execute(
                query.order_by(NotificationModel.created_at.desc()))
            return [_notification_from_model(m) for m in result.scalars().all()]

    async def mark_read(self, notification_id: str) -> Optional[Notification]:
        async with self.db.async_session() as session:
            model = await session.get(NotificationModel, notification_id)
            if model is None:
                return None
            if not model.is_read:
                model.is_read = True
                model.read_at = datetime.now(UTC)
                await session.commit()
            return _notification_from_model(model)
