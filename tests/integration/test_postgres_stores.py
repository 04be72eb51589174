"""Integration tests for the PostgreSQL stores"""
import pytest
import uuid
from datetime import datetime, timedelta, UTC
from typing import Callable

from brokerage.core.errors import InvalidTransitionError, StoreConflictError
from brokerage.core.monitoring import OrderChangeFeed
from brokerage.core.sinks import InMemoryEventSink
from brokerage.core.workflow_engine import WorkflowEngine
from brokerage.db.postgres import (
    PostgresEventSink,
    PostgresNotificationSink,
    PostgresOrderStore,
    PostgresTaskStore,
)
from shared.enums import (
    NotificationType,
    OrderAction,
    OrderStatus,
    OrderType,
    TaskStatus,
    UserRole,
    WorkflowEventType,
)
from shared.models import (
    Actor,
    Notification,
    OrderFilters,
    WorkflowEvent,
    WorkflowTask,
)


def unique_order_id() -> str:
    return f"T{uuid.uuid4().hex[:8].upper()}"


@pytest.fixture
def pg_orders(postgres_db) -> PostgresOrderStore:
    return PostgresOrderStore(postgres_db, OrderChangeFeed(redelivery_delay=0))


@pytest.fixture
def pg_tasks(postgres_db) -> PostgresTaskStore:
    return PostgresTaskStore(postgres_db)


@pytest.mark.integration
async def test_create_and_get_order(pg_orders: PostgresOrderStore,
                                    draft_factory: Callable) -> None:
    created = await pg_orders.create_order(draft_factory())

    fetched = await pg_orders.get_order(created.order_id)
    assert fetched == created
    assert created.order_id.startswith("T")
    assert created.commission == 15.0

    [action] = await pg_orders.list_workflow_actions(created.order_id)
    assert action.action == OrderAction.SUBMIT


@pytest.mark.integration
async def test_generated_ids_are_sequential(pg_orders: PostgresOrderStore,
                                            draft_factory: Callable) -> None:
    first = await pg_orders.create_order(draft_factory())
    second = await pg_orders.create_order(draft_factory())

    assert first.order_id[:5] == second.order_id[:5]
    assert int(second.order_id[5:]) == int(first.order_id[5:]) + 1


@pytest.mark.integration
async def test_status_update_is_validated_and_recorded(
        pg_orders: PostgresOrderStore, order_factory: Callable) -> None:
    order_id = unique_order_id()
    await pg_orders.insert_order(order_factory(order_id))
    admin = Actor(id="admin-1", role=UserRole.ADMIN)
    exchange = Actor(id="exchange-1", role=UserRole.EXCHANGE)

    with pytest.raises(InvalidTransitionError):
        await pg_orders.update_order_status(order_id, OrderStatus.PROCESSING,
                                            exchange)

    updated = await pg_orders.update_order_status(order_id,
                                                  OrderStatus.REJECTED,
                                                  admin,
                                                  reason="Wrong amount")
    assert updated.rejection_reason == "Wrong amount"
    assert (await pg_orders.get_order(order_id)).status == OrderStatus.REJECTED
    history = await pg_orders.list_workflow_actions(order_id)
    assert [a.new_status for a in history] == [OrderStatus.REJECTED]


@pytest.mark.integration
async def test_filter_by_exchange(pg_orders: PostgresOrderStore,
                                  order_factory: Callable) -> None:
    exchange_id = f"exchange-{uuid.uuid4().hex[:6]}"
    order_id = unique_order_id()
    await pg_orders.insert_order(
        order_factory(order_id, exchange_id=exchange_id,
                      order_type=OrderType.OUTGOING))

    page = await pg_orders.get_orders(OrderFilters(exchange_id=[exchange_id]))

    assert page.total == 1
    assert page.items[0].order_id == order_id


@pytest.mark.integration
async def test_task_round_trip(pg_tasks: PostgresTaskStore, clock) -> None:
    task = WorkflowTask(id=str(uuid.uuid4()),
                        order_id=unique_order_id(),
                        action=OrderAction.PROCESS,
                        target_status=OrderStatus.PROCESSING,
                        performed_by="admin-1",
                        performed_by_role=UserRole.ADMIN,
                        scheduled_at=clock(),
                        metadata={"notes": "checked"},
                        created_at=clock(),
                        updated_at=clock())
    await pg_tasks.create(task)
    with pytest.raises(StoreConflictError):
        await pg_tasks.create(task)

    task.status = TaskStatus.COMPLETED
    task.completed_at = clock()
    await pg_tasks.update(task)

    stored = await pg_tasks.get(task.id)
    assert stored.status == TaskStatus.COMPLETED
    assert stored.metadata == {"notes": "checked"}
    assert await pg_tasks.delete_completed_before(clock() + timedelta(seconds=1)) >= 1
    assert await pg_tasks.get(task.id) is None


@pytest.mark.integration
async def test_event_order_is_preserved(postgres_db) -> None:
    sink = PostgresEventSink(postgres_db)
    order_id = unique_order_id()
    now = datetime.now(UTC)
    for event_type in (WorkflowEventType.TASK_SCHEDULED,
                       WorkflowEventType.TASK_STARTED,
                       WorkflowEventType.TASK_COMPLETED):
        await sink.append(
            WorkflowEvent(id=str(uuid.uuid4()),
                          order_id=order_id,
                          type=event_type,
                          timestamp=now))

    events = await sink.list_for_order(order_id)
    assert [e.type for e in events] == [
        WorkflowEventType.TASK_SCHEDULED,
        WorkflowEventType.TASK_STARTED,
        WorkflowEventType.TASK_COMPLETED,
    ]


@pytest.mark.integration
async def test_notifications(postgres_db) -> None:
    sink = PostgresNotificationSink(postgres_db)
    user_id = f"exchange-{uuid.uuid4().hex[:6]}"
    notification = Notification(id=str(uuid.uuid4()),
                                user_id=user_id,
                                type=NotificationType.ORDER_COMPLETED,
                                title="Order done",
                                message="Your order has been completed.",
                                created_at=datetime.now(UTC))
    await sink.add(notification)

    assert [n.id for n in await sink.list_for_user(user_id, unread_only=True)
            ] == [notification.id]
    read = await sink.mark_read(notification.id)
    assert read.is_read
    assert await sink.list_for_user(user_id, unread_only=True) == []


@pytest.mark.integration
async def test_engine_on_postgres(postgres_db, pg_orders: PostgresOrderStore,
                                  pg_tasks: PostgresTaskStore,
                                  order_factory: Callable) -> None:
    order_id = unique_order_id()
    await pg_orders.insert_order(order_factory(order_id))
    engine = WorkflowEngine(pg_orders, pg_tasks, InMemoryEventSink(),
                            PostgresNotificationSink(postgres_db))

    result = await engine.execute_status_transition(order_id,
                                                    OrderStatus.PROCESSING,
                                                    "admin-1", UserRole.ADMIN)
    await engine.process_pending()

    assert (await pg_tasks.get(result.task_id)).status == TaskStatus.COMPLETED
    assert (await pg_orders.get_order(order_id)).status == OrderStatus.PROCESSING
