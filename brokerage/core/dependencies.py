"""Composition root: wires stores, sinks and the engine for one application"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from brokerage.config import Settings
from brokerage.core.auto_transitions import DEFAULT_RULES
from brokerage.core.monitoring import OrderChangeFeed, OrderMonitor
from brokerage.core.order_store import InMemoryOrderStore, OrderStore
from brokerage.core.sinks import (
    EventSink,
    InMemoryEventSink,
    InMemoryNotificationSink,
    NotificationSink,
)
from brokerage.core.task_store import InMemoryTaskStore, TaskStore
from brokerage.core.workflow_engine import WorkflowEngine
from brokerage.db.postgres import (
    PostgresDB,
    PostgresEventSink,
    PostgresNotificationSink,
    PostgresOrderStore,
    PostgresTaskStore,
)
from brokerage.db.redis import RedisCache
from brokerage.utils.rules_parser import load_rules_file

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Everything one application instance owns"""
    settings: Settings
    feed: OrderChangeFeed
    monitor: OrderMonitor
    orders: OrderStore
    tasks: TaskStore
    events: EventSink
    notifications: NotificationSink
    engine: WorkflowEngine
    postgres: Optional[PostgresDB] = None
    redis: Optional[RedisCache] = None

    async def close(self) -> None:
        await self.engine.stop()
        self.monitor.shutdown()
        await self.feed.close()
        if self.redis:
            await self.redis.close()
        if self.postgres:
            await self.postgres.close()


async def build_container(settings: Settings) -> Container:
    """Connect backends named in ``settings`` and build the engine on top"""
    feed = OrderChangeFeed(enabled=settings.workflow.enable_real_time_updates)

    postgres = None
    if settings.database_url:
        postgres = PostgresDB(settings.database_url)
        await postgres.init_db()
        orders = PostgresOrderStore(postgres, feed)
        tasks = PostgresTaskStore(postgres)
        events = PostgresEventSink(postgres)
        notifications = PostgresNotificationSink(postgres)
    else:
        orders = InMemoryOrderStore(feed)
        tasks = InMemoryTaskStore()
        events = InMemoryEventSink()
        notifications = InMemoryNotificationSink()

    redis = None
    if settings.redis_url:
        redis = RedisCache(settings.redis_url)
        await redis.connect()

    rules = DEFAULT_RULES
    if settings.auto_transition_rules:
        rules = load_rules_file(settings.auto_transition_rules)
        logger.info(f"Loaded auto-transition rules from {settings.auto_transition_rules}")

    logger.info(
        f"Initializing workflow engine with backends (DB: {bool(postgres)}, Redis: {bool(redis)})"
    )
    engine = WorkflowEngine(orders,
                            tasks,
                            events,
                            notifications,
                            config=settings.workflow,
                            rules=rules,
                            redis=redis)

    return Container(settings=settings,
                     feed=feed,
                     monitor=OrderMonitor(feed),
                     orders=orders,
                     tasks=tasks,
                     events=events,
                     notifications=notifications,
                     engine=engine,
                     postgres=postgres,
                     redis=redis)


def get_container(request: Request) -> Container:
    return request.app.state.container


def get_engine(request: Request) -> WorkflowEngine:
    return request.app.state.container.engine


def get_order_store(request: Request) -> OrderStore:
    return request.app.state.container.orders


def get_task_store(request: Request) -> TaskStore:
    return request.app.state.container.tasks


def get_event_sink(request: Request) -> EventSink:
    return request.app.state.container.events


def get_notification_sink(request: Request) -> NotificationSink:
    return request.app.state.container.notifications
