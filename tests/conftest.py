"""Root conftest.py - Shared fixtures for all tests"""
import pytest
import os
from datetime import datetime, timedelta, UTC
from typing import Callable, AsyncGenerator, Optional

from brokerage.config import WorkflowConfig
from brokerage.core.errors import StoreConflictError
from brokerage.core.monitoring import OrderChangeFeed
from brokerage.core.order_store import InMemoryOrderStore
from brokerage.core.sinks import InMemoryEventSink, InMemoryNotificationSink
from brokerage.core.task_store import InMemoryTaskStore
from brokerage.core.workflow_engine import WorkflowEngine
from shared.enums import (
    CommissionType,
    FileCategory,
    OrderStatus,
    OrderType,
    UserRole,
)
from shared.models import Actor, CommissionRate, Order, OrderDraft, OrderFile

# ============================================================================
# Database Fixtures (for integration tests)
# ============================================================================


@pytest.fixture
async def postgres_db() -> AsyncGenerator:
    """Create a test database connection"""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping PostgreSQL tests")

    from brokerage.db.postgres import PostgresDB
    db = PostgresDB(database_url)
    await db.init_db()
    yield db
    await db.close()


@pytest.fixture
async def redis_cache() -> AsyncGenerator:
    """Create a test Redis connection"""
    redis_url = os.getenv("REDIS_URL")
    if not redis_url:
        pytest.skip("REDIS_URL not set - skipping Redis tests")

    from brokerage.db.redis import RedisCache
    cache = RedisCache(redis_url)
    await cache.connect()
    yield cache
    await cache.close()


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Manually advanced clock shared by the engine and stores"""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, ms: int = 0, seconds: float = 0) -> datetime:
        self.now += timedelta(milliseconds=ms, seconds=seconds)
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2025, 1, 15, 10, 0, tzinfo=UTC))


# ============================================================================
# Data Factories
# ============================================================================


@pytest.fixture
def screenshot_factory(clock: FakeClock) -> Callable:
    """Factory for creating proof-of-payment files"""

    def _create_file(file_id: str = "file-1",
                     category: FileCategory = FileCategory.SCREENSHOT,
                     **kwargs) -> OrderFile:
        return OrderFile(id=file_id,
                         file_name=f"{file_id}.jpg",
                         url=f"https://files.example/{file_id}.jpg",
                         uploaded_by=kwargs.pop("uploaded_by", "exchange-1"),
                         uploaded_at=clock(),
                         category=category,
                         **kwargs)

    return _create_file


@pytest.fixture
def order_factory(clock: FakeClock) -> Callable:
    """Factory for creating test Order instances"""

    def _create_order(order_id: str = "T25010001",
                      status: OrderStatus = OrderStatus.SUBMITTED,
                      order_type: OrderType = OrderType.INCOMING,
                      submitted_amount: float = 500.0,
                      exchange_id: str = "exchange-1",
                      **kwargs) -> Order:
        now = clock()
        timestamps = kwargs.pop("timestamps", {
            "created": now,
            "updated": now,
            OrderStatus.SUBMITTED.value: now
        })
        return Order(order_id=order_id,
                     exchange_id=exchange_id,
                     type=order_type,
                     status=status,
                     submitted_amount=submitted_amount,
                     timestamps=timestamps,
                     **kwargs)

    return _create_order


@pytest.fixture
def draft_factory() -> Callable:
    """Factory for creating order submissions"""

    def _create_draft(exchange_id: str = "exchange-1",
                      order_type: OrderType = OrderType.OUTGOING,
                      submitted_amount: float = 1000.0,
                      **kwargs) -> OrderDraft:
        kwargs.setdefault("commission_rate",
                          CommissionRate(type=CommissionType.PERCENTAGE,
                                         value=1.5))
        return OrderDraft(exchange_id=exchange_id,
                          type=order_type,
                          submitted_amount=submitted_amount,
                          **kwargs)

    return _create_draft


@pytest.fixture
def admin() -> Actor:
    return Actor(id="admin-1", role=UserRole.ADMIN)


@pytest.fixture
def exchange() -> Actor:
    return Actor(id="exchange-1", role=UserRole.EXCHANGE)


# ============================================================================
# Component Fixtures
# ============================================================================


class FlakyOrderStore(InMemoryOrderStore):
    """Order store whose status writes fail a configurable number of times"""

    def __init__(self, *args, failures: int = 0, **kwargs):
        super().__init__(*args, **kwargs)
        self.failures = failures
        self.attempts = 0

    async def update_order_status(self, order_id, new_status, actor,
                                  notes=None, reason=None):
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            raise StoreConflictError("Transaction aborted: write conflict")
        return await super().update_order_status(order_id, new_status, actor,
                                                 notes, reason)


@pytest.fixture
def feed() -> OrderChangeFeed:
    return OrderChangeFeed(redelivery_delay=0)


@pytest.fixture
def order_store(feed: OrderChangeFeed, clock: FakeClock) -> FlakyOrderStore:
    """In-memory order store; set ``failures`` to make status writes fail"""
    return FlakyOrderStore(feed, clock=clock)


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def event_sink() -> InMemoryEventSink:
    return InMemoryEventSink()


@pytest.fixture
def notification_sink() -> InMemoryNotificationSink:
    return InMemoryNotificationSink()


@pytest.fixture
def workflow_config() -> WorkflowConfig:
    return WorkflowConfig()


@pytest.fixture
def engine_factory(order_store, task_store, event_sink, notification_sink,
                   workflow_config, clock) -> Callable:
    """Factory for engines sharing the test stores"""

    def _create_engine(config: Optional[WorkflowConfig] = None,
                       **kwargs) -> WorkflowEngine:
        return WorkflowEngine(order_store,
                              task_store,
                              event_sink,
                              notification_sink,
                              config=config or workflow_config,
                              clock=clock,
                              **kwargs)

    return _create_engine


@pytest.fixture
def engine(engine_factory: Callable) -> WorkflowEngine:
    """Create a workflow engine for testing (worker loop not started)"""
    return engine_factory()


def event_types(events, order_id: Optional[str] = None) -> list:
    return [
        e.type for e in events
        if order_id is None or e.order_id == order_id
    ]
