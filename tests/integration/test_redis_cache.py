"""Integration tests for Redis caching, locks and metrics"""
import pytest
import uuid
from typing import Callable

from brokerage.db.redis import RedisCache


@pytest.mark.integration
async def test_cache_order(redis_cache: RedisCache,
                           order_factory: Callable) -> None:
    order = order_factory(f"T{uuid.uuid4().hex[:8]}")
    await redis_cache.cache_order(order)

    cached = await redis_cache.get_cached_order(order.order_id)
    assert cached is not None
    assert cached["order_id"] == order.order_id
    assert cached["status"] == order.status

    await redis_cache.invalidate_order(order.order_id)
    assert await redis_cache.get_cached_order(order.order_id) is None


@pytest.mark.integration
async def test_lock_is_exclusive_and_owned(redis_cache: RedisCache) -> None:
    key = f"order:T{uuid.uuid4().hex[:8]}"

    assert await redis_cache.acquire_lock(key, "task-1", ttl=10)
    assert not await redis_cache.acquire_lock(key, "task-2", ttl=10)

    # only the owner can release
    assert not await redis_cache.release_lock(key, "task-2")
    assert not await redis_cache.acquire_lock(key, "task-2", ttl=10)

    assert await redis_cache.release_lock(key, "task-1")
    assert await redis_cache.acquire_lock(key, "task-2", ttl=10)
    assert await redis_cache.release_lock(key, "task-2")


@pytest.mark.integration
async def test_metrics(redis_cache: RedisCache) -> None:
    metric = f"test_{uuid.uuid4().hex[:8]}"
    assert await redis_cache.get_metric(metric) == 0

    await redis_cache.increment_metric(metric)
    await redis_cache.increment_metric(metric)

    assert await redis_cache.get_metric(metric) == 2
    assert await redis_cache.ping()


@pytest.mark.integration
async def test_expired_owner_cannot_release_new_holder(
        redis_cache: RedisCache) -> None:
    key = f"order:T{uuid.uuid4().hex[:8]}"
    assert await redis_cache.acquire_lock(key, "task-1", ttl=10)

    # task-1's lock expires and task-2 takes it over
    await redis_cache.client.delete(f"lock:{key}")
    assert await redis_cache.acquire_lock(key, "task-2", ttl=10)

    assert not await redis_cache.release_lock(key, "task-1")
    assert await redis_cache.client.get(f"lock:{key}") == "task-2"
    assert await redis_cache.release_lock(key, "task-2")
