"""Redis order cache, execution locks and workflow metrics"""
import json
from typing import Optional, Dict
import redis.asyncio as redis
from shared.models import Order

# Delete the lock only while it still holds the caller's token
_RELEASE_LOCK_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisCache:
    """Redis cache, lock and counter helper"""

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.client: Optional[redis.Redis] = None

    async def connect(self):
        """Connect to Redis"""
        self.client = await redis.from_url(self.redis_url,
                                           decode_responses=True)
        self._release_lock = self.client.register_script(_RELEASE_LOCK_SCRIPT)

    async def close(self):
        """Close Redis connection"""
        if self.client:
            await self.client.aclose()

    async def ping(self) -> bool:
        return await self.client.ping()

    # Order snapshot cache
    async def cache_order(self, order: Order, ttl: int = 300) -> None:
        """Cache an order snapshot"""
        await self.client.setex(f"cache:order:{order.order_id}", ttl,
                                order.model_dump_json())

    async def get_cached_order(self, order_id: str) -> Optional[Dict]:
        data = await self.client.get(f"cache:order:{order_id}")
        return json.loads(data) if data else None

    async def invalidate_order(self, order_id: str) -> None:
        await self.client.delete(f"cache:order:{order_id}")

    # Per-order execution locks
    async def acquire_lock(self, lock_key: str, owner: str,
                           ttl: int = 30) -> bool:
        """Acquire a lock; only ``owner`` may release it"""
        return bool(await self.client.set(f"lock:{lock_key}",
                                          owner,
                                          nx=True,
                                          ex=ttl))

    async def release_lock(self, lock_key: str, owner: str) -> bool:
        """Release the lock only if ``owner`` still holds it"""
        released = await self._release_lock(keys=[f"lock:{lock_key}"],
                                            args=[owner])
        return bool(released)

    # Metrics and monitoring
    async def increment_metric(self, metric: str) -> None:
        """Increment a counter metric"""
        await self.client.incr(f"metric:{metric}")

    async def get_metric(self, metric: str) -> int:
        """Get metric value"""
        value = await self.client.get(f"metric:{metric}")
        return int(value) if value else 0
