"""Order change feed and real-time order monitoring"""
import asyncio
import inspect
import logging
import uuid
from typing import Awaitable, Callable, Dict, List, Optional, Protocol, Set, Tuple, Union

from shared.models import Order

logger = logging.getLogger(__name__)

OrderCallback = Callable[[Order], Union[None, Awaitable[None]]]


class OrderSubscriber(Protocol):
    """Observer notified of committed order mutations"""

    async def on_order_changed(self, order: Order) -> None:
        ...


class OrderChangeFeed:
    """Fan-out of committed order mutations to per-order subscribers.

    Stores dispatch after every commit; delivery runs in a background task
    so a slow subscriber never holds up the writer. Each subscriber receives
    its own copy of the order. A callback that raises is redelivered up to
    ``delivery_attempts`` times.
    """

    def __init__(self,
                 enabled: bool = True,
                 delivery_attempts: int = 3,
                 redelivery_delay: float = 0.05):
        self.enabled = enabled
        self.delivery_attempts = max(1, delivery_attempts)
        self.redelivery_delay = redelivery_delay
        self._subscriptions: Dict[str, Tuple[str, OrderCallback]] = {}
        self._deliveries: Set[asyncio.Task] = set()

    def subscribe(self, order_id: str, callback: OrderCallback) -> str:
        subscription_id = str(uuid.uuid4())
        self._subscriptions[subscription_id] = (order_id, callback)
        logger.debug(f"Subscription {subscription_id} watching order {order_id}")
        return subscription_id

    def unsubscribe(self, subscription_id: str) -> bool:
        return self._subscriptions.pop(subscription_id, None) is not None

    def subscriber_count(self, order_id: Optional[str] = None) -> int:
        if order_id is None:
            return len(self._subscriptions)
        return sum(1 for oid, _ in self._subscriptions.values()
                   if oid == order_id)

    async def publish(self, order: Order) -> None:
        """Deliver a committed order state to everyone watching it."""
        if not self.enabled:
            return
        await self._deliver_all(self._targets(order.order_id), order)

    def dispatch(self, order: Order) -> None:
        """Deliver ``order`` in the background and return immediately.

        Subscribers are resolved now, so whoever watched the order at commit
        time receives it even if they unsubscribe before delivery.
        """
        if not self.enabled:
            return
        targets = self._targets(order.order_id)
        if not targets:
            return
        delivery = asyncio.get_running_loop().create_task(
            self._deliver_all(targets, order.model_copy(deep=True)))
        self._deliveries.add(delivery)
        delivery.add_done_callback(self._deliveries.discard)

    def _targets(self, order_id: str) -> List[Tuple[str, OrderCallback]]:
        return [(sub_id, callback)
                for sub_id, (oid, callback) in list(self._subscriptions.items())
                if oid == order_id]

    async def _deliver_all(self, targets: List[Tuple[str, OrderCallback]],
                           order: Order) -> None:
        for sub_id, callback in targets:
            await self._deliver(sub_id, callback, order)

    @property
    def pending_deliveries(self) -> int:
        return len(self._deliveries)

    async def drain(self) -> None:
        """Wait until every dispatched order has been delivered"""
        while self._deliveries:
            await asyncio.gather(*list(self._deliveries), return_exceptions=True)

    async def close(self) -> None:
        """Drop subscribers and cancel deliveries still in flight"""
        self.clear()
        for delivery in list(self._deliveries):
            delivery.cancel()
        await self.drain()

    async def _deliver(self, subscription_id: str, callback: OrderCallback,
                       order: Order) -> None:
        for attempt in range(1, self.delivery_attempts + 1):
            try:
                result = callback(order.model_copy(deep=True))
                if inspect.isawaitable(result):
                    await result
                return
            except Exception as e:
                logger.warning(
                    f"Delivery of order {order.order_id} to subscription {subscription_id} "
                    f"failed (attempt {attempt}/{self.delivery_attempts}): {e}")
                if attempt < self.delivery_attempts:
                    await asyncio.sleep(self.redelivery_delay)
        logger.error(
            f"Giving up delivering order {order.order_id} to subscription {subscription_id}"
        )

    def clear(self) -> None:
        self._subscriptions.clear()


class OrderMonitor:
    """Subscribe/unsubscribe lifecycle for observers of individual orders."""

    def __init__(self, feed: OrderChangeFeed):
        self.feed = feed
        self._listeners: Dict[str, str] = {}  # listener_id -> subscription_id

    def start_monitoring(self, order_id: str,
                         observer: Union[OrderCallback, OrderSubscriber]) -> str:
        """Start pushing changes of ``order_id`` to ``observer``.

        ``observer`` is either a callable taking the order or an object with
        an ``on_order_changed`` coroutine method.
        """
        callback = getattr(observer, "on_order_changed", observer)
        listener_id = str(uuid.uuid4())
        self._listeners[listener_id] = self.feed.subscribe(order_id, callback)
        logger.info(f"Started monitoring order {order_id} ({listener_id})")
        return listener_id

    def stop_monitoring(self, listener_id: str) -> bool:
        subscription_id = self._listeners.pop(listener_id, None)
        if subscription_id is None:
            return False
        self.feed.unsubscribe(subscription_id)
        logger.info(f"Stopped monitoring listener {listener_id}")
        return True

    @property
    def active_listeners(self) -> int:
        return len(self._listeners)

    def shutdown(self) -> None:
        for listener_id in list(self._listeners):
            self.stop_monitoring(listener_id)
