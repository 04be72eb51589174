from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from datetime import datetime, UTC
import asyncio
import logging

from shared.enums import MessageType
from shared.messages import (
    ErrorMessage,
    HeartbeatAckMessage,
    OrderChangedMessage,
    OrderSnapshotMessage,
)
from shared.models import Order

logger = logging.getLogger(__name__)

router = APIRouter(tags=["monitor"])


@router.websocket("/orders/{order_id}/watch")
async def watch_order(websocket: WebSocket, order_id: str):
    """Push the order once on connect, then once per committed change."""
    # WebSocket endpoints read the container straight off the app
    container = websocket.app.state.container
    await websocket.accept()

    order = await container.engine.get_order(order_id)
    if order is None:
        error = ErrorMessage(detail=f"Order {order_id} not found",
                             timestamp=datetime.now(UTC))
        await websocket.send_json(error.model_dump(mode='json'))
        await websocket.close(code=1008)
        return

    snapshot = OrderSnapshotMessage(order=order, timestamp=datetime.now(UTC))
    await websocket.send_json(snapshot.model_dump(mode='json'))

    changes: asyncio.Queue = asyncio.Queue()

    async def on_order_changed(changed: Order) -> None:
        await changes.put(changed)

    async def forward_changes() -> None:
        while True:
            changed = await changes.get()
            message = OrderChangedMessage(order=changed,
                                          timestamp=datetime.now(UTC))
            await websocket.send_json(message.model_dump(mode='json'))

    listener_id = container.monitor.start_monitoring(order_id, on_order_changed)
    sender = asyncio.create_task(forward_changes())
    try:
        while True:
            data = await websocket.receive_json()
            if data.get("type") == MessageType.HEARTBEAT.value:
                ack = HeartbeatAckMessage(timestamp=datetime.now(UTC))
                await websocket.send_json(ack.model_dump(mode='json'))
            else:
                logger.warning(
                    f"Unknown message type from order {order_id} watcher: {data.get('type')}")
    except WebSocketDisconnect:
        logger.info(f"Watcher of order {order_id} disconnected")
    finally:
        container.monitor.stop_monitoring(listener_id)
        sender.cancel()
