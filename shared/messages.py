"""WebSocket message schemas for order monitoring"""
from pydantic import BaseModel, ConfigDict
from typing import Optional
from datetime import datetime

from .enums import MessageType
from .models import Order


class WebSocketMessage(BaseModel):
    """Base schema for all WebSocket messages"""
    type: MessageType
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(use_enum_values=True)


# ============================================================================
# Client -> Service Messages
# ============================================================================


class HeartbeatMessage(WebSocketMessage):
    """Client keep-alive"""
    type: MessageType = MessageType.HEARTBEAT


# ============================================================================
# Service -> Client Messages
# ============================================================================


class HeartbeatAckMessage(WebSocketMessage):
    """Acknowledgment of a client heartbeat"""
    type: MessageType = MessageType.HEARTBEAT_ACK


class OrderSnapshotMessage(WebSocketMessage):
    """Current state of the watched order, sent once on connect"""
    type: MessageType = MessageType.ORDER_SNAPSHOT
    order: Order


class OrderChangedMessage(WebSocketMessage):
    """A committed mutation of the watched order"""
    type: MessageType = MessageType.ORDER_CHANGED
    order: Order


class ErrorMessage(WebSocketMessage):
    type: MessageType = MessageType.ERROR
    detail: str
