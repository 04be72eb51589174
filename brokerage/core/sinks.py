"""Event log and notification sinks"""
from abc import ABC, abstractmethod
from datetime import datetime, UTC
from typing import Dict, List, Optional

from shared.models import Notification, WorkflowEvent


class EventSink(ABC):
    """Append-only workflow event log"""

    @abstractmethod
    async def append(self, event: WorkflowEvent) -> None:
        ...

    @abstractmethod
    async def list_for_order(self, order_id: str) -> List[WorkflowEvent]:
        """Events for one order in the order they were appended"""


class NotificationSink(ABC):
    """Per-recipient notification records"""

    @abstractmethod
    async def add(self, notification: Notification) -> None:
        ...

    @abstractmethod
    async def list_for_user(self,
                            user_id: str,
                            unread_only: bool = False) -> List[Notification]:
        ...

    @abstractmethod
    async def mark_read(self, notification_id: str) -> Optional[Notification]:
        ...


class InMemoryEventSink(EventSink):

    def __init__(self):
        self.events: List[WorkflowEvent] = []

    async def append(self, event: WorkflowEvent) -> None:
        self.events.append(event)

    async def list_for_order(self, order_id: str) -> List[WorkflowEvent]:
        return [e for e in self.events if e.order_id == order_id]


class InMemoryNotificationSink(NotificationSink):

    def __init__(self):
        self.notifications: Dict[str, Notification] = {}

    async def add(self, notification: Notification) -> None:
        self.notifications[notification.id] = notification

    async def list_for_user(self,
                            user_id: str,
                            unread_only: bool = False) -> List[Notification]:
        return sorted(
            (n for n in self.notifications.values()
             if n.user_id == user_id and not (unread_only and n.is_read)),
            key=lambda n: n.created_at,
            reverse=True)

    async def mark_read(self, notification_id: str) -> Optional[Notification]:
        notification = self.notifications.get(notification_id)
        if notification is None:
            return None
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(UTC)
        return notification
