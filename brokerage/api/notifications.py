from fastapi import APIRouter, HTTPException, Depends
from typing import List

from shared.models import Notification
from brokerage.core.dependencies import get_notification_sink
from brokerage.core.sinks import NotificationSink

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/{user_id}", response_model=List[Notification])
async def list_notifications(
        user_id: str,
        unread_only: bool = False,
        notifications: NotificationSink = Depends(get_notification_sink)):
    """Notifications addressed to a user, newest first"""
    return await notifications.list_for_user(user_id, unread_only=unread_only)


@router.post("/{notification_id}/read", response_model=Notification)
async def mark_read(
        notification_id: str,
        notifications: NotificationSink = Depends(get_notification_sink)):
    notification = await notifications.mark_read(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification
