"""
Notification Routes

GET /notifications - My notifications, newest first
GET /notifications/unread-count - Number of unread notifications
POST /notifications/{notification_id}/read - Mark one as read
GET /notifications/stream - Server-sent events with the unread count
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import StreamingResponse
from typing import List

from marketplace.db.session import get_db_session
from marketplace.core.auth import get_current_account
from marketplace.core.config import get_settings
from marketplace.services.notification_service import (
    list_notifications, unread_count, mark_read, watch_unread_count
)
from marketplace.schemas.schemas import NotificationResponse, UnreadCountResponse, MessageResponse

router = APIRouter(prefix="/notifications", tags=["Notifications"])


@router.get("", response_model=List[NotificationResponse])
async def get_notifications(account: dict = Depends(get_current_account)):
    with get_db_session() as db:
        rows = list_notifications(db, account["user_id"])
    return [NotificationResponse(**r) for r in rows]


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(account: dict = Depends(get_current_account)):
    with get_db_session() as db:
        return UnreadCountResponse(unread=unread_count(db, account["user_id"]))


@router.post("/{notification_id}/read", response_model=MessageResponse)
async def read_notification(notification_id: int, account: dict = Depends(get_current_account)):
    with get_db_session() as db:
        mark_read(db, notification_id, account["user_id"])
    return MessageResponse(message="Notification marked as read")


@router.get("/stream")
async def stream_unread_count(request: Request, account: dict = Depends(get_current_account)):
    """
    Push the unread count whenever it changes.
    The stream lives as long as the client connection.
    """
    interval = get_settings().notification_poll_seconds

    async def events():
        async for count in watch_unread_count(account["user_id"], interval, request.is_disconnected):
            yield f"event: unread\ndata: {count}\n\n"

    return StreamingResponse(events(), media_type="text/event-stream")
