"""
Notification Service - informational records for a user.

Notifications are created by status transitions only, listed newest
first, and marked read once (the first ``read_at`` is kept).
The unread count is also offered as a stream that re-checks on a fixed
interval and stops when its consumer goes away.
"""

import asyncio
import logging
from datetime import datetime
from typing import Optional, List, AsyncIterator, Callable, Awaitable

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.errors import NotFound, LookupFailed, WriteFailed
from marketplace.db.session import get_db_session
from marketplace.utils.serialization import encode_json, decode_json
from marketplace.utils.timeutils import local_now, to_db_timestamp

logger = logging.getLogger(__name__)


def _row_to_notification(row) -> dict:
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "title": row["title"],
        "body": row["body"],
        "data": decode_json(row["data"]),
        "read_at": row["read_at"],
        "created_at": row["created_at"],
    }


def notify(db: Session, user_id: int, title: str, body: Optional[str] = None,
           data: Optional[dict] = None, now: Optional[datetime] = None) -> int:
    """Create a notification for ``user_id``. Returns its id."""
    try:
        result = db.execute(
            text("""
                INSERT INTO notifications (user_id, title, body, data, created_at)
                VALUES (:uid, :title, :body, :data, :now)
                RETURNING id
            """),
            {
                "uid": user_id, "title": title, "body": body or None,
                "data": encode_json(data) if data else None,
                "now": to_db_timestamp(now or local_now())
            }
        )
        return result.scalar()
    except SQLAlchemyError as e:
        logger.error("Notification insert failed for user %s: %s", user_id, e)
        raise WriteFailed("Could not create notification") from e


def list_notifications(db: Session, user_id: int) -> List[dict]:
    try:
        rows = db.execute(
            text("""
                SELECT id, user_id, title, body, data, read_at, created_at FROM notifications
                WHERE user_id = :uid ORDER BY created_at DESC, id DESC
            """),
            {"uid": user_id}
        ).mappings().all()
    except SQLAlchemyError as e:
        raise LookupFailed("Error loading notifications") from e
    return [_row_to_notification(r) for r in rows]


def unread_count(db: Session, user_id: int) -> int:
    try:
        result = db.execute(
            text("SELECT COUNT(*) FROM notifications WHERE user_id = :uid AND read_at IS NULL"),
            {"uid": user_id}
        )
    except SQLAlchemyError as e:
        raise LookupFailed("Error counting notifications") from e
    return int(result.scalar() or 0)


def mark_read(db: Session, notification_id: int, user_id: int, now: Optional[datetime] = None) -> None:
    """Mark one of the user's notifications read. Already-read ones keep their timestamp."""
    try:
        row = db.execute(
            text("SELECT id FROM notifications WHERE id = :nid AND user_id = :uid"),
            {"nid": notification_id, "uid": user_id}
        ).fetchone()
        if not row:
            raise NotFound("Notification not found")
        db.execute(
            text("UPDATE notifications SET read_at = :now WHERE id = :nid AND read_at IS NULL"),
            {"nid": notification_id, "now": to_db_timestamp(now or local_now())}
        )
    except SQLAlchemyError as e:
        raise WriteFailed("Could not mark notification as read") from e


async def watch_unread_count(
    user_id: int,
    interval: float,
    is_disconnected: Callable[[], Awaitable[bool]],
) -> AsyncIterator[int]:
    """
    Yield the user's unread count now and then every time it changes,
    checking every ``interval`` seconds until ``is_disconnected()`` is true.
    """
    last = None
    while not await is_disconnected():
        with get_db_session() as db:
            count = unread_count(db, user_id)
        if count != last:
            last = count
            yield count
        await asyncio.sleep(interval)
