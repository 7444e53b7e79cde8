"""
Application Service - listing applications and moving them through review.

Lifecycle:
    submitted -> under_review -> accepted | rejected
    submitted -> accepted | rejected     (skipping review is allowed)

accepted and rejected are terminal. Accepting or rejecting notifies the
student in a separate transaction: if that fails the status change stays.
"""

import logging
from datetime import datetime
from typing import Optional, List

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.errors import NotFound, LookupFailed, WriteFailed, ValidationError, MarketplaceError
from marketplace.db.session import get_db_session
from marketplace.services.notification_service import notify
from marketplace.utils.timeutils import local_now, to_db_timestamp

logger = logging.getLogger(__name__)

TERMINAL_STATUSES = {"accepted", "rejected"}
REVIEW_STATUSES = {"under_review", "accepted", "rejected"}

APPLICATION_SELECT = """
    SELECT a.id, a.opportunity_id, a.student_id, a.professor_id, a.status, a.message,
           a.created_at, a.updated_at, o.title AS opportunity_title,
           s.first_name || ' ' || s.last_name AS student_name, s.email AS student_email
    FROM applications a
    JOIN opportunities o ON a.opportunity_id = o.id
    JOIN students s ON a.student_id = s.id
"""


def get_application(db: Session, application_id: int) -> dict:
    try:
        row = db.execute(
            text(APPLICATION_SELECT + " WHERE a.id = :aid"),
            {"aid": application_id}
        ).mappings().fetchone()
    except SQLAlchemyError as e:
        raise LookupFailed("Error loading application") from e
    if not row:
        raise NotFound("Application not found")
    return dict(row)


def list_student_applications(db: Session, student_id: int) -> List[dict]:
    try:
        rows = db.execute(
            text(APPLICATION_SELECT + " WHERE a.student_id = :sid ORDER BY a.created_at DESC, a.id DESC"),
            {"sid": student_id}
        ).mappings().all()
    except SQLAlchemyError as e:
        raise LookupFailed("Error loading applications") from e
    return [dict(r) for r in rows]


def list_professor_applications(db: Session, professor_id: int, opportunity_id: Optional[int] = None,
                                status: Optional[str] = None) -> List[dict]:
    sql = APPLICATION_SELECT + " WHERE a.professor_id = :pid"
    params = {"pid": professor_id}
    if opportunity_id:
        sql += " AND a.opportunity_id = :oid"
        params["oid"] = opportunity_id
    if status:
        sql += " AND a.status = :status"
        params["status"] = status
    sql += " ORDER BY a.created_at DESC, a.id DESC"

    try:
        rows = db.execute(text(sql), params).mappings().all()
    except SQLAlchemyError as e:
        raise LookupFailed("Error loading applications") from e
    return [dict(r) for r in rows]


def set_application_status(db: Session, application_id: int, new_status: str, professor_id: int,
                           now: Optional[datetime] = None) -> dict:
    """Change status on one of the professor's applications. Returns the application before the change."""
    if new_status not in REVIEW_STATUSES:
        raise ValidationError(f"Cannot set status '{new_status}'")

    application = get_application(db, application_id)
    if application["professor_id"] != professor_id:
        raise NotFound("Application not found")
    if application["status"] in TERMINAL_STATUSES:
        raise ValidationError(f"Application is already {application['status']}")

    try:
        db.execute(
            text("UPDATE applications SET status = :status, updated_at = :now WHERE id = :aid"),
            {"aid": application_id, "status": new_status, "now": to_db_timestamp(now or local_now())}
        )
    except SQLAlchemyError as e:
        logger.error("Status update failed for application %s: %s", application_id, e)
        raise WriteFailed("Could not update application status") from e

    logger.info("Application %s: %s -> %s", application_id, application["status"], new_status)
    return application


def review_application(application_id: int, new_status: str, professor_id: int,
                       now: Optional[datetime] = None) -> bool:
    """
    Status transition followed by the student notification.

    Two independent transactions. Returns True if a notification was
    written, False if none was due or writing it failed.
    """
    with get_db_session() as db:
        application = set_application_status(db, application_id, new_status, professor_id, now)

    if new_status not in TERMINAL_STATUSES:
        return False

    title = f"Application {'Accepted' if new_status == 'accepted' else 'Rejected'}"
    body = f'Your application for "{application["opportunity_title"]}" was {new_status}.'
    try:
        with get_db_session() as db:
            notify(db, application["student_id"], title, body,
                   {"applicationId": application_id, "status": new_status}, now)
    except MarketplaceError as e:
        # Known gap: the status change is not rolled back
        logger.warning("Notification for application %s not sent: %s", application_id, e)
        return False
    return True
