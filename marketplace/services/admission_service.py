"""
Admission Service - decides whether a student may apply to an opportunity.

Checks run in a fixed order and fail fast; nothing is written until all
of them pass:

1. Daily rate limit   -> RateLimitExceeded
2. Duplicate check    -> DuplicateApplication
3. Capacity check     -> NotFound / ValidationError / CapacityReached
4. Insert             -> DuplicateApplication (unique index) / WriteFailed

The steps are not one atomic unit. Two concurrent submissions can both pass
step 2; the unique index on (opportunity_id, student_id) decides which one
wins, and the loser gets the same DuplicateApplication error.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.config import get_settings
from marketplace.core.errors import (
    RateLimitExceeded, DuplicateApplication, CapacityReached,
    LookupFailed, WriteFailed, NotFound, ValidationError
)
from marketplace.services.opportunity_service import register_applicant
from marketplace.utils.timeutils import local_now, day_bounds, to_db_timestamp

logger = logging.getLogger(__name__)


def count_applications_today(db: Session, student_id: int, now: Optional[datetime] = None) -> int:
    """Applications created by the student between 00:00:00 and 23:59:59 today."""
    start, end = day_bounds(now or local_now())
    try:
        result = db.execute(
            text("""
                SELECT COUNT(*) FROM applications
                WHERE student_id = :sid AND created_at >= :start AND created_at < :end
            """),
            {"sid": student_id, "start": start, "end": end}
        )
    except SQLAlchemyError as e:
        logger.error("Daily application count failed for student %s: %s", student_id, e)
        raise LookupFailed("Error checking daily application limit") from e
    return int(result.scalar() or 0)


def check_daily_application_limit(db: Session, student_id: int, now: Optional[datetime] = None) -> bool:
    """True while the student is still below today's ceiling."""
    limit = get_settings().daily_application_limit
    return count_applications_today(db, student_id, now) < limit


def find_existing_application(db: Session, opportunity_id: int, student_id: int) -> Optional[int]:
    """Id of the student's application to this opportunity, or None when there is none."""
    try:
        row = db.execute(
            text("SELECT id FROM applications WHERE opportunity_id = :oid AND student_id = :sid"),
            {"oid": opportunity_id, "sid": student_id}
        ).fetchone()
    except SQLAlchemyError as e:
        logger.error("Duplicate lookup failed for opportunity %s: %s", opportunity_id, e)
        raise LookupFailed("Error checking existing applications") from e
    return row[0] if row else None


def _check_capacity(db: Session, opportunity_id: int, professor_id: int) -> None:
    try:
        row = db.execute(
            text("SELECT professor_id, applicant_cap, cap_reached_at FROM opportunities WHERE id = :oid"),
            {"oid": opportunity_id}
        ).fetchone()
    except SQLAlchemyError as e:
        logger.error("Capacity lookup failed for opportunity %s: %s", opportunity_id, e)
        raise LookupFailed("Error checking opportunity status") from e

    if not row:
        raise NotFound("Opportunity not found")
    if row[0] != professor_id:
        raise ValidationError("Opportunity does not belong to the given organization")
    # Permanent once set, even if the cap was raised later
    if row[2] is not None:
        raise CapacityReached()


def submit_application(
    db: Session,
    opportunity_id: int,
    student_id: int,
    professor_id: int,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> dict:
    """
    Validate and record a student's application.

    Returns the new application row as a dict. Raises a MarketplaceError
    subclass on any failed gate. No notification is sent here.
    """
    now = now or local_now()
    limit = get_settings().daily_application_limit

    if not check_daily_application_limit(db, student_id, now):
        logger.info("Student %s hit the daily limit", student_id)
        raise RateLimitExceeded(
            f"You have reached your daily application limit of {limit} applications. "
            "Please try again tomorrow."
        )

    if find_existing_application(db, opportunity_id, student_id) is not None:
        logger.info("Student %s already applied to opportunity %s", student_id, opportunity_id)
        raise DuplicateApplication()

    _check_capacity(db, opportunity_id, professor_id)

    stamp = to_db_timestamp(now)
    try:
        result = db.execute(
            text("""
                INSERT INTO applications (opportunity_id, student_id, professor_id, status, message,
                    created_at, updated_at)
                VALUES (:oid, :sid, :pid, 'submitted', :message, :now, :now)
                RETURNING id
            """),
            {
                "oid": opportunity_id, "sid": student_id, "pid": professor_id,
                "message": message or None, "now": stamp
            }
        )
        application_id = result.scalar()
    except IntegrityError as e:
        # Lost the race against a concurrent submit
        logger.info("Unique index rejected duplicate for student %s / opportunity %s", student_id, opportunity_id)
        raise DuplicateApplication() from e
    except SQLAlchemyError as e:
        logger.error("Application insert failed: %s", e)
        raise WriteFailed("Could not submit application") from e

    register_applicant(db, opportunity_id, now)

    logger.info("Application %s submitted by student %s to opportunity %s",
                application_id, student_id, opportunity_id)
    return {
        "id": application_id, "opportunity_id": opportunity_id, "student_id": student_id,
        "professor_id": professor_id, "status": "submitted", "message": message or None,
        "created_at": stamp, "updated_at": stamp,
    }
