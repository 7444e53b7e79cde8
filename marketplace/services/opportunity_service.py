"""
Opportunity Service - listing CRUD, search and the applicant counter.

The applicant counter only moves forward: every accepted submission adds
one, and the first time the count reaches a positive cap the
``cap_reached_at``/``cap_reached_date`` pair is stamped and never cleared.
"""

import logging
from datetime import datetime
from typing import Optional, List, Tuple

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.config import get_settings
from marketplace.core.errors import NotFound, LookupFailed, WriteFailed, ValidationError
from marketplace.schemas.schemas import OpportunityCreate, OpportunityUpdate
from marketplace.utils.serialization import encode_json, decode_json, normalize_tags
from marketplace.utils.timeutils import local_now, to_db_timestamp, to_db_date, as_date

logger = logging.getLogger(__name__)

OPPORTUNITY_COLUMNS = """
    o.id, o.professor_id, o.title, o.description, o.tags, o.location, o.duration,
    o.compensation, o.type, o.status, o.applicants, o.applicant_cap, o.cap_reached_at,
    o.cap_reached_date, o.application_deadline, o.opportunity_link, o.app_link,
    o.created_at, o.updated_at,
    p.first_name AS owner_first_name, p.last_name AS owner_last_name,
    p.institution AS owner_institution, p.department AS owner_department
"""

OPPORTUNITY_FROM = "FROM opportunities o JOIN professors p ON o.professor_id = p.id"

REQUIRED_FIELDS = ("title", "description", "type", "status")

UPDATABLE_FIELDS = [
    "title", "description", "location", "duration", "compensation",
    "applicant_cap", "application_deadline", "opportunity_link", "app_link"
]


# ============================================================
# ROW HELPERS
# ============================================================

def escape_like(value: str) -> str:
    """Make ``%``, ``_`` and ``\\`` match literally in a LIKE pattern."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def cap_banner_visible(cap_reached_at, cap_reached_date, now: Optional[datetime] = None) -> bool:
    """The "cap reached" banner shows for a limited window after the cap was hit."""
    if cap_reached_at is None:
        return False
    reached = as_date(cap_reached_date) or as_date(cap_reached_at)
    days_since = ((now or local_now()).date() - reached).days
    return days_since <= get_settings().cap_banner_days


def row_to_opportunity(row: dict, now: Optional[datetime] = None) -> dict:
    """Convert a joined opportunity row into the API shape."""
    return {
        "id": row["id"],
        "professor_id": row["professor_id"],
        "title": row["title"],
        "description": row["description"],
        "tags": decode_json(row["tags"], []),
        "location": row["location"],
        "duration": row["duration"],
        "compensation": row["compensation"],
        "type": row["type"],
        "status": row["status"],
        "applicants": row["applicants"],
        "applicant_cap": row["applicant_cap"],
        "cap_reached_at": row["cap_reached_at"],
        "cap_reached_date": row["cap_reached_date"],
        "application_deadline": row["application_deadline"],
        "opportunity_link": row["opportunity_link"],
        "app_link": row["app_link"],
        "accepting_applications": row["cap_reached_at"] is None,
        "cap_banner_visible": cap_banner_visible(row["cap_reached_at"], row["cap_reached_date"], now),
        "owner": {
            "id": row["professor_id"],
            "first_name": row["owner_first_name"],
            "last_name": row["owner_last_name"],
            "institution": row["owner_institution"],
            "department": row["owner_department"],
        },
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


# ============================================================
# CRUD
# ============================================================

def create_opportunity(db: Session, professor_id: int, data: OpportunityCreate,
                       now: Optional[datetime] = None) -> int:
    """Insert a new Open listing with a zero applicant counter. Returns its id."""
    stamp = to_db_timestamp(now or local_now())
    try:
        result = db.execute(
            text("""
                INSERT INTO opportunities (professor_id, title, description, tags, location, duration,
                    compensation, type, status, applicants, applicant_cap, application_deadline,
                    opportunity_link, app_link, created_at, updated_at)
                VALUES (:pid, :title, :description, :tags, :location, :duration,
                    :compensation, :type, 'Open', 0, :cap, :deadline,
                    :opportunity_link, :app_link, :now, :now)
                RETURNING id
            """),
            {
                "pid": professor_id, "title": data.title, "description": data.description,
                "tags": encode_json(normalize_tags(data.tags)), "location": data.location,
                "duration": data.duration, "compensation": data.compensation,
                "type": data.type.value,
                # 0 means uncapped, same as NULL
                "cap": data.applicant_cap or None,
                "deadline": to_db_timestamp(data.application_deadline) if data.application_deadline else None,
                "opportunity_link": data.opportunity_link, "app_link": data.app_link or None,
                "now": stamp
            }
        )
        opportunity_id = result.scalar()
    except SQLAlchemyError as e:
        logger.error("Opportunity insert failed for professor %s: %s", professor_id, e)
        raise WriteFailed("Could not create opportunity") from e

    logger.info("Opportunity %s posted by professor %s", opportunity_id, professor_id)
    return opportunity_id


def get_opportunity(db: Session, opportunity_id: int, now: Optional[datetime] = None) -> dict:
    try:
        row = db.execute(
            text(f"SELECT {OPPORTUNITY_COLUMNS} {OPPORTUNITY_FROM} WHERE o.id = :oid"),
            {"oid": opportunity_id}
        ).mappings().fetchone()
    except SQLAlchemyError as e:
        raise LookupFailed("Error loading opportunity") from e

    if not row:
        raise NotFound("Opportunity not found")
    return row_to_opportunity(row, now)


def search_opportunities(
    db: Session,
    q: Optional[str] = None,
    type: Optional[str] = None,
    status: Optional[str] = None,
    professor_id: Optional[int] = None,
    page: int = 1,
    page_size: int = 10,
    now: Optional[datetime] = None,
) -> Tuple[List[dict], int]:
    """
    Search listings, newest first.

    ``q`` matches title, description, tags or the owner's name,
    case-insensitively. Returns (page of listings, total matches).
    """
    where = " WHERE 1 = 1"
    params = {}

    if q:
        where += r""" AND (
            LOWER(o.title) LIKE :q ESCAPE '\' OR LOWER(o.description) LIKE :q ESCAPE '\'
            OR LOWER(COALESCE(o.tags, '')) LIKE :q ESCAPE '\'
            OR LOWER(p.first_name || ' ' || p.last_name) LIKE :q ESCAPE '\'
        )"""
        params["q"] = f"%{escape_like(q.strip().lower())}%"
    if type:
        where += " AND o.type = :type"
        params["type"] = type
    if status:
        where += " AND o.status = :status"
        params["status"] = status
    if professor_id:
        where += " AND o.professor_id = :pid"
        params["pid"] = professor_id

    try:
        total = db.execute(text(f"SELECT COUNT(*) {OPPORTUNITY_FROM}{where}"), params).scalar()
        rows = db.execute(
            text(f"""
                SELECT {OPPORTUNITY_COLUMNS} {OPPORTUNITY_FROM}{where}
                ORDER BY o.created_at DESC, o.id DESC
                LIMIT :limit OFFSET :offset
            """),
            {**params, "limit": page_size, "offset": (page - 1) * page_size}
        ).mappings().all()
    except SQLAlchemyError as e:
        logger.error("Opportunity search failed: %s", e)
        raise LookupFailed("Error loading opportunities") from e

    return [row_to_opportunity(r, now) for r in rows], int(total or 0)


def update_opportunity(db: Session, opportunity_id: int, professor_id: int, update: OpportunityUpdate,
                       now: Optional[datetime] = None) -> None:
    """Partial update by the owner. The counter and cap markers are never touched here."""
    try:
        owner = db.execute(
            text("SELECT professor_id FROM opportunities WHERE id = :oid"),
            {"oid": opportunity_id}
        ).fetchone()
    except SQLAlchemyError as e:
        raise LookupFailed("Error loading opportunity") from e
    if not owner or owner[0] != professor_id:
        raise NotFound("Opportunity not found or access denied")

    # Only fields present in the request; an explicit null clears an optional field
    fields = update.model_dump(exclude_unset=True)
    for field in REQUIRED_FIELDS:
        if field in fields and fields[field] is None:
            raise ValidationError(f"{field} cannot be cleared")

    updates = []
    params = {"oid": opportunity_id, "now": to_db_timestamp(now or local_now())}

    for field in UPDATABLE_FIELDS:
        if field not in fields:
            continue
        value = fields[field]
        if field == "application_deadline" and value is not None:
            value = to_db_timestamp(value)
        elif field == "applicant_cap":
            value = value or None
        updates.append(f"{field} = :{field}")
        params[field] = value

    if "tags" in fields:
        updates.append("tags = :tags")
        params["tags"] = encode_json(normalize_tags(fields["tags"]))
    if "type" in fields:
        updates.append("type = :type")
        params["type"] = update.type.value
    if "status" in fields:
        updates.append("status = :status")
        params["status"] = update.status.value

    if not updates:
        raise ValidationError("No fields to update")

    try:
        db.execute(
            text(f"UPDATE opportunities SET {', '.join(updates)}, updated_at = :now WHERE id = :oid"),
            params
        )
        # A lowered cap can already be met by the existing count
        if "applicant_cap" in params:
            stamp_cap_if_reached(db, opportunity_id, now)
    except SQLAlchemyError as e:
        logger.error("Opportunity %s update failed: %s", opportunity_id, e)
        raise WriteFailed("Could not update opportunity") from e


# ============================================================
# APPLICANT COUNTER
# ============================================================

def stamp_cap_if_reached(db: Session, opportunity_id: int, now: Optional[datetime] = None) -> bool:
    """Set cap_reached_at/date once the counter is at or over a positive cap. True if stamped now."""
    now = now or local_now()
    result = db.execute(
        text("""
            UPDATE opportunities
            SET cap_reached_at = :now, cap_reached_date = :today
            WHERE id = :oid AND cap_reached_at IS NULL
              AND applicant_cap IS NOT NULL AND applicant_cap > 0
              AND applicants >= applicant_cap
        """),
        {"oid": opportunity_id, "now": to_db_timestamp(now), "today": to_db_date(now.date())}
    )
    if result.rowcount:
        logger.info("Opportunity %s reached its applicant cap", opportunity_id)
        return True
    return False


def register_applicant(db: Session, opportunity_id: int, now: Optional[datetime] = None) -> None:
    """
    Count one more accepted submission and stamp the cap marker the first
    time the counter reaches a positive cap. Runs in the caller's
    transaction, right after the application insert.
    """
    try:
        db.execute(
            text("UPDATE opportunities SET applicants = applicants + 1 WHERE id = :oid"),
            {"oid": opportunity_id}
        )
        stamp_cap_if_reached(db, opportunity_id, now)
    except SQLAlchemyError as e:
        logger.error("Applicant counter update failed for opportunity %s: %s", opportunity_id, e)
        raise WriteFailed("Could not update applicant count") from e
