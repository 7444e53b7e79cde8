"""
Student Routes

POST /students/profile - Create student profile
GET /students/profile - Get own profile
PUT /students/profile - Update profile
POST /students/portfolio - Upload portfolio file
GET /students/portfolio/formats - Accepted upload formats
GET /students/applications - Get my applications
GET /students/applications/daily-count - Applications sent today vs. the daily limit
GET /students - Browse students (approved professors)
"""

from fastapi import APIRouter, HTTPException, Depends, UploadFile, File
from sqlalchemy import text
from typing import List

from marketplace.db.session import get_db_session, execute_raw_sql
from marketplace.core.auth import get_current_account, get_current_student, get_approved_professor
from marketplace.core.config import get_settings
from marketplace.services.admission_service import count_applications_today
from marketplace.services.application_service import list_student_applications
from marketplace.services.storage_service import build_object_path, get_storage
from marketplace.utils.file_upload import read_upload, get_supported_formats
from marketplace.utils.serialization import encode_json, decode_json
from marketplace.utils.timeutils import local_now, to_db_timestamp
from marketplace.schemas.schemas import (
    StudentCreate, StudentUpdate, StudentResponse, ApplicationResponse,
    DailyCountResponse, UploadResponse, MessageResponse
)

router = APIRouter(prefix="/students", tags=["Students"])

STUDENT_SELECT = """
    SELECT id, first_name, last_name, email, level, university, major, year, gpa, bio,
           skills, interests, links, portfolio_url, portfolio_filename, created_at, updated_at
    FROM students
"""


def _row_to_student(r: dict) -> StudentResponse:
    return StudentResponse(
        **{k: r[k] for k in r.keys() if k not in ("skills", "interests", "links")},
        skills=decode_json(r["skills"], []),
        interests=decode_json(r["interests"], []),
        links=decode_json(r["links"], {}),
    )


@router.post("/profile", response_model=MessageResponse, status_code=201)
async def create_profile(data: StudentCreate, account: dict = Depends(get_current_account)):
    """Create student profile. Account must be registered as student."""
    if account["role"] != "student":
        raise HTTPException(status_code=403, detail="Only student accounts can create student profiles")

    now = to_db_timestamp(local_now())
    with get_db_session() as db:
        # Check profile exists
        result = db.execute(
            text("SELECT id FROM students WHERE id = :id"),
            {"id": account["user_id"]}
        )
        if result.fetchone():
            raise HTTPException(status_code=400, detail="Profile already exists. Use PUT to update.")

        db.execute(
            text("""
                INSERT INTO students (id, first_name, last_name, email, level, university, major, year,
                    gpa, bio, skills, interests, links, created_at, updated_at)
                VALUES (:id, :first_name, :last_name, :email, :level, :university, :major, :year,
                    :gpa, :bio, :skills, :interests, :links, :now, :now)
            """),
            {
                "id": account["user_id"],
                "first_name": data.first_name,
                "last_name": data.last_name,
                "email": account["email"],
                "level": data.level.value if data.level else None,
                "university": data.university,
                "major": data.major,
                "year": data.year,
                "gpa": data.gpa,
                "bio": data.bio,
                "skills": encode_json(data.skills),
                "interests": encode_json(data.interests),
                "links": encode_json(data.links),
                "now": now
            }
        )

    return MessageResponse(message="Student profile created successfully")


@router.get("/profile", response_model=StudentResponse)
async def get_profile(student: dict = Depends(get_current_student)):
    """Get current student's profile."""
    results = execute_raw_sql(STUDENT_SELECT + " WHERE id = :id", {"id": student["student_id"]})
    return _row_to_student(results[0])


@router.put("/profile", response_model=MessageResponse)
async def update_profile(data: StudentUpdate, student: dict = Depends(get_current_student)):
    """Update student profile. Only provided fields are updated."""
    updates = []
    params = {"id": student["student_id"], "now": to_db_timestamp(local_now())}

    for field in ["first_name", "last_name", "university", "major", "year", "gpa", "bio"]:
        value = getattr(data, field)
        if value is not None:
            updates.append(f"{field} = :{field}")
            params[field] = value

    if data.level:
        updates.append("level = :level")
        params["level"] = data.level.value
    for field in ["skills", "interests", "links"]:
        value = getattr(data, field)
        if value is not None:
            updates.append(f"{field} = :{field}")
            params[field] = encode_json(value)

    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    with get_db_session() as db:
        db.execute(
            text(f"UPDATE students SET {', '.join(updates)}, updated_at = :now WHERE id = :id"),
            params
        )

    return MessageResponse(message="Profile updated successfully")


@router.post("/portfolio", response_model=UploadResponse)
async def upload_portfolio(
    file: UploadFile = File(..., description="Portfolio file (PDF, Word, text or image)"),
    student: dict = Depends(get_current_student)
):
    """Upload a portfolio and link it from the profile."""
    content, filename, ext = await read_upload(file, "portfolios")
    path = build_object_path(student["student_id"], "portfolios", ext)
    url = get_storage().upload(content, path)

    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE students SET portfolio_url = :url, portfolio_filename = :filename, updated_at = :now
                WHERE id = :id
            """),
            {"id": student["student_id"], "url": url, "filename": filename,
             "now": to_db_timestamp(local_now())}
        )

    return UploadResponse(url=url, filename=filename, path=path)


@router.get("/portfolio/formats")
async def get_formats():
    """Get supported upload formats per category and the size limit."""
    return get_supported_formats()


@router.get("/applications", response_model=List[ApplicationResponse])
async def get_my_applications(student: dict = Depends(get_current_student)):
    """Get all applications for current student, newest first."""
    with get_db_session() as db:
        rows = list_student_applications(db, student["student_id"])
    return [ApplicationResponse(**r) for r in rows]


@router.get("/applications/daily-count", response_model=DailyCountResponse)
async def get_daily_count(student: dict = Depends(get_current_student)):
    """How many applications the student sent today and how many are left."""
    limit = get_settings().daily_application_limit
    with get_db_session() as db:
        count = count_applications_today(db, student["student_id"])
    return DailyCountResponse(count=count, limit=limit, remaining=max(0, limit - count))


@router.get("", response_model=List[StudentResponse])
async def list_students(professor: dict = Depends(get_approved_professor)):
    """Browse all student profiles, newest first."""
    results = execute_raw_sql(STUDENT_SELECT + " ORDER BY created_at DESC, id DESC")
    return [_row_to_student(r) for r in results]
