"""
Professor / Organization Routes

POST /professors/profile - Create profile (starts unapproved)
GET /professors/profile - Get own profile
PUT /professors/profile - Update profile
POST /professors/verification - Upload verification document
GET /professors - Browse professors and organizations
GET /professors/applications - Applications received (approved only)
PUT /professors/applications/{id}/status - Review an application (approved only)
"""

from fastapi import APIRouter, HTTPException, Depends, Query, UploadFile, File
from sqlalchemy import text
from typing import List, Optional

from marketplace.db.session import get_db_session, execute_raw_sql
from marketplace.core.auth import get_current_account, get_current_professor, get_approved_professor
from marketplace.services.application_service import list_professor_applications, review_application
from marketplace.services.storage_service import build_object_path, get_storage
from marketplace.utils.file_upload import read_upload
from marketplace.utils.serialization import encode_json, decode_json
from marketplace.utils.timeutils import local_now, to_db_timestamp
from marketplace.schemas.schemas import (
    ProfessorCreate, ProfessorUpdate, ProfessorResponse, ApplicationResponse,
    ApplicationStatus, ApplicationStatusUpdate, StatusUpdateResponse, UploadResponse, MessageResponse
)

router = APIRouter(prefix="/professors", tags=["Professors"])

PROFESSOR_SELECT = """
    SELECT id, title, first_name, last_name, email, institution, department, position, bio,
           website, orcid, publications, research_areas, verification_doc_url,
           verification_doc_filename, approved, created_at, updated_at
    FROM professors
"""


def _row_to_professor(r: dict) -> ProfessorResponse:
    return ProfessorResponse(
        **{k: r[k] for k in r.keys() if k not in ("research_areas", "approved")},
        research_areas=decode_json(r["research_areas"], []),
        approved=bool(r["approved"]),
    )


@router.post("/profile", response_model=MessageResponse, status_code=201)
async def create_profile(data: ProfessorCreate, account: dict = Depends(get_current_account)):
    """Create professor/organization profile. Approval happens out-of-band."""
    if account["role"] != "professor":
        raise HTTPException(status_code=403, detail="Only professor accounts can create professor profiles")

    now = to_db_timestamp(local_now())
    with get_db_session() as db:
        result = db.execute(
            text("SELECT id FROM professors WHERE id = :id"),
            {"id": account["user_id"]}
        )
        if result.fetchone():
            raise HTTPException(status_code=400, detail="Profile already exists")

        db.execute(
            text("""
                INSERT INTO professors (id, title, first_name, last_name, email, institution, department,
                    position, bio, website, orcid, publications, research_areas, approved,
                    created_at, updated_at)
                VALUES (:id, :title, :first_name, :last_name, :email, :institution, :department,
                    :position, :bio, :website, :orcid, :publications, :research_areas, FALSE,
                    :now, :now)
            """),
            {
                "id": account["user_id"],
                "title": data.title,
                "first_name": data.first_name,
                "last_name": data.last_name,
                "email": account["email"],
                "institution": data.institution,
                "department": data.department,
                "position": data.position,
                "bio": data.bio,
                "website": data.website,
                "orcid": data.orcid,
                "publications": data.publications,
                "research_areas": encode_json(data.research_areas),
                "now": now
            }
        )

    return MessageResponse(message="Profile created. It will be visible once approved.")


@router.get("/profile", response_model=ProfessorResponse)
async def get_profile(professor: dict = Depends(get_current_professor)):
    """Get current professor's profile, including approval state."""
    results = execute_raw_sql(PROFESSOR_SELECT + " WHERE id = :id", {"id": professor["professor_id"]})
    return _row_to_professor(results[0])


@router.put("/profile", response_model=MessageResponse)
async def update_profile(data: ProfessorUpdate, professor: dict = Depends(get_current_professor)):
    """Update profile. The approval flag is not editable here."""
    updates = []
    params = {"id": professor["professor_id"], "now": to_db_timestamp(local_now())}

    for field in ["title", "first_name", "last_name", "institution", "department", "position",
                  "bio", "website", "orcid", "publications"]:
        value = getattr(data, field)
        if value is not None:
            updates.append(f"{field} = :{field}")
            params[field] = value

    if data.research_areas is not None:
        updates.append("research_areas = :research_areas")
        params["research_areas"] = encode_json(data.research_areas)

    if not updates:
        raise HTTPException(status_code=400, detail="No fields to update")

    with get_db_session() as db:
        db.execute(
            text(f"UPDATE professors SET {', '.join(updates)}, updated_at = :now WHERE id = :id"),
            params
        )

    return MessageResponse(message="Profile updated successfully")


@router.post("/verification", response_model=UploadResponse)
async def upload_verification(
    file: UploadFile = File(..., description="Verification document (PDF or image)"),
    professor: dict = Depends(get_current_professor)
):
    """Upload the document reviewers use to approve the account."""
    content, filename, ext = await read_upload(file, "verification")
    path = build_object_path(professor["professor_id"], "verification", ext)
    url = get_storage().upload(content, path)

    with get_db_session() as db:
        db.execute(
            text("""
                UPDATE professors SET verification_doc_url = :url, verification_doc_filename = :filename,
                    updated_at = :now
                WHERE id = :id
            """),
            {"id": professor["professor_id"], "url": url, "filename": filename,
             "now": to_db_timestamp(local_now())}
        )

    return UploadResponse(url=url, filename=filename, path=path)


@router.get("", response_model=List[ProfessorResponse])
async def list_professors(account: dict = Depends(get_current_account)):
    """Browse all professor/organization profiles, newest first."""
    results = execute_raw_sql(PROFESSOR_SELECT + " ORDER BY created_at DESC, id DESC")
    return [_row_to_professor(r) for r in results]


@router.get("/applications", response_model=List[ApplicationResponse])
async def get_applications(
    opportunity_id: Optional[int] = Query(None),
    status: Optional[ApplicationStatus] = Query(None),
    professor: dict = Depends(get_approved_professor)
):
    """Get all applications for this professor's opportunities."""
    with get_db_session() as db:
        rows = list_professor_applications(
            db, professor["professor_id"], opportunity_id, status.value if status else None
        )
    return [ApplicationResponse(**r) for r in rows]


@router.put("/applications/{application_id}/status", response_model=StatusUpdateResponse)
async def update_application_status(
    application_id: int,
    update: ApplicationStatusUpdate,
    professor: dict = Depends(get_approved_professor)
):
    """
    Move an application to under_review, accepted or rejected.
    Accepting or rejecting notifies the student.
    """
    notified = review_application(application_id, update.status.value, professor["professor_id"])
    return StatusUpdateResponse(application_id=application_id, status=update.status.value, notified=notified)
