"""
Opportunity Routes

POST /opportunities - Post an opportunity (approved professor)
GET /opportunities - Search/list opportunities
GET /opportunities/{opportunity_id} - Get opportunity details
PUT /opportunities/{opportunity_id} - Update own opportunity (incl. Open/Closed)
POST /opportunities/{opportunity_id}/apply - Apply (student only)
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional

from marketplace.db.session import get_db_session
from marketplace.core.auth import get_current_account, get_current_student, get_approved_professor
from marketplace.services.admission_service import submit_application
from marketplace.services.opportunity_service import (
    create_opportunity, get_opportunity, search_opportunities, update_opportunity
)
from marketplace.schemas.schemas import (
    OpportunityCreate, OpportunityUpdate, OpportunityResponse, OpportunityListResponse,
    OpportunityType, OpportunityStatus, ApplicationCreate, ApplicationResponse, MessageResponse, ErrorResponse
)

router = APIRouter(prefix="/opportunities", tags=["Opportunities"])


@router.post("", response_model=OpportunityResponse, status_code=201)
async def post_opportunity(data: OpportunityCreate, professor: dict = Depends(get_approved_professor)):
    """Create a new opportunity. Only approved professors/organizations can post."""
    with get_db_session() as db:
        opportunity_id = create_opportunity(db, professor["professor_id"], data)
        opportunity = get_opportunity(db, opportunity_id)
    return OpportunityResponse(**opportunity)


@router.get("", response_model=OpportunityListResponse)
async def list_opportunities(
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=50),
    q: Optional[str] = Query(None, description="Search title, description, tags or organization"),
    type: Optional[OpportunityType] = Query(None),
    status: Optional[OpportunityStatus] = Query(None),
    professor_id: Optional[int] = Query(None),
    account: dict = Depends(get_current_account)
):
    """List opportunities with search, filters and pagination, newest first."""
    with get_db_session() as db:
        opportunities, total = search_opportunities(
            db, q=q,
            type=type.value if type else None,
            status=status.value if status else None,
            professor_id=professor_id,
            page=page, page_size=page_size
        )
    return OpportunityListResponse(
        opportunities=[OpportunityResponse(**o) for o in opportunities],
        total=total, page=page, page_size=page_size
    )


@router.get("/{opportunity_id}", response_model=OpportunityResponse)
async def get_opportunity_detail(opportunity_id: int, account: dict = Depends(get_current_account)):
    """Get details of a specific opportunity."""
    with get_db_session() as db:
        return OpportunityResponse(**get_opportunity(db, opportunity_id))


@router.put("/{opportunity_id}", response_model=MessageResponse)
async def edit_opportunity(
    opportunity_id: int,
    update: OpportunityUpdate,
    professor: dict = Depends(get_approved_professor)
):
    """Update an opportunity. Only the owner can update; listings are closed, never deleted."""
    with get_db_session() as db:
        update_opportunity(db, opportunity_id, professor["professor_id"], update)
    return MessageResponse(message="Opportunity updated successfully")


@router.post(
    "/{opportunity_id}/apply",
    response_model=ApplicationResponse,
    status_code=201,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse, "description": "Duplicate application or applicant cap reached"},
        429: {"model": ErrorResponse, "description": "Daily application limit reached"},
    }
)
async def apply_to_opportunity(
    opportunity_id: int,
    application: ApplicationCreate,
    student: dict = Depends(get_current_student)
):
    """
    Apply to an opportunity.

    Refused when the daily limit is used up, when the student already
    applied, or when the opportunity's applicant cap was reached.
    """
    with get_db_session() as db:
        opportunity = get_opportunity(db, opportunity_id)
        created = submit_application(
            db,
            opportunity_id=opportunity_id,
            student_id=student["student_id"],
            professor_id=opportunity["professor_id"],
            message=application.message,
        )
    return ApplicationResponse(**created, opportunity_title=opportunity["title"])
