"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, EmailStr, Field
from typing import Optional, List, Dict, Any
from datetime import datetime, date
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    professor = "professor"  # also used for organizations


class StudentLevel(str, Enum):
    high_school = "high school"
    university = "university"


class OpportunityType(str, Enum):
    remote = "Remote"
    on_site = "On-site"
    hybrid = "Hybrid"


class OpportunityStatus(str, Enum):
    open = "Open"
    closed = "Closed"


class ApplicationStatus(str, Enum):
    submitted = "submitted"
    under_review = "under_review"
    accepted = "accepted"
    rejected = "rejected"


class ReviewStatus(str, Enum):
    """Statuses a professor may set."""
    under_review = "under_review"
    accepted = "accepted"
    rejected = "rejected"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole
    name: Optional[str] = Field(None, max_length=200)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str

class AccountResponse(BaseModel):
    id: int
    email: str
    role: str
    name: Optional[str] = None
    email_confirmed: bool
    created_at: datetime

class ForgotPasswordRequest(BaseModel):
    email: EmailStr

class ForgotPasswordResponse(BaseModel):
    message: str
    # Only filled in debug mode; otherwise the link goes out of band
    reset_token: Optional[str] = None

class ResetPasswordRequest(BaseModel):
    token: str
    new_password: str = Field(..., min_length=6)

class SignUpResponse(BaseModel):
    account: AccountResponse
    # Always empty: the account is confirmed by its first sign-in
    session: Optional[TokenResponse] = None


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentCreate(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    level: Optional[StudentLevel] = None
    university: Optional[str] = None
    major: Optional[str] = None
    year: Optional[str] = None
    gpa: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = []
    interests: List[str] = []
    links: Dict[str, str] = {}

class StudentUpdate(BaseModel):
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    level: Optional[StudentLevel] = None
    university: Optional[str] = None
    major: Optional[str] = None
    year: Optional[str] = None
    gpa: Optional[str] = None
    bio: Optional[str] = None
    skills: Optional[List[str]] = None
    interests: Optional[List[str]] = None
    links: Optional[Dict[str, str]] = None

class StudentResponse(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    level: Optional[str] = None
    university: Optional[str] = None
    major: Optional[str] = None
    year: Optional[str] = None
    gpa: Optional[str] = None
    bio: Optional[str] = None
    skills: List[str] = []
    interests: List[str] = []
    links: Dict[str, str] = {}
    portfolio_url: Optional[str] = None
    portfolio_filename: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# ============================================================
# PROFESSOR / ORGANIZATION SCHEMAS
# ============================================================

class ProfessorCreate(BaseModel):
    title: Optional[str] = None
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    institution: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    orcid: Optional[str] = None
    publications: Optional[str] = None
    research_areas: List[str] = []

class ProfessorUpdate(BaseModel):
    title: Optional[str] = None
    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, min_length=1, max_length=100)
    institution: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    orcid: Optional[str] = None
    publications: Optional[str] = None
    research_areas: Optional[List[str]] = None

class ProfessorResponse(BaseModel):
    id: int
    title: Optional[str] = None
    first_name: str
    last_name: str
    email: str
    institution: Optional[str] = None
    department: Optional[str] = None
    position: Optional[str] = None
    bio: Optional[str] = None
    website: Optional[str] = None
    orcid: Optional[str] = None
    publications: Optional[str] = None
    research_areas: List[str] = []
    verification_doc_url: Optional[str] = None
    verification_doc_filename: Optional[str] = None
    approved: bool = False
    created_at: datetime
    updated_at: datetime


# ============================================================
# OPPORTUNITY SCHEMAS
# ============================================================

class OpportunityCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    tags: List[str] = []
    location: Optional[str] = None
    duration: Optional[str] = None
    compensation: Optional[str] = None
    type: OpportunityType = OpportunityType.remote
    applicant_cap: Optional[int] = Field(None, ge=0)
    application_deadline: Optional[datetime] = None
    opportunity_link: Optional[str] = None
    app_link: Optional[str] = None

class OpportunityUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = None
    location: Optional[str] = None
    duration: Optional[str] = None
    compensation: Optional[str] = None
    type: Optional[OpportunityType] = None
    status: Optional[OpportunityStatus] = None
    applicant_cap: Optional[int] = Field(None, ge=0)
    application_deadline: Optional[datetime] = None
    opportunity_link: Optional[str] = None
    app_link: Optional[str] = None

class OpportunityOwner(BaseModel):
    id: int
    first_name: str
    last_name: str
    institution: Optional[str] = None
    department: Optional[str] = None

class OpportunityResponse(BaseModel):
    id: int
    professor_id: int
    title: str
    description: str
    tags: List[str] = []
    location: Optional[str] = None
    duration: Optional[str] = None
    compensation: Optional[str] = None
    type: str
    status: str
    applicants: int
    applicant_cap: Optional[int] = None
    cap_reached_at: Optional[datetime] = None
    cap_reached_date: Optional[date] = None
    application_deadline: Optional[datetime] = None
    opportunity_link: Optional[str] = None
    app_link: Optional[str] = None
    accepting_applications: bool
    cap_banner_visible: bool
    owner: Optional[OpportunityOwner] = None
    created_at: datetime
    updated_at: datetime

class OpportunityListResponse(BaseModel):
    opportunities: List[OpportunityResponse]
    total: int
    page: int
    page_size: int


# ============================================================
# APPLICATION SCHEMAS
# ============================================================

class ApplicationCreate(BaseModel):
    message: Optional[str] = Field(None, max_length=5000)

class ApplicationStatusUpdate(BaseModel):
    status: ReviewStatus

class ApplicationResponse(BaseModel):
    id: int
    opportunity_id: int
    student_id: int
    professor_id: int
    status: str
    message: Optional[str] = None
    opportunity_title: Optional[str] = None
    student_name: Optional[str] = None
    student_email: Optional[str] = None
    created_at: datetime
    updated_at: datetime

class StatusUpdateResponse(BaseModel):
    application_id: int
    status: str
    notified: bool

class DailyCountResponse(BaseModel):
    count: int
    limit: int
    remaining: int


# ============================================================
# NOTIFICATION SCHEMAS
# ============================================================

class NotificationResponse(BaseModel):
    id: int
    user_id: int
    title: str
    body: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    read_at: Optional[datetime] = None
    created_at: datetime

class UnreadCountResponse(BaseModel):
    unread: int


# ============================================================
# FILE SCHEMAS
# ============================================================

class UploadResponse(BaseModel):
    url: str
    filename: str
    path: str


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True

class ErrorResponse(BaseModel):
    detail: str
    error: str
