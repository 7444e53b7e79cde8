"""
Table definitions.

Queries in this project are written as plain SQL with ``text()``; these
tables exist so the schema (keys, defaults, the unique index on
applications) lives in one place and can be created with ``create_all``.

List/map columns (tags, skills, links, notification payloads) are stored
as JSON text and decoded in Python, so the same SQL works on PostgreSQL
and SQLite.
"""

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Text, Boolean, DateTime, Date,
    ForeignKey, UniqueConstraint, CheckConstraint, Index
)

metadata = MetaData()


accounts = Table(
    "accounts", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False),  # student | professor
    Column("name", String(200)),
    Column("email_confirmed", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False),
    CheckConstraint("role IN ('student', 'professor')", name="ck_accounts_role"),
)

revoked_tokens = Table(
    "revoked_tokens", metadata,
    Column("jti", String(64), primary_key=True),
    Column("account_id", Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
    Column("revoked_at", DateTime, nullable=False),
)

students = Table(
    "students", metadata,
    Column("id", Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False),
    Column("level", String(20)),  # high school | university
    Column("university", String(200)),
    Column("major", String(200)),
    Column("year", String(20)),
    Column("gpa", String(20)),
    Column("bio", Text),
    Column("skills", Text),
    Column("interests", Text),
    Column("links", Text),
    Column("portfolio_url", Text),
    Column("portfolio_filename", String(255)),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

# Organizations post under the "professor" role
professors = Table(
    "professors", metadata,
    Column("id", Integer, ForeignKey("accounts.id", ondelete="CASCADE"), primary_key=True),
    Column("title", String(50)),
    Column("first_name", String(100), nullable=False),
    Column("last_name", String(100), nullable=False),
    Column("email", String(255), nullable=False),
    Column("institution", String(200)),
    Column("department", String(200)),
    Column("position", String(200)),
    Column("bio", Text),
    Column("website", String(500)),
    Column("orcid", String(50)),
    Column("publications", Text),
    Column("research_areas", Text),
    Column("verification_doc_url", Text),
    Column("verification_doc_filename", String(255)),
    Column("approved", Boolean, nullable=False, default=False),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
)

opportunities = Table(
    "opportunities", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("professor_id", Integer, ForeignKey("professors.id", ondelete="CASCADE"), nullable=False),
    Column("title", String(200), nullable=False),
    Column("description", Text, nullable=False),
    Column("tags", Text),
    Column("location", String(200)),
    Column("duration", String(100)),
    Column("compensation", String(100)),
    Column("type", String(20), nullable=False, default="Remote"),
    Column("status", String(20), nullable=False, default="Open"),
    Column("applicants", Integer, nullable=False, default=0),
    Column("applicant_cap", Integer),
    Column("cap_reached_at", DateTime),
    Column("cap_reached_date", Date),
    Column("application_deadline", DateTime),
    Column("opportunity_link", Text),
    Column("app_link", Text),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    CheckConstraint("applicants >= 0", name="ck_opportunities_applicants"),
    CheckConstraint("applicant_cap IS NULL OR applicant_cap >= 0", name="ck_opportunities_cap"),
    CheckConstraint("type IN ('Remote', 'On-site', 'Hybrid')", name="ck_opportunities_type"),
    CheckConstraint("status IN ('Open', 'Closed')", name="ck_opportunities_status"),
)

applications = Table(
    "applications", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("opportunity_id", Integer, ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.id", ondelete="CASCADE"), nullable=False),
    Column("professor_id", Integer, ForeignKey("professors.id", ondelete="CASCADE"), nullable=False),
    Column("status", String(20), nullable=False, default="submitted"),
    Column("message", Text),
    Column("created_at", DateTime, nullable=False),
    Column("updated_at", DateTime, nullable=False),
    # The real duplicate guard; the pre-insert lookup only gives a nicer error
    UniqueConstraint("opportunity_id", "student_id", name="uq_applications_opportunity_student"),
    CheckConstraint(
        "status IN ('submitted', 'under_review', 'accepted', 'rejected')",
        name="ck_applications_status",
    ),
)
Index("ix_applications_student_created", applications.c.student_id, applications.c.created_at)
Index("ix_applications_professor", applications.c.professor_id)

notifications = Table(
    "notifications", metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("user_id", Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
    Column("title", String(200), nullable=False),
    Column("body", Text),
    Column("data", Text),
    Column("read_at", DateTime),
    Column("created_at", DateTime, nullable=False),
)
Index("ix_notifications_user", notifications.c.user_id, notifications.c.created_at)
