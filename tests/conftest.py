from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from marketplace.core.auth import create_access_token
from marketplace.core.config import get_settings
from marketplace.db.session import configure_engine, init_db, get_db_session
from marketplace.utils.serialization import encode_json
from marketplace.utils.timeutils import local_now, to_db_timestamp


class Factory:
    """Writes rows straight into the test database (no password hashing, no HTTP)."""

    def __init__(self):
        self._seq = 0

    def _next(self) -> int:
        self._seq += 1
        return self._seq

    def _stamp(self, when):
        if when is None:
            return to_db_timestamp(local_now())
        return when if isinstance(when, str) else to_db_timestamp(when)

    def account(self, role: str, email: str = None, confirmed: bool = True, created_at=None) -> int:
        email = email or f"{role}{self._next()}@uni.edu"
        with get_db_session() as db:
            return db.execute(
                text("""
                    INSERT INTO accounts (email, password_hash, role, name, email_confirmed, created_at)
                    VALUES (:email, 'x', :role, :name, :confirmed, :created_at)
                    RETURNING id
                """),
                {"email": email, "role": role, "name": email.split("@")[0],
                 "confirmed": confirmed, "created_at": self._stamp(created_at)}
            ).scalar()

    def student(self, first_name: str = "Sam", last_name: str = "Student", **kwargs) -> int:
        account_id = self.account("student", **kwargs)
        now = self._stamp(None)
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO students (id, first_name, last_name, email, skills, interests, links,
                        created_at, updated_at)
                    SELECT id, :first, :last, email, '[]', '[]', '{}', :now, :now FROM accounts WHERE id = :id
                """),
                {"id": account_id, "first": first_name, "last": last_name, "now": now}
            )
        return account_id

    def professor(self, first_name: str = "Ada", last_name: str = "Lovelace", approved: bool = True,
                  institution: str = "Acme Labs", **kwargs) -> int:
        account_id = self.account("professor", **kwargs)
        now = self._stamp(None)
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO professors (id, first_name, last_name, email, institution, research_areas,
                        approved, created_at, updated_at)
                    SELECT id, :first, :last, email, :institution, '[]', :approved, :now, :now
                    FROM accounts WHERE id = :id
                """),
                {"id": account_id, "first": first_name, "last": last_name,
                 "institution": institution, "approved": approved, "now": now}
            )
        return account_id

    def opportunity(self, professor_id: int, title: str = None, tags=None, applicant_cap=None,
                    applicants: int = 0, cap_reached_at=None, cap_reached_date=None,
                    type: str = "Remote", status: str = "Open", created_at=None) -> int:
        title = title or f"Opportunity {self._next()}"
        with get_db_session() as db:
            return db.execute(
                text("""
                    INSERT INTO opportunities (professor_id, title, description, tags, type, status,
                        applicants, applicant_cap, cap_reached_at, cap_reached_date, created_at, updated_at)
                    VALUES (:pid, :title, :description, :tags, :type, :status,
                        :applicants, :cap, :cap_at, :cap_date, :now, :now)
                    RETURNING id
                """),
                {"pid": professor_id, "title": title, "description": f"About {title}",
                 "tags": encode_json(tags or []), "type": type, "status": status,
                 "applicants": applicants, "cap": applicant_cap,
                 "cap_at": cap_reached_at, "cap_date": cap_reached_date,
                 "now": self._stamp(created_at)}
            ).scalar()

    def application(self, opportunity_id: int, student_id: int, created_at=None,
                    status: str = "submitted") -> int:
        stamp = self._stamp(created_at)
        with get_db_session() as db:
            return db.execute(
                text("""
                    INSERT INTO applications (opportunity_id, student_id, professor_id, status,
                        created_at, updated_at)
                    SELECT id, :sid, professor_id, :status, :now, :now FROM opportunities WHERE id = :oid
                    RETURNING id
                """),
                {"oid": opportunity_id, "sid": student_id, "status": status, "now": stamp}
            ).scalar()

    def count(self, table: str, where: str = "1 = 1", **params) -> int:
        with get_db_session() as db:
            return db.execute(text(f"SELECT COUNT(*) FROM {table} WHERE {where}"), params).scalar()

    def fetch(self, table: str, row_id: int) -> dict:
        with get_db_session() as db:
            row = db.execute(text(f"SELECT * FROM {table} WHERE id = :id"), {"id": row_id}).mappings().fetchone()
        return dict(row) if row else None


@pytest.fixture
def database(tmp_path):
    configure_engine(f"sqlite:///{tmp_path / 'marketplace.db'}")
    init_db()
    yield


@pytest.fixture
def factory(database):
    return Factory()


@pytest.fixture
def storage_dir(tmp_path, monkeypatch):
    path = tmp_path / "user_files"
    monkeypatch.setattr(get_settings(), "storage_dir", str(path))
    return path


@pytest.fixture
def client(database, storage_dir):
    from marketplace.main import app
    return TestClient(app)


@pytest.fixture
def fixed_now():
    return datetime(2024, 10, 1, 12, 0, 0)


@pytest.fixture
def auth_headers():
    """Bearer header for an account created by the factory."""
    def make(account_id: int, role: str) -> dict:
        token = create_access_token({"sub": str(account_id), "role": role})
        return {"Authorization": f"Bearer {token}"}
    return make
