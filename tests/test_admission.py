from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from marketplace.core.errors import (
    RateLimitExceeded, DuplicateApplication, CapacityReached, LookupFailed, WriteFailed, NotFound, ValidationError
)
from marketplace.db.session import get_db_session
from marketplace.schemas.schemas import OpportunityUpdate
from marketplace.services import admission_service
from marketplace.services.admission_service import (
    submit_application, check_daily_application_limit, count_applications_today
)
from marketplace.services.opportunity_service import update_opportunity


def apply(opportunity_id, student_id, professor_id, now, message=None):
    with get_db_session() as db:
        return submit_application(db, opportunity_id, student_id, professor_id, message, now=now)


class BrokenSession:
    def execute(self, statement, *args, **kwargs):
        raise OperationalError(str(statement), {}, Exception("store unavailable"))


class FailingInsertSession:
    """Reads go to the real session, inserts fail with a non-integrity error."""

    def __init__(self, db):
        self.db = db

    def execute(self, statement, *args, **kwargs):
        if str(statement).lstrip().upper().startswith("INSERT"):
            raise OperationalError(str(statement), {}, Exception("disk full"))
        return self.db.execute(statement, *args, **kwargs)


@pytest.fixture
def professor(factory):
    return factory.professor()


# ============================================================
# DAILY RATE LIMIT
# ============================================================

def test_sixth_application_same_day_is_rejected(factory, professor, fixed_now):
    s1 = factory.student()
    for hour in range(8, 13):
        opp = factory.opportunity(professor)
        factory.application(opp, s1, created_at=fixed_now.replace(hour=hour - 8))
    o7 = factory.opportunity(professor)

    with pytest.raises(RateLimitExceeded) as exc:
        apply(o7, s1, professor, fixed_now)

    assert "tomorrow" in exc.value.message
    assert factory.count("applications", "student_id = :sid", sid=s1) == 5
    assert factory.count("applications", "opportunity_id = :oid", oid=o7) == 0


def test_fifth_application_is_still_allowed(factory, professor, fixed_now):
    student = factory.student()
    for _ in range(4):
        factory.application(factory.opportunity(professor), student, created_at=fixed_now)

    apply(factory.opportunity(professor), student, professor, fixed_now)

    assert factory.count("applications", "student_id = :sid", sid=student) == 5


def test_yesterdays_applications_do_not_count(factory, professor, fixed_now):
    student = factory.student()
    late_yesterday = datetime(2024, 9, 30, 23, 59, 59, 999999)
    for _ in range(5):
        factory.application(factory.opportunity(professor), student, created_at=late_yesterday)

    with get_db_session() as db:
        assert count_applications_today(db, student, now=fixed_now) == 0
        assert check_daily_application_limit(db, student, now=fixed_now)

    apply(factory.opportunity(professor), student, professor, fixed_now)


def test_day_window_covers_midnight_to_last_second(factory, professor, fixed_now):
    student = factory.student()
    factory.application(factory.opportunity(professor), student, created_at=datetime(2024, 10, 1, 0, 0, 0))
    factory.application(factory.opportunity(professor), student, created_at=datetime(2024, 10, 1, 23, 59, 59))
    factory.application(factory.opportunity(professor), student, created_at=datetime(2024, 10, 2, 0, 0, 0))

    with get_db_session() as db:
        assert count_applications_today(db, student, now=fixed_now) == 2


def test_limit_is_per_student(factory, professor, fixed_now):
    busy, other = factory.student(), factory.student()
    for _ in range(5):
        factory.application(factory.opportunity(professor), busy, created_at=fixed_now)

    apply(factory.opportunity(professor), other, professor, fixed_now)


def test_rate_limit_is_checked_before_duplicates(factory, professor, fixed_now):
    student = factory.student()
    first = factory.opportunity(professor)
    factory.application(first, student, created_at=fixed_now)
    for _ in range(4):
        factory.application(factory.opportunity(professor), student, created_at=fixed_now)

    with pytest.raises(RateLimitExceeded):
        apply(first, student, professor, fixed_now)


def test_limit_lookup_error_is_lookup_failed():
    with pytest.raises(LookupFailed) as exc:
        check_daily_application_limit(BrokenSession(), 1)
    assert "daily application limit" in exc.value.message


# ============================================================
# DUPLICATES
# ============================================================

def test_reapplying_to_same_opportunity_is_duplicate(factory, professor, fixed_now):
    s3 = factory.student()
    o5 = factory.opportunity(professor)

    created = apply(o5, s3, professor, fixed_now, message="Keen to join")
    assert created["status"] == "submitted"
    assert created["message"] == "Keen to join"

    with pytest.raises(DuplicateApplication):
        apply(o5, s3, professor, fixed_now)

    assert factory.count("applications", "opportunity_id = :oid AND student_id = :sid", oid=o5, sid=s3) == 1


def test_unique_index_rejects_concurrent_duplicate(factory, professor, fixed_now, monkeypatch):
    student = factory.student()
    opp = factory.opportunity(professor)
    apply(opp, student, professor, fixed_now)

    # Both requests passed the lookup before either inserted
    monkeypatch.setattr(admission_service, "find_existing_application", lambda *args: None)

    with pytest.raises(DuplicateApplication):
        apply(opp, student, professor, fixed_now)

    assert factory.count("applications", "opportunity_id = :oid", oid=opp) == 1
    assert factory.fetch("opportunities", opp)["applicants"] == 1


# ============================================================
# CAPACITY
# ============================================================

def test_cap_reached_blocks_every_student(factory, professor, fixed_now):
    o2 = factory.opportunity(professor, applicant_cap=10, applicants=10,
                             cap_reached_at="2024-10-01T00:00:00Z", cap_reached_date="2024-10-01")

    for _ in range(3):
        with pytest.raises(CapacityReached) as exc:
            apply(o2, factory.student(), professor, fixed_now)
        assert "no longer accepting" in exc.value.message

    assert factory.count("applications", "opportunity_id = :oid", oid=o2) == 0


def test_cap_reached_is_permanent(factory, professor, fixed_now):
    opp = factory.opportunity(professor, applicant_cap=10, applicants=10,
                              cap_reached_at="2024-10-01T00:00:00Z", cap_reached_date="2024-10-01")

    with get_db_session() as db:
        update_opportunity(db, opp, professor, OpportunityUpdate(applicant_cap=50))

    a_year_later = fixed_now + timedelta(days=365)
    with pytest.raises(CapacityReached):
        apply(opp, factory.student(), professor, a_year_later)

    assert factory.fetch("opportunities", opp)["cap_reached_at"] is not None


def test_counter_reaches_cap_and_closes_listing(factory, professor, fixed_now):
    opp = factory.opportunity(professor, applicant_cap=2)

    apply(opp, factory.student(), professor, fixed_now)
    row = factory.fetch("opportunities", opp)
    assert row["applicants"] == 1
    assert row["cap_reached_at"] is None

    apply(opp, factory.student(), professor, fixed_now)
    row = factory.fetch("opportunities", opp)
    assert row["applicants"] == 2
    assert row["cap_reached_at"] is not None
    assert str(row["cap_reached_date"]) == "2024-10-01"

    with pytest.raises(CapacityReached):
        apply(opp, factory.student(), professor, fixed_now)
    assert factory.fetch("opportunities", opp)["applicants"] == 2


def test_zero_cap_means_uncapped(factory, professor, fixed_now):
    opp = factory.opportunity(professor, applicant_cap=0)
    for _ in range(3):
        apply(opp, factory.student(), professor, fixed_now)

    row = factory.fetch("opportunities", opp)
    assert row["applicants"] == 3
    assert row["cap_reached_at"] is None


def test_missing_opportunity_is_not_found(factory, professor, fixed_now):
    with pytest.raises(NotFound):
        apply(9999, factory.student(), professor, fixed_now)


def test_professor_must_own_the_opportunity(factory, professor, fixed_now):
    opp = factory.opportunity(professor)
    stranger = factory.professor(first_name="Grace", last_name="Hopper")

    with pytest.raises(ValidationError):
        apply(opp, factory.student(), stranger, fixed_now)
    assert factory.count("applications") == 0


def test_submission_creates_no_notification(factory, professor, fixed_now):
    student = factory.student()
    apply(factory.opportunity(professor), student, professor, fixed_now)

    assert factory.count("notifications") == 0


# ============================================================
# STORE ERRORS
# ============================================================

def test_duplicate_lookup_error_is_lookup_failed(monkeypatch):
    monkeypatch.setattr(admission_service, "check_daily_application_limit", lambda *args: True)

    with pytest.raises(LookupFailed) as exc:
        submit_application(BrokenSession(), 1, 2, 3)
    assert "existing applications" in exc.value.message


def test_capacity_lookup_error_is_lookup_failed(monkeypatch):
    monkeypatch.setattr(admission_service, "check_daily_application_limit", lambda *args: True)
    monkeypatch.setattr(admission_service, "find_existing_application", lambda *args: None)

    with pytest.raises(LookupFailed) as exc:
        submit_application(BrokenSession(), 1, 2, 3)
    assert "opportunity status" in exc.value.message


def test_insert_error_is_write_failed(factory, professor, fixed_now):
    student = factory.student()
    opp = factory.opportunity(professor, applicant_cap=1)

    with pytest.raises(WriteFailed):
        with get_db_session() as db:
            submit_application(FailingInsertSession(db), opp, student, professor, now=fixed_now)

    assert factory.count("applications") == 0
    row = factory.fetch("opportunities", opp)
    assert row["applicants"] == 0
    assert row["cap_reached_at"] is None
