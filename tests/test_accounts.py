from datetime import timedelta

import pytest

from marketplace.core.errors import NotFound, ValidationError
from marketplace.db.session import get_db_session
from marketplace.services.account_service import (
    register_account, authenticate, approve_professor, cleanup_unconfirmed_accounts,
    request_password_reset, reset_password
)


def test_cleanup_removes_only_stale_unconfirmed_accounts(factory, fixed_now):
    stale_student = factory.student(confirmed=False, created_at=fixed_now - timedelta(hours=25))
    stale_professor = factory.professor(confirmed=False, created_at=fixed_now - timedelta(days=3))
    fresh = factory.account("student", confirmed=False, created_at=fixed_now - timedelta(hours=2))
    confirmed = factory.account("student", confirmed=True, created_at=fixed_now - timedelta(days=30))

    with get_db_session() as db:
        removed = cleanup_unconfirmed_accounts(db, now=fixed_now)

    assert removed == 2
    assert factory.fetch("accounts", stale_student) is None
    assert factory.fetch("students", stale_student) is None
    assert factory.fetch("professors", stale_professor) is None
    assert factory.fetch("accounts", fresh) is not None
    assert factory.fetch("accounts", confirmed) is not None


def test_cleanup_with_nothing_to_do(factory, fixed_now):
    factory.account("student", created_at=fixed_now - timedelta(days=2))

    with get_db_session() as db:
        assert cleanup_unconfirmed_accounts(db, now=fixed_now) == 0


def test_approve_and_revoke_professor(factory):
    professor = factory.professor(approved=False)

    with get_db_session() as db:
        approve_professor(db, professor)
    assert factory.fetch("professors", professor)["approved"]

    with get_db_session() as db:
        approve_professor(db, professor, approved=False)
    assert not factory.fetch("professors", professor)["approved"]


def test_approve_unknown_professor(factory):
    with pytest.raises(NotFound):
        with get_db_session() as db:
            approve_professor(db, 404)


def test_authenticate_confirms_once(factory, fixed_now):
    with get_db_session() as db:
        account = register_account(db, "Ola@Uni.edu", "secret123", "professor", now=fixed_now)
    assert account["email"] == "ola@uni.edu"
    assert account["email_confirmed"] is False

    with get_db_session() as db:
        assert authenticate(db, "ola@uni.edu", "wrong-password") is None
    assert not factory.fetch("accounts", account["id"])["email_confirmed"]

    with get_db_session() as db:
        signed_in = authenticate(db, "OLA@uni.edu", "secret123")
    assert signed_in["email_confirmed"] is True


def test_register_same_email_twice(factory):
    with get_db_session() as db:
        register_account(db, "ola@uni.edu", "secret123", "student")

    with pytest.raises(ValidationError):
        with get_db_session() as db:
            register_account(db, "ola@uni.edu", "other-secret", "professor")


def test_reset_password_works_once(factory, fixed_now):
    with get_db_session() as db:
        account = register_account(db, "ola@uni.edu", "secret123", "student")
    with get_db_session() as db:
        token = request_password_reset(db, "OLA@uni.edu")

    with get_db_session() as db:
        reset_password(db, token, "brand-new", now=fixed_now)
    assert factory.count("revoked_tokens", "account_id = :aid", aid=account["id"]) == 1

    with get_db_session() as db:
        assert authenticate(db, "ola@uni.edu", "brand-new") is not None
        assert authenticate(db, "ola@uni.edu", "secret123") is None

    with pytest.raises(ValidationError):
        with get_db_session() as db:
            reset_password(db, token, "again-and-again")


def test_reset_request_for_unknown_email(factory):
    with get_db_session() as db:
        assert request_password_reset(db, "ghost@uni.edu") is None


def test_reset_rejects_garbage_token(factory):
    with pytest.raises(ValidationError):
        with get_db_session() as db:
            reset_password(db, "not-a-jwt", "brand-new")
