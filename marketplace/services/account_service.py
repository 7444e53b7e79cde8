"""
Account Service - identity records and their maintenance.

- sign-up / sign-in / sign-out
- password reset through a single-use reset token
- email confirmation on first successful sign-in
- out-of-band approval of professor (organization) accounts
- removal of accounts that never confirmed
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.auth import (
    hash_password, verify_password, create_reset_token, decode_token, RESET_PURPOSE
)
from marketplace.core.config import get_settings
from marketplace.core.errors import ValidationError, NotFound, WriteFailed
from marketplace.utils.timeutils import local_now, to_db_timestamp

logger = logging.getLogger(__name__)

ACCOUNT_SELECT = "SELECT id, email, role, name, email_confirmed, created_at FROM accounts"


def _row_to_account(row) -> dict:
    return {
        "id": row[0], "email": row[1], "role": row[2], "name": row[3],
        "email_confirmed": bool(row[4]), "created_at": row[5],
    }


def get_account(db: Session, account_id: int) -> dict:
    row = db.execute(text(ACCOUNT_SELECT + " WHERE id = :id"), {"id": account_id}).fetchone()
    if not row:
        raise NotFound("Account not found")
    return _row_to_account(row)


def register_account(db: Session, email: str, password: str, role: str, name: Optional[str] = None,
                     now: Optional[datetime] = None) -> dict:
    """Create an unconfirmed account. Emails are unique, compared case-insensitively."""
    email = email.strip().lower()
    existing = db.execute(text("SELECT id FROM accounts WHERE email = :email"), {"email": email}).fetchone()
    if existing:
        raise ValidationError("An account with this email already exists. Please try logging in instead.")

    try:
        result = db.execute(
            text("""
                INSERT INTO accounts (email, password_hash, role, name, email_confirmed, created_at)
                VALUES (:email, :password_hash, :role, :name, FALSE, :now)
                RETURNING id
            """),
            {
                "email": email, "password_hash": hash_password(password), "role": role,
                "name": name or None, "now": to_db_timestamp(now or local_now())
            }
        )
        account_id = result.scalar()
    except IntegrityError as e:
        raise ValidationError("An account with this email already exists. Please try logging in instead.") from e
    except SQLAlchemyError as e:
        logger.error("Account insert failed: %s", e)
        raise WriteFailed("Could not create account") from e

    logger.info("Registered %s account %s", role, account_id)
    return get_account(db, account_id)


def authenticate(db: Session, email: str, password: str) -> Optional[dict]:
    """
    Check credentials. On success the account counts as confirmed from now on.
    Returns the account or None.
    """
    row = db.execute(
        text("SELECT id, password_hash FROM accounts WHERE email = :email"),
        {"email": email.strip().lower()}
    ).fetchone()
    if not row or not verify_password(password, row[1]):
        return None

    db.execute(
        text("UPDATE accounts SET email_confirmed = TRUE WHERE id = :id AND email_confirmed = FALSE"),
        {"id": row[0]}
    )
    return get_account(db, row[0])


def revoke_token(db: Session, jti: str, account_id: int, now: Optional[datetime] = None) -> None:
    """Sign-out: the token id is refused from now on."""
    try:
        db.execute(
            text("INSERT INTO revoked_tokens (jti, account_id, revoked_at) VALUES (:jti, :aid, :now)"),
            {"jti": jti, "aid": account_id, "now": to_db_timestamp(now or local_now())}
        )
    except SQLAlchemyError as e:
        raise WriteFailed("Could not sign out") from e


def request_password_reset(db: Session, email: str) -> Optional[str]:
    """Reset token for the account with this email, or None when there is no such account."""
    row = db.execute(
        text("SELECT id FROM accounts WHERE email = :email"),
        {"email": email.strip().lower()}
    ).fetchone()
    if not row:
        logger.info("Password reset requested for unknown email")
        return None
    return create_reset_token(row[0])


def reset_password(db: Session, token: str, new_password: str, now: Optional[datetime] = None) -> None:
    """
    Set a new password from a reset token. The token works once: its
    ``jti`` is revoked in the same transaction.
    """
    invalid = ValidationError("Invalid or expired reset link")
    payload = decode_token(token)
    if not payload or payload.get("purpose") != RESET_PURPOSE or not payload.get("jti"):
        raise invalid

    jti = payload["jti"]
    account_id = int(payload["sub"])
    used = db.execute(text("SELECT jti FROM revoked_tokens WHERE jti = :jti"), {"jti": jti}).fetchone()
    if used:
        raise invalid

    result = db.execute(
        text("UPDATE accounts SET password_hash = :password_hash WHERE id = :id"),
        {"id": account_id, "password_hash": hash_password(new_password)}
    )
    if result.rowcount == 0:
        raise invalid
    revoke_token(db, jti, account_id, now)
    logger.info("Password reset for account %s", account_id)


def approve_professor(db: Session, professor_id: int, approved: bool = True) -> None:
    """Out-of-band approval switch for professor/organization profiles."""
    result = db.execute(
        text("UPDATE professors SET approved = :approved WHERE id = :id"),
        {"id": professor_id, "approved": approved}
    )
    if result.rowcount == 0:
        raise NotFound(f"Professor profile {professor_id} not found")
    logger.info("Professor %s approval set to %s", professor_id, approved)


def cleanup_unconfirmed_accounts(db: Session, now: Optional[datetime] = None) -> int:
    """
    Delete accounts (and their profiles) that were never confirmed and are
    older than the configured TTL. Returns the number of accounts removed.
    """
    ttl = get_settings().unconfirmed_account_ttl_hours
    cutoff = to_db_timestamp((now or local_now()) - timedelta(hours=ttl))
    params = {"cutoff": cutoff}
    stale = "SELECT id FROM accounts WHERE email_confirmed = FALSE AND created_at < :cutoff"

    try:
        count = db.execute(text(f"SELECT COUNT(*) FROM ({stale}) stale"), params).scalar()
        if not count:
            return 0
        # Children first; SQLite does not enforce ON DELETE CASCADE by default
        db.execute(text(f"DELETE FROM revoked_tokens WHERE account_id IN ({stale})"), params)
        db.execute(text(f"DELETE FROM students WHERE id IN ({stale})"), params)
        db.execute(text(f"DELETE FROM professors WHERE id IN ({stale})"), params)
        db.execute(text(f"DELETE FROM accounts WHERE id IN ({stale})"), params)
    except SQLAlchemyError as e:
        logger.error("Unconfirmed account cleanup failed: %s", e)
        raise WriteFailed("Cleanup failed") from e

    logger.info("Removed %s unconfirmed accounts", count)
    return int(count)

