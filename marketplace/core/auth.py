"""
Authentication Utility - JWT and Password handling.

Provides:
- Password hashing with bcrypt
- JWT token creation/verification (with a revocable token id)
- FastAPI dependencies that resolve the caller's session context

The session context is a plain dict passed explicitly into route handlers:
    {"user_id", "email", "role", "jti", "email_confirmed"}
plus "student_id" or "professor_id"/"approved" for role-specific dependencies.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import text

from marketplace.core.config import get_settings
from marketplace.db.session import get_db_session

settings = get_settings()

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# Bearer token extractor
bearer_scheme = HTTPBearer()

RESET_PURPOSE = "reset"


def hash_password(password: str) -> str:
    """Hash password with bcrypt."""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify password against hash."""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token. Every token gets its own ``jti`` so it can be revoked."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    to_encode.update({"exp": expire, "jti": uuid.uuid4().hex})
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    """Decode and verify JWT token."""
    try:
        return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None


def create_reset_token(account_id: int) -> str:
    """Short-lived single-purpose token for the password reset link."""
    return create_access_token(
        {"sub": str(account_id), "purpose": RESET_PURPOSE},
        expires_delta=timedelta(minutes=settings.reset_token_expire_minutes)
    )


async def get_current_account(credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme)) -> dict:
    """
    FastAPI dependency - Get current authenticated account.

    Usage:
        @router.get("/protected")
        async def route(account: dict = Depends(get_current_account)):
            return account
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or expired token",
        headers={"WWW-Authenticate": "Bearer"},
    )

    payload = decode_token(credentials.credentials)
    if not payload:
        raise credentials_exception

    user_id = payload.get("sub")
    jti = payload.get("jti")
    # Purpose tokens (password reset) never open a session
    if not user_id or not jti or payload.get("purpose"):
        raise credentials_exception

    with get_db_session() as db:
        revoked = db.execute(
            text("SELECT jti FROM revoked_tokens WHERE jti = :jti"),
            {"jti": jti}
        ).fetchone()
        user = db.execute(
            text("SELECT id, email, role, email_confirmed FROM accounts WHERE id = :id"),
            {"id": int(user_id)}
        ).fetchone()

    if revoked or not user:
        raise credentials_exception

    return {
        "user_id": user[0], "email": user[1], "role": user[2],
        "email_confirmed": bool(user[3]), "jti": jti,
    }


async def get_current_student(account: dict = Depends(get_current_account)) -> dict:
    """Dependency - Require student role and an existing profile."""
    if account["role"] != "student":
        raise HTTPException(status_code=403, detail="Students only")

    with get_db_session() as db:
        row = db.execute(
            text("SELECT id FROM students WHERE id = :id"),
            {"id": account["user_id"]}
        ).fetchone()

    if not row:
        raise HTTPException(status_code=404, detail="Student profile not found. Create profile first.")

    account["student_id"] = row[0]
    return account


async def get_current_professor(account: dict = Depends(get_current_account)) -> dict:
    """Dependency - Require professor role and an existing profile (approved or not)."""
    if account["role"] != "professor":
        raise HTTPException(status_code=403, detail="Professors and organizations only")

    with get_db_session() as db:
        row = db.execute(
            text("SELECT id, approved FROM professors WHERE id = :id"),
            {"id": account["user_id"]}
        ).fetchone()

    if not row:
        raise HTTPException(status_code=404, detail="Professor profile not found. Create profile first.")

    account["professor_id"] = row[0]
    account["approved"] = bool(row[1])
    return account


async def get_approved_professor(professor: dict = Depends(get_current_professor)) -> dict:
    """Dependency - Professor whose email is confirmed and who was approved out-of-band."""
    if not professor["email_confirmed"]:
        raise HTTPException(status_code=403, detail="Please confirm your email before continuing")
    if not professor["approved"]:
        raise HTTPException(status_code=403, detail="Your account is pending approval")
    return professor
