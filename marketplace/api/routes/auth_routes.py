"""
Authentication Routes

POST /auth/register - Sign up (account starts unconfirmed)
POST /auth/login - Sign in, get JWT token (confirms the account)
POST /auth/logout - Sign out (revokes the presented token)
POST /auth/forgot-password - Request a password reset link
POST /auth/reset-password - Set a new password with the reset token
GET /auth/me - Get current account info
"""

import logging

from fastapi import APIRouter, HTTPException, Depends

from marketplace.db.session import get_db_session
from marketplace.core.auth import create_access_token, get_current_account
from marketplace.core.config import get_settings
from marketplace.services.account_service import (
    register_account, authenticate, revoke_token, get_account, request_password_reset, reset_password
)
from marketplace.schemas.schemas import (
    RegisterRequest, LoginRequest, TokenResponse, AccountResponse, SignUpResponse, MessageResponse,
    ForgotPasswordRequest, ForgotPasswordResponse, ResetPasswordRequest
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=SignUpResponse, status_code=201)
async def register(request: RegisterRequest):
    """
    Register a new account.

    No session is returned: sign in to confirm the account and get a token,
    then create the profile.
    """
    with get_db_session() as db:
        account = register_account(db, request.email, request.password, request.role.value, request.name)

    return SignUpResponse(account=AccountResponse(**account), session=None)


@router.post("/login", response_model=TokenResponse)
async def login(request: LoginRequest):
    """
    Login and receive JWT access token.

    Include token in requests: Authorization: Bearer <token>
    """
    with get_db_session() as db:
        account = authenticate(db, request.email, request.password)

    if not account:
        raise HTTPException(status_code=401, detail="Invalid email or password")

    token = create_access_token(data={"sub": str(account["id"]), "role": account["role"]})

    return TokenResponse(access_token=token, user_id=account["id"], role=account["role"])


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
async def forgot_password(request: ForgotPasswordRequest):
    """
    Start a password reset.

    The answer is the same whether or not the email is registered. The
    reset link is logged for delivery; in debug mode the token is also
    returned.
    """
    settings = get_settings()
    with get_db_session() as db:
        token = request_password_reset(db, request.email)

    if token:
        logger.info("Password reset link: %s?token=%s", settings.password_reset_url, token)

    return ForgotPasswordResponse(
        message="If an account with this email exists, a password reset link has been sent.",
        reset_token=token if settings.debug else None
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password_with_token(request: ResetPasswordRequest):
    """Set a new password using the token from the reset link. Each token works once."""
    with get_db_session() as db:
        reset_password(db, request.token, request.new_password)

    return MessageResponse(message="Password updated. Please sign in with your new password.")


@router.post("/logout", response_model=MessageResponse)
async def logout(account: dict = Depends(get_current_account)):
    """Revoke the token used for this request."""
    with get_db_session() as db:
        revoke_token(db, account["jti"], account["user_id"])

    return MessageResponse(message="Signed out")


@router.get("/me", response_model=AccountResponse)
async def get_me(account: dict = Depends(get_current_account)):
    """Get current authenticated account's info."""
    with get_db_session() as db:
        return AccountResponse(**get_account(db, account["user_id"]))
