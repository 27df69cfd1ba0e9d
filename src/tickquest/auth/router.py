"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Response
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.auth.dependencies import get_current_user
from tickquest.auth.jwt import create_access_token
from tickquest.auth.password import PasswordPolicyError
from tickquest.auth.schemas import (
    AuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    UserResponse,
)
from tickquest.auth.service import (
    InvalidCredentials,
    UsernameTaken,
    authenticate_user,
    change_password,
    register_user,
)
from tickquest.auth.tokens import (
    InvalidRefreshToken,
    issue_refresh_token,
    revoke_refresh_token,
    rotate_refresh_token,
)
from tickquest.config import Settings
from tickquest.db.models import User
from tickquest.dependencies import get_app_settings, get_db
from tickquest.errors import APIError
from tickquest.gamification.ledger import ensure_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])


def _auth_response(user: User, refresh_token: str, settings: Settings) -> AuthResponse:
    return AuthResponse(
        token=create_access_token(user, settings),
        refresh_token=refresh_token,
        user=UserResponse.model_validate(user),
        email_verified=user.email_verified,
    )


async def _issue_tokens(db: AsyncSession, user: User, settings: Settings) -> AuthResponse:
    """Create an access token plus a stored refresh token, then commit."""
    refresh_token = await issue_refresh_token(db, user.id, settings.jwt_refresh_token_expire_days)
    await db.commit()
    return _auth_response(user, refresh_token, settings)


@router.post("/register", response_model=AuthResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    """Create an account and sign it in."""
    try:
        user = await register_user(
            db,
            settings,
            name=body.name,
            username=body.username,
            password=body.password,
            role=body.role,
            avatar_url=body.avatar_url,
            badges=body.badges,
            bio=body.bio,
        )
    except UsernameTaken as e:
        raise APIError(409, "username_taken", str(e)) from e
    except (PasswordPolicyError, ValueError) as e:
        raise APIError(400, "validation_error", str(e)) from e

    response = await _issue_tokens(db, user, settings)

    # Stats row is created lazily by the ledger if this fails
    try:
        await ensure_user(db, user.id)
    except Exception:
        logger.exception("gamification_ensure_user_failed", user_id=user.id)
        await db.rollback()

    return response


@router.post("/login", response_model=AuthResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    """Login with username + password."""
    try:
        user = await authenticate_user(db, body.username, body.password)
    except InvalidCredentials as e:
        raise APIError(401, "invalid_credentials", "Invalid username or password") from e

    return await _issue_tokens(db, user, settings)


@router.post("/refresh", response_model=AuthResponse)
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> AuthResponse:
    """Exchange a refresh token for a new token pair. The old refresh token is consumed."""
    try:
        user, new_refresh = await rotate_refresh_token(
            db, body.refresh_token, settings.jwt_refresh_token_expire_days
        )
    except InvalidRefreshToken as e:
        raise APIError(401, "invalid_refresh_token", "Invalid or expired refresh token") from e

    return _auth_response(user, new_refresh, settings)


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Revoke a refresh token. Always succeeds."""
    await revoke_refresh_token(db, body.refresh_token)
    return {"status": "logged_out"}


@router.post("/change-password", status_code=204)
async def change_password_endpoint(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> Response:
    """Change the current user's password and revoke all refresh tokens."""
    if body.new_password == body.old_password:
        raise APIError(400, "validation_error", "New password must differ from old password")

    try:
        await change_password(db, settings, user, body.old_password, body.new_password)
    except InvalidCredentials as e:
        raise APIError(401, "invalid_credentials", "Invalid old password") from e
    except PasswordPolicyError as e:
        raise APIError(400, "validation_error", str(e)) from e

    return Response(status_code=204)
