"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.auth.jwt import verify_token
from tickquest.auth.service import get_user_by_id
from tickquest.config import Settings
from tickquest.dependencies import get_app_settings, get_db
from tickquest.db.models import User
from tickquest.errors import APIError

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
) -> User:
    """
    Verify the bearer access token and return the User it names.

    Raises 401 when the header is missing, the token is invalid, or the
    user no longer exists.
    """
    if credentials is None or not credentials.credentials:
        raise APIError(401, "unauthenticated", "Missing bearer token")

    try:
        payload = verify_token(credentials.credentials, settings)
    except jwt.InvalidTokenError as e:
        raise APIError(401, "unauthenticated", str(e)) from e

    user = await get_user_by_id(db, str(payload["sub"]))
    if user is None:
        raise APIError(401, "unauthenticated", "User not found")
    return user
