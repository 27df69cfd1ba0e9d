"""
HS256 JWT access tokens.

Access tokens carry the user's display name and role so downstream checks do
not need a lookup for every claim. Refresh credentials are not JWTs; see
``tickquest.auth.tokens``.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from tickquest.config import Settings
from tickquest.db.models import User


def create_access_token(user: User, settings: Settings, now: datetime | None = None) -> str:
    """
    Create an access token for a user.

    Args:
        user: The authenticated user.
        settings: Supplies the signing secret, algorithm, issuer and lifetime.
        now: Issue time (defaults to the current UTC time).

    Returns:
        Encoded JWT string.
    """
    issued = now or datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": user.id,
        "name": user.name,
        "role": user.role,
        "iat": issued,
        "exp": issued + timedelta(minutes=settings.jwt_access_token_expire_minutes),
        "iss": settings.jwt_issuer,
        "type": "access",
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str, settings: Settings, expected_type: str = "access") -> dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or the wrong type.
    """
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
            options={"require": ["sub", "exp", "iat"]},
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected token type '{expected_type}', got '{payload.get('type')}'"
        raise jwt.InvalidTokenError(msg)

    return payload
