"""
Account business logic: registration, login and password changes.

Refresh-token storage lives in ``tickquest.auth.tokens``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from tickquest.auth.password import (
    check_needs_rehash,
    hash_password,
    validate_password,
    verify_password,
)
from tickquest.auth.tokens import revoke_all_tokens
from tickquest.db.models import User

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tickquest.config import Settings

logger = structlog.get_logger()

ROLES = frozenset({"admin", "project_manager", "developer", "viewer"})
DEFAULT_BADGES = ["Initiate"]


class InvalidCredentials(Exception):
    """Unknown username or wrong password."""


class UsernameTaken(ValueError):
    """Registration attempted with a username that already exists."""


# ---------------------------------------------------------------------------
# User queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Fetch a user by ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Fetch a user by username."""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    settings: Settings,
    name: str,
    username: str,
    password: str,
    role: str | None = None,
    avatar_url: str | None = None,
    badges: list[str] | None = None,
    bio: str | None = None,
) -> User:
    """
    Create a new account.

    Raises:
        PasswordPolicyError: If the password length is out of bounds.
        UsernameTaken: If the username already exists.
        ValueError: If the role is unknown.
    """
    validate_password(password, settings.password_min_length, settings.password_max_length)

    role = role or settings.default_role
    if role not in ROLES:
        msg = f"Unknown role '{role}'"
        raise ValueError(msg)

    if await get_user_by_username(db, username) is not None:
        msg = "Username already exists"
        raise UsernameTaken(msg)

    now = datetime.now(timezone.utc)
    user = User(
        name=name,
        username=username,
        password_hash=hash_password(password),
        role=role,
        avatar_url=avatar_url,
        badges=list(badges) if badges is not None else list(DEFAULT_BADGES),
        bio=bio,
        email_verified=False,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as e:
        # Lost a race with a concurrent registration of the same username
        await db.rollback()
        msg = "Username already exists"
        raise UsernameTaken(msg) from e
    logger.info("user_registered", user_id=user.id, username=username, role=role)
    return user


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


async def authenticate_user(db: AsyncSession, username: str, password: str) -> User:
    """
    Check a username/password pair.

    Raises:
        InvalidCredentials: If the user is unknown or the password is wrong.
    """
    if not username or not password:
        raise InvalidCredentials

    user = await get_user_by_username(db, username)
    if user is None or not verify_password(password, user.password_hash):
        raise InvalidCredentials

    if check_needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.flush()
        logger.info("password_rehashed", user_id=user.id)

    return user


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------


async def change_password(
    db: AsyncSession,
    settings: Settings,
    user: User,
    old_password: str,
    new_password: str,
) -> None:
    """
    Replace a user's password and sign out every other session.

    Raises:
        InvalidCredentials: If the old password does not match.
        PasswordPolicyError: If the new password length is out of bounds.
    """
    if not verify_password(old_password, user.password_hash):
        raise InvalidCredentials
    validate_password(new_password, settings.password_min_length, settings.password_max_length)

    user.password_hash = hash_password(new_password)
    user.updated_at = datetime.now(timezone.utc)
    revoked = await revoke_all_tokens(db, user.id)
    await db.commit()
    logger.info("password_changed", user_id=user.id, revoked_tokens=revoked)
