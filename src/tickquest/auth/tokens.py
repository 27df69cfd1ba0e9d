"""
Opaque refresh tokens with single-use rotation.

A refresh token handed to a client is ``"<token_id>.<secret>"``. Only the
sha256 hex digest of the secret is stored, keyed by ``token_id``. Presenting a
token consumes it: the row is revoked and a replacement issued in the same
transaction.
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
import uuid
from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.db.models import RefreshToken, User
from tickquest.pagination import as_utc

logger = structlog.get_logger()

DEFAULT_TTL_DAYS = 7


class InvalidRefreshToken(Exception):
    """The presented refresh token is malformed, unknown, revoked, expired or forged."""


def hash_refresh_secret(secret: str) -> str:
    """sha256 hex digest of the secret half of a refresh token."""
    return hashlib.sha256(secret.encode()).hexdigest()


def split_refresh_token(raw: str) -> tuple[str, str]:
    """Split ``"<token_id>.<secret>"`` into its two halves."""
    parts = (raw or "").split(".")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise InvalidRefreshToken
    return parts[0], parts[1]


async def issue_refresh_token(
    db: AsyncSession,
    user_id: str,
    ttl_days: int = DEFAULT_TTL_DAYS,
    now: datetime | None = None,
) -> str:
    """Store a new refresh token for the user and return its bearer string.

    Flushes but does not commit; the caller owns the transaction.
    """
    now = now or datetime.now(timezone.utc)
    token_id = str(uuid.uuid4())
    secret = secrets.token_hex(32)
    db.add(
        RefreshToken(
            id=token_id,
            user_id=user_id,
            token_hash=hash_refresh_secret(secret),
            expires_at=now + timedelta(days=ttl_days),
            created_at=now,
        )
    )
    await db.flush()
    return f"{token_id}.{secret}"


async def _load_valid(db: AsyncSession, presented: str, now: datetime) -> RefreshToken:
    token_id, secret = split_refresh_token(presented)
    result = await db.execute(select(RefreshToken).where(RefreshToken.id == token_id))
    stored = result.scalar_one_or_none()
    if stored is None or stored.revoked_at is not None:
        raise InvalidRefreshToken
    if now >= as_utc(stored.expires_at):
        raise InvalidRefreshToken
    if not hmac.compare_digest(hash_refresh_secret(secret), stored.token_hash):
        raise InvalidRefreshToken
    return stored


async def rotate_refresh_token(
    db: AsyncSession,
    presented: str,
    ttl_days: int = DEFAULT_TTL_DAYS,
    now: datetime | None = None,
) -> tuple[User, str]:
    """
    Consume a refresh token and issue its replacement.

    Returns:
        Tuple of (user, new bearer string).

    Raises:
        InvalidRefreshToken: For every rejection reason, so callers cannot
            tell an unknown token from a revoked or expired one.
    """
    now = now or datetime.now(timezone.utc)
    try:
        stored = await _load_valid(db, presented, now)
        user = await db.get(User, stored.user_id)
        if user is None:
            raise InvalidRefreshToken

        # Conditional revoke: a concurrent refresh of the same token loses here
        result = await db.execute(
            update(RefreshToken)
            .where(RefreshToken.id == stored.id, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now)
        )
        if result.rowcount != 1:
            raise InvalidRefreshToken

        new_token = await issue_refresh_token(db, user.id, ttl_days, now)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("refresh_token_rotated", user_id=user.id, revoked_id=stored.id)
    return user, new_token


async def revoke_refresh_token(db: AsyncSession, presented: str) -> bool:
    """Revoke a refresh token (logout). Returns True if a live token was revoked."""
    now = datetime.now(timezone.utc)
    try:
        stored = await _load_valid(db, presented, now)
    except InvalidRefreshToken:
        return False
    stored.revoked_at = now
    await db.commit()
    logger.info("refresh_token_revoked", user_id=stored.user_id, token_id=stored.id)
    return True


async def revoke_all_tokens(db: AsyncSession, user_id: str) -> int:
    """Revoke every live refresh token of a user. Returns count revoked.

    Flushes but does not commit.
    """
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        .values(revoked_at=datetime.now(timezone.utc))
    )
    await db.flush()
    return result.rowcount  # type: ignore[return-value]
