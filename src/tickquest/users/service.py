"""User profile business logic."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from tickquest.db.models import User

logger = structlog.get_logger()


async def update_profile(
    db: AsyncSession,
    user: User,
    name: str | None = None,
    avatar_url: str | None = None,
    bio: str | None = None,
) -> User:
    """Update profile fields. ``None`` leaves a field unchanged; flushes only."""
    if name is not None and name.strip():
        user.name = name.strip()
    if avatar_url:
        user.avatar_url = avatar_url
    if bio is not None:
        user.bio = bio

    user.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("profile_updated", user_id=user.id)
    return user
