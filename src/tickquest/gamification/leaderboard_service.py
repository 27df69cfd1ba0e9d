"""XP leaderboard over every user, with or without a stats row."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.db.models import User, UserGamificationStats
from tickquest.pagination import clamp_limit


@dataclass(frozen=True)
class LeaderboardRow:
    user_id: str
    name: str
    username: str
    role: str
    xp: int
    level: int
    tickets_closed_count: int
    rank: int
    xp_gap: int


async def leaderboard(db: AsyncSession, limit: int | None = 50, offset: int = 0) -> list[LeaderboardRow]:
    """Rank users by XP (then level, then username).

    Users without a stats row count as level 1 with no XP. ``rank`` is the
    1-based position within the returned page and ``xp_gap`` is the distance
    to the first row of the page.
    """
    limit = clamp_limit(limit)
    offset = max(offset, 0)

    xp = func.coalesce(UserGamificationStats.xp_total, 0)
    level = func.coalesce(UserGamificationStats.level, 1)
    closed = func.coalesce(UserGamificationStats.tickets_closed_count, 0)

    result = await db.execute(
        select(
            User.id,
            User.name,
            User.username,
            User.role,
            xp.label("xp"),
            level.label("level"),
            closed.label("tickets_closed_count"),
        )
        .outerjoin(UserGamificationStats, UserGamificationStats.user_id == User.id)
        .order_by(xp.desc(), level.desc(), User.username)
        .limit(limit)
        .offset(offset)
    )

    rows: list[LeaderboardRow] = []
    leader_xp = 0
    for position, row in enumerate(result, start=1):
        if position == 1:
            leader_xp = row.xp
        rows.append(
            LeaderboardRow(
                user_id=row.id,
                name=row.name,
                username=row.username,
                role=row.role,
                xp=row.xp,
                level=row.level,
                tickets_closed_count=row.tickets_closed_count,
                rank=position,
                xp_gap=max(leader_xp - row.xp, 0),
            )
        )
    return rows
