"""Gamification API endpoints: stats, XP history and leaderboard."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.auth.dependencies import get_current_user
from tickquest.dependencies import get_db
from tickquest.errors import APIError
from tickquest.gamification.leaderboard_service import leaderboard
from tickquest.gamification.ledger import get_stats, list_events, refresh_all_closed_counts
from tickquest.gamification.schemas import LeaderboardEntry, StatsResponse, XPEventResponse
from tickquest.pagination import as_utc, clamp_limit
from tickquest.schemas import DataResponse, PageResponse

router = APIRouter(
    prefix="/api/v1/gamification",
    tags=["Gamification"],
    dependencies=[Depends(get_current_user)],
)


def _offset_cursor(cursor: str | None) -> int:
    """Leaderboard cursors are row offsets; anything unparseable starts at 0."""
    try:
        return max(int(cursor or 0), 0)
    except ValueError:
        return 0


@router.get("/stats/{user_id}", response_model=DataResponse[StatsResponse])
async def user_stats(user_id: str, db: AsyncSession = Depends(get_db)) -> DataResponse[StatsResponse]:
    """XP, level and streak for one user."""
    stats = await get_stats(db, user_id)
    if stats is None:
        raise APIError(404, "not_found", "stats not found")

    last_closed = stats.last_ticket_closed_at
    return DataResponse(
        data=StatsResponse(
            user_id=stats.user_id,
            xp_total=stats.xp_total,
            level=stats.level,
            next_level_threshold=stats.next_level_threshold,
            tickets_closed=stats.tickets_closed_count,
            streak_days=stats.streak_days,
            last_ticket_closed_at=as_utc(last_closed) if last_closed is not None else None,
        )
    )


@router.get("/events", response_model=PageResponse[XPEventResponse])
async def xp_events(
    user_id: str | None = Query(None, alias="userId"),
    limit: int = Query(50),
    cursor: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> PageResponse[XPEventResponse]:
    """XP ledger, newest first."""
    limit = clamp_limit(limit)
    events, next_cursor = await list_events(db, user_id=user_id, limit=limit, cursor=cursor)
    return PageResponse(
        data=[
            XPEventResponse(
                id=e.id,
                user_id=e.user_id,
                ticket_id=e.ticket_id,
                priority=e.priority,
                xp=e.xp_value,
                note=e.note,
                created_at=as_utc(e.created_at),
            )
            for e in events
        ],
        limit=limit,
        next_cursor=next_cursor,
    )


@router.get("/leaderboard", response_model=PageResponse[LeaderboardEntry])
async def get_leaderboard(
    limit: int = Query(50),
    cursor: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
) -> PageResponse[LeaderboardEntry]:
    """Users ranked by XP. ``cursor`` is a row offset."""
    limit = clamp_limit(limit)
    offset = _offset_cursor(cursor)

    await refresh_all_closed_counts(db)
    rows = await leaderboard(db, limit=limit, offset=offset)

    return PageResponse(
        data=[
            LeaderboardEntry(
                id=r.user_id,
                name=r.name,
                username=r.username,
                role=r.role,
                xp=r.xp,
                level=r.level,
                tickets_closed_count=r.tickets_closed_count,
                rank=r.rank,
                xp_gap=r.xp_gap,
            )
            for r in rows
        ],
        limit=limit,
        next_cursor=offset + limit if len(rows) == limit else None,
    )
