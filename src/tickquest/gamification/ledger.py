"""XP ledger: append-only events plus the derived per-user stats row."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.db.models import Ticket, UserGamificationStats, XPEvent
from tickquest.db.upsert import dialect_insert
from tickquest.gamification.levels import (
    XP_PER_LEVEL,
    StatsSnapshot,
    apply_adjustment,
)
from tickquest.pagination import as_utc, clamp_limit, format_cursor, parse_cursor, split_page

logger = logging.getLogger(__name__)

DONE = "done"


def _zero_row(user_id: str) -> dict[str, object]:
    return {
        "user_id": user_id,
        "xp_total": 0,
        "level": 1,
        "next_level_threshold": XP_PER_LEVEL,
        "tickets_closed_count": 0,
        "streak_days": 0,
        "last_ticket_closed_at": None,
    }


def snapshot_of(row: UserGamificationStats) -> StatsSnapshot:
    """Immutable copy of a stats row with its timestamp normalized to UTC."""
    last_closed = row.last_ticket_closed_at
    return StatsSnapshot(
        xp_total=row.xp_total,
        level=row.level,
        next_level_threshold=row.next_level_threshold,
        tickets_closed_count=row.tickets_closed_count,
        streak_days=row.streak_days,
        last_ticket_closed_at=as_utc(last_closed) if last_closed is not None else None,
    )


async def _insert_zero_row(db: AsyncSession, user_id: str) -> None:
    stmt = dialect_insert(db, UserGamificationStats).values(**_zero_row(user_id))
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["user_id"]))


async def ensure_user(db: AsyncSession, user_id: str) -> None:
    """Create the all-zero stats row for a user if it does not exist yet."""
    if not user_id:
        return
    await _insert_zero_row(db, user_id)
    await db.commit()


async def get_stats(db: AsyncSession, user_id: str) -> UserGamificationStats | None:
    """Fetch one user's stats row."""
    result = await db.execute(
        select(UserGamificationStats)
        .where(UserGamificationStats.user_id == user_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def adjust(
    db: AsyncSession,
    user_id: str,
    ticket_id: str | None,
    priority: str,
    xp_delta: int,
    note: str,
    closed_delta: int,
    now: datetime | None = None,
) -> StatsSnapshot | None:
    """Record an XP change and fold it into the user's stats.

    Appends an XPEvent and updates the stats row in one transaction. The row
    is created if missing, then locked with SELECT ... FOR UPDATE so
    concurrent adjustments for the same user serialize in the database.

    Returns the new stats, or None when there is nothing to record (empty
    user id or zero XP). On any error the transaction is rolled back and the
    exception re-raised.
    """
    if not user_id or xp_delta == 0:
        return None

    now = as_utc(now) if now is not None else datetime.now(timezone.utc)

    try:
        db.add(
            XPEvent(
                user_id=user_id,
                ticket_id=ticket_id or None,
                priority=priority,
                xp_value=xp_delta,
                note=note,
                created_at=now,
            )
        )
        await db.flush()

        await _insert_zero_row(db, user_id)
        result = await db.execute(
            select(UserGamificationStats)
            .where(UserGamificationStats.user_id == user_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one()

        updated = apply_adjustment(snapshot_of(row), xp_delta, closed_delta, now)
        row.xp_total = updated.xp_total
        row.level = updated.level
        row.next_level_threshold = updated.next_level_threshold
        row.tickets_closed_count = updated.tickets_closed_count
        row.streak_days = updated.streak_days
        row.last_ticket_closed_at = updated.last_ticket_closed_at

        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "XP adjusted for user %s: %+d (ticket=%s, closed_delta=%d) -> xp=%d level=%d",
        user_id,
        xp_delta,
        ticket_id,
        closed_delta,
        updated.xp_total,
        updated.level,
    )
    return updated


async def list_events(
    db: AsyncSession,
    user_id: str | None = None,
    limit: int | None = 50,
    cursor: str | None = None,
) -> tuple[list[XPEvent], str | None]:
    """Page through XP events, newest first.

    ``cursor`` is the timestamp returned with the previous page; malformed
    cursors are ignored. Returns the events and the next cursor (None on the
    last page).
    """
    limit = clamp_limit(limit)

    query = select(XPEvent).order_by(XPEvent.created_at.desc(), XPEvent.id.desc())
    if user_id:
        query = query.where(XPEvent.user_id == user_id)
    cursor_time = parse_cursor(cursor)
    if cursor_time is not None:
        query = query.where(XPEvent.created_at < cursor_time)

    # Fetch one extra to detect has_more
    result = await db.execute(query.limit(limit + 1))
    events, has_more = split_page(list(result.scalars().all()), limit)

    next_cursor = None
    if has_more and events:
        next_cursor = format_cursor(events[-1].created_at)
    return events, next_cursor


def _done_tickets_for(assignee: object) -> list:
    return [Ticket.assignee_id == assignee, Ticket.status == DONE]


async def refresh_closed_count(db: AsyncSession, user_id: str) -> None:
    """Recompute one user's closed-ticket count from tickets in ``done``."""
    if not user_id:
        return

    closed_count = (
        select(func.count(Ticket.id)).where(*_done_tickets_for(user_id)).scalar_subquery()
    )
    last_closed = (
        select(func.max(Ticket.updated_at)).where(*_done_tickets_for(user_id)).scalar_subquery()
    )
    values = _zero_row(user_id)
    values["tickets_closed_count"] = closed_count
    values["last_ticket_closed_at"] = last_closed

    stmt = dialect_insert(db, UserGamificationStats).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id"],
        set_={
            "tickets_closed_count": closed_count,
            "last_ticket_closed_at": func.coalesce(
                last_closed, UserGamificationStats.last_ticket_closed_at
            ),
        },
    )
    await db.execute(stmt)
    await db.commit()


async def refresh_all_closed_counts(db: AsyncSession) -> None:
    """Recompute closed-ticket counts for every user with a stats row.

    Assignees of done tickets that have no stats row yet get one first.
    """
    assignees = await db.execute(
        select(distinct(Ticket.assignee_id)).where(
            Ticket.status == DONE, Ticket.assignee_id.is_not(None)
        )
    )
    for assignee_id in assignees.scalars().all():
        await _insert_zero_row(db, assignee_id)

    done = _done_tickets_for(UserGamificationStats.user_id)
    await db.execute(
        update(UserGamificationStats).values(
            tickets_closed_count=select(func.count(Ticket.id)).where(*done).scalar_subquery(),
            last_ticket_closed_at=func.coalesce(
                select(func.max(Ticket.updated_at)).where(*done).scalar_subquery(),
                UserGamificationStats.last_ticket_closed_at,
            ),
        )
    )
    await db.commit()
