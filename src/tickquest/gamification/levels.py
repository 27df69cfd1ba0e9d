"""XP values, level derivation and streak arithmetic.

Level thresholds are linear: every 100 XP is one level, so a user with
``xp_total`` sits at ``xp_total // 100 + 1`` and needs ``level * 100`` XP
for the next one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

XP_PER_LEVEL = 100

PRIORITY_XP: dict[str, int] = {
    "low": 5,
    "medium": 10,
    "high": 20,
    "urgent": 30,
}
DEFAULT_PRIORITY_XP = PRIORITY_XP["medium"]


def xp_for_priority(priority: str | None) -> int:
    """XP awarded for closing a ticket. Unknown priorities count as medium."""
    return PRIORITY_XP.get(priority or "", DEFAULT_PRIORITY_XP)


def compute_level(xp_total: int) -> int:
    """Level for a (non-negative) XP total."""
    return max(xp_total, 0) // XP_PER_LEVEL + 1


def next_level_threshold(level: int) -> int:
    """Cumulative XP at which ``level + 1`` begins."""
    return level * XP_PER_LEVEL


def next_streak(current: int, last_closed_at: datetime | None, now: datetime) -> int:
    """Day streak after one more ticket closed at ``now``.

    Both datetimes must be UTC. Closing again on the same calendar day keeps
    the streak, closing on the following day extends it, anything else starts
    over at 1.
    """
    if last_closed_at is None:
        return 1
    today = now.date()
    last_day = last_closed_at.date()
    if last_day == today:
        return current
    if last_day == today - timedelta(days=1):
        return current + 1
    return 1


@dataclass(frozen=True)
class StatsSnapshot:
    xp_total: int = 0
    level: int = 1
    next_level_threshold: int = XP_PER_LEVEL
    tickets_closed_count: int = 0
    streak_days: int = 0
    last_ticket_closed_at: datetime | None = None


def apply_adjustment(
    current: StatsSnapshot,
    xp_delta: int,
    closed_delta: int,
    now: datetime,
) -> StatsSnapshot:
    """Fold one ledger entry into a stats row.

    XP and the closed-ticket count are clamped at zero, level and threshold
    are re-derived, and the streak only moves when a ticket was closed.
    """
    xp_total = max(current.xp_total + xp_delta, 0)
    closed = max(current.tickets_closed_count + closed_delta, 0)
    level = compute_level(xp_total)

    streak = current.streak_days
    last_closed = current.last_ticket_closed_at
    if closed_delta > 0:
        streak = next_streak(current.streak_days, current.last_ticket_closed_at, now)
        last_closed = now

    return StatsSnapshot(
        xp_total=xp_total,
        level=level,
        next_level_threshold=next_level_threshold(level),
        tickets_closed_count=closed,
        streak_days=streak,
        last_ticket_closed_at=last_closed,
    )
