"""Limit clamping and timestamp cursors for keyset pagination.

Cursors are plain RFC 3339 timestamps (UTC, microsecond precision) of the
last item returned. Pages are fetched with ``limit + 1`` rows so the caller
can tell whether another page exists.
"""

from __future__ import annotations

from datetime import datetime, timezone

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def clamp_limit(limit: int | None, default: int = DEFAULT_LIMIT, maximum: int = MAX_LIMIT) -> int:
    """Fall back to ``default`` when limit is missing or outside 1..maximum."""
    if limit is None or limit < 1 or limit > maximum:
        return default
    return limit


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite returns them without tzinfo)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_cursor(value: datetime) -> str:
    """Encode a timestamp as an RFC 3339 cursor string."""
    return as_utc(value).isoformat(timespec="microseconds").replace("+00:00", "Z")


def parse_cursor(cursor: str | None) -> datetime | None:
    """Decode a cursor. Returns None for empty or malformed input."""
    if not cursor:
        return None
    raw = cursor.strip()
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    return as_utc(parsed)


def split_page(rows: list, limit: int) -> tuple[list, bool]:
    """Cut a ``limit + 1`` fetch down to ``limit`` and report whether more exist."""
    has_more = len(rows) > limit
    return rows[:limit], has_more
