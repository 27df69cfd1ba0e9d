"""Dialect-aware INSERT for ON CONFLICT upserts.

PostgreSQL in production, SQLite under the test suite. Both dialects expose
the same ``on_conflict_do_nothing`` / ``on_conflict_do_update`` API.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession


def dialect_insert(db: AsyncSession, model: Any) -> Any:  # noqa: ANN401
    """Return an insert() construct for the session's bound dialect."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite_insert(model)
    return pg_insert(model)
