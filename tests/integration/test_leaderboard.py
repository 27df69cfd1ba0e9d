"""Leaderboard ranking over users with and without stats rows."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import make_user
from tickquest.gamification.leaderboard_service import leaderboard
from tickquest.gamification.ledger import adjust


class TestLeaderboard:
    async def test_rank_and_gap(self, db_session: AsyncSession):
        ana = await make_user(db_session, "ana")
        bo = await make_user(db_session, "bo")
        cy = await make_user(db_session, "cy")
        await adjust(db_session, ana.id, None, "urgent", 120, "seed", 0)
        await adjust(db_session, bo.id, None, "low", 50, "seed", 0)
        await adjust(db_session, cy.id, None, "low", 10, "seed", 0)

        rows = await leaderboard(db_session, limit=10)
        assert [r.username for r in rows] == ["ana", "bo", "cy"]
        assert [r.rank for r in rows] == [1, 2, 3]
        assert [r.xp_gap for r in rows] == [0, 70, 110]
        assert rows[0].level == 2

    async def test_users_without_stats_appear_last(self, db_session: AsyncSession):
        ana = await make_user(db_session, "ana")
        await make_user(db_session, "zed")
        await adjust(db_session, ana.id, None, "low", 5, "seed", 0)

        rows = await leaderboard(db_session)
        assert [r.username for r in rows] == ["ana", "zed"]
        newcomer = rows[1]
        assert newcomer.xp == 0
        assert newcomer.level == 1
        assert newcomer.tickets_closed_count == 0
        assert newcomer.xp_gap == 5

    async def test_rank_is_relative_to_page(self, db_session: AsyncSession):
        for name, xp in [("ana", 90), ("bo", 60), ("cy", 30)]:
            user = await make_user(db_session, name)
            await adjust(db_session, user.id, None, "low", xp, "seed", 0)

        rows = await leaderboard(db_session, limit=2, offset=1)
        assert [r.username for r in rows] == ["bo", "cy"]
        assert [r.rank for r in rows] == [1, 2]
        assert [r.xp_gap for r in rows] == [0, 30]

    async def test_ties_break_by_level_then_username(self, db_session: AsyncSession):
        for name in ["cy", "ana", "bo"]:
            user = await make_user(db_session, name)
            await adjust(db_session, user.id, None, "medium", 10, "seed", 0)

        rows = await leaderboard(db_session)
        assert [r.username for r in rows] == ["ana", "bo", "cy"]
        assert all(r.xp_gap == 0 for r in rows)

    async def test_empty(self, db_session: AsyncSession):
        assert await leaderboard(db_session) == []
