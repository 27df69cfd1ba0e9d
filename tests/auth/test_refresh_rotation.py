"""Refresh token rotation: single use, expiry, forgery and the HTTP contract."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import make_user
from tickquest.auth import tokens
from tickquest.auth.tokens import (
    InvalidRefreshToken,
    hash_refresh_secret,
    issue_refresh_token,
    revoke_all_tokens,
    rotate_refresh_token,
)
from tickquest.database import get_session
from tickquest.db.models import RefreshToken


class TestIssue:
    async def test_only_hash_is_stored(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        raw = await issue_refresh_token(db_session, user.id)
        await db_session.commit()

        token_id, secret = raw.split(".")
        stored = await db_session.get(RefreshToken, token_id)
        assert stored.token_hash == hash_refresh_secret(secret)
        assert secret not in stored.token_hash
        assert stored.revoked_at is None

    async def test_default_ttl_is_seven_days(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        now = datetime(2026, 5, 1, tzinfo=timezone.utc)
        raw = await issue_refresh_token(db_session, user.id, now=now)
        await db_session.commit()

        stored = await db_session.get(RefreshToken, raw.split(".")[0])
        assert stored.expires_at.replace(tzinfo=timezone.utc) == now + timedelta(days=7)


class TestRotate:
    async def test_rotation_is_single_use(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        user_id = user.id
        first = await issue_refresh_token(db_session, user_id)
        await db_session.commit()

        rotated_user, second = await rotate_refresh_token(db_session, first)
        assert rotated_user.id == user_id
        assert second != first

        with pytest.raises(InvalidRefreshToken):
            await rotate_refresh_token(db_session, first)

        _, third = await rotate_refresh_token(db_session, second)
        assert third not in (first, second)

    async def test_consumed_row_is_revoked(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        first = await issue_refresh_token(db_session, user.id)
        await db_session.commit()
        await rotate_refresh_token(db_session, first)

        result = await db_session.execute(
            select(RefreshToken)
            .where(RefreshToken.id == first.split(".")[0])
            .execution_options(populate_existing=True)
        )
        assert result.scalar_one().revoked_at is not None

    async def test_expired_rejected(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        old = datetime.now(timezone.utc) - timedelta(days=8)
        raw = await issue_refresh_token(db_session, user.id, now=old)
        await db_session.commit()

        with pytest.raises(InvalidRefreshToken):
            await rotate_refresh_token(db_session, raw)

    async def test_forged_secret_rejected(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        raw = await issue_refresh_token(db_session, user.id)
        await db_session.commit()

        token_id = raw.split(".")[0]
        with pytest.raises(InvalidRefreshToken):
            await rotate_refresh_token(db_session, f"{token_id}.{'0' * 64}")
        # The genuine token still works afterwards
        await rotate_refresh_token(db_session, raw)

    async def test_concurrent_rotation_has_one_winner(
        self, db_session: AsyncSession, monkeypatch: pytest.MonkeyPatch
    ):
        user = await make_user(db_session, "ana")
        user_id = user.id
        raw = await issue_refresh_token(db_session, user_id)
        await db_session.commit()

        load_valid = tokens._load_valid

        async def load_then_lose_race(db, presented, now):
            stored = await load_valid(db, presented, now)
            # A second session consumes the same token between validation and revoke
            monkeypatch.setattr(tokens, "_load_valid", load_valid)
            sessions = get_session()
            other = await anext(sessions)
            try:
                await rotate_refresh_token(other, presented)
            finally:
                await sessions.aclose()
            return stored

        monkeypatch.setattr(tokens, "_load_valid", load_then_lose_race)
        with pytest.raises(InvalidRefreshToken):
            await rotate_refresh_token(db_session, raw)

        result = await db_session.execute(
            select(RefreshToken).where(RefreshToken.user_id == user_id, RefreshToken.revoked_at.is_(None))
        )
        # Only the winner's replacement is live
        assert len(result.scalars().all()) == 1

    async def test_deleted_user_rejected(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        raw = await issue_refresh_token(db_session, user.id)
        await db_session.commit()

        await db_session.delete(user)
        await db_session.commit()

        with pytest.raises(InvalidRefreshToken):
            await rotate_refresh_token(db_session, raw)

    @pytest.mark.parametrize("raw", ["", "no-dot", "a.b.c", "unknown-id.secret"])
    async def test_malformed_or_unknown_rejected(self, db_session: AsyncSession, raw: str):
        with pytest.raises(InvalidRefreshToken):
            await rotate_refresh_token(db_session, raw)

    async def test_revoke_all(self, db_session: AsyncSession):
        user = await make_user(db_session, "ana")
        user_id = user.id
        issued = [await issue_refresh_token(db_session, user_id) for _ in range(3)]
        await db_session.commit()

        assert await revoke_all_tokens(db_session, user_id) == 3
        await db_session.commit()
        for raw in issued:
            with pytest.raises(InvalidRefreshToken):
                await rotate_refresh_token(db_session, raw)


class TestRefreshEndpoint:
    async def test_refresh_returns_new_pair(self, client: AsyncClient, registered_user: dict):
        response = await client.post(
            "/api/v1/auth/refresh", json={"refreshToken": registered_user["refresh_token"]}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == registered_user["user_id"]
        assert data["refreshToken"] != registered_user["refresh_token"]
        assert data["token"]

    async def test_replay_rejected_with_envelope(self, client: AsyncClient, registered_user: dict):
        body = {"refreshToken": registered_user["refresh_token"]}
        assert (await client.post("/api/v1/auth/refresh", json=body)).status_code == 200

        response = await client.post("/api/v1/auth/refresh", json=body)
        assert response.status_code == 401
        assert response.json() == {
            "error": {"code": "invalid_refresh_token", "message": "Invalid or expired refresh token"}
        }

    async def test_new_access_token_works(self, client: AsyncClient, registered_user: dict):
        response = await client.post(
            "/api/v1/auth/refresh", json={"refreshToken": registered_user["refresh_token"]}
        )
        token = response.json()["token"]
        me = await client.get("/api/v1/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
