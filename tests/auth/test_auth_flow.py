"""Register, login, logout and the current-user endpoint."""

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tests.conftest import TEST_PASSWORD, bearer, register
from tickquest.gamification.ledger import get_stats


class TestRegister:
    async def test_register_returns_tokens_and_profile(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Ana Lima", "username": "ana", "password": TEST_PASSWORD, "bio": "hi"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["token"]
        assert data["refreshToken"].count(".") == 1
        assert data["emailVerified"] is False
        user = data["user"]
        assert user["username"] == "ana"
        assert user["name"] == "Ana Lima"
        assert user["role"] == "developer"
        assert user["badges"] == ["Initiate"]
        assert user["bio"] == "hi"
        assert "passwordHash" not in user

    async def test_register_creates_stats_row(self, client: AsyncClient, db_session: AsyncSession):
        registered = await register(client, "ana")
        stats = await get_stats(db_session, registered["user_id"])
        assert stats is not None
        assert stats.xp_total == 0
        assert stats.level == 1

    async def test_register_with_role_and_badges(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={
                "name": "Pat",
                "username": "pat",
                "password": TEST_PASSWORD,
                "role": "project_manager",
                "badges": [],
                "avatarUrl": "https://example.com/pat.png",
            },
        )
        assert response.status_code == 201
        user = response.json()["user"]
        assert user["role"] == "project_manager"
        assert user["badges"] == []
        assert user["avatarUrl"] == "https://example.com/pat.png"

    async def test_duplicate_username(self, client: AsyncClient):
        await register(client, "ana")
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Other", "username": "ana", "password": TEST_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "username_taken"

    async def test_duplicate_username_race(self, client: AsyncClient, monkeypatch: pytest.MonkeyPatch):
        await register(client, "ana")

        # Both registrations passed the lookup; the unique constraint decides
        async def lookup_misses(db, username):
            return None

        monkeypatch.setattr("tickquest.auth.service.get_user_by_username", lookup_misses)
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Other", "username": "ana", "password": TEST_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["error"]["code"] == "username_taken"

    async def test_short_password(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Ana", "username": "ana", "password": "short"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    async def test_unknown_role(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/register",
            json={"name": "Ana", "username": "ana", "password": TEST_PASSWORD, "role": "owner"},
        )
        assert response.status_code == 400

    async def test_missing_fields(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/register", json={"username": "ana"})
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"


class TestLogin:
    async def test_login_success(self, client: AsyncClient, registered_user: dict):
        response = await client.post(
            "/api/v1/auth/login",
            json={"username": registered_user["username"], "password": registered_user["password"]},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == registered_user["user_id"]
        assert data["refreshToken"] != registered_user["refresh_token"]

    async def test_wrong_password(self, client: AsyncClient, registered_user: dict):
        response = await client.post(
            "/api/v1/auth/login",
            json={"username": registered_user["username"], "password": "wrong-password"},
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "invalid_credentials"

    async def test_unknown_user_same_error(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login", json={"username": "ghost", "password": TEST_PASSWORD}
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "invalid_credentials"


class TestMe:
    async def test_me(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.get("/api/v1/users/me")
        assert response.status_code == 200
        assert response.json()["data"]["id"] == registered_user["user_id"]

    async def test_me_requires_token(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me")
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "unauthenticated"

    async def test_me_rejects_garbage_token(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me", headers=bearer("not.a.jwt"))
        assert response.status_code == 401


class TestLogout:
    async def test_logout_revokes_refresh_token(self, client: AsyncClient, registered_user: dict):
        response = await client.post(
            "/api/v1/auth/logout", json={"refreshToken": registered_user["refresh_token"]}
        )
        assert response.status_code == 200
        assert response.json() == {"status": "logged_out"}

        response = await client.post(
            "/api/v1/auth/refresh", json={"refreshToken": registered_user["refresh_token"]}
        )
        assert response.status_code == 401

    async def test_logout_with_garbage_still_succeeds(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/logout", json={"refreshToken": "garbage"})
        assert response.status_code == 200
        assert response.json() == {"status": "logged_out"}
