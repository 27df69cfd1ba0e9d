"""Tests for password change flow."""

from httpx import AsyncClient


class TestChangePassword:
    async def test_change_password_success(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.post(
            "/api/v1/auth/change-password",
            json={"oldPassword": registered_user["password"], "newPassword": "brand-new-pass-2"},
        )
        assert response.status_code == 204

        login = await authed_client.post(
            "/api/v1/auth/login",
            json={"username": registered_user["username"], "password": "brand-new-pass-2"},
        )
        assert login.status_code == 200

    async def test_change_password_revokes_refresh_tokens(
        self, authed_client: AsyncClient, registered_user: dict
    ):
        await authed_client.post(
            "/api/v1/auth/change-password",
            json={"oldPassword": registered_user["password"], "newPassword": "brand-new-pass-2"},
        )
        response = await authed_client.post(
            "/api/v1/auth/refresh", json={"refreshToken": registered_user["refresh_token"]}
        )
        assert response.status_code == 401

    async def test_change_password_wrong_old(self, authed_client: AsyncClient):
        response = await authed_client.post(
            "/api/v1/auth/change-password",
            json={"oldPassword": "not-my-password", "newPassword": "brand-new-pass-2"},
        )
        assert response.status_code == 401
        assert response.json()["error"]["code"] == "invalid_credentials"

    async def test_change_password_same_as_old(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.post(
            "/api/v1/auth/change-password",
            json={"oldPassword": registered_user["password"], "newPassword": registered_user["password"]},
        )
        assert response.status_code == 400
        assert "differ" in response.json()["error"]["message"]

    async def test_change_password_too_short(self, authed_client: AsyncClient, registered_user: dict):
        response = await authed_client.post(
            "/api/v1/auth/change-password",
            json={"oldPassword": registered_user["password"], "newPassword": "tiny"},
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"

    async def test_change_password_requires_auth(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/change-password",
            json={"oldPassword": "old-password-1", "newPassword": "new-password-1"},
        )
        assert response.status_code == 401
