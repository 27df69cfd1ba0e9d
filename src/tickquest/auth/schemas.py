"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from tickquest.schemas import CamelModel


class RegisterRequest(CamelModel):
    """Account registration. Role defaults to the configured default role."""

    name: str = Field(..., min_length=1, max_length=128)
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1)
    role: str | None = None
    avatar_url: str | None = None
    badges: list[str] | None = None
    bio: str | None = Field(None, max_length=280)

    @field_validator("name", "username")
    @classmethod
    def strip_whitespace(cls, v: str) -> str:
        """Reject names that are only whitespace."""
        v = v.strip()
        if not v:
            msg = "must not be blank"
            raise ValueError(msg)
        return v


class LoginRequest(CamelModel):
    """Login with username + password."""

    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class RefreshRequest(CamelModel):
    refresh_token: str


class LogoutRequest(CamelModel):
    refresh_token: str


class ChangePasswordRequest(CamelModel):
    old_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class UserResponse(CamelModel):
    """Public user profile."""

    id: str
    name: str
    username: str
    role: str
    avatar_url: str | None = None
    badges: list[str] = []
    bio: str | None = None
    email_verified: bool = False
    created_at: datetime


class AuthResponse(CamelModel):
    """Tokens issued by register, login and refresh."""

    token: str
    refresh_token: str
    user: UserResponse
    email_verified: bool = False
