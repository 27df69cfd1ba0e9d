"""Request schemas for user profile endpoints."""

from __future__ import annotations

from pydantic import Field

from tickquest.schemas import CamelModel


class ProfileUpdateRequest(CamelModel):
    """Omitted fields are left as they are. A blank name keeps the current one."""

    name: str | None = Field(None, max_length=128)
    avatar_url: str | None = None
    bio: str | None = Field(None, max_length=280)
