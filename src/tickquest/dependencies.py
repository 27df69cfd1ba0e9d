"""Shared FastAPI dependencies."""

from __future__ import annotations

import hmac

from fastapi import Depends, Request

from tickquest.config import Settings
from tickquest.database import get_session as _get_session
from tickquest.errors import APIError

get_db = _get_session


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was created with."""
    return request.app.state.settings


async def require_api_key(
    request: Request,
    settings: Settings = Depends(get_app_settings),
) -> None:
    """Reject requests without the shared API key. No-op when no key is configured."""
    if not settings.api_key:
        return
    presented = request.headers.get(settings.api_key_header, "")
    if not hmac.compare_digest(presented.encode(), settings.api_key.encode()):
        raise APIError(401, "invalid_api_key", "Invalid API key")
