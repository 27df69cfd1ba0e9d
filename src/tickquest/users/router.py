"""User profile endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tickquest.auth.dependencies import get_current_user
from tickquest.auth.schemas import UserResponse
from tickquest.db.models import User
from tickquest.dependencies import get_db
from tickquest.schemas import DataResponse
from tickquest.users.schemas import ProfileUpdateRequest
from tickquest.users.service import update_profile

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me", response_model=DataResponse[UserResponse])
async def get_me(user: User = Depends(get_current_user)) -> DataResponse[UserResponse]:
    """Profile of the authenticated user."""
    return DataResponse(data=UserResponse.model_validate(user))


@router.patch("/me", response_model=DataResponse[UserResponse])
async def update_me(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> DataResponse[UserResponse]:
    """Update name, avatar and bio."""
    user = await update_profile(db, user, name=body.name, avatar_url=body.avatar_url, bio=body.bio)
    await db.commit()
    return DataResponse(data=UserResponse.model_validate(user))
