"""User router: /api/v1/users/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.auth.dependencies import get_current_user
from glitch.database import get_session
from glitch.db.models import User
from glitch.users.schemas import FollowResponse, ProfileResponse, PushTokenRequest, PushTokenResponse
from glitch.users.service import follow_user, get_follow_counts, get_profile, set_push_token, unfollow_user

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


@router.get("/me", response_model=ProfileResponse)
async def my_profile(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    """Own profile, including XP and level progress."""
    return ProfileResponse(**await get_profile(db, user.id, viewer_id=user.id))


@router.post("/me/push-token", response_model=PushTokenResponse)
async def register_push_token(
    body: PushTokenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> PushTokenResponse:
    """Register the device token used for quest notifications."""
    await set_push_token(db, user.id, body.push_token)
    await db.commit()
    logger.info("push_token_registered", user_id=user.id)
    return PushTokenResponse(registered=True)


@router.get("/{user_id}", response_model=ProfileResponse)
async def public_profile(
    user_id: str,
    viewer: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ProfileResponse:
    return ProfileResponse(**await get_profile(db, user_id, viewer_id=viewer.id))


@router.post("/{user_id}/follow", response_model=FollowResponse)
async def follow(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> FollowResponse:
    await follow_user(db, user.id, user_id)
    await db.commit()
    followers, _ = await get_follow_counts(db, user_id)
    return FollowResponse(user_id=user_id, following=True, followers_count=followers)


@router.delete("/{user_id}/follow", response_model=FollowResponse)
async def unfollow(
    user_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> FollowResponse:
    await unfollow_user(db, user.id, user_id)
    await db.commit()
    followers, _ = await get_follow_counts(db, user_id)
    return FollowResponse(user_id=user_id, following=False, followers_count=followers)
