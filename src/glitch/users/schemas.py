"""Pydantic schemas for user profiles, follows and push tokens."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class LevelProgress(BaseModel):
    level: int
    xp_into_level: int
    xp_for_level: int
    next_level: int
    next_level_at: int


class ProfileResponse(BaseModel):
    id: str
    username: str
    avatar_url: str | None = None
    bio: str | None = None
    is_premium: bool
    quest_count: int
    xp: int
    level: int
    level_progress: LevelProgress
    followers_count: int = 0
    following_count: int = 0
    is_following: bool = False
    created_at: datetime


class FollowResponse(BaseModel):
    user_id: str
    following: bool
    followers_count: int


class PushTokenRequest(BaseModel):
    push_token: str | None = None


class PushTokenResponse(BaseModel):
    registered: bool
