"""Pydantic schemas for quest endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_serializer

from glitch.quests.categories import QuestCategory


# --- Requests ---


class CreateQuestRequest(BaseModel):
    title: str
    description: str | None = Field(None, max_length=2000)
    latitude: float
    longitude: float
    category: str = QuestCategory.GENERAL.value
    max_participants: int | None = None
    video_url: str | None = None


class AddReviewRequest(BaseModel):
    score: int
    comment: str | None = Field(None, max_length=1000)


# --- Responses ---


class QuestResponse(BaseModel):
    id: str
    title: str
    description: str
    creator_id: str
    latitude: float
    longitude: float
    category: str
    max_participants: int
    video_url: str | None = None
    is_active: bool
    created_at: datetime
    expires_at: datetime


class NearbyQuestResponse(QuestResponse):
    creator_username: str
    creator_avatar: str | None = None
    participant_count: int
    distance_km: float

    @field_serializer("distance_km")
    def _round_distance(self, value: float) -> float:
        # Display only; ranking used the full-precision value.
        return round(value, 2)


class NearbyQuestsResponse(BaseModel):
    quests: list[NearbyQuestResponse]


class ParticipantResponse(BaseModel):
    user_id: str
    username: str
    avatar_url: str | None = None
    joined_at: datetime


class QuestDetailResponse(BaseModel):
    quest: QuestResponse
    creator_username: str
    creator_avatar: str | None = None
    participant_count: int
    participants: list[ParticipantResponse] = []


class MembershipResponse(BaseModel):
    quest_id: str
    user_id: str
    joined_at: datetime


class LeaveResponse(BaseModel):
    quest_id: str
    left: bool


class AccessResponse(BaseModel):
    quest_id: str
    access: str
    granted: bool


class XPAwardResponse(BaseModel):
    xp: int
    level: int
    leveled_up: bool


class ReviewResponse(BaseModel):
    id: int
    quest_id: str
    user_id: str
    username: str | None = None
    avatar_url: str | None = None
    score: int
    comment: str | None = None
    created_at: datetime


class AddReviewResponse(BaseModel):
    review: ReviewResponse
    xp: XPAwardResponse


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
