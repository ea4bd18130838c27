"""Quest router: all /api/v1/quests/* endpoints."""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.auth.dependencies import get_current_user
from glitch.config import Settings
from glitch.database import get_session
from glitch.db.models import Quest, QuestReview, User
from glitch.dependencies import get_app_settings, get_now, get_redis_dep
from glitch.quests.discovery import find_nearby_quests
from glitch.quests.schemas import (
    AccessResponse,
    AddReviewRequest,
    AddReviewResponse,
    CreateQuestRequest,
    LeaveResponse,
    MembershipResponse,
    NearbyQuestResponse,
    NearbyQuestsResponse,
    ParticipantResponse,
    QuestDetailResponse,
    QuestResponse,
    ReviewListResponse,
    ReviewResponse,
    XPAwardResponse,
)
from glitch.quests.service import (
    check_access,
    create_quest,
    get_quest_detail,
    join_quest,
    leave_quest,
)
from glitch.reviews.service import add_review, list_reviews

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/quests", tags=["Quests"])


def _quest_response(quest: Quest) -> QuestResponse:
    return QuestResponse(
        id=quest.id,
        title=quest.title,
        description=quest.description,
        creator_id=quest.creator_id,
        latitude=quest.latitude,
        longitude=quest.longitude,
        category=quest.category,
        max_participants=quest.max_participants,
        video_url=quest.video_url,
        is_active=quest.is_active,
        created_at=quest.created_at,
        expires_at=quest.expires_at,
    )


def _review_response(review: QuestReview, author: User | None = None) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        quest_id=review.quest_id,
        user_id=review.user_id,
        username=author.username if author else None,
        avatar_url=author.avatar_url if author else None,
        score=review.score,
        comment=review.comment,
        created_at=review.created_at,
    )


# ---------------------------------------------------------------------------
# Create / discover
# ---------------------------------------------------------------------------


@router.post("", response_model=QuestResponse, status_code=201)
async def create(
    body: CreateQuestRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
    settings: Settings = Depends(get_app_settings),
) -> QuestResponse:
    """Post a new quest at the given location. Free users get one per day."""
    quest = await create_quest(
        db,
        user,
        body.title,
        body.latitude,
        body.longitude,
        description=body.description,
        category=body.category,
        max_participants=(
            body.max_participants if body.max_participants is not None else settings.max_participants_default
        ),
        video_url=body.video_url,
        now=now,
        ttl=timedelta(hours=settings.quest_ttl_hours),
        quota_window=timedelta(hours=settings.quota_window_hours),
        quota_limit=settings.free_quests_per_window,
    )
    await db.commit()
    logger.info("quest_created", quest_id=quest.id, user_id=user.id, category=quest.category)
    return _quest_response(quest)


@router.get("/nearby", response_model=NearbyQuestsResponse)
async def nearby(
    lat: float = Query(...),
    lng: float = Query(...),
    radius: float | None = Query(None),
    category: str | None = Query(None),
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
    settings: Settings = Depends(get_app_settings),
) -> NearbyQuestsResponse:
    """Active quests around a point, nearest first."""
    matches = await find_nearby_quests(
        db,
        lat,
        lng,
        radius if radius is not None else settings.nearby_default_radius_km,
        category,
        now=now,
        limit=settings.nearby_result_limit,
    )
    return NearbyQuestsResponse(
        quests=[
            NearbyQuestResponse(
                **_quest_response(m.quest).model_dump(),
                creator_username=m.creator_username,
                creator_avatar=m.creator_avatar,
                participant_count=m.participant_count,
                distance_km=m.distance_km,
            )
            for m in matches
        ]
    )


# ---------------------------------------------------------------------------
# Detail / membership
# ---------------------------------------------------------------------------


@router.get("/{quest_id}", response_model=QuestDetailResponse)
async def detail(
    quest_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> QuestDetailResponse:
    info = await get_quest_detail(db, quest_id)
    return QuestDetailResponse(
        quest=_quest_response(info.quest),
        creator_username=info.creator.username,
        creator_avatar=info.creator.avatar_url,
        participant_count=info.participant_count,
        participants=[
            ParticipantResponse(
                user_id=member.id,
                username=member.username,
                avatar_url=member.avatar_url,
                joined_at=participant.joined_at,
            )
            for participant, member in info.participants
        ],
    )


@router.post("/{quest_id}/join", response_model=MembershipResponse, status_code=201)
async def join(
    quest_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> MembershipResponse:
    """Join an active quest with free capacity."""
    membership = await join_quest(db, quest_id, user.id, now=now)
    await db.commit()
    return MembershipResponse(
        quest_id=membership.quest_id,
        user_id=membership.user_id,
        joined_at=membership.joined_at,
    )


@router.delete("/{quest_id}/leave", response_model=LeaveResponse)
async def leave(
    quest_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> LeaveResponse:
    left = await leave_quest(db, quest_id, user.id)
    await db.commit()
    return LeaveResponse(quest_id=quest_id, left=left)


@router.get("/{quest_id}/access", response_model=AccessResponse)
async def access(
    quest_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> AccessResponse:
    """Whether the caller may use the quest's chat."""
    level = await check_access(db, quest_id, user.id)
    return AccessResponse(quest_id=quest_id, access=level.value, granted=level.granted)


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


@router.get("/{quest_id}/reviews", response_model=ReviewListResponse)
async def reviews(
    quest_id: str,
    _user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ReviewListResponse:
    rows = await list_reviews(db, quest_id)
    return ReviewListResponse(reviews=[_review_response(review, author) for review, author in rows])


@router.post("/{quest_id}/reviews", response_model=AddReviewResponse, status_code=201)
async def review(
    quest_id: str,
    body: AddReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
    settings: Settings = Depends(get_app_settings),
    redis: object | None = Depends(get_redis_dep),
) -> AddReviewResponse:
    """Rate a quest (1-5). Each user reviews a quest once and earns XP for it."""
    created, award = await add_review(
        db,
        redis,
        quest_id,
        user.id,
        body.score,
        body.comment,
        xp_amount=settings.review_xp,
        now=now,
    )
    await db.commit()
    return AddReviewResponse(
        review=_review_response(created, user),
        xp=XPAwardResponse(xp=award.xp, level=award.level, leveled_up=award.leveled_up),
    )
