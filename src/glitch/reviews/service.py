"""Quest reviews. Submitting one is a qualifying XP event."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.models import Quest, QuestReview, User
from glitch.errors import ConflictError, NotFoundError, ValidationError
from glitch.gamification.xp_service import REVIEW_XP, XPAward, award_xp

logger = logging.getLogger(__name__)

MIN_SCORE = 1
MAX_SCORE = 5


async def _quest_exists(db: AsyncSession, quest_id: str) -> bool:
    result = await db.execute(select(Quest.id).where(Quest.id == quest_id))
    return result.scalar_one_or_none() is not None


async def _has_reviewed(db: AsyncSession, quest_id: str, user_id: str) -> bool:
    result = await db.execute(
        select(QuestReview.id).where(QuestReview.quest_id == quest_id, QuestReview.user_id == user_id)
    )
    return result.scalar_one_or_none() is not None


async def add_review(
    db: AsyncSession,
    redis: object | None,
    quest_id: str,
    user_id: str,
    score: int,
    comment: str | None = None,
    *,
    xp_amount: int = REVIEW_XP,
    now: datetime | None = None,
) -> tuple[QuestReview, XPAward]:
    """Record a review and award XP in the same transaction.

    Uniqueness per (quest, user) is left to the database constraint so two
    concurrent submissions cannot both land. A quest purged between the
    existence check and the insert is reported as NotFoundError. The caller
    commits.
    """
    if not isinstance(score, int) or not MIN_SCORE <= score <= MAX_SCORE:
        raise ValidationError(f"Score must be between {MIN_SCORE} and {MAX_SCORE}")

    if not await _quest_exists(db, quest_id):
        raise NotFoundError("Quest not found")

    review = QuestReview(
        quest_id=quest_id,
        user_id=user_id,
        score=score,
        comment=comment,
        created_at=now or datetime.now(timezone.utc),
    )
    db.add(review)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        if not await _quest_exists(db, quest_id):
            raise NotFoundError("Quest not found") from e
        if await _has_reviewed(db, quest_id, user_id):
            raise ConflictError("You have already reviewed this quest") from e
        raise

    award = await award_xp(db, redis, user_id, xp_amount, source="review")
    logger.info("Review %d added to quest %s by %s (score=%d)", review.id, quest_id, user_id, score)
    return review, award


async def list_reviews(db: AsyncSession, quest_id: str) -> list[tuple[QuestReview, User]]:
    """Reviews for a quest with their authors, newest first."""
    result = await db.execute(
        select(QuestReview, User)
        .join(User, QuestReview.user_id == User.id)
        .where(QuestReview.quest_id == quest_id)
        .order_by(QuestReview.created_at.desc(), QuestReview.id.desc())
    )
    return [(review, user) for review, user in result.all()]
