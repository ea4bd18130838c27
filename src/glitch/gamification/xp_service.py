"""XP awards with level-up detection."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.models import User
from glitch.errors import NotFoundError, ValidationError
from glitch.gamification.level_thresholds import level_for_xp

logger = logging.getLogger(__name__)

# Policy: XP granted per qualifying event.
REVIEW_XP = 5


@dataclass(frozen=True)
class XPAward:
    xp: int
    level: int
    leveled_up: bool


async def award_xp(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    amount: int,
    source: str = "review",
) -> XPAward:
    """Add ``amount`` XP to a user and raise their level if it crossed a threshold.

    1. Atomically increment users.xp (no read-modify-write in Python)
    2. Recompute level from the returned total
    3. Persist the level only if it went up (never lowers it)
    4. On level up, publish a level_up event

    Runs inside the caller's transaction; the caller commits.
    """
    if amount < 0:
        raise ValidationError("XP amount must not be negative")

    result = await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(xp=User.xp + amount)
        .returning(User.xp, User.level)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("User not found")

    total_xp, old_level = row
    new_level = level_for_xp(total_xp)

    if new_level <= old_level:
        return XPAward(xp=total_xp, level=old_level, leveled_up=False)

    await db.execute(
        update(User)
        .where(User.id == user_id, User.level < new_level)
        .values(level=new_level)
    )
    logger.info("User %s leveled up %d -> %d (source=%s)", user_id, old_level, new_level, source)
    await _publish_level_up(redis, user_id, old_level, new_level)
    return XPAward(xp=total_xp, level=new_level, leveled_up=True)


async def _publish_level_up(redis: object | None, user_id: str, old_level: int, new_level: int) -> None:
    """Broadcast the raw event for notification/overlay consumers."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:level_up",
            json.dumps({
                "user_id": user_id,
                "old_level": old_level,
                "new_level": new_level,
            }),
        )
    except Exception:
        logger.warning("Failed to publish level_up broadcast", exc_info=True)
