"""Free-tier quest creation limit.

Rules:
- Premium users are never limited
- Free users may create ``limit`` quests per rolling ``window`` (1 per 24h)
- The window slides with the clock; there is no calendar-day reset
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import ColumnElement, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.models import Quest, User
from glitch.errors import QuotaExceededError

DEFAULT_WINDOW = timedelta(hours=24)
DEFAULT_LIMIT = 1

UPGRADE_PROMPT = "Free users can create 1 quest per day. Upgrade to GLITCH+ for unlimited quests!"


async def count_recent_quests(db: AsyncSession, user_id: str, since: datetime) -> int:
    """Quests created by ``user_id`` at or after ``since``."""
    result = await db.execute(
        select(func.count())
        .select_from(Quest)
        .where(Quest.creator_id == user_id, Quest.created_at >= since)
    )
    return int(result.scalar_one())


async def can_create(
    db: AsyncSession,
    user: User,
    now: datetime,
    window: timedelta = DEFAULT_WINDOW,
    limit: int = DEFAULT_LIMIT,
) -> bool:
    """True if ``user`` may create another quest at ``now``."""
    if user.is_premium:
        return True
    recent = await count_recent_quests(db, user.id, now - window)
    return recent < limit


async def enforce_quota(
    db: AsyncSession,
    user: User,
    now: datetime,
    window: timedelta = DEFAULT_WINDOW,
    limit: int = DEFAULT_LIMIT,
) -> None:
    """Raise QuotaExceededError when ``user`` is over the free-tier limit."""
    if not await can_create(db, user, now, window, limit):
        raise QuotaExceededError(UPGRADE_PROMPT)


def within_quota(user_id: str, since: datetime, limit: int = DEFAULT_LIMIT) -> ColumnElement[bool]:
    """SQL condition that holds while ``user_id`` has fewer than ``limit`` quests since ``since``.

    Used as the guard of the creating INSERT so the count is re-evaluated
    under the write lock.
    """
    recent = (
        select(func.count())
        .select_from(Quest)
        .where(Quest.creator_id == user_id, Quest.created_at >= since)
        .correlate(None)
        .scalar_subquery()
    )
    return recent < limit
