"""Quest expiry and purge sweeps.

Expiry: deactivate quests whose expires_at has passed, then clear their
ephemeral chat and memberships. Deactivation commits first and is
authoritative; the cleanup is best-effort and covers every inactive quest,
so a cleanup that failed on one tick is finished by the next.

Purge: delete quests that expired more than the retention window ago.
Memberships, chat and reviews go with them via ON DELETE CASCADE.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.models import ChatMessage, Quest, QuestParticipant

logger = logging.getLogger(__name__)

PURGE_RETENTION = timedelta(hours=24)


@dataclass
class ExpirySweepResult:
    expired_ids: list[str] = field(default_factory=list)
    messages_deleted: int = 0
    memberships_deleted: int = 0
    cleanup_failed: bool = False

    @property
    def affected(self) -> int:
        return len(self.expired_ids)


async def deactivate_expired(db: AsyncSession, now: datetime) -> list[tuple[str, str]]:
    """Flip is_active off for every quest past expires_at. Commits.

    Returns (id, title) of the quests deactivated by this call only.
    """
    result = await db.execute(
        update(Quest)
        .where(Quest.is_active.is_(True), Quest.expires_at <= now)
        .values(is_active=False)
        .returning(Quest.id, Quest.title)
        .execution_options(synchronize_session=False)
    )
    expired = [(row.id, row.title) for row in result.all()]
    await db.commit()
    return expired


async def clear_ephemeral_state(db: AsyncSession) -> tuple[int, int]:
    """Delete chat messages and memberships of all inactive quests. Commits.

    Safe to repeat: an already-emptied quest deletes nothing.
    """
    inactive = select(Quest.id).where(Quest.is_active.is_(False))

    messages = await db.execute(
        delete(ChatMessage)
        .where(ChatMessage.quest_id.in_(inactive))
        .execution_options(synchronize_session=False)
    )
    memberships = await db.execute(
        delete(QuestParticipant)
        .where(QuestParticipant.quest_id.in_(inactive))
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return messages.rowcount or 0, memberships.rowcount or 0


async def expire_quests(db: AsyncSession, now: datetime, redis: object | None = None) -> ExpirySweepResult:
    """Run one expiry pass."""
    expired = await deactivate_expired(db, now)
    result = ExpirySweepResult(expired_ids=[quest_id for quest_id, _ in expired])

    if expired:
        logger.info("Expired %d quest(s)", len(expired))
        for quest_id, title in expired:
            logger.info("Quest expired: %s (%s)", title, quest_id)

    try:
        result.messages_deleted, result.memberships_deleted = await clear_ephemeral_state(db)
    except SQLAlchemyError:
        await db.rollback()
        result.cleanup_failed = True
        logger.warning("Expired quest cleanup failed; will retry next sweep", exc_info=True)

    if result.messages_deleted or result.memberships_deleted:
        logger.info(
            "Cleaned up %d chat message(s) and %d participant(s) of expired quests",
            result.messages_deleted, result.memberships_deleted,
        )

    if expired:
        await _publish_expired(redis, result.expired_ids)
    return result


async def purge_stale_quests(
    db: AsyncSession,
    now: datetime,
    retention: timedelta = PURGE_RETENTION,
) -> int:
    """Permanently delete quests inactive and expired for longer than ``retention``. Commits."""
    result = await db.execute(
        delete(Quest)
        .where(Quest.is_active.is_(False), Quest.expires_at <= now - retention)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    purged = result.rowcount or 0
    if purged:
        logger.info("Purged %d stale quest(s) from database", purged)
    return purged


async def _publish_expired(redis: object | None, quest_ids: list[str]) -> None:
    """Tell chat delivery which rooms just closed."""
    if redis is None:
        return
    try:
        await redis.publish(  # type: ignore[attr-defined]
            "pubsub:quest_expired",
            json.dumps({"quest_ids": quest_ids}),
        )
    except Exception:
        logger.warning("Failed to publish quest_expired broadcast", exc_info=True)
