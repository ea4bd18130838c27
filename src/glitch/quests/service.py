"""Quest store: creation, lookup, membership and access.

Rules:
- Quests live for a fixed TTL (3 hours) from creation
- The creator has implicit access but never gets a membership row
- Capacity counts membership rows only
- A join is one conditional INSERT re-validating activity, expiry and
  capacity, so concurrent joins for the last slot cannot both succeed
- Creation works the same way for the free-tier quota
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from sqlalchemy import Boolean, Float, Integer, String, Text, delete, func, insert, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.base import UTCDateTime
from glitch.db.models import Quest, QuestParticipant, User
from glitch.errors import (
    CapacityError,
    ConflictError,
    GlitchError,
    NotFoundError,
    QuotaExceededError,
    ValidationError,
)
from glitch.quests.categories import QuestCategory, parse_category
from glitch.quests.geo import validate_coordinates
from glitch.quests.quota import DEFAULT_LIMIT, DEFAULT_WINDOW, UPGRADE_PROMPT, enforce_quota, within_quota

logger = logging.getLogger(__name__)

QUEST_TTL = timedelta(hours=3)
MAX_TITLE_LENGTH = 100
DEFAULT_MAX_PARTICIPANTS = 10


class QuestAccess(str, Enum):
    """How a user relates to a quest's private areas (chat)."""

    CREATOR = "creator"
    MEMBER = "member"
    NONE = "none"

    @property
    def granted(self) -> bool:
        return self is not QuestAccess.NONE


@dataclass
class QuestDetail:
    quest: Quest
    creator: User
    participants: list[tuple[QuestParticipant, User]] = field(default_factory=list)

    @property
    def participant_count(self) -> int:
        return len(self.participants)


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def _clean_title(title: str | None) -> str:
    cleaned = (title or "").strip()
    if not cleaned:
        raise ValidationError("Title is required")
    if len(cleaned) > MAX_TITLE_LENGTH:
        raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
    return cleaned


async def create_quest(
    db: AsyncSession,
    creator: User,
    title: str,
    latitude: float,
    longitude: float,
    *,
    description: str | None = None,
    category: str | QuestCategory = QuestCategory.GENERAL,
    max_participants: int = DEFAULT_MAX_PARTICIPANTS,
    video_url: str | None = None,
    now: datetime | None = None,
    ttl: timedelta = QUEST_TTL,
    quota_window: timedelta = DEFAULT_WINDOW,
    quota_limit: int = DEFAULT_LIMIT,
) -> Quest:
    """Create an active quest expiring ``ttl`` from now.

    Raises ValidationError for bad input and QuotaExceededError when a free
    user already posted within the quota window.
    """
    clean_title = _clean_title(title)
    validate_coordinates(latitude, longitude)
    quest_category = parse_category(category)
    if max_participants < 1:
        raise ValidationError("max_participants must be a positive integer")
    if ttl <= timedelta(0):
        raise ValidationError("Quest lifetime must be positive")

    now = now or datetime.now(timezone.utc)

    # The row lock serialises creations on PostgreSQL; on SQLite the guarded
    # INSERT below takes the write lock before it counts.
    await db.execute(select(User.id).where(User.id == creator.id).with_for_update())
    await enforce_quota(db, creator, now, quota_window, quota_limit)

    quest_id = str(uuid.uuid4())
    source = select(
        literal(quest_id, String),
        literal(clean_title, String),
        literal(description or "", Text),
        literal(creator.id, String),
        literal(latitude, Float),
        literal(longitude, Float),
        literal(quest_category.value, String),
        literal(max_participants, Integer),
        literal(video_url, Text),
        literal(True, Boolean),
        literal(now, UTCDateTime()),
        literal(now + ttl, UTCDateTime()),
    )
    if not creator.is_premium:
        source = source.where(within_quota(creator.id, now - quota_window, quota_limit))
    stmt = insert(Quest.__table__).from_select(
        [
            "id",
            "title",
            "description",
            "creator_id",
            "latitude",
            "longitude",
            "category",
            "max_participants",
            "video_url",
            "is_active",
            "created_at",
            "expires_at",
        ],
        source,
    )
    result = await db.execute(stmt)
    if result.rowcount == 0:
        raise QuotaExceededError(UPGRADE_PROMPT)

    quest = await db.get(Quest, quest_id)

    await db.execute(
        update(User)
        .where(User.id == creator.id)
        .values(quest_count=User.quest_count + 1)
    )
    await db.flush()

    logger.info("Quest created: %s (id=%s, creator=%s)", clean_title, quest.id, creator.id)
    return quest


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------


async def get_quest(db: AsyncSession, quest_id: str) -> Quest:
    """Get a quest by ID or raise NotFoundError."""
    result = await db.execute(select(Quest).where(Quest.id == quest_id))
    quest = result.scalar_one_or_none()
    if quest is None:
        raise NotFoundError("Quest not found")
    return quest


async def count_participants(db: AsyncSession, quest_id: str) -> int:
    result = await db.execute(
        select(func.count()).select_from(QuestParticipant).where(QuestParticipant.quest_id == quest_id)
    )
    return int(result.scalar_one())


async def get_quest_detail(db: AsyncSession, quest_id: str) -> QuestDetail:
    """Quest with its creator and participants (oldest join first)."""
    result = await db.execute(
        select(Quest, User).join(User, Quest.creator_id == User.id).where(Quest.id == quest_id)
    )
    row = result.one_or_none()
    if row is None:
        raise NotFoundError("Quest not found")
    quest, creator = row

    participants = await db.execute(
        select(QuestParticipant, User)
        .join(User, QuestParticipant.user_id == User.id)
        .where(QuestParticipant.quest_id == quest_id)
        .order_by(QuestParticipant.joined_at.asc())
    )
    return QuestDetail(
        quest=quest,
        creator=creator,
        participants=[(p, u) for p, u in participants.all()],
    )


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


async def _lock_joinable_quest(db: AsyncSession, quest_id: str, now: datetime) -> Quest:
    """Load the quest row with a write lock; raise NotFoundError if it can't be joined."""
    result = await db.execute(
        select(Quest)
        .where(Quest.id == quest_id, Quest.is_active.is_(True), Quest.expires_at > now)
        .with_for_update()
    )
    quest = result.scalar_one_or_none()
    if quest is None:
        raise NotFoundError("Quest not found or has expired")
    return quest


async def _join_rejection(db: AsyncSession, quest_id: str, user_id: str, now: datetime) -> GlitchError:
    """Work out why the conditional insert wrote nothing."""
    state = await db.execute(
        select(Quest.is_active, Quest.expires_at).where(Quest.id == quest_id)
    )
    row = state.one_or_none()
    if row is None or not row.is_active or row.expires_at <= now:
        return NotFoundError("Quest not found or has expired")

    existing = await db.execute(
        select(QuestParticipant.user_id).where(
            QuestParticipant.quest_id == quest_id,
            QuestParticipant.user_id == user_id,
        )
    )
    if existing.scalar_one_or_none() is not None:
        return ConflictError("You have already joined this quest")
    return CapacityError("Quest is full")


async def join_quest(
    db: AsyncSession,
    quest_id: str,
    user_id: str,
    now: datetime | None = None,
) -> QuestParticipant:
    """Add ``user_id`` to the quest.

    Raises NotFoundError (missing/inactive/expired), ConflictError (already
    joined) or CapacityError (full). The caller commits.
    """
    now = now or datetime.now(timezone.utc)
    await _lock_joinable_quest(db, quest_id, now)

    member_count = (
        select(func.count())
        .select_from(QuestParticipant)
        .where(QuestParticipant.quest_id == quest_id)
        .scalar_subquery()
    )
    source = (
        select(
            literal(quest_id, String),
            literal(user_id, String),
            literal(now, UTCDateTime()),
        )
        .select_from(Quest)
        .where(
            Quest.id == quest_id,
            Quest.is_active.is_(True),
            Quest.expires_at > now,
            member_count < Quest.max_participants,
        )
    )
    stmt = insert(QuestParticipant.__table__).from_select(["quest_id", "user_id", "joined_at"], source)

    try:
        result = await db.execute(stmt)
    except IntegrityError as e:
        await db.rollback()
        raise ConflictError("You have already joined this quest") from e

    if result.rowcount == 0:
        raise await _join_rejection(db, quest_id, user_id, now)

    membership = await db.get(QuestParticipant, (quest_id, user_id))
    logger.info("User %s joined quest %s", user_id, quest_id)
    return membership  # type: ignore[return-value]


async def leave_quest(db: AsyncSession, quest_id: str, user_id: str) -> bool:
    """Remove the user's membership.

    Returns True if a row was deleted. On an active quest a missing membership
    raises NotFoundError; once the quest has been deactivated the expiry
    cascade may already have removed the row, so that case is a no-op (False).
    """
    result = await db.execute(
        delete(QuestParticipant).where(
            QuestParticipant.quest_id == quest_id,
            QuestParticipant.user_id == user_id,
        )
    )
    if result.rowcount:
        logger.info("User %s left quest %s", user_id, quest_id)
        return True

    state = await db.execute(select(Quest.is_active).where(Quest.id == quest_id))
    is_active = state.scalar_one_or_none()
    if is_active is False:
        return False
    raise NotFoundError("You are not a participant of this quest")


# ---------------------------------------------------------------------------
# Access
# ---------------------------------------------------------------------------


async def check_access(db: AsyncSession, quest_id: str, user_id: str) -> QuestAccess:
    """Classify ``user_id`` as the quest's creator, a member, or neither."""
    creator = await db.execute(select(Quest.creator_id).where(Quest.id == quest_id))
    creator_id = creator.scalar_one_or_none()
    if creator_id is None:
        return QuestAccess.NONE
    if creator_id == user_id:
        return QuestAccess.CREATOR

    member = await db.execute(
        select(QuestParticipant.user_id).where(
            QuestParticipant.quest_id == quest_id,
            QuestParticipant.user_id == user_id,
        )
    )
    if member.scalar_one_or_none() is not None:
        return QuestAccess.MEMBER
    return QuestAccess.NONE


async def has_access(db: AsyncSession, quest_id: str, user_id: str) -> bool:
    return (await check_access(db, quest_id, user_id)).granted
