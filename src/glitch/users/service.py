"""User lookup, profile data, follows and push tokens."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, exists, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.models import Follow, User
from glitch.errors import ConflictError, NotFoundError, ValidationError
from glitch.gamification.level_thresholds import compute_level

logger = logging.getLogger(__name__)

MAX_PUSH_TOKEN_LENGTH = 255


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    username: str,
    *,
    is_premium: bool = False,
    avatar_url: str | None = None,
    bio: str | None = None,
    user_id: str | None = None,
) -> User:
    """Insert an account row (normally done by the account subsystem)."""
    existing = await db.execute(select(User.id).where(User.username == username))
    if existing.scalar_one_or_none() is not None:
        raise ConflictError("Username is already taken")

    user = User(
        username=username,
        is_premium=is_premium,
        avatar_url=avatar_url,
        bio=bio,
        created_at=datetime.now(timezone.utc),
    )
    if user_id is not None:
        user.id = user_id
    db.add(user)
    await db.flush()
    return user


async def get_follow_counts(db: AsyncSession, user_id: str) -> tuple[int, int]:
    """(followers, following) for ``user_id``."""
    followers = await db.execute(
        select(func.count()).select_from(Follow).where(Follow.following_id == user_id)
    )
    following = await db.execute(
        select(func.count()).select_from(Follow).where(Follow.follower_id == user_id)
    )
    return int(followers.scalar_one()), int(following.scalar_one())


async def is_following(db: AsyncSession, follower_id: str, following_id: str) -> bool:
    result = await db.execute(
        select(
            exists().where(Follow.follower_id == follower_id, Follow.following_id == following_id)
        )
    )
    return bool(result.scalar_one())


async def get_profile(db: AsyncSession, user_id: str, viewer_id: str | None = None) -> dict:
    """Profile fields plus level progress and follow stats.

    ``is_following`` is relative to ``viewer_id`` and always False when the
    viewer is the profile owner or unknown.
    """
    user = await get_user_by_id(db, user_id)
    if user is None:
        raise NotFoundError("User not found")

    followers_count, following_count = await get_follow_counts(db, user.id)
    following = False
    if viewer_id is not None and viewer_id != user.id:
        following = await is_following(db, viewer_id, user.id)

    return {
        "id": user.id,
        "username": user.username,
        "avatar_url": user.avatar_url,
        "bio": user.bio,
        "is_premium": user.is_premium,
        "quest_count": user.quest_count,
        "xp": user.xp,
        "level": user.level,
        "level_progress": compute_level(user.xp),
        "followers_count": followers_count,
        "following_count": following_count,
        "is_following": following,
        "created_at": user.created_at,
    }


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------


def _insert_ignoring_duplicates(db: AsyncSession):
    dialect = db.get_bind().dialect.name
    insert = pg_insert if dialect == "postgresql" else sqlite_insert
    return insert(Follow.__table__)


async def follow_user(
    db: AsyncSession,
    follower_id: str,
    following_id: str,
    now: datetime | None = None,
) -> bool:
    """Follow ``following_id``. Returns False if the edge already existed.

    Following is idempotent; the caller commits.
    """
    if follower_id == following_id:
        raise ValidationError("You cannot follow yourself")
    if await get_user_by_id(db, following_id) is None:
        raise NotFoundError("User not found")

    stmt = (
        _insert_ignoring_duplicates(db)
        .values(
            follower_id=follower_id,
            following_id=following_id,
            created_at=now or datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["follower_id", "following_id"])
    )
    result = await db.execute(stmt)
    created = bool(result.rowcount)
    if created:
        logger.info("User %s followed %s", follower_id, following_id)
    return created


async def unfollow_user(db: AsyncSession, follower_id: str, following_id: str) -> None:
    """Remove the follow edge or raise NotFoundError if there was none."""
    result = await db.execute(
        delete(Follow).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    )
    if not result.rowcount:
        raise NotFoundError("You are not following this user")
    logger.info("User %s unfollowed %s", follower_id, following_id)


# ---------------------------------------------------------------------------
# Push tokens
# ---------------------------------------------------------------------------


async def set_push_token(db: AsyncSession, user_id: str, push_token: str | None) -> str:
    """Store the device token notifications are sent to. Replaces any previous one."""
    token = (push_token or "").strip()
    if not token:
        raise ValidationError("Push token is required")
    if len(token) > MAX_PUSH_TOKEN_LENGTH:
        raise ValidationError(f"Push token must be at most {MAX_PUSH_TOKEN_LENGTH} characters")

    result = await db.execute(update(User).where(User.id == user_id).values(push_token=token))
    if not result.rowcount:
        raise NotFoundError("User not found")
    return token
