"""ORM models for users, follows, quests, memberships, chat and reviews.

Child rows reference ``quests.id`` with ON DELETE CASCADE so the purge sweep
removes a quest together with everything hanging off it.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from glitch.db.base import Base, UTCDateTime


def _new_id() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """Account row. The quest engine reads ``is_premium`` and owns the counters."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    username: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    push_token: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_premium: Mapped[bool] = mapped_column(Boolean, default=False, server_default="0")
    quest_count: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    xp: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    level: Mapped[int] = mapped_column(Integer, default=1, server_default="1")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    quests: Mapped[list[Quest]] = relationship("Quest", back_populates="creator", passive_deletes=True)


# ---------------------------------------------------------------------------
# Quests
# ---------------------------------------------------------------------------


class Quest(Base):
    """A time-boxed meetup pinned to a location."""

    __tablename__ = "quests"
    __table_args__ = (
        CheckConstraint("expires_at > created_at", name="ck_quests_expiry_after_creation"),
        CheckConstraint("max_participants > 0", name="ck_quests_max_participants_positive"),
        Index("idx_quests_active", "is_active", "expires_at"),
        Index("idx_quests_location", "latitude", "longitude"),
        Index("idx_quests_creator", "creator_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="", server_default="")
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    video_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="general", server_default="general")
    max_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=10, server_default="10")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="1")
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    creator: Mapped[User] = relationship("User", back_populates="quests")
    participants: Mapped[list[QuestParticipant]] = relationship(
        "QuestParticipant", back_populates="quest", passive_deletes=True,
    )


class QuestParticipant(Base):
    """Membership row. The creator never gets one."""

    __tablename__ = "quest_participants"
    __table_args__ = (
        Index("idx_quest_participants_user", "user_id"),
    )

    quest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quests.id", ondelete="CASCADE"), primary_key=True,
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    )
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    quest: Mapped[Quest] = relationship("Quest", back_populates="participants")
    user: Mapped[User] = relationship("User")


# ---------------------------------------------------------------------------
# Ephemeral chat
# ---------------------------------------------------------------------------


class ChatMessage(Base):
    """Quest chat line; deleted in bulk when the quest expires."""

    __tablename__ = "chat_messages"
    __table_args__ = (
        Index("idx_chat_messages_quest", "quest_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quest_id: Mapped[str] = mapped_column(String(36), ForeignKey("quests.id", ondelete="CASCADE"), nullable=False)
    sender_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    sender: Mapped[User] = relationship("User")


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class QuestReview(Base):
    """One rating per user per quest. Survives expiry, removed by the purge."""

    __tablename__ = "quest_reviews"
    __table_args__ = (
        UniqueConstraint("quest_id", "user_id", name="uq_quest_reviews_quest_user"),
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_quest_reviews_score_range"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    quest_id: Mapped[str] = mapped_column(String(36), ForeignKey("quests.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    score: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    user: Mapped[User] = relationship("User")


# ---------------------------------------------------------------------------
# Follows
# ---------------------------------------------------------------------------


class Follow(Base):
    """Directed follow edge between two users."""

    __tablename__ = "follows"
    __table_args__ = (
        CheckConstraint("follower_id <> following_id", name="ck_follows_not_self"),
        Index("idx_follows_following", "following_id"),
    )

    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    )
    following_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
