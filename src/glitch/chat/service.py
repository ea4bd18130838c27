"""Quest chat storage. Delivery (push, polling, sockets) happens elsewhere."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.db.models import ChatMessage, Quest, User
from glitch.errors import AccessDeniedError, NotFoundError, ValidationError
from glitch.quests.service import QuestAccess, check_access

MAX_MESSAGE_LENGTH = 1000
DEFAULT_PAGE_SIZE = 50


async def _require_access(db: AsyncSession, quest_id: str, user_id: str, action: str) -> QuestAccess:
    access = await check_access(db, quest_id, user_id)
    if not access.granted:
        raise AccessDeniedError(f"You must join the quest to {action} messages")
    return access


async def list_messages(
    db: AsyncSession,
    quest_id: str,
    user_id: str,
    limit: int = DEFAULT_PAGE_SIZE,
    before: datetime | None = None,
) -> list[tuple[ChatMessage, User]]:
    """The newest ``limit`` messages older than ``before``, oldest first."""
    await _require_access(db, quest_id, user_id, "view")

    stmt = (
        select(ChatMessage, User)
        .join(User, ChatMessage.sender_id == User.id)
        .where(ChatMessage.quest_id == quest_id)
    )
    if before is not None:
        stmt = stmt.where(ChatMessage.created_at < before)
    stmt = stmt.order_by(ChatMessage.created_at.desc(), ChatMessage.id.desc()).limit(limit)

    result = await db.execute(stmt)
    rows = [(message, sender) for message, sender in result.all()]
    rows.reverse()
    return rows


async def post_message(
    db: AsyncSession,
    quest_id: str,
    user_id: str,
    text: str,
    now: datetime | None = None,
) -> ChatMessage:
    """Store a message from a creator or member. The caller commits.

    The room closes when the quest expires: posting to an inactive or
    past-due quest raises NotFoundError, while history stays readable until
    the expiry sweep clears it.
    """
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationError("Message cannot be empty")
    if len(cleaned) > MAX_MESSAGE_LENGTH:
        raise ValidationError(f"Message must be at most {MAX_MESSAGE_LENGTH} characters")

    await _require_access(db, quest_id, user_id, "send")

    now = now or datetime.now(timezone.utc)
    state = await db.execute(select(Quest.is_active, Quest.expires_at).where(Quest.id == quest_id))
    row = state.one_or_none()
    if row is None or not row.is_active or row.expires_at <= now:
        raise NotFoundError("Quest not found or has expired")

    message = ChatMessage(
        quest_id=quest_id,
        sender_id=user_id,
        message=cleaned,
        created_at=now,
    )
    db.add(message)
    await db.flush()
    return message
