"""Chat router: /api/v1/chat/{quest_id}/messages.

Only the quest creator and its members can read or write.
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from glitch.auth.dependencies import get_current_user
from glitch.chat.schemas import ChatHistoryResponse, ChatMessageResponse, PostMessageRequest
from glitch.chat.service import DEFAULT_PAGE_SIZE, list_messages, post_message
from glitch.database import get_session
from glitch.db.models import ChatMessage, User
from glitch.dependencies import get_now

router = APIRouter(prefix="/api/v1/chat", tags=["Chat"])


def _message_response(message: ChatMessage, sender: User | None) -> ChatMessageResponse:
    return ChatMessageResponse(
        id=message.id,
        quest_id=message.quest_id,
        sender_id=message.sender_id,
        sender_username=sender.username if sender else None,
        sender_avatar=sender.avatar_url if sender else None,
        message=message.message,
        created_at=message.created_at,
    )


@router.get("/{quest_id}/messages", response_model=ChatHistoryResponse)
async def history(
    quest_id: str,
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    before: datetime | None = Query(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> ChatHistoryResponse:
    """Page backwards through a quest's chat, oldest message first in each page."""
    rows = await list_messages(db, quest_id, user.id, limit=limit, before=before)
    return ChatHistoryResponse(
        messages=[_message_response(message, sender) for message, sender in rows],
        has_more=len(rows) == limit,
    )


@router.post("/{quest_id}/messages", response_model=ChatMessageResponse, status_code=201)
async def send(
    quest_id: str,
    body: PostMessageRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    now: datetime = Depends(get_now),
) -> ChatMessageResponse:
    message = await post_message(db, quest_id, user.id, body.message, now=now)
    await db.commit()
    return _message_response(message, user)
