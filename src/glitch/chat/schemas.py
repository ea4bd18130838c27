"""Pydantic schemas for quest chat."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class PostMessageRequest(BaseModel):
    message: str


class ChatMessageResponse(BaseModel):
    id: int
    quest_id: str
    sender_id: str
    sender_username: str | None = None
    sender_avatar: str | None = None
    message: str
    created_at: datetime


class ChatHistoryResponse(BaseModel):
    messages: list[ChatMessageResponse]
    has_more: bool
