"""Shared FastAPI dependencies backed by ``app.state``."""

from datetime import datetime

from fastapi import Request

from glitch.config import Settings


def get_now(request: Request) -> datetime:
    """Current time from the app's clock."""
    return request.app.state.clock.now()


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_redis_dep(request: Request) -> object | None:
    """The Redis client, or None when Redis is not configured."""
    return request.app.state.redis
