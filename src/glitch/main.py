"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from glitch.auth.provider import AuthProvider, JWTAuthProvider
from glitch.chat.router import router as chat_router
from glitch.clock import Clock, SystemClock
from glitch.config import Settings, get_settings
from glitch.database import Database
from glitch.health.router import router as health_router
from glitch.middleware import setup_middleware
from glitch.quests.router import router as quests_router
from glitch.redis_client import close_redis, create_redis
from glitch.users.router import router as users_router
from glitch.workers.scheduler import QuestSweeper

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    db: Database = app.state.db

    if settings.create_tables:
        await db.create_all()

    sweeper = None
    if settings.scheduler_enabled:
        sweeper = QuestSweeper(db, settings, clock=app.state.clock, redis=app.state.redis)
        sweeper.start()
    app.state.sweeper = sweeper
    logger.info("startup_complete", environment=settings.environment, scheduler=sweeper is not None)

    yield

    if sweeper is not None:
        await sweeper.stop()
    await close_redis(app.state.redis)
    await db.dispose()


def create_app(
    settings: Settings | None = None,
    *,
    database: Database | None = None,
    clock: Clock | None = None,
    auth_provider: AuthProvider | None = None,
    redis: object | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to ones built from ``settings``; tests pass their own.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="GLITCH API",
        description="Location-based quest discovery and meetups",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = database or Database(settings.database_url, echo=settings.debug)
    app.state.clock = clock or SystemClock()
    app.state.auth_provider = auth_provider or JWTAuthProvider(
        settings.jwt_secret,
        settings.jwt_algorithm,
        settings.jwt_issuer,
    )
    app.state.redis = redis if redis is not None else create_redis(settings.redis_url)
    app.state.sweeper = None

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(users_router)
    app.include_router(quests_router)
    app.include_router(chat_router)

    return app


app = create_app()
