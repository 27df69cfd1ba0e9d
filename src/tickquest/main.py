"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import Depends, FastAPI

from tickquest.auth.router import router as auth_router
from tickquest.config import Settings, get_settings
from tickquest.database import close_db, init_db
from tickquest.dependencies import require_api_key
from tickquest.gamification.router import router as gamification_router
from tickquest.health.router import router as health_router
from tickquest.middleware import setup_middleware
from tickquest.redis_client import close_redis, init_redis
from tickquest.tickets.router import router as tickets_router
from tickquest.users.router import router as users_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings: Settings = app.state.settings
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)
    logger.info("app_started", environment=settings.environment, version=settings.app_version)

    yield

    await close_db()
    await close_redis()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Tickquest API",
        description="Ticketing backend with XP, levels and streaks for closed work",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings

    setup_middleware(app, settings)
    api_guard = [Depends(require_api_key)]
    app.include_router(health_router, tags=["Health"])
    app.include_router(auth_router, dependencies=api_guard)
    app.include_router(users_router, dependencies=api_guard)
    app.include_router(tickets_router, dependencies=api_guard)
    app.include_router(gamification_router, dependencies=api_guard)

    return app


app = create_app()
