"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jsa.coins.router import router as coins_router
from jsa.competition.router import router as competition_router
from jsa.config import get_settings
from jsa.database import close_db, init_db
from jsa.gamification.router import router as gamification_router
from jsa.health.router import router as health_router
from jsa.middleware import setup_middleware
from jsa.redis_client import close_redis, init_redis
from jsa.rewards.router import router as rewards_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(settings.database_url)
    if settings.redis_url:
        await init_redis(settings.redis_url)
    else:
        logger.warning("JSA_REDIS_URL is empty: rate limiting and broadcasts disabled")

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Jungle Squad Academy Economy API",
        description="XP, streaks, coins, competitions and rewards for Jungle Squad Academy",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(coins_router)
    app.include_router(competition_router)
    app.include_router(rewards_router)

    return app


app = create_app()
