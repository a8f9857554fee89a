"""arq worker for scheduled economy jobs.

Runs as a separate process: arq jsa.workers.settings.WorkerSettings
"""

from __future__ import annotations

import logging
from contextlib import aclosing

from arq import cron
from arq.connections import RedisSettings

from jsa.config import get_settings
from jsa.database import close_db, get_session, init_db
from jsa.gamification.streak_service import run_daily_rollover

logger = logging.getLogger(__name__)


def _redis_settings() -> RedisSettings:
    url = get_settings().redis_url
    return RedisSettings.from_dsn(url) if url else RedisSettings()


async def startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Open the database pool on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    logger.info("Scheduler worker started")


async def shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    """Dispose of the database pool on worker shutdown."""
    await close_db()
    logger.info("Scheduler worker shut down")


async def daily_rollover(ctx: dict) -> dict:  # type: ignore[type-arg]
    """00:00 UTC: reset daily XP and advance or break streaks."""
    async with aclosing(get_session()) as sessions:
        async for db in sessions:
            summary = await run_daily_rollover(db)
            logger.info("Daily rollover job finished: %s", summary)
            return summary
    raise RuntimeError("Failed to get database session")


class WorkerSettings:
    """arq worker settings for the scheduler."""

    functions = [daily_rollover]
    cron_jobs = [
        cron(daily_rollover, hour=0, minute=0, second=0, run_at_startup=False, unique=True),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = _redis_settings()
    max_jobs = 1
    keep_result = 3600
