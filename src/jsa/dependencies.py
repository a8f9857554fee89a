"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from jsa.database import get_session as _get_session
from jsa.redis_client import get_redis as _get_redis

get_db = _get_session


async def get_redis_or_none() -> AsyncGenerator[object, None]:
    """Yield the Redis client, or None when Redis is not configured.

    Economy writes only use Redis for best-effort broadcasts.
    """
    try:
        redis = _get_redis()
    except RuntimeError:
        redis = None
    yield redis
