"""Best-effort Redis pub/sub broadcasts for economy events."""

from __future__ import annotations

import json
import logging

logger = logging.getLogger(__name__)


async def publish_event(redis: object, channel: str, payload: dict) -> None:
    """Publish a JSON payload. A missing or failing Redis never fails the caller."""
    if redis is None:
        return
    try:
        await redis.publish(channel, json.dumps(payload, default=str))  # type: ignore[attr-defined]
    except Exception:
        logger.warning("Failed to publish %s broadcast", channel, exc_info=True)
