"""Grant registry: one idempotency check shared by every reward path.

A grant key names one issuable reward, e.g. ``achievement:<user>:<id>`` or
``quote_share:<user>:<quote>:<platform>``. Claiming a key succeeds exactly
once; a key with a ``ttl`` can be claimed again after it expires.

Concurrent claims race on the unique key. The loser's flush raises
IntegrityError, which propagates and rolls back that request's transaction.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.db.base import utcnow
from jsa.db.models import RewardGrant

logger = logging.getLogger(__name__)


async def get_grant(db: AsyncSession, key: str) -> RewardGrant | None:
    """Fetch a grant marker by key."""
    result = await db.execute(select(RewardGrant).where(RewardGrant.idempotency_key == key))
    return result.scalar_one_or_none()


async def is_granted(db: AsyncSession, key: str, now: datetime | None = None) -> bool:
    """True if the key has been issued and has not expired."""
    if now is None:
        now = utcnow()
    grant = await get_grant(db, key)
    if grant is None:
        return False
    return grant.expires_at is None or grant.expires_at > now


async def claim_grant(
    db: AsyncSession,
    key: str,
    *,
    user_id: str | None = None,
    ttl: timedelta | None = None,
    now: datetime | None = None,
) -> bool:
    """Claim a grant key. Returns True if this call issued it, False if already issued."""
    if now is None:
        now = utcnow()
    expires_at = now + ttl if ttl is not None else None

    existing = await get_grant(db, key)
    if existing is None:
        db.add(RewardGrant(
            idempotency_key=key,
            user_id=user_id,
            issued_at=now,
            expires_at=expires_at,
        ))
        await db.flush()
        return True

    if existing.expires_at is None or existing.expires_at > now:
        return False

    # Expired: re-arm only if nobody else re-armed it first
    result = await db.execute(
        update(RewardGrant)
        .where(
            RewardGrant.id == existing.id,
            RewardGrant.expires_at <= now,
        )
        .values(issued_at=now, expires_at=expires_at)
        .execution_options(synchronize_session=False)
    )
    rearmed = result.rowcount == 1
    if rearmed:
        await db.refresh(existing)
    else:
        logger.info("Grant %s re-armed concurrently, skipping", key)
    return rearmed
