"""XP ledger: multiplier-scaled grants, level-up detection and history."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.config import get_settings
from jsa.db.base import utcnow
from jsa.db.models import Profile, UserSubscription, XPTransaction
from jsa.errors import RemoteFailure, ValidationError
from jsa.events import publish_event
from jsa.gamification.levels import compute_level
from jsa.gamification.multipliers import Multiplier, resolve
from jsa.gamification.streak_service import start_of_day

logger = logging.getLogger(__name__)


def _day_start(now: datetime) -> datetime:
    return start_of_day(now.astimezone(timezone.utc).date())


async def get_or_create_profile(db: AsyncSession, user_id: str) -> Profile:
    """Get or create the progress row for a user."""
    result = await db.execute(select(Profile).where(Profile.user_id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        now = utcnow()
        profile = Profile(user_id=user_id, created_at=now, updated_at=now)
        db.add(profile)
        await db.flush()
    return profile


async def get_active_subscription(db: AsyncSession, user_id: str) -> UserSubscription | None:
    """Return the user's subscription if it is active."""
    result = await db.execute(
        select(UserSubscription).where(
            UserSubscription.user_id == user_id,
            UserSubscription.status == "active",
        )
    )
    return result.scalar_one_or_none()


async def resolve_multiplier(db: AsyncSession, user_id: str, streak: int) -> Multiplier:
    """Resolve the multiplier for the user's current plan and streak."""
    subscription = await get_active_subscription(db, user_id)
    tier_name = subscription.tier.name if subscription is not None else None
    return resolve(
        tier_name,
        streak,
        is_active=subscription is not None,
        policy=get_settings().multiplier_policy,
    )


async def add_xp(
    db: AsyncSession,
    redis: object,
    user_id: str,
    amount: int,
    source: str,
    *,
    idempotency_key: str | None = None,
    now: datetime | None = None,
) -> XPTransaction | None:
    """Grant XP to a user. Returns the transaction, or None for a replayed key.

    1. Resolve tier and streak multipliers
    2. Append xp_transactions row with the final amount
    3. Add the final amount to total and today, touch last_activity_at
       (the first grant of a new UTC day restarts today and keeps the
       previous day's activity in prev_activity_at)
    4. If the level changed, broadcast level_up

    All writes share the caller's transaction; the caller commits.
    """
    if amount <= 0:
        raise ValidationError("XP amount must be positive")
    if now is None:
        now = utcnow()

    if idempotency_key is not None:
        existing = await db.execute(
            select(XPTransaction.id).where(XPTransaction.idempotency_key == idempotency_key)
        )
        if existing.scalar_one_or_none() is not None:
            return None

    profile = await get_or_create_profile(db, user_id)
    old_level = compute_level(profile.xp_total)["level"]
    multiplier = await resolve_multiplier(db, user_id, profile.xp_streak)
    final_amount = multiplier.apply(amount)

    entry = XPTransaction(
        user_id=user_id,
        amount=amount,
        source=source,
        multiplier=float(multiplier.tier),
        streak_bonus=float(multiplier.streak),
        final_amount=final_amount,
        idempotency_key=idempotency_key,
        created_at=now,
    )
    db.add(entry)

    try:
        new_day = Profile.last_activity_at < _day_start(now)
        await db.execute(
            update(Profile)
            .where(Profile.user_id == user_id)
            .values(
                xp_total=Profile.xp_total + final_amount,
                xp_today=case((new_day, final_amount), else_=Profile.xp_today + final_amount),
                prev_activity_at=case((new_day, Profile.last_activity_at), else_=Profile.prev_activity_at),
                last_activity_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await db.flush()
    except IntegrityError:
        raise  # concurrent replay of idempotency_key
    except SQLAlchemyError as e:
        logger.error("XP grant failed for %s (%s, %d)", user_id, source, amount, exc_info=True)
        raise RemoteFailure("Failed to add XP") from e

    await db.refresh(profile)
    new_level = compute_level(profile.xp_total)["level"]
    logger.info(
        "Granted %d XP (%d x %s) to %s for %s",
        final_amount, amount, multiplier.combined, user_id, source,
    )

    if new_level > old_level:
        await publish_event(redis, "pubsub:level_up", {
            "user_id": user_id,
            "old_level": old_level,
            "new_level": new_level,
        })

    return entry


async def touch_activity(db: AsyncSession, user_id: str, now: datetime | None = None) -> Profile:
    """Record that the user was active without granting XP."""
    if now is None:
        now = utcnow()
    profile = await get_or_create_profile(db, user_id)
    if profile.last_activity_at is not None and profile.last_activity_at < _day_start(now):
        profile.prev_activity_at = profile.last_activity_at
        profile.xp_today = 0
    profile.last_activity_at = now
    profile.updated_at = now
    await db.flush()
    return profile


async def get_xp_summary(db: AsyncSession, user_id: str) -> dict:
    """Totals, level and streak fields for the XP bar."""
    profile = await get_or_create_profile(db, user_id)
    level_info = compute_level(profile.xp_total)
    return {
        "total": profile.xp_total,
        "today": profile.xp_today,
        "streak": profile.xp_streak,
        "level": level_info["level"],
        "level_progress": level_info["level_progress"],
        "xp_into_level": level_info["xp_into_level"],
        "xp_for_level": level_info["xp_for_level"],
        "streak_reset_at": profile.streak_reset_at,
        "last_activity_at": profile.last_activity_at,
    }


async def get_xp_history(
    db: AsyncSession,
    user_id: str,
    page: int = 1,
    per_page: int = 10,
) -> tuple[list[XPTransaction], int]:
    """Newest-first XP transactions and the total count."""
    total_result = await db.execute(
        select(func.count()).select_from(XPTransaction).where(XPTransaction.user_id == user_id)
    )
    result = await db.execute(
        select(XPTransaction)
        .where(XPTransaction.user_id == user_id)
        .order_by(XPTransaction.created_at.desc(), XPTransaction.id.desc())
        .offset((page - 1) * per_page)
        .limit(per_page)
    )
    return list(result.scalars().all()), total_result.scalar_one()
