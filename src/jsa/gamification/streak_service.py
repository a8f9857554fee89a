"""Streak tracking: daily rollover and reset countdown.

Days are UTC calendar days. The rollover runs at 00:00 UTC for the day that
just ended:
1. ``xp_today`` resets to 0 unless the user has already been active today
2. Users active on the ended day: streak + 1, streak_reset_at = end of today
3. Everyone else: streak = 0, streak_reset_at cleared

Activity on the ended day is read from ``last_activity_at`` or, when the user
has already been active again today, from ``prev_activity_at``. A rollover
that runs late therefore still credits the ended day.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import and_, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.db.base import utcnow
from jsa.db.models import Profile
from jsa.gamification.grants import claim_grant
from jsa.gamification.multipliers import streak_bonus

logger = logging.getLogger(__name__)


def start_of_day(d: date) -> datetime:
    """00:00 UTC of a calendar day."""
    return datetime.combine(d, time.min, tzinfo=timezone.utc)


def _within(column, start: datetime, end: datetime):  # noqa: ANN202
    return and_(column >= start, column < end)


def _outside(column, start: datetime, end: datetime):  # noqa: ANN202
    return or_(column.is_(None), column < start, column >= end)


def get_streak_reset_time(reset_at: datetime | None, now: datetime | None = None) -> dict | None:
    """Hours and minutes left before inactivity breaks the streak.

    None when no reset is scheduled; zeros once the reset time has passed.
    """
    if reset_at is None:
        return None
    if now is None:
        now = utcnow()
    remaining = reset_at - now
    if remaining <= timedelta(0):
        return {"hours": 0, "minutes": 0}
    seconds = int(remaining.total_seconds())
    return {"hours": seconds // 3600, "minutes": (seconds % 3600) // 60}


def get_streak_info(profile: Profile, now: datetime | None = None) -> dict:
    """Streak view for the streak indicator."""
    return {
        "streak": profile.xp_streak,
        "streak_bonus": float(streak_bonus(profile.xp_streak)),
        "streak_reset_at": profile.streak_reset_at,
        "reset_in": get_streak_reset_time(profile.streak_reset_at, now),
        "last_activity_at": profile.last_activity_at,
    }


async def run_daily_rollover(db: AsyncSession, now: datetime | None = None) -> dict:
    """Reset daily XP and advance or break streaks for the day that just ended.

    Idempotent per day: a second run for the same day is a no-op.
    Returns counts of continued and broken streaks.
    """
    if now is None:
        now = utcnow()
    today = now.astimezone(timezone.utc).date()
    ended_day = today - timedelta(days=1)

    if not await claim_grant(db, f"rollover:{ended_day.isoformat()}", now=now):
        logger.info("Daily rollover for %s already ran, skipping", ended_day)
        return {"day": ended_day.isoformat(), "continued": 0, "broken": 0, "skipped": True}

    day_start = start_of_day(ended_day)
    day_end = start_of_day(today)
    active_on_day = or_(
        _within(Profile.last_activity_at, day_start, day_end),
        _within(Profile.prev_activity_at, day_start, day_end),
    )
    inactive_on_day = and_(
        _outside(Profile.last_activity_at, day_start, day_end),
        _outside(Profile.prev_activity_at, day_start, day_end),
    )

    continued = await db.execute(
        update(Profile)
        .where(active_on_day)
        .values(
            xp_streak=Profile.xp_streak + 1,
            streak_reset_at=start_of_day(today + timedelta(days=1)),
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    broken = await db.execute(
        update(Profile)
        .where(inactive_on_day, Profile.xp_streak > 0)
        .values(xp_streak=0, streak_reset_at=None, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    await db.execute(
        update(Profile)
        .where(
            Profile.xp_today != 0,
            or_(Profile.last_activity_at.is_(None), Profile.last_activity_at < day_end),
        )
        .values(xp_today=0)
        .execution_options(synchronize_session=False)
    )

    await db.commit()
    logger.info(
        "Daily rollover for %s: %d streaks continued, %d broken",
        ended_day, continued.rowcount, broken.rowcount,
    )
    return {
        "day": ended_day.isoformat(),
        "continued": continued.rowcount,
        "broken": broken.rowcount,
        "skipped": False,
    }
