"""Streak tests: reset countdown and the daily rollover."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from jsa.db.models import Profile
from jsa.gamification.streak_service import (
    get_streak_info,
    get_streak_reset_time,
    run_daily_rollover,
    start_of_day,
)
from jsa.gamification.xp_service import add_xp, touch_activity

# Rollover runs at 00:00 UTC on 2026-03-05 for 2026-03-04
ROLLOVER_AT = datetime(2026, 3, 5, 0, 0, 30, tzinfo=timezone.utc)
ENDED_DAY_NOON = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


class TestStreakResetTime:

    def test_unset(self):
        assert get_streak_reset_time(None) is None

    def test_past_reset_is_zero(self):
        now = datetime(2026, 3, 5, 10, 0, tzinfo=timezone.utc)
        assert get_streak_reset_time(now - timedelta(minutes=1), now) == {"hours": 0, "minutes": 0}

    def test_hours_and_minutes_remaining(self):
        now = datetime(2026, 3, 5, 10, 15, tzinfo=timezone.utc)
        reset_at = datetime(2026, 3, 6, 0, 0, tzinfo=timezone.utc)
        assert get_streak_reset_time(reset_at, now) == {"hours": 13, "minutes": 45}

    def test_start_of_day_is_utc_midnight(self):
        assert start_of_day(ENDED_DAY_NOON.date()) == datetime(2026, 3, 4, tzinfo=timezone.utc)

    def test_streak_info_reports_bonus(self):
        profile = Profile(user_id="u", xp_streak=5, streak_reset_at=None)
        info = get_streak_info(profile)
        assert info["streak"] == 5
        assert info["streak_bonus"] == 1.5
        assert info["reset_in"] is None


class TestDailyRollover:

    async def _profiles(self, db) -> dict[str, Profile]:
        result = await db.execute(select(Profile).execution_options(populate_existing=True))
        return {p.user_id: p for p in result.scalars().all()}

    @pytest.mark.asyncio
    async def test_active_continues_inactive_breaks(self, db_session):
        db_session.add_all([
            Profile(user_id="active", xp_streak=2, xp_today=40, last_activity_at=ENDED_DAY_NOON),
            Profile(user_id="idle", xp_streak=4, xp_today=0,
                    last_activity_at=ENDED_DAY_NOON - timedelta(days=2),
                    streak_reset_at=datetime(2026, 3, 4, tzinfo=timezone.utc)),
            Profile(user_id="new", xp_streak=0, xp_today=0, last_activity_at=None),
        ])
        await db_session.commit()

        summary = await run_daily_rollover(db_session, now=ROLLOVER_AT)
        assert summary == {"day": "2026-03-04", "continued": 1, "broken": 1, "skipped": False}

        profiles = await self._profiles(db_session)
        assert profiles["active"].xp_streak == 3
        assert profiles["active"].streak_reset_at == datetime(2026, 3, 6, tzinfo=timezone.utc)
        assert profiles["idle"].xp_streak == 0
        assert profiles["idle"].streak_reset_at is None
        assert profiles["new"].xp_streak == 0

    @pytest.mark.asyncio
    async def test_today_resets_for_stale_rows(self, db_session):
        db_session.add_all([
            Profile(user_id="a", xp_today=70, last_activity_at=ENDED_DAY_NOON),
            Profile(user_id="b", xp_today=15, last_activity_at=None),
        ])
        await db_session.commit()

        await run_daily_rollover(db_session, now=ROLLOVER_AT)

        profiles = await self._profiles(db_session)
        assert profiles["a"].xp_today == 0
        assert profiles["b"].xp_today == 0

    @pytest.mark.asyncio
    async def test_second_run_same_day_is_noop(self, db_session):
        db_session.add(Profile(user_id="a", xp_streak=1, last_activity_at=ENDED_DAY_NOON))
        await db_session.commit()

        await run_daily_rollover(db_session, now=ROLLOVER_AT)
        again = await run_daily_rollover(db_session, now=ROLLOVER_AT + timedelta(hours=1))

        assert again["skipped"] is True
        profiles = await self._profiles(db_session)
        assert profiles["a"].xp_streak == 2

    @pytest.mark.asyncio
    async def test_activity_after_midnight_does_not_count_for_ended_day(self, db_session):
        db_session.add(Profile(user_id="a", xp_streak=3, last_activity_at=ROLLOVER_AT + timedelta(seconds=10)))
        await db_session.commit()

        await run_daily_rollover(db_session, now=ROLLOVER_AT + timedelta(seconds=20))

        profiles = await self._profiles(db_session)
        assert profiles["a"].xp_streak == 0


class TestLateRollover:
    """The rollover for a day may run after users are already active on the next day."""

    @pytest.mark.asyncio
    async def test_new_day_grant_before_rollover_keeps_streak(self, db_session):
        db_session.add(Profile(user_id="a", xp_streak=3, xp_today=40, last_activity_at=ENDED_DAY_NOON))
        await db_session.commit()

        await add_xp(db_session, None, "a", 20, "lesson", now=datetime(2026, 3, 5, 0, 1, tzinfo=timezone.utc))
        await db_session.commit()
        summary = await run_daily_rollover(db_session, now=datetime(2026, 3, 5, 0, 5, tzinfo=timezone.utc))

        assert summary["continued"] == 1
        assert summary["broken"] == 0
        result = await db_session.execute(
            select(Profile).where(Profile.user_id == "a").execution_options(populate_existing=True)
        )
        profile = result.scalar_one()
        assert profile.xp_streak == 4
        assert profile.prev_activity_at == ENDED_DAY_NOON
        # 20 XP at the 3-day bonus (1.25); the ended day's 40 is not carried over
        assert profile.xp_today == 25

    @pytest.mark.asyncio
    async def test_skipped_day_still_breaks_when_active_again_today(self, db_session):
        db_session.add(Profile(
            user_id="a", xp_streak=3, xp_today=40,
            last_activity_at=ENDED_DAY_NOON - timedelta(days=1),
        ))
        await db_session.commit()

        await add_xp(db_session, None, "a", 20, "lesson", now=datetime(2026, 3, 5, 0, 1, tzinfo=timezone.utc))
        await db_session.commit()
        await run_daily_rollover(db_session, now=datetime(2026, 3, 5, 0, 5, tzinfo=timezone.utc))

        result = await db_session.execute(
            select(Profile).where(Profile.user_id == "a").execution_options(populate_existing=True)
        )
        profile = result.scalar_one()
        assert profile.xp_streak == 0
        assert profile.xp_today == 25

    @pytest.mark.asyncio
    async def test_touch_activity_on_new_day_keeps_streak(self, db_session):
        db_session.add(Profile(user_id="a", xp_streak=1, xp_today=10, last_activity_at=ENDED_DAY_NOON))
        await db_session.commit()

        await touch_activity(db_session, "a", now=datetime(2026, 3, 5, 0, 2, tzinfo=timezone.utc))
        await db_session.commit()
        await run_daily_rollover(db_session, now=datetime(2026, 3, 5, 0, 5, tzinfo=timezone.utc))

        result = await db_session.execute(
            select(Profile).where(Profile.user_id == "a").execution_options(populate_existing=True)
        )
        profile = result.scalar_one()
        assert profile.xp_streak == 2
        assert profile.xp_today == 0
