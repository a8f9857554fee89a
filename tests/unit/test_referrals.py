"""Referral tests: codes, redemption rules and tier bonuses."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest
from sqlalchemy import select

from jsa.coins.service import get_balance
from jsa.db.models import Profile, Referral
from jsa.errors import BusinessRuleRejection, DuplicateGrant, ValidationError
from jsa.rewards.referrals import (
    REFERRAL_CHARSET,
    claim_referral_tier,
    generate_referral_code,
    get_or_create_referral_code,
    get_referral_status,
    normalize_referral_code,
    redeem_referral,
    referral_tier,
)

NOW = datetime(2026, 3, 4, 9, 0, tzinfo=timezone.utc)


async def _referrer(db, user_id: str = "ref", code: str = "JUNGLE01") -> Profile:
    profile = Profile(user_id=user_id, referral_code=code)
    db.add(profile)
    await db.commit()
    return profile


async def _refer_many(db, count: int, code: str = "JUNGLE01") -> None:
    for i in range(count):
        await redeem_referral(db, None, f"friend{i}", code, now=NOW)
    await db.commit()


class TestReferralCodes:

    def test_generated_code_shape(self):
        code = generate_referral_code()
        assert len(code) == 8
        assert all(c in REFERRAL_CHARSET for c in code)

    def test_normalize(self):
        assert normalize_referral_code("  jungle01 ") == "JUNGLE01"

    @pytest.mark.asyncio
    async def test_code_assigned_once(self, db_session):
        first = await get_or_create_referral_code(db_session, "u1")
        second = await get_or_create_referral_code(db_session, "u1")
        assert first == second
        stored = await db_session.execute(select(Profile.referral_code).where(Profile.user_id == "u1"))
        assert stored.scalar_one() == first


class TestReferralTiers:

    @pytest.mark.parametrize(
        "count,expected",
        [(0, ("Bronze", 0)), (4, ("Bronze", 0)), (5, ("Silver", 25)), (9, ("Silver", 25)),
         (10, ("Gold", 50)), (25, ("Diamond", 100)), (40, ("Diamond", 100))],
    )
    def test_thresholds(self, count, expected):
        assert referral_tier(count) == expected


class TestRedeemReferral:

    @pytest.mark.asyncio
    async def test_redeem_pays_referrer(self, db_session):
        await _referrer(db_session)
        result = await redeem_referral(db_session, None, "newbie", "jungle01", now=NOW)

        assert result == {"success": True, "message": "Referral processed successfully", "reward": 5}
        assert await get_balance(db_session, "ref") == 10
        profile = (await db_session.execute(select(Profile).where(Profile.user_id == "newbie"))).scalar_one()
        assert profile.referred_by == "ref"
        referral = (await db_session.execute(select(Referral))).scalar_one()
        assert (referral.referrer_id, referral.referred_id, referral.coins_earned) == ("ref", "newbie", 5)

    @pytest.mark.asyncio
    async def test_blank_code_rejected(self, db_session):
        with pytest.raises(ValidationError, match="required"):
            await redeem_referral(db_session, None, "newbie", "   ", now=NOW)

    @pytest.mark.asyncio
    async def test_unknown_code_rejected(self, db_session):
        with pytest.raises(ValidationError, match="Invalid referral code"):
            await redeem_referral(db_session, None, "newbie", "NOPE0000", now=NOW)

    @pytest.mark.asyncio
    async def test_self_referral_rejected(self, db_session):
        await _referrer(db_session)
        with pytest.raises(BusinessRuleRejection, match="Cannot refer yourself"):
            await redeem_referral(db_session, None, "ref", "JUNGLE01", now=NOW)
        assert await get_balance(db_session, "ref") == 5

    @pytest.mark.asyncio
    async def test_second_referrer_rejected(self, db_session):
        await _referrer(db_session)
        await _referrer(db_session, "other", "OTHER001")
        await redeem_referral(db_session, None, "newbie", "JUNGLE01", now=NOW)
        await db_session.commit()

        with pytest.raises(DuplicateGrant, match="already has a referrer"):
            await redeem_referral(db_session, None, "newbie", "OTHER001", now=NOW)
        assert await get_balance(db_session, "other") == 5


class TestClaimReferralTier:

    @pytest.mark.asyncio
    async def test_below_silver_has_nothing_to_claim(self, db_session):
        await _referrer(db_session)
        await _refer_many(db_session, 4)
        with pytest.raises(BusinessRuleRejection, match="No referral tier bonus"):
            await claim_referral_tier(db_session, None, "ref", now=NOW)

    @pytest.mark.asyncio
    async def test_silver_bonus_paid_once(self, db_session):
        await _referrer(db_session)
        await _refer_many(db_session, 5)

        result = await claim_referral_tier(db_session, None, "ref", now=NOW)
        assert result == {"success": True, "tier": "Silver", "bonus": 25}
        # welcome 5 + 5 referrals x 5 + Silver 25
        assert await get_balance(db_session, "ref") == 55

        with pytest.raises(DuplicateGrant, match="Silver tier bonus already claimed"):
            await claim_referral_tier(db_session, None, "ref", now=NOW)
        assert await get_balance(db_session, "ref") == 55

    @pytest.mark.asyncio
    async def test_status_reports_tier_and_claim(self, db_session):
        await _referrer(db_session)
        await _refer_many(db_session, 5)

        status = await get_referral_status(db_session, "ref")
        assert status == {
            "referral_code": "JUNGLE01",
            "referral_count": 5,
            "coins_earned": 25,
            "tier": "Silver",
            "tier_bonus": 25,
            "tier_claimed": False,
        }

        await claim_referral_tier(db_session, None, "ref", now=NOW)
        assert (await get_referral_status(db_session, "ref"))["tier_claimed"] is True
