"""Referral codes, redemption and tier bonuses.

Codes are 8-character alphanumeric (A-Z, 0-9), generated server-side with a
cryptographic random source the first time a user asks for theirs. Redeeming
a code pays the referrer; every 5, 10 and 25 completed referrals unlock a
tier bonus the referrer claims once.

  referral:<referred user>        once ever
  referral_tier:<user>:<tier>     once per tier
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.coins.service import earn_coins
from jsa.db.base import utcnow
from jsa.db.models import Profile, Referral
from jsa.errors import BusinessRuleRejection, DuplicateGrant, RemoteFailure, ValidationError
from jsa.gamification.grants import claim_grant, is_granted
from jsa.gamification.xp_service import get_or_create_profile

logger = logging.getLogger(__name__)

REFERRAL_CHARSET = string.ascii_uppercase + string.digits  # A-Z, 0-9
REFERRAL_CODE_LENGTH = 8
REFERRAL_COINS = 5

# (min completed referrals, tier, bonus coins), highest first
REFERRAL_TIERS: list[tuple[int, str, int]] = [
    (25, "Diamond", 100),
    (10, "Gold", 50),
    (5, "Silver", 25),
]
BASE_TIER = "Bronze"


def generate_referral_code() -> str:
    """Generate a cryptographically random 8-character referral code."""
    return "".join(secrets.choice(REFERRAL_CHARSET) for _ in range(REFERRAL_CODE_LENGTH))


def normalize_referral_code(code: str) -> str:
    """Normalize a referral code to uppercase for case-insensitive lookup."""
    return code.strip().upper()


def referral_tier(count: int) -> tuple[str, int]:
    """Tier name and bonus for a number of completed referrals."""
    for threshold, tier, bonus in REFERRAL_TIERS:
        if count >= threshold:
            return tier, bonus
    return BASE_TIER, 0


async def get_or_create_referral_code(db: AsyncSession, user_id: str) -> str:
    """Return the user's referral code, assigning a unique one on first use."""
    profile = await get_or_create_profile(db, user_id)
    if profile.referral_code:
        return profile.referral_code

    for _ in range(10):
        code = generate_referral_code()
        existing = await db.execute(select(Profile.user_id).where(Profile.referral_code == code))
        if existing.scalar_one_or_none() is None:
            profile.referral_code = code
            profile.updated_at = utcnow()
            await db.flush()
            return code
    raise RemoteFailure("Failed to generate unique referral code after 10 attempts")


async def count_referrals(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Referral)
        .where(Referral.referrer_id == user_id, Referral.status == "completed")
    )
    return result.scalar_one()


async def redeem_referral(
    db: AsyncSession,
    redis: object,
    user_id: str,
    referral_code: str,
    now: datetime | None = None,
) -> dict:
    """Link the caller to the owner of ``referral_code`` and pay the referrer.

    A user can be referred once and never by themselves.
    """
    code = normalize_referral_code(referral_code or "")
    if not code:
        raise ValidationError("Referral code is required")
    if now is None:
        now = utcnow()

    profile = await get_or_create_profile(db, user_id)
    if profile.referred_by is not None:
        raise DuplicateGrant("User already has a referrer")

    result = await db.execute(select(Profile).where(Profile.referral_code == code))
    referrer = result.scalar_one_or_none()
    if referrer is None:
        raise ValidationError("Invalid referral code")
    if referrer.user_id == user_id:
        raise BusinessRuleRejection("Cannot refer yourself")

    if not await claim_grant(db, f"referral:{user_id}", user_id=referrer.user_id, now=now):
        raise DuplicateGrant("User already has a referrer")

    profile.referred_by = referrer.user_id
    profile.updated_at = now
    db.add(Referral(
        referrer_id=referrer.user_id,
        referred_id=user_id,
        status="completed",
        coins_earned=REFERRAL_COINS,
        created_at=now,
    ))
    await earn_coins(db, redis, referrer.user_id, REFERRAL_COINS, "Referral reward", type_="reward", now=now)
    await db.flush()

    count = await count_referrals(db, referrer.user_id)
    if any(count == threshold for threshold, _, _ in REFERRAL_TIERS):
        logger.info("User %s reached the %s referral tier", referrer.user_id, referral_tier(count)[0])

    return {
        "success": True,
        "message": "Referral processed successfully",
        "reward": REFERRAL_COINS,
    }


async def get_referral_status(db: AsyncSession, user_id: str) -> dict:
    """Code, completed referrals, coins earned and the current tier."""
    code = await get_or_create_referral_code(db, user_id)
    count = await count_referrals(db, user_id)
    earned = await db.execute(
        select(func.coalesce(func.sum(Referral.coins_earned), 0))
        .where(Referral.referrer_id == user_id, Referral.status == "completed")
    )
    tier, bonus = referral_tier(count)
    claimed = bonus > 0 and await is_granted(db, f"referral_tier:{user_id}:{tier}")
    return {
        "referral_code": code,
        "referral_count": count,
        "coins_earned": earned.scalar_one(),
        "tier": tier,
        "tier_bonus": bonus,
        "tier_claimed": claimed,
    }


async def claim_referral_tier(
    db: AsyncSession,
    redis: object,
    user_id: str,
    now: datetime | None = None,
) -> dict:
    """Pay the bonus for the user's current referral tier, once per tier."""
    if now is None:
        now = utcnow()
    tier, bonus = referral_tier(await count_referrals(db, user_id))
    if bonus == 0:
        raise BusinessRuleRejection("No referral tier bonus available")

    if not await claim_grant(db, f"referral_tier:{user_id}:{tier}", user_id=user_id, now=now):
        raise DuplicateGrant(f"{tier} tier bonus already claimed")

    await earn_coins(db, redis, user_id, bonus, f"{tier} tier referral bonus", type_="reward", now=now)
    logger.info("User %s claimed the %s referral bonus (%d coins)", user_id, tier, bonus)
    return {"success": True, "tier": tier, "bonus": bonus}
