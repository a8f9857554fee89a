"""Reward API endpoints — 9 routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.auth.dependencies import AuthContext, get_current_user, require_admin
from jsa.database import get_session
from jsa.dependencies import get_redis_or_none
from jsa.rewards.referrals import claim_referral_tier, get_referral_status, redeem_referral
from jsa.rewards.schemas import (
    AchievementResponse,
    AnnounceWinnerRequest,
    AnnounceWinnerResponse,
    ApproveQuoteRequest,
    ApproveQuoteResponse,
    ClaimReferralTierResponse,
    QuoteEntryRequest,
    QuoteEntryResponse,
    QuoteWinnerResponse,
    RedeemReferralRequest,
    RedeemReferralResponse,
    ReferralStatusResponse,
    ShareQuoteRequest,
    ShareQuoteResponse,
    UnlockAchievementResponse,
    VoteResponse,
)
from jsa.rewards.service import (
    announce_winner,
    approve_quote,
    submit_quote_entry,
    track_quote_share,
    unlock_achievement,
    vote_for_quote,
)

router = APIRouter(prefix="/api/v1", tags=["Rewards"])


@router.post("/admin/quotes/{quote_id}/approve", response_model=ApproveQuoteResponse)
async def admin_approve_quote(
    quote_id: int,
    body: ApproveQuoteRequest | None = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Approve a community quote and reward its author."""
    result = await approve_quote(db, redis, quote_id, featured=body.featured if body else False)
    await db.commit()
    return ApproveQuoteResponse(**result)


@router.post("/admin/quotes/announce-winner", response_model=AnnounceWinnerResponse)
async def admin_announce_winner(
    body: AnnounceWinnerRequest | None = None,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Pay the top-voted entry of an ended theme (latest ended theme by default)."""
    result = await announce_winner(db, redis, theme_id=body.theme_id if body else None)
    await db.commit()
    winner = result.pop("winner")
    return AnnounceWinnerResponse(
        winner=QuoteWinnerResponse(
            id=winner.id,
            theme_id=winner.theme_id,
            entry_id=winner.entry_id,
            user_id=winner.user_id,
            votes_count=winner.votes_count,
            coins_awarded=winner.coins_awarded,
            xp_awarded=winner.xp_awarded,
            announced_at=winner.announced_at,
        ) if winner is not None else None,
        **result,
    )


@router.post("/quotes/share", response_model=ShareQuoteResponse)
async def share_quote(
    body: ShareQuoteRequest,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Record a quote share. Rewards the first share per platform each week."""
    result = await track_quote_share(db, redis, ctx.user_id, body.quote_id, body.platform)
    await db.commit()
    return ShareQuoteResponse(**result)


@router.post("/quotes/entries", response_model=QuoteEntryResponse)
async def create_quote_entry(
    body: QuoteEntryRequest,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    entry = await submit_quote_entry(db, redis, ctx.user_id, body.quote_text)
    await db.commit()
    return QuoteEntryResponse(
        id=entry.id,
        theme_id=entry.theme_id,
        quote_text=entry.quote_text,
        vote_count=entry.vote_count,
        created_at=entry.created_at,
    )


@router.post("/quotes/entries/{entry_id}/vote", response_model=VoteResponse)
async def vote(
    entry_id: int,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    result = await vote_for_quote(db, redis, ctx.user_id, entry_id)
    await db.commit()
    return VoteResponse(**result)


@router.post("/achievements/{achievement_id}/unlock", response_model=UnlockAchievementResponse)
async def unlock(
    achievement_id: str,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Unlock a hidden achievement. success=false if it was already unlocked."""
    result = await unlock_achievement(db, redis, ctx.user_id, achievement_id)
    await db.commit()
    achievement = result.pop("achievement")
    return UnlockAchievementResponse(
        achievement=AchievementResponse(
            id=achievement.id,
            slug=achievement.slug,
            name=achievement.name,
            description=achievement.description,
            reward_type=achievement.reward_type,
        ),
        **result,
    )


# ── Referrals ──


@router.get("/users/me/referral", response_model=ReferralStatusResponse)
async def my_referral(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Referral code, completed referrals and the current tier."""
    status = await get_referral_status(db, ctx.user_id)
    await db.commit()
    return ReferralStatusResponse(**status)


@router.post("/referrals/redeem", response_model=RedeemReferralResponse)
async def redeem(
    body: RedeemReferralRequest,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    result = await redeem_referral(db, redis, ctx.user_id, body.referral_code)
    await db.commit()
    return RedeemReferralResponse(**result)


@router.post("/users/me/referral/claim-tier", response_model=ClaimReferralTierResponse)
async def claim_tier(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Claim the coin bonus for the current referral tier."""
    result = await claim_referral_tier(db, redis, ctx.user_id)
    await db.commit()
    return ClaimReferralTierResponse(**result)
