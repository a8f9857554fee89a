"""XP, streak and multiplier API endpoints — 6 routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.auth.dependencies import AuthContext, get_current_user, require_cron
from jsa.config import get_settings
from jsa.database import get_session
from jsa.db.models import XPTransaction
from jsa.dependencies import get_redis_or_none
from jsa.errors import ValidationError
from jsa.gamification.schemas import (
    AddXPRequest,
    AddXPResponse,
    MultiplierResponse,
    RolloverResponse,
    StreakResponse,
    XPHistoryEntry,
    XPHistoryResponse,
    XPResponse,
)
from jsa.gamification.streak_service import get_streak_info, run_daily_rollover
from jsa.gamification.xp_service import (
    add_xp,
    get_or_create_profile,
    get_xp_history,
    get_xp_summary,
    resolve_multiplier,
)

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


def _history_entry(tx: XPTransaction) -> XPHistoryEntry:
    return XPHistoryEntry(
        id=tx.id,
        amount=tx.amount,
        source=tx.source,
        multiplier=tx.multiplier,
        streak_bonus=tx.streak_bonus,
        final_amount=tx.final_amount,
        created_at=tx.created_at,
    )


# ── XP ──


@router.get("/users/me/xp", response_model=XPResponse)
async def get_my_xp(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get current user's XP, level and progress."""
    summary = await get_xp_summary(db, ctx.user_id)
    await db.commit()
    return XPResponse(**summary)


@router.get("/users/me/xp/history", response_model=XPHistoryResponse)
async def get_my_xp_history(
    page: int = Query(1, ge=1),
    per_page: int = Query(10, ge=1, le=100),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Paginated XP transactions, newest first."""
    entries, total = await get_xp_history(db, ctx.user_id, page, per_page)
    return XPHistoryResponse(
        entries=[_history_entry(tx) for tx in entries],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.post("/users/me/xp", response_model=AddXPResponse)
async def add_my_xp(
    body: AddXPRequest,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Grant XP for a client-side activity, scaled by tier and streak."""
    limit = get_settings().max_manual_xp_grant
    if body.amount > limit:
        raise ValidationError(f"XP amount must be at most {limit}")

    tx = await add_xp(
        db, redis, ctx.user_id, body.amount, body.source,
        idempotency_key=f"{ctx.user_id}:{body.idempotency_key}" if body.idempotency_key else None,
    )
    await db.commit()
    summary = await get_xp_summary(db, ctx.user_id)
    return AddXPResponse(
        granted=tx is not None,
        transaction=_history_entry(tx) if tx is not None else None,
        xp=XPResponse(**summary),
    )


# ── Streak & multipliers ──


@router.get("/users/me/streak", response_model=StreakResponse)
async def get_my_streak(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Current streak and time left before it breaks."""
    profile = await get_or_create_profile(db, ctx.user_id)
    await db.commit()
    return StreakResponse(**get_streak_info(profile))


@router.get("/multipliers", response_model=MultiplierResponse)
async def get_my_multipliers(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The multiplier the caller's next XP grant would receive."""
    profile = await get_or_create_profile(db, ctx.user_id)
    multiplier = await resolve_multiplier(db, ctx.user_id, profile.xp_streak)
    await db.commit()
    return MultiplierResponse(
        tier=float(multiplier.tier),
        streak=float(multiplier.streak),
        combined=float(multiplier.combined),
        policy=get_settings().multiplier_policy,
    )


# ── Cron ──


@router.post("/cron/daily-rollover", response_model=RolloverResponse)
async def daily_rollover(
    ctx: AuthContext = Depends(require_cron),
    db: AsyncSession = Depends(get_session),
):
    """Reset daily XP and advance or break streaks. Safe to call twice."""
    return RolloverResponse(**await run_daily_rollover(db))
