"""Coin API endpoints — 4 routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.auth.dependencies import AuthContext, get_current_user
from jsa.coins.schemas import (
    CoinBalanceResponse,
    CoinMutationResponse,
    CoinTransactionEntry,
    CoinTransactionsResponse,
    SpendCoinsRequest,
)
from jsa.coins.service import (
    earn_free_coin,
    get_balance,
    get_or_create_wallet,
    get_transactions,
    spend_coins,
)
from jsa.database import get_session
from jsa.dependencies import get_redis_or_none

router = APIRouter(prefix="/api/v1", tags=["Coins"])


def _entry(tx) -> CoinTransactionEntry:  # noqa: ANN001
    return CoinTransactionEntry(
        id=tx.id,
        amount=tx.amount,
        type=tx.type,
        description=tx.description,
        created_at=tx.created_at,
    )


@router.get("/users/me/coins", response_model=CoinBalanceResponse)
async def get_my_coins(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get current user's coin balance."""
    wallet = await get_or_create_wallet(db, ctx.user_id)
    await db.commit()
    return CoinBalanceResponse(balance=wallet.balance, updated_at=wallet.updated_at)


@router.get("/users/me/coins/transactions", response_model=CoinTransactionsResponse)
async def get_my_coin_transactions(
    limit: int = Query(10, ge=1, le=100),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Get latest coin transactions."""
    await get_or_create_wallet(db, ctx.user_id)
    await db.commit()
    txs = await get_transactions(db, ctx.user_id, limit)
    return CoinTransactionsResponse(transactions=[_entry(tx) for tx in txs])


@router.post("/users/me/coins/spend", response_model=CoinMutationResponse)
async def spend_my_coins(
    body: SpendCoinsRequest,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Spend coins. 400 if the balance does not cover the amount."""
    tx = await spend_coins(db, redis, ctx.user_id, body.amount, body.description)
    await db.commit()
    return CoinMutationResponse(balance=await get_balance(db, ctx.user_id), transaction=_entry(tx))


@router.post("/users/me/coins/earn-free", response_model=CoinMutationResponse)
async def earn_my_free_coin(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """Claim the periodic free coin."""
    tx = await earn_free_coin(db, redis, ctx.user_id)
    await db.commit()
    return CoinMutationResponse(balance=await get_balance(db, ctx.user_id), transaction=_entry(tx))
