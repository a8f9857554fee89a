"""Coin ledger: balances, atomic spends, rewards and the free-coin claim.

Every balance change writes exactly one coin_transactions row in the same
transaction. Spends are a single conditional decrement, so concurrent
spends can never take the balance below zero.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.config import get_settings
from jsa.db.base import utcnow
from jsa.db.models import CoinTransaction, UserCoins
from jsa.errors import BusinessRuleRejection, InsufficientBalance, ValidationError
from jsa.events import publish_event
from jsa.gamification.grants import claim_grant, get_grant

logger = logging.getLogger(__name__)

TRANSACTION_TYPES = frozenset({"earn", "spend", "reward"})


async def get_or_create_wallet(db: AsyncSession, user_id: str, now: datetime | None = None) -> UserCoins:
    """Get or create the coin balance row, crediting the signup grant once.

    The welcome transaction is stamped with ``now`` so it never sorts after
    the movement that created the wallet.
    """
    result = await db.execute(select(UserCoins).where(UserCoins.user_id == user_id))
    wallet = result.scalar_one_or_none()
    if wallet is None:
        initial = get_settings().initial_coin_balance
        if now is None:
            now = utcnow()
        wallet = UserCoins(user_id=user_id, balance=initial, updated_at=now)
        db.add(wallet)
        await db.flush()
        if initial > 0:
            db.add(CoinTransaction(
                user_id=user_id,
                amount=initial,
                type="reward",
                description="Welcome coins",
                created_at=now,
            ))
            await db.flush()
    return wallet


async def get_balance(db: AsyncSession, user_id: str) -> int:
    """Current balance read straight from the row, bypassing the identity map."""
    result = await db.execute(select(UserCoins.balance).where(UserCoins.user_id == user_id))
    balance = result.scalar_one_or_none()
    if balance is None:
        wallet = await get_or_create_wallet(db, user_id)
        return wallet.balance
    return balance


async def earn_coins(
    db: AsyncSession,
    redis: object,
    user_id: str,
    amount: int,
    description: str,
    type_: str = "earn",
    now: datetime | None = None,
) -> CoinTransaction:
    """Credit coins and record the transaction. Caller commits."""
    if amount <= 0:
        raise ValidationError("Coin amount must be positive")
    if type_ not in TRANSACTION_TYPES or type_ == "spend":
        raise ValidationError(f"Invalid credit type: {type_}")
    if now is None:
        now = utcnow()

    await get_or_create_wallet(db, user_id, now)
    await db.execute(
        update(UserCoins)
        .where(UserCoins.user_id == user_id)
        .values(balance=UserCoins.balance + amount, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    tx = CoinTransaction(
        user_id=user_id,
        amount=amount,
        type=type_,
        description=description,
        created_at=now,
    )
    db.add(tx)
    await db.flush()

    await publish_event(redis, "pubsub:coins_updated", {
        "user_id": user_id,
        "amount": amount,
        "type": type_,
    })
    return tx


async def spend_coins(
    db: AsyncSession,
    redis: object,
    user_id: str,
    amount: int,
    description: str,
    now: datetime | None = None,
) -> CoinTransaction:
    """Debit coins if the balance covers it. Raises InsufficientBalance otherwise.

    The balance check and the debit are one UPDATE ... WHERE balance >= amount.
    """
    if amount <= 0:
        raise ValidationError("Coin amount must be positive")
    if now is None:
        now = utcnow()

    await get_or_create_wallet(db, user_id, now)
    result = await db.execute(
        update(UserCoins)
        .where(UserCoins.user_id == user_id, UserCoins.balance >= amount)
        .values(balance=UserCoins.balance - amount, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise InsufficientBalance("Insufficient coins")

    tx = CoinTransaction(
        user_id=user_id,
        amount=-amount,
        type="spend",
        description=description,
        created_at=now,
    )
    db.add(tx)
    await db.flush()

    await publish_event(redis, "pubsub:coins_updated", {
        "user_id": user_id,
        "amount": -amount,
        "type": "spend",
    })
    return tx


async def earn_free_coin(
    db: AsyncSession,
    redis: object,
    user_id: str,
    now: datetime | None = None,
) -> CoinTransaction:
    """Grant the periodic free coin. One claim per cooldown window."""
    settings = get_settings()
    if now is None:
        now = utcnow()

    key = f"free_coin:{user_id}"
    cooldown = timedelta(hours=settings.free_coin_cooldown_hours)
    if not await claim_grant(db, key, user_id=user_id, ttl=cooldown, now=now):
        grant = await get_grant(db, key)
        available_at = grant.expires_at.isoformat() if grant and grant.expires_at else "later"
        raise BusinessRuleRejection(f"Free coin already claimed. Next one available at {available_at}")

    return await earn_coins(
        db, redis, user_id, settings.free_coin_amount, "Free coin", type_="earn", now=now,
    )


async def get_transactions(db: AsyncSession, user_id: str, limit: int = 10) -> list[CoinTransaction]:
    """Newest-first coin transactions."""
    result = await db.execute(
        select(CoinTransaction)
        .where(CoinTransaction.user_id == user_id)
        .order_by(CoinTransaction.created_at.desc(), CoinTransaction.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())
