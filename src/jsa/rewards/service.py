"""Reward dispatch for community actions.

Each action records its own row and pays its XP/coin reward in the caller's
transaction. Repeat rewards are refused through the grant registry:

  quote_approval:<quote>                    once ever
  quote_share:<user>:<quote>:<platform>     once per 7 days
  quote_vote:<user>:<entry>                 once ever
  quote_vote_day:<user>:<theme>:<date>      once per UTC day
  quote_winner:<theme>                      once ever
  achievement:<user>:<achievement>          once ever
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.coins.service import earn_coins
from jsa.db.base import utcnow
from jsa.db.models import (
    Achievement,
    QuoteEntry,
    QuoteShare,
    QuoteSubmission,
    QuoteTheme,
    QuoteVote,
    QuoteWinner,
    UserAchievement,
)
from jsa.errors import BusinessRuleRejection, DuplicateGrant, NotFound, ValidationError
from jsa.gamification.grants import claim_grant, is_granted
from jsa.gamification.xp_service import add_xp

logger = logging.getLogger(__name__)

APPROVED_QUOTE_COINS = 10
FEATURED_QUOTE_COINS = 50
SHARE_XP = 10
SHARE_COINS = 5
SHARE_REWARD_WINDOW = timedelta(days=7)
VOTE_XP = 5
ENTRY_XP = 15
ACHIEVEMENT_XP = 25
QUOTE_WINNER_COINS = 50
QUOTE_WINNER_XP = 100
MAX_QUOTE_LENGTH = 180


async def _get_quote(db: AsyncSession, quote_id: int) -> QuoteSubmission:
    result = await db.execute(select(QuoteSubmission).where(QuoteSubmission.id == quote_id))
    quote = result.scalar_one_or_none()
    if quote is None:
        raise NotFound("Quote not found")
    return quote


async def approve_quote(
    db: AsyncSession,
    redis: object,
    quote_id: int,
    featured: bool = False,
    now: datetime | None = None,
) -> dict:
    """Approve (and optionally feature) a quote, paying its author once."""
    if now is None:
        now = utcnow()
    quote = await _get_quote(db, quote_id)
    quote.approved = True
    if featured:
        quote.featured_at = now

    reward = 0
    if await claim_grant(db, f"quote_approval:{quote_id}", user_id=quote.user_id, now=now):
        reward = FEATURED_QUOTE_COINS if featured else APPROVED_QUOTE_COINS
        await earn_coins(
            db, redis, quote.user_id, reward,
            "Featured quote reward" if featured else "Approved quote reward",
            type_="reward", now=now,
        )
    await db.flush()

    logger.info("Quote %d %s (reward %d)", quote_id, "featured" if featured else "approved", reward)
    return {
        "success": True,
        "message": f"Quote {'featured' if featured else 'approved'} successfully",
        "reward": reward,
    }


async def track_quote_share(
    db: AsyncSession,
    redis: object,
    user_id: str,
    quote_id: int,
    platform: str,
    now: datetime | None = None,
) -> dict:
    """Record a share; reward the first share per platform in a 7-day window."""
    platform = platform.strip().lower()
    if not platform:
        raise ValidationError("Quote ID and platform are required")
    if now is None:
        now = utcnow()
    await _get_quote(db, quote_id)

    key = f"quote_share:{user_id}:{quote_id}:{platform}"
    rewarded = await claim_grant(db, key, user_id=user_id, ttl=SHARE_REWARD_WINDOW, now=now)

    db.add(QuoteShare(
        user_id=user_id,
        quote_id=quote_id,
        platform=platform,
        rewarded=rewarded,
        created_at=now,
    ))
    await db.execute(
        update(QuoteSubmission)
        .where(QuoteSubmission.id == quote_id)
        .values(share_count=QuoteSubmission.share_count + 1)
        .execution_options(synchronize_session=False)
    )
    if rewarded:
        await add_xp(db, redis, user_id, SHARE_XP, "quote_sharing", now=now)
        await earn_coins(db, redis, user_id, SHARE_COINS, "Quote sharing reward", type_="reward", now=now)
    await db.flush()

    return {
        "success": True,
        "message": "Share tracked successfully",
        "rewards_awarded": rewarded,
    }


async def get_active_theme(db: AsyncSession, now: datetime | None = None) -> QuoteTheme | None:
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(QuoteTheme)
        .where(QuoteTheme.start_date <= now, QuoteTheme.end_date >= now)
        .order_by(QuoteTheme.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def submit_quote_entry(
    db: AsyncSession,
    redis: object,
    user_id: str,
    quote_text: str,
    now: datetime | None = None,
) -> QuoteEntry:
    """Enter the active theme's quote competition (one entry per theme)."""
    text = (quote_text or "").strip()
    if not text:
        raise ValidationError("Quote text is required")
    if len(text) > MAX_QUOTE_LENGTH:
        raise ValidationError(f"Quote must be {MAX_QUOTE_LENGTH} characters or less")
    if now is None:
        now = utcnow()

    theme = await get_active_theme(db, now)
    if theme is None:
        raise BusinessRuleRejection("No active quote theme")

    existing = await db.execute(
        select(QuoteEntry.id).where(QuoteEntry.theme_id == theme.id, QuoteEntry.user_id == user_id)
    )
    if existing.scalar_one_or_none() is not None:
        raise DuplicateGrant("You have already submitted an entry for this theme")

    entry = QuoteEntry(theme_id=theme.id, user_id=user_id, quote_text=text, created_at=now)
    db.add(entry)
    await db.flush()
    await add_xp(db, redis, user_id, ENTRY_XP, "quote_entry", now=now)
    return entry


async def vote_for_quote(
    db: AsyncSession,
    redis: object,
    user_id: str,
    entry_id: int,
    now: datetime | None = None,
) -> dict:
    """Vote for another user's entry. One vote per entry, one per theme per day."""
    if now is None:
        now = utcnow()
    result = await db.execute(select(QuoteEntry).where(QuoteEntry.id == entry_id))
    entry = result.scalar_one_or_none()
    if entry is None:
        raise NotFound("Quote entry not found")
    if entry.user_id == user_id:
        raise BusinessRuleRejection("You cannot vote for your own entry")

    entry_key = f"quote_vote:{user_id}:{entry_id}"
    day_key = f"quote_vote_day:{user_id}:{entry.theme_id}:{now.date().isoformat()}"
    if await is_granted(db, entry_key, now):
        raise DuplicateGrant("You have already voted for this entry")
    if await is_granted(db, day_key, now):
        raise DuplicateGrant("You have already voted today")

    await claim_grant(db, entry_key, user_id=user_id, now=now)
    await claim_grant(db, day_key, user_id=user_id, now=now)
    db.add(QuoteVote(entry_id=entry_id, user_id=user_id, created_at=now))
    await db.execute(
        update(QuoteEntry)
        .where(QuoteEntry.id == entry_id)
        .values(vote_count=QuoteEntry.vote_count + 1)
        .execution_options(synchronize_session=False)
    )
    await add_xp(db, redis, user_id, VOTE_XP, "quote_voting", now=now)
    await db.flush()

    return {"success": True, "message": "Vote recorded successfully"}


async def _theme_for_announcement(db: AsyncSession, theme_id: int | None, now: datetime) -> QuoteTheme:
    if theme_id is None:
        result = await db.execute(
            select(QuoteTheme)
            .where(QuoteTheme.end_date <= now)
            .order_by(QuoteTheme.end_date.desc())
            .limit(1)
        )
        theme = result.scalar_one_or_none()
        if theme is None:
            raise NotFound("No eligible theme found for winner announcement")
        return theme

    result = await db.execute(select(QuoteTheme).where(QuoteTheme.id == theme_id))
    theme = result.scalar_one_or_none()
    if theme is None:
        raise NotFound("Quote theme not found")
    if theme.end_date > now:
        raise BusinessRuleRejection("Quote theme has not ended yet")
    return theme


async def announce_winner(
    db: AsyncSession,
    redis: object,
    theme_id: int | None = None,
    now: datetime | None = None,
) -> dict:
    """Pick the top-voted entry of an ended theme and pay its author once.

    Without ``theme_id`` the most recently ended theme is used. Ties go to the
    earliest entry. A theme with no voted entries, or one whose winner was
    already announced, returns success=false and pays nothing.
    """
    if now is None:
        now = utcnow()
    theme = await _theme_for_announcement(db, theme_id, now)

    key = f"quote_winner:{theme.id}"
    if await is_granted(db, key, now):
        return {"success": False, "message": "Winner already announced", "winner": None}

    result = await db.execute(
        select(QuoteEntry)
        .where(QuoteEntry.theme_id == theme.id, QuoteEntry.vote_count > 0)
        .order_by(QuoteEntry.vote_count.desc(), QuoteEntry.created_at, QuoteEntry.id)
        .limit(1)
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        return {"success": False, "message": "No winner selected: the theme has no voted entries", "winner": None}

    await claim_grant(db, key, user_id=entry.user_id, now=now)
    await earn_coins(
        db, redis, entry.user_id, QUOTE_WINNER_COINS, "Quote competition winner", type_="reward", now=now,
    )
    tx = await add_xp(db, redis, entry.user_id, QUOTE_WINNER_XP, "quote_competition_win", now=now)
    winner = QuoteWinner(
        theme_id=theme.id,
        entry_id=entry.id,
        user_id=entry.user_id,
        votes_count=entry.vote_count,
        coins_awarded=QUOTE_WINNER_COINS,
        xp_awarded=tx.final_amount if tx is not None else 0,
        announced_at=now,
    )
    db.add(winner)
    await db.flush()

    logger.info("Theme %d winner: entry %d by %s (%d votes)", theme.id, entry.id, entry.user_id, entry.vote_count)
    return {"success": True, "message": "Winner announced successfully", "winner": winner}


async def _find_achievement(db: AsyncSession, achievement_ref: str) -> Achievement | None:
    if achievement_ref.isdigit():
        stmt = select(Achievement).where(Achievement.id == int(achievement_ref))
    else:
        stmt = select(Achievement).where(Achievement.slug == achievement_ref)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def unlock_achievement(
    db: AsyncSession,
    redis: object,
    user_id: str,
    achievement_ref: str,
    now: datetime | None = None,
) -> dict:
    """Unlock a hidden achievement by id or slug. A repeat unlock is not an error."""
    if now is None:
        now = utcnow()
    achievement = await _find_achievement(db, achievement_ref)
    if achievement is None:
        raise NotFound("Achievement not found")

    if not await claim_grant(db, f"achievement:{user_id}:{achievement.id}", user_id=user_id, now=now):
        return {
            "success": False,
            "message": "Achievement already unlocked",
            "achievement": achievement,
            "reward_processed": False,
        }

    db.add(UserAchievement(
        user_id=user_id,
        achievement_id=achievement.id,
        unlocked_at=now,
        reward_claimed=achievement.reward_type in ("avatar_item", "badge", "color"),
    ))
    await add_xp(db, redis, user_id, ACHIEVEMENT_XP, "achievement_unlocked", now=now)
    await db.flush()

    logger.info("Achievement %s unlocked by %s", achievement.slug, user_id)
    return {
        "success": True,
        "message": "Achievement unlocked successfully",
        "achievement": achievement,
        "reward_processed": True,
    }
