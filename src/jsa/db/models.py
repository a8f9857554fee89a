"""ORM models for the reward economy.

User identity lives with the auth provider; every table keys users by the
provider's subject id (a UUID string) rather than a local users table.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from jsa.db.base import Base, UTCDateTime, utcnow

USER_ID = String(36)


# ---------------------------------------------------------------------------
# XP Ledger
# ---------------------------------------------------------------------------


class Profile(Base):
    """Per-user progress row (XP totals and streak state)."""

    __tablename__ = "profiles"

    user_id: Mapped[str] = mapped_column(USER_ID, primary_key=True)
    display_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    xp_total: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_today: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    streak_reset_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    # Latest activity on an earlier UTC day than last_activity_at
    prev_activity_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    referral_code: Mapped[str | None] = mapped_column(String(16), unique=True, nullable=True)
    referred_by: Mapped[str | None] = mapped_column(USER_ID, nullable=True, index=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class XPTransaction(Base):
    """Immutable XP grant record with the multipliers that were applied."""

    __tablename__ = "xp_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, ForeignKey("profiles.user_id", ondelete="CASCADE"), index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(64), nullable=False)
    multiplier: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    streak_bonus: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    final_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    idempotency_key: Mapped[str | None] = mapped_column(String(256), unique=True, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Coin Ledger
# ---------------------------------------------------------------------------


class UserCoins(Base):
    """Spendable coin balance, one row per user."""

    __tablename__ = "user_coins"

    user_id: Mapped[str] = mapped_column(USER_ID, primary_key=True)
    balance: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class CoinTransaction(Base):
    """Immutable coin movement (earn / spend / reward)."""

    __tablename__ = "coin_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, ForeignKey("user_coins.user_id", ondelete="CASCADE"), index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    description: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Subscriptions (managed by the billing integration, read-only here)
# ---------------------------------------------------------------------------


class SubscriptionTier(Base):
    """Paid plan definition."""

    __tablename__ = "subscription_tiers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    tutor_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    perks: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)


class UserSubscription(Base):
    """A user's current plan."""

    __tablename__ = "user_subscriptions"

    user_id: Mapped[str] = mapped_column(USER_ID, primary_key=True)
    tier_id: Mapped[int] = mapped_column(Integer, ForeignKey("subscription_tiers.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="active")
    current_period_end: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    tier: Mapped[SubscriptionTier] = relationship("SubscriptionTier", lazy="joined")


# ---------------------------------------------------------------------------
# Grant registry
# ---------------------------------------------------------------------------


class RewardGrant(Base):
    """Marker that a named reward was issued; re-armed after expires_at."""

    __tablename__ = "reward_grants"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    idempotency_key: Mapped[str] = mapped_column(String(256), unique=True, nullable=False)
    user_id: Mapped[str | None] = mapped_column(USER_ID, nullable=True, index=True)
    issued_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)


# ---------------------------------------------------------------------------
# Competitions
# ---------------------------------------------------------------------------


class Competition(Base):
    """Time-boxed scored event."""

    __tablename__ = "weekly_competitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    subject: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False, default="coins")
    leaderboard_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    participation_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    participation_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=25)
    ended_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    rewards: Mapped[list[CompetitionReward]] = relationship(
        "CompetitionReward", back_populates="competition", cascade="all, delete-orphan",
        order_by="CompetitionReward.rank",
    )


class CompetitionReward(Base):
    """Fixed prize for a final leaderboard rank."""

    __tablename__ = "competition_rewards"
    __table_args__ = (UniqueConstraint("competition_id", "rank", name="competition_rewards_comp_rank_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weekly_competitions.id", ondelete="CASCADE"), nullable=False
    )
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False, default="coins")
    reward_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    reward_item_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    competition: Mapped[Competition] = relationship("Competition", back_populates="rewards")


class CompetitionParticipant(Base):
    """A user's standing in one competition."""

    __tablename__ = "competition_participants"
    __table_args__ = (
        UniqueConstraint("competition_id", "user_id", name="competition_participants_comp_user_key"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("weekly_competitions.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    challenges_completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    opted_in: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    final_rank: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


class QuoteSubmission(Base):
    """Community quote awaiting moderation."""

    __tablename__ = "quote_submissions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    quote_text: Mapped[str] = mapped_column(String(180), nullable=False)
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    featured_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    share_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class QuoteShare(Base):
    """One share of a quote to an external platform."""

    __tablename__ = "quote_shares"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    quote_id: Mapped[int] = mapped_column(Integer, ForeignKey("quote_submissions.id", ondelete="CASCADE"))
    platform: Mapped[str] = mapped_column(String(32), nullable=False)
    rewarded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class QuoteTheme(Base):
    """Weekly theme for the quote competition."""

    __tablename__ = "quote_themes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(128), nullable=False)
    start_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    end_date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)


class QuoteEntry(Base):
    """A user's entry for a theme."""

    __tablename__ = "quote_entries"
    __table_args__ = (UniqueConstraint("theme_id", "user_id", name="quote_entries_theme_user_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    theme_id: Mapped[int] = mapped_column(Integer, ForeignKey("quote_themes.id", ondelete="CASCADE"))
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False)
    quote_text: Mapped[str] = mapped_column(String(180), nullable=False)
    vote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class QuoteVote(Base):
    """One vote for an entry."""

    __tablename__ = "quote_votes"
    __table_args__ = (UniqueConstraint("entry_id", "user_id", name="quote_votes_entry_user_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    entry_id: Mapped[int] = mapped_column(Integer, ForeignKey("quote_entries.id", ondelete="CASCADE"))
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class QuoteWinner(Base):
    """Announced winner of a theme, one per theme."""

    __tablename__ = "quote_winners"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    theme_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("quote_themes.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    entry_id: Mapped[int] = mapped_column(Integer, ForeignKey("quote_entries.id", ondelete="CASCADE"))
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    votes_count: Mapped[int] = mapped_column(Integer, nullable=False)
    coins_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    announced_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Referrals
# ---------------------------------------------------------------------------


class Referral(Base):
    """A redeemed referral code. Each user can be referred once."""

    __tablename__ = "referrals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    referrer_id: Mapped[str] = mapped_column(USER_ID, nullable=False, index=True)
    referred_id: Mapped[str] = mapped_column(USER_ID, unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="completed")
    coins_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Hidden achievements
# ---------------------------------------------------------------------------


class Achievement(Base):
    """Hidden ("easter egg") achievement definition."""

    __tablename__ = "easter_egg_achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    reward_type: Mapped[str] = mapped_column(String(32), nullable=False, default="badge")


class UserAchievement(Base):
    """Unlocked achievement."""

    __tablename__ = "user_easter_eggs"
    __table_args__ = (UniqueConstraint("user_id", "achievement_id", name="user_easter_eggs_user_achievement_key"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(USER_ID, nullable=False)
    achievement_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("easter_egg_achievements.id", ondelete="CASCADE")
    )
    unlocked_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    reward_claimed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
