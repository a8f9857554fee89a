"""Reward economy: XP ledger, coins, grants, competitions, quotes, achievements.

Creates profiles, xp_transactions, user_coins, coin_transactions,
subscription_tiers, user_subscriptions, reward_grants, weekly_competitions,
competition_rewards, competition_participants, quote_submissions,
quote_shares, quote_themes, quote_entries, quote_votes,
easter_egg_achievements and user_easter_eggs.

Revision ID: 001_economy_tables
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_economy_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- XP Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS profiles (
            user_id VARCHAR(36) PRIMARY KEY,
            display_name VARCHAR(64),
            xp_total INTEGER NOT NULL DEFAULT 0 CHECK (xp_total >= 0),
            xp_today INTEGER NOT NULL DEFAULT 0,
            xp_streak INTEGER NOT NULL DEFAULT 0,
            streak_reset_at TIMESTAMPTZ,
            last_activity_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_profiles_last_activity
        ON profiles(last_activity_at)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS xp_transactions (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES profiles(user_id) ON DELETE CASCADE,
            amount INTEGER NOT NULL CHECK (amount > 0),
            source VARCHAR(64) NOT NULL,
            multiplier DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            streak_bonus DOUBLE PRECISION NOT NULL DEFAULT 1.0,
            final_amount INTEGER NOT NULL,
            idempotency_key VARCHAR(256) UNIQUE,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_xp_transactions_user_time
        ON xp_transactions(user_id, created_at DESC)
    """)

    # --- Coin Ledger ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_coins (
            user_id VARCHAR(36) PRIMARY KEY,
            balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS coin_transactions (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL REFERENCES user_coins(user_id) ON DELETE CASCADE,
            amount INTEGER NOT NULL,
            type VARCHAR(16) NOT NULL CHECK (type IN ('earn', 'spend', 'reward')),
            description VARCHAR(256),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_coin_transactions_user_time
        ON coin_transactions(user_id, created_at DESC)
    """)

    # --- Subscriptions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS subscription_tiers (
            id SERIAL PRIMARY KEY,
            name VARCHAR(64) NOT NULL UNIQUE,
            tutor_limit INTEGER,
            perks JSON NOT NULL DEFAULT '{}'
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_subscriptions (
            user_id VARCHAR(36) PRIMARY KEY,
            tier_id INTEGER NOT NULL REFERENCES subscription_tiers(id),
            status VARCHAR(32) NOT NULL DEFAULT 'active',
            current_period_end TIMESTAMPTZ
        )
    """)

    # --- Grant registry ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reward_grants (
            id SERIAL PRIMARY KEY,
            idempotency_key VARCHAR(256) NOT NULL UNIQUE,
            user_id VARCHAR(36),
            issued_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            expires_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_reward_grants_user
        ON reward_grants(user_id)
    """)

    # --- Competitions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS weekly_competitions (
            id SERIAL PRIMARY KEY,
            title VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            subject VARCHAR(64) NOT NULL DEFAULT '',
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL,
            reward_type VARCHAR(32) NOT NULL DEFAULT 'coins',
            leaderboard_enabled BOOLEAN NOT NULL DEFAULT true,
            participation_threshold INTEGER NOT NULL DEFAULT 3,
            participation_reward INTEGER NOT NULL DEFAULT 25,
            ended_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (end_date >= start_date)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS competition_rewards (
            id SERIAL PRIMARY KEY,
            competition_id INTEGER NOT NULL REFERENCES weekly_competitions(id) ON DELETE CASCADE,
            rank INTEGER NOT NULL,
            reward_type VARCHAR(32) NOT NULL DEFAULT 'coins',
            reward_amount INTEGER NOT NULL,
            reward_item_id VARCHAR(64),
            CONSTRAINT competition_rewards_comp_rank_key UNIQUE (competition_id, rank)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS competition_participants (
            id SERIAL PRIMARY KEY,
            competition_id INTEGER NOT NULL REFERENCES weekly_competitions(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL,
            total_xp INTEGER NOT NULL DEFAULT 0,
            challenges_completed INTEGER NOT NULL DEFAULT 0,
            opted_in BOOLEAN NOT NULL DEFAULT true,
            final_rank INTEGER,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT competition_participants_comp_user_key UNIQUE (competition_id, user_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_competition_participants_user
        ON competition_participants(user_id)
    """)

    # --- Quotes ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quote_submissions (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            quote_text VARCHAR(180) NOT NULL,
            approved BOOLEAN NOT NULL DEFAULT false,
            featured_at TIMESTAMPTZ,
            share_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quote_shares (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            quote_id INTEGER NOT NULL REFERENCES quote_submissions(id) ON DELETE CASCADE,
            platform VARCHAR(32) NOT NULL,
            rewarded BOOLEAN NOT NULL DEFAULT false,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quote_shares_user_quote
        ON quote_shares(user_id, quote_id, platform)
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quote_themes (
            id SERIAL PRIMARY KEY,
            title VARCHAR(128) NOT NULL,
            start_date TIMESTAMPTZ NOT NULL,
            end_date TIMESTAMPTZ NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quote_entries (
            id SERIAL PRIMARY KEY,
            theme_id INTEGER NOT NULL REFERENCES quote_themes(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL,
            quote_text VARCHAR(180) NOT NULL,
            vote_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT quote_entries_theme_user_key UNIQUE (theme_id, user_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS quote_votes (
            id SERIAL PRIMARY KEY,
            entry_id INTEGER NOT NULL REFERENCES quote_entries(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT quote_votes_entry_user_key UNIQUE (entry_id, user_id)
        )
    """)

    # --- Hidden achievements ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS easter_egg_achievements (
            id SERIAL PRIMARY KEY,
            slug VARCHAR(64) NOT NULL UNIQUE,
            name VARCHAR(128) NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            reward_type VARCHAR(32) NOT NULL DEFAULT 'badge'
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_easter_eggs (
            id SERIAL PRIMARY KEY,
            user_id VARCHAR(36) NOT NULL,
            achievement_id INTEGER NOT NULL REFERENCES easter_egg_achievements(id) ON DELETE CASCADE,
            unlocked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            reward_claimed BOOLEAN NOT NULL DEFAULT false,
            CONSTRAINT user_easter_eggs_user_achievement_key UNIQUE (user_id, achievement_id)
        )
    """)

    # --- Seed plans ---
    op.execute("""
        INSERT INTO subscription_tiers (name, tutor_limit, perks) VALUES
            ('Single Tutor Plan', 1, '{"double_xp": false, "exclusive_cosmetics": false}'),
            ('5 Tutor Plan', 5, '{"double_xp": false, "exclusive_cosmetics": false}'),
            ('All Access Plan', NULL, '{"double_xp": false, "exclusive_cosmetics": true}'),
            ('Elite Legend Squad', NULL, '{"double_xp": true, "exclusive_cosmetics": true}')
        ON CONFLICT (name) DO NOTHING
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS user_easter_eggs CASCADE")
    op.execute("DROP TABLE IF EXISTS easter_egg_achievements CASCADE")
    op.execute("DROP TABLE IF EXISTS quote_votes CASCADE")
    op.execute("DROP TABLE IF EXISTS quote_entries CASCADE")
    op.execute("DROP TABLE IF EXISTS quote_themes CASCADE")
    op.execute("DROP TABLE IF EXISTS quote_shares CASCADE")
    op.execute("DROP TABLE IF EXISTS quote_submissions CASCADE")
    op.execute("DROP TABLE IF EXISTS competition_participants CASCADE")
    op.execute("DROP TABLE IF EXISTS competition_rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS weekly_competitions CASCADE")
    op.execute("DROP TABLE IF EXISTS reward_grants CASCADE")
    op.execute("DROP TABLE IF EXISTS user_subscriptions CASCADE")
    op.execute("DROP TABLE IF EXISTS subscription_tiers CASCADE")
    op.execute("DROP TABLE IF EXISTS coin_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS user_coins CASCADE")
    op.execute("DROP TABLE IF EXISTS xp_transactions CASCADE")
    op.execute("DROP TABLE IF EXISTS profiles CASCADE")
