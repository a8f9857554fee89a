"""Referrals, quote winners and per-day streak activity.

Adds prev_activity_at, referral_code and referred_by to profiles.
Creates referrals and quote_winners tables.

Revision ID: 002_referrals_and_quote_winners
Revises: 001_economy_tables
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "002_referrals_and_quote_winners"
down_revision: str | None = "001_economy_tables"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Add referral and winner tables and the previous-activity column."""
    # --- Extend profiles ---
    op.add_column("profiles", sa.Column("prev_activity_at", sa.DateTime(timezone=True), nullable=True))
    op.add_column("profiles", sa.Column("referral_code", sa.String(16), nullable=True))
    op.add_column("profiles", sa.Column("referred_by", sa.String(36), nullable=True))
    op.create_index("ix_profiles_referral_code", "profiles", ["referral_code"], unique=True)
    op.create_index("ix_profiles_referred_by", "profiles", ["referred_by"])

    # --- Referrals ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS referrals (
            id SERIAL PRIMARY KEY,
            referrer_id VARCHAR(36) NOT NULL,
            referred_id VARCHAR(36) NOT NULL UNIQUE,
            status VARCHAR(16) NOT NULL DEFAULT 'completed',
            coins_earned INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (referrer_id != referred_id)
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_referrals_referrer
        ON referrals(referrer_id, status)
    """)

    # --- Quote winners ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS quote_winners (
            id SERIAL PRIMARY KEY,
            theme_id INTEGER NOT NULL UNIQUE REFERENCES quote_themes(id) ON DELETE CASCADE,
            entry_id INTEGER NOT NULL REFERENCES quote_entries(id) ON DELETE CASCADE,
            user_id VARCHAR(36) NOT NULL,
            votes_count INTEGER NOT NULL,
            coins_awarded INTEGER NOT NULL DEFAULT 0,
            xp_awarded INTEGER NOT NULL DEFAULT 0,
            announced_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_quote_winners_user
        ON quote_winners(user_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS quote_winners CASCADE")
    op.execute("DROP TABLE IF EXISTS referrals CASCADE")
    op.drop_index("ix_profiles_referred_by", table_name="profiles")
    op.drop_index("ix_profiles_referral_code", table_name="profiles")
    op.drop_column("profiles", "referred_by")
    op.drop_column("profiles", "referral_code")
    op.drop_column("profiles", "prev_activity_at")
