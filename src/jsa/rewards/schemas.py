"""Pydantic request/response models for reward endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- Quotes ---


class ApproveQuoteRequest(BaseModel):
    featured: bool = False


class ApproveQuoteResponse(BaseModel):
    success: bool
    message: str
    reward: int


class ShareQuoteRequest(BaseModel):
    quote_id: int
    platform: str = Field(min_length=1, max_length=32)


class ShareQuoteResponse(BaseModel):
    success: bool
    message: str
    rewards_awarded: bool


class QuoteEntryRequest(BaseModel):
    # Length is checked after trimming in the service
    quote_text: str = Field(max_length=1000)


class QuoteEntryResponse(BaseModel):
    id: int
    theme_id: int
    quote_text: str
    vote_count: int
    created_at: datetime


class VoteResponse(BaseModel):
    success: bool
    message: str


class AnnounceWinnerRequest(BaseModel):
    theme_id: int | None = None


class QuoteWinnerResponse(BaseModel):
    id: int
    theme_id: int
    entry_id: int
    user_id: str
    votes_count: int
    coins_awarded: int
    xp_awarded: int
    announced_at: datetime


class AnnounceWinnerResponse(BaseModel):
    success: bool
    message: str
    winner: QuoteWinnerResponse | None = None


# --- Achievements ---


class AchievementResponse(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    reward_type: str


class UnlockAchievementResponse(BaseModel):
    success: bool
    message: str
    achievement: AchievementResponse
    reward_processed: bool


# --- Referrals ---


class ReferralStatusResponse(BaseModel):
    referral_code: str
    referral_count: int
    coins_earned: int
    tier: str
    tier_bonus: int
    tier_claimed: bool


class RedeemReferralRequest(BaseModel):
    referral_code: str = Field(max_length=32)


class RedeemReferralResponse(BaseModel):
    success: bool
    message: str
    reward: int


class ClaimReferralTierResponse(BaseModel):
    success: bool
    tier: str
    bonus: int
