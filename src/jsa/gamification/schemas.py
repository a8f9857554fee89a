"""Pydantic request/response models for XP and streak endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# --- XP ---


class XPResponse(BaseModel):
    total: int
    today: int
    streak: int
    level: int
    level_progress: float
    xp_into_level: int
    xp_for_level: int
    streak_reset_at: datetime | None = None
    last_activity_at: datetime | None = None


class XPHistoryEntry(BaseModel):
    id: int
    amount: int
    source: str
    multiplier: float
    streak_bonus: float
    final_amount: int
    created_at: datetime


class XPHistoryResponse(BaseModel):
    entries: list[XPHistoryEntry]
    total: int
    page: int
    per_page: int


class AddXPRequest(BaseModel):
    amount: int = Field(gt=0)
    source: str = Field(min_length=1, max_length=64)
    idempotency_key: str | None = Field(None, max_length=256)


class AddXPResponse(BaseModel):
    granted: bool
    transaction: XPHistoryEntry | None = None
    xp: XPResponse


# --- Streak ---


class StreakResetIn(BaseModel):
    hours: int
    minutes: int


class StreakResponse(BaseModel):
    streak: int
    streak_bonus: float
    streak_reset_at: datetime | None = None
    reset_in: StreakResetIn | None = None
    last_activity_at: datetime | None = None


# --- Multipliers ---


class MultiplierResponse(BaseModel):
    tier: float
    streak: float
    combined: float
    policy: str


class RolloverResponse(BaseModel):
    day: str
    continued: int
    broken: int
    skipped: bool
