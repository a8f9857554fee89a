"""Pydantic request/response models for competition endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


# ── Competitions ──


class CompetitionResponse(BaseModel):
    id: int
    title: str
    description: str
    subject: str
    start_date: datetime
    end_date: datetime
    reward_type: str
    leaderboard_enabled: bool
    participation_threshold: int
    participation_reward: int
    ended_at: datetime | None = None
    is_active: bool


class CompetitionListResponse(BaseModel):
    competitions: list[CompetitionResponse]
    total: int


class ActiveCompetitionResponse(BaseModel):
    competition: CompetitionResponse | None = None


class CompetitionRewardResponse(BaseModel):
    rank: int
    reward_type: str
    reward_amount: int
    reward_item_id: str | None = None


class CompetitionRewardsResponse(BaseModel):
    rewards: list[CompetitionRewardResponse]


# ── Participation ──


class ParticipantResponse(BaseModel):
    competition_id: int
    user_id: str
    total_xp: int
    challenges_completed: int
    opted_in: bool
    final_rank: int | None = None


class SubmitScoreRequest(BaseModel):
    competition_id: int
    xp_points: int = Field(ge=0)
    challenge_id: str | None = Field(None, max_length=128)


class SubmitScoreResponse(BaseModel):
    success: bool = True
    participant: ParticipantResponse
    rank: int | None = None


# ── Leaderboard ──


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    display_name: str | None = None
    total_xp: int
    challenges_completed: int
    is_current_user: bool = False


class LeaderboardResponse(BaseModel):
    competition_id: int
    entries: list[LeaderboardEntryResponse]
    final: bool


# ── Admin ──


class StartCompetitionRequest(BaseModel):
    title: str = Field(min_length=1, max_length=128)
    description: str = Field(min_length=1)
    subject: str = Field(min_length=1, max_length=64)
    duration_days: int = Field(gt=0, le=365)
    reward_type: str = "coins"
    participation_threshold: int | None = Field(None, ge=0)
    participation_reward: int | None = Field(None, ge=0)


class EndCompetitionRequest(BaseModel):
    competition_id: int


class PayoutResponse(BaseModel):
    user_id: str
    kind: str
    rank: int
    reward_type: str
    amount: int


class EndCompetitionResponse(BaseModel):
    success: bool = True
    leaderboard: list[LeaderboardEntryResponse]
    payouts: list[PayoutResponse]
