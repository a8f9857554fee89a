"""Competition API endpoints — 10 routes.

Public (5), participation (3), admin (2).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.auth.dependencies import AuthContext, get_current_user, require_admin
from jsa.competition.schemas import (
    ActiveCompetitionResponse,
    CompetitionListResponse,
    CompetitionResponse,
    CompetitionRewardResponse,
    CompetitionRewardsResponse,
    EndCompetitionRequest,
    EndCompetitionResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    ParticipantResponse,
    PayoutResponse,
    StartCompetitionRequest,
    SubmitScoreRequest,
    SubmitScoreResponse,
)
from jsa.competition.service import (
    end_competition,
    get_active_competition,
    get_leaderboard,
    get_rewards,
    get_user_rank,
    is_active,
    join_competition,
    leave_competition,
    list_competitions,
    require_competition,
    start_competition,
    submit_score,
)
from jsa.database import get_session
from jsa.db.models import Competition, CompetitionParticipant
from jsa.dependencies import get_redis_or_none

router = APIRouter(prefix="/api/v1", tags=["Competition"])


# ── Helpers ──


def _competition(c: Competition) -> CompetitionResponse:
    return CompetitionResponse(
        id=c.id,
        title=c.title,
        description=c.description,
        subject=c.subject,
        start_date=c.start_date,
        end_date=c.end_date,
        reward_type=c.reward_type,
        leaderboard_enabled=c.leaderboard_enabled,
        participation_threshold=c.participation_threshold,
        participation_reward=c.participation_reward,
        ended_at=c.ended_at,
        is_active=is_active(c),
    )


def _participant(p: CompetitionParticipant) -> ParticipantResponse:
    return ParticipantResponse(
        competition_id=p.competition_id,
        user_id=p.user_id,
        total_xp=p.total_xp,
        challenges_completed=p.challenges_completed,
        opted_in=p.opted_in,
        final_rank=p.final_rank,
    )


def _entries(rows: list[dict], current_user: str | None = None) -> list[LeaderboardEntryResponse]:
    return [
        LeaderboardEntryResponse(
            rank=r["rank"],
            user_id=r["user_id"],
            display_name=r["display_name"],
            total_xp=r["total_xp"],
            challenges_completed=r["challenges_completed"],
            is_current_user=r["user_id"] == current_user,
        )
        for r in rows
    ]


# ── Public Endpoints (5) ──


@router.get("/competitions", response_model=CompetitionListResponse)
async def get_competitions(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """All competitions, newest first."""
    competitions = await list_competitions(db)
    return CompetitionListResponse(
        competitions=[_competition(c) for c in competitions],
        total=len(competitions),
    )


@router.get("/competitions/active", response_model=ActiveCompetitionResponse)
async def get_active(
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """The competition currently accepting scores, if any."""
    competition = await get_active_competition(db)
    return ActiveCompetitionResponse(competition=_competition(competition) if competition else None)


@router.get("/competitions/{competition_id}", response_model=CompetitionResponse)
async def get_competition_detail(
    competition_id: int,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return _competition(await require_competition(db, competition_id))


@router.get("/competitions/{competition_id}/leaderboard", response_model=LeaderboardResponse)
async def get_competition_leaderboard(
    competition_id: int,
    limit: int = Query(10, ge=1, le=100),
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Top participants; final ranks once the competition has ended."""
    competition = await require_competition(db, competition_id)
    rows = await get_leaderboard(db, competition_id, limit)
    return LeaderboardResponse(
        competition_id=competition_id,
        entries=_entries(rows, ctx.user_id),
        final=competition.ended_at is not None,
    )


@router.get("/competitions/{competition_id}/rewards", response_model=CompetitionRewardsResponse)
async def get_competition_rewards(
    competition_id: int,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await require_competition(db, competition_id)
    rewards = await get_rewards(db, competition_id)
    return CompetitionRewardsResponse(
        rewards=[
            CompetitionRewardResponse(
                rank=r.rank,
                reward_type=r.reward_type,
                reward_amount=r.reward_amount,
                reward_item_id=r.reward_item_id,
            )
            for r in rewards
        ]
    )


# ── Participation Endpoints (3) ──


@router.post("/competitions/submit-score", response_model=SubmitScoreResponse)
async def submit_competition_score(
    body: SubmitScoreRequest,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Add XP and an optional completed challenge to the caller's standing."""
    participant = await submit_score(
        db, ctx.user_id, body.competition_id, body.xp_points, body.challenge_id,
    )
    await db.commit()
    rank = await get_user_rank(db, body.competition_id, ctx.user_id)
    return SubmitScoreResponse(participant=_participant(participant), rank=rank)


@router.post("/competitions/{competition_id}/join", response_model=ParticipantResponse)
async def join(
    competition_id: int,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    participant = await join_competition(db, competition_id, ctx.user_id)
    await db.commit()
    return _participant(participant)


@router.post("/competitions/{competition_id}/leave", response_model=ParticipantResponse)
async def leave(
    competition_id: int,
    ctx: AuthContext = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    participant = await leave_competition(db, competition_id, ctx.user_id)
    await db.commit()
    return _participant(participant)


# ── Admin Endpoints (2) ──


@router.post("/admin/competitions", response_model=CompetitionResponse)
async def admin_start_competition(
    body: StartCompetitionRequest,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
):
    """Start a competition now with the default rank rewards."""
    competition = await start_competition(
        db,
        title=body.title,
        description=body.description,
        subject=body.subject,
        duration_days=body.duration_days,
        reward_type=body.reward_type,
        participation_threshold=body.participation_threshold,
        participation_reward=body.participation_reward,
    )
    await db.commit()
    return _competition(competition)


@router.post("/admin/competitions/end", response_model=EndCompetitionResponse)
async def admin_end_competition(
    body: EndCompetitionRequest,
    ctx: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    redis: object = Depends(get_redis_or_none),
):
    """End a competition, freeze its leaderboard and pay rewards."""
    result = await end_competition(db, redis, body.competition_id)
    await db.commit()
    return EndCompetitionResponse(
        leaderboard=_entries(result["leaderboard"]),
        payouts=[PayoutResponse(**p) for p in result["payouts"]],
    )
