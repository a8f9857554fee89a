"""Competition business logic.

Rules:
- Scores are accepted only while start_date <= now <= end_date and the
  competition has not been ended
- One participant row per (competition, user); score submissions merge into it
- Ending freezes final ranks and pays each rank reward and participation
  reward at most once
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from jsa.coins.service import earn_coins
from jsa.competition.ranking import default_rank_rewards, rank_participants
from jsa.config import get_settings
from jsa.db.base import utcnow
from jsa.db.models import Competition, CompetitionParticipant, CompetitionReward, Profile
from jsa.errors import BusinessRuleRejection, CompetitionNotActive, NotFound, RemoteFailure, ValidationError
from jsa.gamification.grants import claim_grant
from jsa.gamification.xp_service import add_xp

logger = logging.getLogger(__name__)


def _insert_for(db: AsyncSession):  # noqa: ANN202
    """Dialect-specific INSERT supporting ON CONFLICT DO UPDATE."""
    return sqlite_insert if db.get_bind().dialect.name == "sqlite" else pg_insert


def is_active(competition: Competition, now: datetime | None = None) -> bool:
    """True while the competition accepts scores."""
    if now is None:
        now = utcnow()
    if competition.ended_at is not None:
        return False
    return competition.start_date <= now <= competition.end_date


async def get_competition(db: AsyncSession, competition_id: int) -> Competition | None:
    result = await db.execute(select(Competition).where(Competition.id == competition_id))
    return result.scalar_one_or_none()


async def require_competition(db: AsyncSession, competition_id: int) -> Competition:
    competition = await get_competition(db, competition_id)
    if competition is None:
        raise NotFound("Competition not found")
    return competition


async def list_competitions(db: AsyncSession) -> list[Competition]:
    """All competitions, newest start first."""
    result = await db.execute(select(Competition).order_by(Competition.start_date.desc()))
    return list(result.scalars().all())


async def get_active_competition(db: AsyncSession, now: datetime | None = None) -> Competition | None:
    """The most recently started competition that is currently open."""
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(Competition)
        .where(
            Competition.start_date <= now,
            Competition.end_date >= now,
            Competition.ended_at.is_(None),
        )
        .order_by(Competition.start_date.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def get_rewards(db: AsyncSession, competition_id: int) -> list[CompetitionReward]:
    result = await db.execute(
        select(CompetitionReward)
        .where(CompetitionReward.competition_id == competition_id)
        .order_by(CompetitionReward.rank)
    )
    return list(result.scalars().all())


async def get_participant(db: AsyncSession, competition_id: int, user_id: str) -> CompetitionParticipant | None:
    result = await db.execute(
        select(CompetitionParticipant)
        .where(
            CompetitionParticipant.competition_id == competition_id,
            CompetitionParticipant.user_id == user_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_user_participation(db: AsyncSession, user_id: str) -> list[CompetitionParticipant]:
    result = await db.execute(
        select(CompetitionParticipant).where(CompetitionParticipant.user_id == user_id)
    )
    return list(result.scalars().all())


async def start_competition(
    db: AsyncSession,
    title: str,
    description: str,
    subject: str,
    duration_days: int,
    reward_type: str = "coins",
    participation_threshold: int | None = None,
    participation_reward: int | None = None,
    now: datetime | None = None,
) -> Competition:
    """Create a competition starting now, with the default rank rewards."""
    if not title or not description or not subject or not duration_days:
        raise ValidationError("Missing required fields")
    if duration_days < 0:
        raise ValidationError("duration_days must be positive")
    settings = get_settings()
    if now is None:
        now = utcnow()

    competition = Competition(
        title=title,
        description=description,
        subject=subject,
        start_date=now,
        end_date=now + timedelta(days=duration_days),
        reward_type=reward_type or "coins",
        participation_threshold=(
            participation_threshold
            if participation_threshold is not None
            else settings.competition_default_participation_threshold
        ),
        participation_reward=(
            participation_reward
            if participation_reward is not None
            else settings.competition_default_participation_reward
        ),
        created_at=now,
    )
    db.add(competition)
    await db.flush()

    for reward in default_rank_rewards(settings.competition_rank_rewards):
        db.add(CompetitionReward(competition_id=competition.id, **reward))
    await db.flush()

    logger.info("Competition %d started: %s (%d days)", competition.id, title, duration_days)
    return competition


async def _upsert_participant(
    db: AsyncSession,
    competition_id: int,
    user_id: str,
    xp_delta: int,
    challenge_delta: int,
    opted_in: bool,
    now: datetime,
) -> None:
    """Insert the participant row or merge deltas into it, in one statement."""
    insert = _insert_for(db)
    stmt = insert(CompetitionParticipant).values(
        competition_id=competition_id,
        user_id=user_id,
        total_xp=xp_delta,
        challenges_completed=challenge_delta,
        opted_in=opted_in,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=["competition_id", "user_id"],
        set_={
            "total_xp": CompetitionParticipant.total_xp + stmt.excluded.total_xp,
            "challenges_completed": CompetitionParticipant.challenges_completed
            + stmt.excluded.challenges_completed,
            "opted_in": stmt.excluded.opted_in,
            "updated_at": stmt.excluded.updated_at,
        },
    )
    await db.execute(stmt)


async def _upserted_participant(db: AsyncSession, competition_id: int, user_id: str) -> CompetitionParticipant:
    participant = await get_participant(db, competition_id, user_id)
    if participant is None:
        logger.error("Participant row missing after upsert: competition %d, user %s", competition_id, user_id)
        raise RemoteFailure("Failed to record participation")
    return participant


async def join_competition(
    db: AsyncSession,
    competition_id: int,
    user_id: str,
    now: datetime | None = None,
) -> CompetitionParticipant:
    """Opt in to a competition that has not finished."""
    if now is None:
        now = utcnow()
    competition = await require_competition(db, competition_id)
    if competition.ended_at is not None or now > competition.end_date:
        raise CompetitionNotActive("Competition has already ended")

    await _upsert_participant(db, competition_id, user_id, 0, 0, True, now)
    return await _upserted_participant(db, competition_id, user_id)


async def leave_competition(
    db: AsyncSession,
    competition_id: int,
    user_id: str,
    now: datetime | None = None,
) -> CompetitionParticipant:
    """Opt out. Scores are kept but the user no longer ranks."""
    if now is None:
        now = utcnow()
    competition = await require_competition(db, competition_id)
    if competition.ended_at is not None:
        raise CompetitionNotActive("Competition has already ended")

    participant = await get_participant(db, competition_id, user_id)
    if participant is None:
        raise NotFound("You are not participating in this competition")
    participant.opted_in = False
    participant.updated_at = now
    await db.flush()
    return participant


async def submit_score(
    db: AsyncSession,
    user_id: str,
    competition_id: int,
    xp_delta: int = 0,
    challenge_id: str | None = None,
    now: datetime | None = None,
) -> CompetitionParticipant:
    """Add XP (and a completed challenge) to the user's standing.

    Raises NotFound for an unknown competition and CompetitionNotActive
    outside the window; neither case touches the participant row.
    """
    if xp_delta < 0:
        raise ValidationError("xp_points must not be negative")
    if now is None:
        now = utcnow()

    competition = await require_competition(db, competition_id)
    if not is_active(competition, now):
        raise CompetitionNotActive("Competition is not active")

    await _upsert_participant(
        db, competition_id, user_id, xp_delta, 1 if challenge_id else 0, True, now,
    )
    participant = await _upserted_participant(db, competition_id, user_id)
    logger.info(
        "Competition %d score: %s +%d XP%s",
        competition_id, user_id, xp_delta, f" (challenge {challenge_id})" if challenge_id else "",
    )
    return participant


async def _ranked_participants(db: AsyncSession, competition_id: int) -> list[dict]:
    result = await db.execute(
        select(CompetitionParticipant, Profile.display_name)
        .outerjoin(Profile, Profile.user_id == CompetitionParticipant.user_id)
        .where(
            CompetitionParticipant.competition_id == competition_id,
            CompetitionParticipant.opted_in.is_(True),
        )
        .execution_options(populate_existing=True)
    )
    rows = [
        {
            "user_id": participant.user_id,
            "display_name": display_name,
            "total_xp": participant.total_xp,
            "challenges_completed": participant.challenges_completed,
            "updated_at": participant.updated_at,
            "final_rank": participant.final_rank,
        }
        for participant, display_name in result.all()
    ]
    return rank_participants(rows)


async def get_leaderboard(db: AsyncSession, competition_id: int, limit: int | None = None) -> list[dict]:
    """Top participants. Once ended, the frozen final ranks are authoritative."""
    if limit is None:
        limit = get_settings().leaderboard_size
    ranked = await _ranked_participants(db, competition_id)
    if ranked and all(p["final_rank"] is not None for p in ranked):
        ranked.sort(key=lambda p: p["final_rank"])
        for p in ranked:
            p["rank"] = p["final_rank"]
    return ranked[:limit]


async def get_user_rank(db: AsyncSession, competition_id: int, user_id: str) -> int | None:
    for p in await _ranked_participants(db, competition_id):
        if p["user_id"] == user_id:
            return p["final_rank"] or p["rank"]
    return None


async def _pay(
    db: AsyncSession,
    redis: object,
    reward_type: str,
    user_id: str,
    amount: int,
    description: str,
    source: str,
    now: datetime,
) -> None:
    if reward_type == "xp":
        await add_xp(db, redis, user_id, amount, source, now=now)
    else:
        await earn_coins(db, redis, user_id, amount, description, type_="reward", now=now)


async def end_competition(
    db: AsyncSession,
    redis: object,
    competition_id: int,
    now: datetime | None = None,
) -> dict:
    """Close a competition, freeze its ranking and pay rewards.

    Returns the frozen leaderboard and the list of payouts.
    """
    if now is None:
        now = utcnow()
    competition = await require_competition(db, competition_id)
    if competition.ended_at is not None:
        raise BusinessRuleRejection("Competition has already ended")

    competition.ended_at = now
    if competition.end_date > now:
        competition.end_date = now

    ranked = await _ranked_participants(db, competition_id)
    for p in ranked:
        await db.execute(
            update(CompetitionParticipant)
            .where(
                CompetitionParticipant.competition_id == competition_id,
                CompetitionParticipant.user_id == p["user_id"],
            )
            .values(final_rank=p["rank"])
            .execution_options(synchronize_session=False)
        )
        p["final_rank"] = p["rank"]

    payouts: list[dict] = []
    rewards_by_rank = {r.rank: r for r in await get_rewards(db, competition_id)}
    for p in ranked:
        reward = rewards_by_rank.get(p["rank"])
        if reward is None:
            continue
        key = f"competition:{competition_id}:rank:{reward.rank}"
        if await claim_grant(db, key, user_id=p["user_id"], now=now):
            await _pay(
                db, redis, reward.reward_type, p["user_id"], reward.reward_amount,
                f"{competition.title}: rank {reward.rank} reward", "competition_rank", now,
            )
            payouts.append({
                "user_id": p["user_id"],
                "kind": "rank",
                "rank": reward.rank,
                "reward_type": reward.reward_type,
                "amount": reward.reward_amount,
            })

    if competition.participation_reward > 0:
        for p in ranked:
            if p["challenges_completed"] < competition.participation_threshold:
                continue
            key = f"competition:{competition_id}:participation:{p['user_id']}"
            if await claim_grant(db, key, user_id=p["user_id"], now=now):
                await _pay(
                    db, redis, "coins", p["user_id"], competition.participation_reward,
                    f"{competition.title}: participation reward", "competition_participation", now,
                )
                payouts.append({
                    "user_id": p["user_id"],
                    "kind": "participation",
                    "rank": p["rank"],
                    "reward_type": "coins",
                    "amount": competition.participation_reward,
                })

    await db.flush()
    logger.info(
        "Competition %d ended: %d ranked participants, %d payouts",
        competition_id, len(ranked), len(payouts),
    )
    return {
        "leaderboard": ranked[: get_settings().leaderboard_size],
        "payouts": payouts,
    }
