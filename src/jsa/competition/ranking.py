"""Deterministic competition ranking.

Participants are ranked by total XP DESC, then challenges completed DESC,
then by who reached their score first (earliest update) ASC.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

_far_future = datetime(2099, 12, 31, 23, 59, 59, tzinfo=timezone.utc)


def rank_participants(participants: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Sort participants and assign 1-indexed ``rank``.

    Input dicts need at least ``user_id`` and ``total_xp``; ``challenges_completed``
    and ``updated_at`` are optional tiebreakers.
    """
    if not participants:
        return []

    def sort_key(p: dict[str, Any]) -> tuple[int, int, datetime, str]:
        return (
            -p.get("total_xp", 0),
            -p.get("challenges_completed", 0),
            p.get("updated_at") or _far_future,
            str(p["user_id"]),
        )

    ranked = sorted(participants, key=sort_key)
    for i, p in enumerate(ranked, start=1):
        p["rank"] = i
    return ranked


def default_rank_rewards(amounts: list[int]) -> list[dict[str, Any]]:
    """Coin prizes for ranks 1..N from a list of amounts (e.g. [100, 50, 25])."""
    return [
        {"rank": rank, "reward_type": "coins", "reward_amount": amount}
        for rank, amount in enumerate(amounts, start=1)
        if amount > 0
    ]
