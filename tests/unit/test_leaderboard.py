"""Competition ranking tests: deterministic order and default prizes."""

from datetime import datetime, timedelta, timezone

from jsa.competition.ranking import default_rank_rewards, rank_participants

T0 = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


class TestRankParticipants:

    def test_empty(self):
        assert rank_participants([]) == []

    def test_orders_by_total_xp(self):
        ranked = rank_participants([
            {"user_id": "a", "total_xp": 50},
            {"user_id": "b", "total_xp": 120},
            {"user_id": "c", "total_xp": 80},
        ])
        assert [p["user_id"] for p in ranked] == ["b", "c", "a"]
        assert [p["rank"] for p in ranked] == [1, 2, 3]

    def test_challenges_break_xp_ties(self):
        ranked = rank_participants([
            {"user_id": "a", "total_xp": 100, "challenges_completed": 2},
            {"user_id": "b", "total_xp": 100, "challenges_completed": 5},
        ])
        assert ranked[0]["user_id"] == "b"

    def test_earliest_update_breaks_remaining_ties(self):
        ranked = rank_participants([
            {"user_id": "late", "total_xp": 100, "challenges_completed": 3, "updated_at": T0 + timedelta(hours=1)},
            {"user_id": "early", "total_xp": 100, "challenges_completed": 3, "updated_at": T0},
        ])
        assert [p["user_id"] for p in ranked] == ["early", "late"]

    def test_full_tie_falls_back_to_user_id(self):
        ranked = rank_participants([
            {"user_id": "z", "total_xp": 10, "updated_at": T0},
            {"user_id": "m", "total_xp": 10, "updated_at": T0},
        ])
        assert [p["user_id"] for p in ranked] == ["m", "z"]


class TestDefaultRankRewards:

    def test_top_three(self):
        assert default_rank_rewards([100, 50, 25]) == [
            {"rank": 1, "reward_type": "coins", "reward_amount": 100},
            {"rank": 2, "reward_type": "coins", "reward_amount": 50},
            {"rank": 3, "reward_type": "coins", "reward_amount": 25},
        ]

    def test_zero_amounts_are_skipped(self):
        assert [r["rank"] for r in default_rank_rewards([100, 0, 25])] == [1, 3]
