"""Level computation tests: must match the app's XP bar exactly."""

import pytest

from jsa.gamification.levels import XP_PER_LEVEL, compute_level


class TestLevelComputation:
    """level = floor(total / 100) + 1, progress = (total mod 100) / 100."""

    def test_level_1_at_zero_xp(self):
        result = compute_level(0)
        assert result["level"] == 1
        assert result["level_progress"] == 0.0

    def test_level_boundary_99_xp(self):
        """99 XP is still level 1, one point from the next."""
        result = compute_level(99)
        assert result["level"] == 1
        assert result["level_progress"] == pytest.approx(0.99)
        assert result["xp_to_next_level"] == 1

    def test_level_2_at_100_xp(self):
        result = compute_level(100)
        assert result["level"] == 2
        assert result["xp_into_level"] == 0

    def test_halfway_through_level_3(self):
        result = compute_level(250)
        assert result["level"] == 3
        assert result["level_progress"] == pytest.approx(0.5)
        assert result["xp_into_level"] == 50
        assert result["xp_for_level"] == XP_PER_LEVEL

    def test_negative_total_treated_as_zero(self):
        assert compute_level(-20)["level"] == 1

    @pytest.mark.parametrize(
        "xp,expected_level",
        [
            (0, 1),
            (100, 2),
            (199, 2),
            (480, 5),
            (1000, 11),
            (12345, 124),
        ],
    )
    def test_levels_are_flat_steps(self, xp, expected_level):
        assert compute_level(xp)["level"] == expected_level
