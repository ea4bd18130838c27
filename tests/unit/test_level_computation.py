"""Level computation: level = floor(xp / 100) + 1."""

import pytest

from glitch.gamification.level_thresholds import compute_level, level_for_xp


class TestLevelForXP:
    @pytest.mark.parametrize(
        "xp,level",
        [(0, 1), (99, 1), (100, 2), (199, 2), (250, 3), (260, 3), (1000, 11)],
    )
    def test_thresholds(self, xp, level):
        assert level_for_xp(xp) == level

    def test_negative_xp_floors_at_level_1(self):
        assert level_for_xp(-50) == 1


class TestComputeLevel:
    def test_progress_within_level(self):
        result = compute_level(150)
        assert result["level"] == 2
        assert result["xp_into_level"] == 50
        assert result["xp_for_level"] == 100
        assert result["next_level"] == 3
        assert result["next_level_at"] == 200

    def test_exactly_on_boundary(self):
        result = compute_level(300)
        assert result["level"] == 4
        assert result["xp_into_level"] == 0
        assert result["next_level_at"] == 400
