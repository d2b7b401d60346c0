"""
tests/test_levels.py — Level Threshold Curve Tests
===================================================

Pure functions only; no DB.
"""

from __future__ import annotations

import pytest

from surge.engine.levels import (
    MAX_LEVEL_STEPS,
    advance_level,
    is_milestone_level,
    progress_to_next_level,
    required_xp,
    tier_name,
    xp_to_next_level,
)


class TestRequiredXp:
    def test_worked_examples(self):
        assert required_xp(1) == 1000
        assert required_xp(10) == 1000 + 9 * 1000
        assert required_xp(11) == 10000 + 3000

    @pytest.mark.parametrize(
        "level, expected",
        [
            (20, 40_000),
            (30, 130_000),
            (40, 400_000),
            (50, 1_210_000),
            (60, 3_640_000),
        ],
    )
    def test_decade_boundaries(self, level, expected):
        assert required_xp(level) == expected

    def test_strictly_increasing_through_sixty(self):
        for level in range(1, 60):
            assert required_xp(level + 1) > required_xp(level)

    def test_step_triples_each_decade(self):
        assert required_xp(12) - required_xp(11) == 3 * (required_xp(3) - required_xp(2))
        assert required_xp(22) - required_xp(21) == 9_000
        assert required_xp(55) - required_xp(54) == 243_000

    @pytest.mark.parametrize("level", [0, -1, -50])
    def test_non_positive_levels_need_nothing(self, level):
        assert required_xp(level) == 0

    def test_levels_past_sixty_keep_last_step(self):
        assert required_xp(61) - required_xp(60) == 243_000
        assert required_xp(75) - required_xp(74) == 243_000


class TestAdvanceLevel:
    def test_single_level_up(self):
        # Level 9 with 9,500 XP gains 600 → 10,100 ≥ required(10)
        assert advance_level(10_100, 9) == 10

    def test_stops_below_next_threshold(self):
        assert advance_level(12_999, 10) == 10
        assert advance_level(13_000, 10) == 11

    def test_multi_level_jump(self):
        assert advance_level(4_000, 1) == 4

    def test_never_lowers_level(self):
        assert advance_level(0, 7) == 7

    def test_iteration_cap(self):
        assert advance_level(10**15, 1) == 1 + MAX_LEVEL_STEPS
        assert advance_level(10**15, 1, max_steps=3) == 4

    def test_fresh_record(self):
        assert advance_level(0, 1) == 1
        assert advance_level(1_999, 1) == 1
        assert advance_level(2_000, 1) == 2
        assert advance_level(13_000, 1) == 11


class TestProgressHelpers:
    def test_xp_to_next_level(self):
        assert xp_to_next_level(10_100, 10) == 2_900
        assert xp_to_next_level(50_000, 10) == 0

    def test_progress_bounds(self):
        assert progress_to_next_level(10_000, 10) == 0.0
        assert progress_to_next_level(11_500, 10) == pytest.approx(50.0)
        assert progress_to_next_level(99_999, 10) == 100.0

    def test_progress_level_one_starts_from_zero(self):
        assert progress_to_next_level(1_000, 1) == pytest.approx(50.0)


class TestTiers:
    @pytest.mark.parametrize(
        "level, expected",
        [
            (1, None),
            (10, None),
            (11, "Soulborne"),
            (19, "Soulborne"),
            (20, "Sovereign"),
            (35, "Eldritch"),
            (40, "Seraphim"),
            (77, "Seraphix Ω"),
        ],
    )
    def test_tier_name(self, level, expected):
        assert tier_name(level) == expected

    def test_milestones(self):
        assert is_milestone_level(11)
        assert is_milestone_level(50)
        assert not is_milestone_level(12)
