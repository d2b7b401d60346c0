"""
surge.engine.levels — Level Threshold Curve
============================================

THE single canonical implementation of the leveling curve.  Pure functions
only: no DB, no Discord, no clock.

The curve is a staircase: ``required_xp(level)`` is the cumulative XP needed
to *be* at ``level``.  Within each decade the per-level step is constant, and
every decade triples it::

    levels  1–10   step    1,000
    levels 11–20   step    3,000
    levels 21–30   step    9,000
    levels 31–40   step   27,000
    levels 41–50   step   81,000
    levels 51–60+  step  243,000
"""

from __future__ import annotations

# (last level of band, per-level step) — bands are contiguous from level 1
_BANDS: tuple[tuple[int, int], ...] = (
    (10, 1_000),
    (20, 3_000),
    (30, 9_000),
    (40, 27_000),
    (50, 81_000),
    (60, 243_000),
)
_BASE_XP = 1_000  # required_xp(1)

# Levels past the last band keep its step
_OVERFLOW_STEP = _BANDS[-1][1]

# Safety cap on level-ups applied by a single grant
MAX_LEVEL_STEPS = 100

# Tier milestones (level → tier name), highest first
TIER_NAMES: dict[int, str] = {
    50: "Seraphix Ω",
    40: "Seraphim",
    30: "Eldritch",
    20: "Sovereign",
    11: "Soulborne",
}
MILESTONE_LEVELS: tuple[int, ...] = tuple(sorted(TIER_NAMES))


def required_xp(level: int) -> int:
    """Cumulative XP required to reach *level*.

    ``required_xp(1) == 1000``, ``required_xp(10) == 10000``,
    ``required_xp(11) == 13000``.  Anything ``<= 0`` needs 0 XP.
    """
    if level <= 0:
        return 0

    total = _BASE_XP
    previous_end = 1
    for band_end, step in _BANDS:
        if level <= band_end:
            return total + (level - previous_end) * step
        total += (band_end - previous_end) * step
        previous_end = band_end
    return total + (level - previous_end) * _OVERFLOW_STEP


def advance_level(xp: int, level: int, max_steps: int = MAX_LEVEL_STEPS) -> int:
    """Raise *level* while *xp* covers the next threshold.

    At most *max_steps* increments are applied, which bounds the work done
    for a corrupted or absurdly large XP value.
    """
    level = max(1, level)
    steps = 0
    while steps < max_steps and xp >= required_xp(level + 1):
        level += 1
        steps += 1
    return level


def xp_to_next_level(xp: int, level: int) -> int:
    """XP still missing before *level* + 1.  Never negative."""
    return max(0, required_xp(level + 1) - xp)


def progress_to_next_level(xp: int, level: int) -> float:
    """Percentage (0–100) through the current level's band."""
    floor = required_xp(level) if level > 1 else 0
    ceiling = required_xp(level + 1)
    span = ceiling - floor
    if span <= 0:
        return 0.0
    pct = (xp - floor) / span * 100
    return min(100.0, max(0.0, pct))


def tier_name(level: int) -> str | None:
    """Name of the highest tier reached at *level*, or ``None``."""
    for threshold in sorted(TIER_NAMES, reverse=True):
        if level >= threshold:
            return TIER_NAMES[threshold]
    return None


def is_milestone_level(level: int) -> bool:
    return level in TIER_NAMES
