"""
surge.services.level_service — Level Standings & Leaderboard
=============================================================

Read-only views over :class:`LevelProgress` for rank cards, leaderboards and
level-up announcements.  Nothing here writes.

Ordering is ``xp`` descending, then ``user_id`` ascending, so ties always
rank the same way and the rank in :func:`get_progress` agrees with
:func:`get_leaderboard`.  Both ride the ``(guild_id, xp)`` index.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine, and_, func, or_, select
from sqlalchemy.orm import Session

from surge.database.models import LevelProgress
from surge.engine.levels import progress_to_next_level, tier_name, xp_to_next_level
from surge.errors import ValidationError

MAX_LEADERBOARD_SIZE = 100


@dataclass
class LevelStanding:
    """One member's place on the guild's XP ladder."""

    user_id: int
    guild_id: int
    xp: int
    level: int
    rank: int

    @property
    def xp_to_next(self) -> int:
        return xp_to_next_level(self.xp, self.level)

    @property
    def progress(self) -> float:
        """Percent through the current level (0–100)."""
        return progress_to_next_level(self.xp, self.level)

    @property
    def tier(self) -> str | None:
        return tier_name(self.level)


def _rank_in(session: Session, guild_id: int, user_id: int, xp: int) -> int:
    ahead = session.scalar(
        select(func.count())
        .select_from(LevelProgress)
        .where(
            LevelProgress.guild_id == guild_id,
            or_(
                LevelProgress.xp > xp,
                and_(LevelProgress.xp == xp, LevelProgress.user_id < user_id),
            ),
        )
    )
    return (ahead or 0) + 1


def get_progress(engine: Engine, user_id: int, guild_id: int) -> LevelStanding | None:
    """The member's level, XP and rank, or None if they've never earned XP."""
    with Session(engine) as session:
        progress = session.get(LevelProgress, (user_id, guild_id))
        if progress is None:
            return None
        return LevelStanding(
            user_id=user_id,
            guild_id=guild_id,
            xp=progress.xp,
            level=progress.level,
            rank=_rank_in(session, guild_id, user_id, progress.xp),
        )


def get_leaderboard(engine: Engine, guild_id: int, limit: int = 10) -> list[LevelStanding]:
    """Top *limit* members of the guild by XP.

    Raises
    ------
    ValidationError
        If *limit* is outside 1..100.
    """
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise ValidationError(f"Leaderboard limit must be an integer, got {limit!r}")
    if not 1 <= limit <= MAX_LEADERBOARD_SIZE:
        raise ValidationError(
            f"Leaderboard limit must be between 1 and {MAX_LEADERBOARD_SIZE}, got {limit}"
        )

    with Session(engine) as session:
        rows = session.execute(
            select(LevelProgress.user_id, LevelProgress.xp, LevelProgress.level)
            .where(LevelProgress.guild_id == guild_id)
            .order_by(LevelProgress.xp.desc(), LevelProgress.user_id.asc())
            .limit(limit)
        ).all()

    return [
        LevelStanding(user_id=uid, guild_id=guild_id, xp=xp, level=level, rank=i)
        for i, (uid, xp, level) in enumerate(rows, start=1)
    ]
