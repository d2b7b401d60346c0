"""
tests/test_level_service.py — Standings & Leaderboard Tests
============================================================
"""

from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from surge.database.models import LevelProgress
from surge.errors import ValidationError
from surge.services.level_service import get_leaderboard, get_progress

GUILD, OTHER_GUILD = 1468816181854081229, 42


def _seed(engine, rows) -> None:
    with Session(engine) as session:
        for user_id, guild_id, xp, level in rows:
            session.add(LevelProgress(user_id=user_id, guild_id=guild_id, xp=xp, level=level))
        session.commit()


@pytest.fixture
def ladder(db_engine):
    _seed(db_engine, [
        (1, GUILD, 500, 1),
        (2, GUILD, 13_000, 11),
        (3, GUILD, 4_000, 4),
        (4, GUILD, 4_000, 4),
        (5, OTHER_GUILD, 99_999, 20),
    ])
    return db_engine


class TestGetProgress:
    def test_unknown_member(self, db_engine):
        assert get_progress(db_engine, 1, GUILD) is None

    def test_standing_fields(self, ladder):
        standing = get_progress(ladder, 2, GUILD)

        assert (standing.xp, standing.level, standing.rank) == (13_000, 11, 1)
        assert standing.xp_to_next == 16_000 - 13_000
        assert standing.progress == 0.0
        assert standing.tier == "Soulborne"

    def test_rank_is_per_guild(self, ladder):
        assert get_progress(ladder, 1, GUILD).rank == 4
        assert get_progress(ladder, 5, OTHER_GUILD).rank == 1

    def test_ties_break_on_user_id(self, ladder):
        assert get_progress(ladder, 3, GUILD).rank == 2
        assert get_progress(ladder, 4, GUILD).rank == 3


class TestGetLeaderboard:
    def test_ordering_and_ranks(self, ladder):
        board = get_leaderboard(ladder, GUILD)

        assert [(s.user_id, s.rank) for s in board] == [(2, 1), (3, 2), (4, 3), (1, 4)]

    def test_ranks_agree_with_progress(self, ladder):
        for standing in get_leaderboard(ladder, GUILD):
            assert get_progress(ladder, standing.user_id, GUILD).rank == standing.rank

    def test_limit(self, ladder):
        assert [s.user_id for s in get_leaderboard(ladder, GUILD, limit=2)] == [2, 3]

    def test_empty_guild(self, db_engine):
        assert get_leaderboard(db_engine, GUILD) == []

    @pytest.mark.parametrize("limit", [0, -1, 101, 2.5, True])
    def test_rejects_bad_limit(self, db_engine, limit):
        with pytest.raises(ValidationError):
            get_leaderboard(db_engine, GUILD, limit=limit)
