"""
tests/test_reward_service.py — Level-Up Reward Tests
=====================================================
"""

from __future__ import annotations

import asyncio
import time
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from surge.database.models import Balance
from surge.errors import PartialSideEffectError, ValidationError
from surge.services.reward_service import (
    RewardDispatcher,
    credit_balance,
    reward_for_level,
)

USER, GUILD = 111, 222


def run_async(coro):
    """Run an async coroutine to completion."""
    return asyncio.run(coro)


def _balance(engine):
    with Session(engine) as session:
        row = session.get(Balance, (USER, GUILD))
        return None if row is None else row.amount


class TestRewardForLevel:
    @pytest.mark.parametrize("level, expected", [(1, 100), (10, 1000), (11, 1100), (60, 6000)])
    def test_linear(self, level, expected):
        assert reward_for_level(level) == expected


class TestCreditBalance:
    def test_creates_then_accumulates(self, db_engine):
        assert credit_balance(db_engine, USER, GUILD, 200) == 200
        assert credit_balance(db_engine, USER, GUILD, 300) == 500
        assert _balance(db_engine) == 500

    @pytest.mark.parametrize("amount", [0, -100])
    def test_rejects_non_positive(self, db_engine, amount):
        with pytest.raises(ValidationError):
            credit_balance(db_engine, USER, GUILD, amount)
        assert _balance(db_engine) is None


class TestRewardDispatcher:
    def test_dispatch_credits_level_reward(self, db_engine):
        dispatcher = RewardDispatcher(db_engine)
        paid = run_async(dispatcher.dispatch(USER, GUILD, 10))
        assert paid == 1000
        assert _balance(db_engine) == 1000

    def test_ledger_failure_is_partial_side_effect(self, db_engine):
        dispatcher = RewardDispatcher(db_engine)
        boom = OperationalError("UPDATE balances", {}, Exception("db down"))

        with patch("surge.services.reward_service.credit_balance", side_effect=boom):
            with pytest.raises(PartialSideEffectError) as excinfo:
                run_async(dispatcher.dispatch(USER, GUILD, 4))

        assert excinfo.value.level == 4
        assert excinfo.value.user_id == USER
        assert excinfo.value.guild_id == GUILD
        assert _balance(db_engine) is None

    def test_overrun_credit_rolls_back(self, db_engine):
        dispatcher = RewardDispatcher(db_engine, db_timeout=0.02)

        def _slow_credit(*args, **kwargs):
            time.sleep(0.1)
            return credit_balance(*args, **kwargs)

        with patch("surge.services.reward_service.credit_balance", side_effect=_slow_credit):
            with pytest.raises(PartialSideEffectError):
                run_async(dispatcher.dispatch(USER, GUILD, 4))

        assert _balance(db_engine) is None
