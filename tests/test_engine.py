"""
tests/test_engine.py — Async DB Bridge Tests
=============================================
"""

from __future__ import annotations

import asyncio
import time

import pytest

from surge.database.engine import check_deadline, run_db_bounded, run_db_settled
from surge.errors import PersistenceError


def run_async(coro):
    """Run an async coroutine to completion."""
    return asyncio.run(coro)


class TestCheckDeadline:
    def test_no_deadline(self):
        check_deadline(None)

    def test_future_deadline(self):
        check_deadline(time.monotonic() + 60)

    def test_past_deadline(self):
        with pytest.raises(PersistenceError):
            check_deadline(time.monotonic() - 1)


class TestRunDbSettled:
    def test_passes_deadline_and_returns(self):
        seen = {}

        def _work(a, b, *, deadline):
            seen["deadline"] = deadline
            return a + b

        assert run_async(run_db_settled(_work, 2, 3, timeout=5)) == 5
        assert seen["deadline"] > time.monotonic()

    def test_waits_past_timeout_for_real_outcome(self):
        def _slow(*, deadline):
            time.sleep(0.2)
            return "committed"

        assert run_async(run_db_settled(_slow, timeout=0.05)) == "committed"

    def test_overrun_surfaces_rollback(self):
        def _overrun(*, deadline):
            time.sleep(0.1)
            check_deadline(deadline)

        with pytest.raises(PersistenceError):
            run_async(run_db_settled(_overrun, timeout=0.02))


class TestRunDbBounded:
    def test_times_out(self):
        with pytest.raises(TimeoutError):
            run_async(run_db_bounded(time.sleep, 0.3, timeout=0.05))

    def test_returns(self):
        assert run_async(run_db_bounded(sum, [1, 2, 3], timeout=5)) == 6
