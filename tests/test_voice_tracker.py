"""
tests/test_voice_tracker.py — Voice Presence Tracker Tests
===========================================================

Drives the tracker with a fake clock; grant and duration recording are
AsyncMocks.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, call

from surge.engine.voice_tracker import VoiceTracker

GUILD = 1468816181854081229


def run_async(coro):
    """Run an async coroutine to completion."""
    return asyncio.run(coro)


def _tracker(clock, **kw) -> VoiceTracker:
    return VoiceTracker(
        grant=kw.pop("grant", AsyncMock()),
        record_seconds=kw.pop("record_seconds", AsyncMock()),
        clock=clock,
        **kw,
    )


class TestJoinLeave:
    def test_join_opens_session(self, clock):
        tracker = _tracker(clock)
        session = tracker.on_join(1, GUILD)

        assert 1 in tracker
        assert session.joined_at == session.last_xp_at == session.connected_at == clock.now

    def test_rejoin_replaces_session(self, clock):
        tracker = _tracker(clock)
        tracker.on_join(1, GUILD)
        clock.advance(100)
        tracker.on_join(1, GUILD)

        assert len(tracker) == 1
        assert tracker.get(1).joined_at == clock.now

    def test_leave_records_elapsed_seconds(self, clock):
        record = AsyncMock()
        tracker = _tracker(clock, record_seconds=record)
        tracker.on_join(1, GUILD)
        clock.advance(125.7)

        assert run_async(tracker.on_leave(1)) == 125
        record.assert_awaited_once_with(1, GUILD, 125, still_connected=False)
        assert 1 not in tracker

    def test_leave_untracked_user(self, clock):
        record = AsyncMock()
        tracker = _tracker(clock, record_seconds=record)
        assert run_async(tracker.on_leave(99)) is None
        record.assert_not_awaited()

    def test_leave_record_failure_still_closes_session(self, clock):
        tracker = _tracker(clock, record_seconds=AsyncMock(side_effect=RuntimeError("db")))
        tracker.on_join(1, GUILD)
        clock.advance(30)

        assert run_async(tracker.on_leave(1)) == 30
        assert 1 not in tracker


class TestXpTick:
    def test_grants_after_interval(self, clock):
        grant = AsyncMock()
        tracker = _tracker(clock, grant=grant)
        tracker.on_join(1, GUILD)

        clock.advance(179)
        assert run_async(tracker.xp_tick()) == 0
        grant.assert_not_awaited()

        clock.advance(1)
        assert run_async(tracker.xp_tick()) == 1
        grant.assert_awaited_once_with(1, GUILD, 10)

    def test_one_grant_per_interval(self, clock):
        grant = AsyncMock()
        tracker = _tracker(clock, grant=grant)
        tracker.on_join(1, GUILD)

        clock.advance(180)
        run_async(tracker.xp_tick())
        clock.advance(30)
        run_async(tracker.xp_tick())
        clock.advance(150)
        run_async(tracker.xp_tick())

        assert grant.await_count == 2

    def test_grant_failure_does_not_stop_others(self, clock):
        grant = AsyncMock(side_effect=[RuntimeError("boom"), None])
        tracker = _tracker(clock, grant=grant)
        tracker.on_join(1, GUILD)
        tracker.on_join(2, GUILD)
        clock.advance(180)

        assert run_async(tracker.xp_tick()) == 2
        assert grant.await_count == 2
        # Both stamped, so neither is due again right away
        assert run_async(tracker.xp_tick()) == 0

    def test_evicts_sessions_older_than_max_age(self, clock):
        grant = AsyncMock()
        tracker = _tracker(clock, grant=grant, max_session_age=24 * 3600)
        tracker.on_join(1, GUILD)
        clock.advance(24 * 3600 + 1)

        run_async(tracker.xp_tick())

        assert 1 not in tracker
        grant.assert_not_awaited()

    def test_flush_does_not_delay_eviction(self, clock):
        tracker = _tracker(clock, max_session_age=1000)
        tracker.on_join(1, GUILD)
        clock.advance(900)
        run_async(tracker.flush_durations())
        clock.advance(200)

        run_async(tracker.xp_tick())

        assert 1 not in tracker

    def test_batch_bounded_most_overdue_first(self, clock):
        grant = AsyncMock()
        tracker = _tracker(clock, grant=grant, max_per_tick=2)
        for uid in (1, 2, 3):
            tracker.on_join(uid, GUILD)
            clock.advance(10)
        clock.advance(180)

        assert run_async(tracker.xp_tick()) == 2
        assert grant.await_args_list == [call(1, GUILD, 10), call(2, GUILD, 10)]

        assert run_async(tracker.xp_tick()) == 1
        assert grant.await_args_list[-1] == call(3, GUILD, 10)


class TestFlushDurations:
    def test_flush_records_and_restarts_interval(self, clock):
        record = AsyncMock()
        tracker = _tracker(clock, record_seconds=record)
        tracker.on_join(1, GUILD)
        clock.advance(300)

        assert run_async(tracker.flush_durations()) == 1
        record.assert_awaited_once_with(1, GUILD, 300, still_connected=True)
        assert tracker.get(1).joined_at == clock.now

        # Leave afterwards only counts time since the flush
        clock.advance(40)
        run_async(tracker.on_leave(1))
        assert record.await_args == call(1, GUILD, 40, still_connected=False)

    def test_flush_failure_restores_interval(self, clock):
        tracker = _tracker(clock, record_seconds=AsyncMock(side_effect=RuntimeError("db")))
        session = tracker.on_join(1, GUILD)
        started = session.joined_at
        clock.advance(300)

        assert run_async(tracker.flush_durations()) == 0
        assert tracker.get(1).joined_at == started

    def test_flush_does_not_touch_xp_schedule(self, clock):
        tracker = _tracker(clock)
        session = tracker.on_join(1, GUILD)
        last_xp = session.last_xp_at
        clock.advance(300)

        run_async(tracker.flush_durations())

        assert tracker.get(1).last_xp_at == last_xp
