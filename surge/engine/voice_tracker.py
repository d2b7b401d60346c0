"""
surge.engine.voice_tracker — Voice Presence Tracker
====================================================

Owns the in-memory ``user_id → VoiceSession`` table.  The voice cog feeds it
join/leave events and drives two sweepers on their own loops:

* **Duration flush** (every 5 min) — moves each session's unflushed time
  into the cumulative voice-seconds counter and restarts the interval, so a
  crash loses at most one interval per member.
* **XP tick** (every 30 s) — grants voice XP to every session whose last
  grant is at least ``xp_interval`` seconds old, and evicts sessions that
  have been open longer than ``max_session_age`` (missed disconnects).

Both sweepers walk a snapshot of the table, take at most ``max_per_tick``
sessions (most overdue first) and catch every per-session failure.

Known edge case: a join without a recorded leave silently replaces the old
session, discarding its unflushed time.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

GrantFn = Callable[[int, int, int], Awaitable[Any]]
RecordSecondsFn = Callable[..., Awaitable[Any]]

DEFAULT_XP_AMOUNT = 10
DEFAULT_XP_INTERVAL = 180          # seconds between voice grants
DEFAULT_MAX_SESSION_AGE = 24 * 3600
DEFAULT_MAX_PER_TICK = 500


@dataclass
class VoiceSession:
    user_id: int
    guild_id: int
    joined_at: float     # start of the not-yet-flushed interval
    last_xp_at: float
    connected_at: float  # real connect time, never moved by flushes


class VoiceTracker:
    """In-memory voice sessions plus the two sweepers that read them."""

    def __init__(
        self,
        *,
        grant: GrantFn,
        record_seconds: RecordSecondsFn,
        clock: Callable[[], float] = time.time,
        xp_amount: int = DEFAULT_XP_AMOUNT,
        xp_interval: float = DEFAULT_XP_INTERVAL,
        max_session_age: float = DEFAULT_MAX_SESSION_AGE,
        max_per_tick: int = DEFAULT_MAX_PER_TICK,
    ) -> None:
        self._grant = grant
        self._record_seconds = record_seconds
        self._clock = clock
        self.xp_amount = xp_amount
        self.xp_interval = xp_interval
        self.max_session_age = max_session_age
        self.max_per_tick = max_per_tick
        self._sessions: dict[int, VoiceSession] = {}

    # -------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._sessions

    def get(self, user_id: int) -> VoiceSession | None:
        return self._sessions.get(user_id)

    def sessions(self) -> list[VoiceSession]:
        """Snapshot of the live sessions."""
        return list(self._sessions.values())

    # -------------------------------------------------------------------
    # Gateway events
    # -------------------------------------------------------------------
    def on_join(self, user_id: int, guild_id: int) -> VoiceSession:
        now = self._clock()
        stale = self._sessions.get(user_id)
        if stale is not None:
            logger.debug(
                "Replacing stale voice session for user %d (joined %.0fs ago)",
                user_id, now - stale.joined_at,
            )
        session = VoiceSession(
            user_id=user_id,
            guild_id=guild_id,
            joined_at=now,
            last_xp_at=now,
            connected_at=now,
        )
        self._sessions[user_id] = session
        return session

    async def on_leave(self, user_id: int) -> int | None:
        """Close the session and record its unflushed seconds.

        Returns the seconds recorded, or None if the user wasn't tracked.
        """
        session = self._sessions.pop(user_id, None)
        if session is None:
            return None

        elapsed = max(0, int(self._clock() - session.joined_at))
        try:
            await self._record_seconds(
                session.user_id, session.guild_id, elapsed, still_connected=False,
            )
        except Exception:
            logger.exception(
                "Failed to record %ds of voice time for user %d", elapsed, user_id
            )
        else:
            logger.info("User %d was in voice for %d seconds", user_id, elapsed)
        return elapsed

    # -------------------------------------------------------------------
    # Sweepers
    # -------------------------------------------------------------------
    async def flush_durations(self) -> int:
        """Persist each session's unflushed time and restart its interval."""
        now = self._clock()
        batch = sorted(self.sessions(), key=lambda s: s.joined_at)[: self.max_per_tick]
        flushed = 0

        for session in batch:
            previous = session.joined_at
            elapsed = max(0, int(now - previous))
            # Claim the interval before awaiting so a concurrent leave
            # doesn't count the same seconds again.
            session.joined_at = now
            try:
                await self._record_seconds(
                    session.user_id, session.guild_id, elapsed, still_connected=True,
                )
            except Exception:
                session.joined_at = min(session.joined_at, previous)
                logger.exception(
                    "Voice duration flush failed for user %d", session.user_id
                )
                continue
            flushed += 1
            logger.debug(
                "Flushed %ds of voice time for user %d in guild %d",
                elapsed, session.user_id, session.guild_id,
            )

        return flushed

    async def xp_tick(self) -> int:
        """Evict orphaned sessions, then grant XP to sessions that are due.

        Returns the number of grants attempted.
        """
        now = self._clock()
        snapshot = self.sessions()

        for session in snapshot:
            if now - session.connected_at > self.max_session_age:
                if self._sessions.get(session.user_id) is session:
                    del self._sessions[session.user_id]
                logger.warning(
                    "Evicted stale voice session for user %d (open %.1fh)",
                    session.user_id, (now - session.connected_at) / 3600,
                )

        due = [
            s for s in snapshot
            if self._sessions.get(s.user_id) is s
            and now - s.last_xp_at >= self.xp_interval
        ]
        due.sort(key=lambda s: s.last_xp_at)
        batch = due[: self.max_per_tick]

        for session in batch:
            session.last_xp_at = now
            try:
                await self._grant(session.user_id, session.guild_id, self.xp_amount)
            except Exception:
                logger.exception("Voice XP grant failed for user %d", session.user_id)

        if batch:
            logger.debug(
                "Voice XP tick: %d granted, %d deferred", len(batch), len(due) - len(batch),
            )
        return len(batch)
