"""
surge.engine.message_gate — Message Activity Gate
==================================================

Per-member cooldown in front of the XP grant service.  A message earns
1 XP per character (uncapped) if the member's last message grant in that
guild is at least ``cooldown_seconds`` old; otherwise it earns nothing.

Every non-empty message still counts toward the character-activity counter,
cooldown or not.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 60


class MessageActivityGate:
    """Cooldown gate: ``(user_id, guild_id) → last grant timestamp``."""

    def __init__(
        self,
        *,
        grant: Callable[[int, int, int], Awaitable[Any]],
        record_characters: Callable[[int, int, int], Awaitable[Any]] | None = None,
        clock: Callable[[], float] = time.time,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
    ) -> None:
        self._grant = grant
        self._record_characters = record_characters
        self._clock = clock
        self.cooldown_seconds = cooldown_seconds
        self._last_grant: dict[tuple[int, int], float] = {}

    def __len__(self) -> int:
        return len(self._last_grant)

    def last_grant_at(self, user_id: int, guild_id: int) -> float | None:
        return self._last_grant.get((user_id, guild_id))

    def cooldown_remaining(self, user_id: int, guild_id: int) -> float:
        last = self._last_grant.get((user_id, guild_id))
        if last is None:
            return 0.0
        return max(0.0, self.cooldown_seconds - (self._clock() - last))

    async def on_message(self, user_id: int, guild_id: int, content: str):
        """Handle one qualifying message.

        Returns the grant result, or None if nothing was granted.
        """
        await self._count_characters(user_id, guild_id, content)

        if not content:
            return None

        now = self._clock()
        key = (user_id, guild_id)
        last = self._last_grant.get(key)
        if last is not None and now - last < self.cooldown_seconds:
            logger.debug(
                "Cooldown active for user %d in guild %d (%.1fs remaining)",
                user_id, guild_id, self.cooldown_seconds - (now - last),
            )
            return None

        # Stamp first so a second message arriving mid-grant is gated
        self._last_grant[key] = now
        return await self._grant(user_id, guild_id, len(content))

    async def _count_characters(self, user_id: int, guild_id: int, content: str) -> None:
        if self._record_characters is None:
            return
        chars = len(content.strip())
        if chars == 0:
            return
        try:
            await self._record_characters(user_id, guild_id, chars)
        except Exception:
            logger.exception("Character activity tracking failed for user %d", user_id)

    def prune(self) -> int:
        """Drop entries old enough that they can no longer gate anything."""
        cutoff = self._clock() - 2 * self.cooldown_seconds
        before = len(self._last_grant)
        self._last_grant = {k: v for k, v in self._last_grant.items() if v > cutoff}
        pruned = before - len(self._last_grant)
        if pruned:
            logger.debug("Pruned %d expired cooldown entries", pruned)
        return pruned
