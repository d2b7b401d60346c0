"""
surge.bot.cogs.tasks — Periodic Background Tasks
=================================================

Housekeeping jobs on ``discord.ext.tasks`` loops:

- **Boost purge** — every ``boost_cleanup_minutes`` (default 30), deletes
  expired boost rows.  Purely advisory: expiry is checked at read time.
- **Cooldown prune** — every 5 minutes, drops message-gate entries that can
  no longer block anything.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from surge.database.engine import run_db_bounded
from surge.services.boost_service import purge_expired_boosts

if TYPE_CHECKING:
    from surge.bot.core import SurgeBot

logger = logging.getLogger(__name__)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: SurgeBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        self.boost_purge_loop.change_interval(
            minutes=self.bot.cfg.leveling.boost_cleanup_minutes
        )
        self.boost_purge_loop.start()
        self.cooldown_prune_loop.start()

    async def cog_unload(self) -> None:
        self.boost_purge_loop.cancel()
        self.cooldown_prune_loop.cancel()

    # -------------------------------------------------------------------
    # Expired boost cleanup
    # -------------------------------------------------------------------
    @tasks.loop(minutes=30)
    async def boost_purge_loop(self):
        """Delete boost rows past their expiry."""
        try:
            await run_db_bounded(
                purge_expired_boosts, self.bot.engine,
                timeout=self.bot.cfg.database.timeout_seconds,
            )
        except Exception:
            logger.exception("Boost purge failed", extra={"task": "boost_purge"})

    @boost_purge_loop.before_loop
    async def _wait_boost_purge(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Message cooldown pruning
    # -------------------------------------------------------------------
    @tasks.loop(minutes=5)
    async def cooldown_prune_loop(self):
        self.bot.message_gate.prune()


async def setup(bot: SurgeBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
