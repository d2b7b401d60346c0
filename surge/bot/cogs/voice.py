"""
surge.bot.cogs.voice — Voice Presence Tracking
===============================================

Maps gateway voice-state updates onto the bot's
:class:`~surge.engine.voice_tracker.VoiceTracker` and runs its two sweepers
as ``discord.ext.tasks`` loops:

- **Duration flush** — every ``voice_flush_minutes`` (default 5).
- **XP tick** — every ``voice_tick_seconds`` (default 30); members earn
  voice XP once every ``voice_xp_interval_seconds`` (default 180).

Channels listed in ``ignored_voice_channel_ids`` (e.g. the AFK channel) count
as "not connected".  Moving between tracked channels keeps the session.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands, tasks

if TYPE_CHECKING:
    from surge.bot.core import SurgeBot

logger = logging.getLogger(__name__)


class Voice(commands.Cog, name="Voice"):
    """Tracks voice presence and drives the voice sweepers."""

    def __init__(self, bot: SurgeBot) -> None:
        self.bot = bot
        self.tracker = bot.voice_tracker

    async def cog_load(self) -> None:
        leveling = self.bot.cfg.leveling
        self.duration_flush_loop.change_interval(minutes=leveling.voice_flush_minutes)
        self.xp_tick_loop.change_interval(seconds=leveling.voice_tick_seconds)
        self.duration_flush_loop.start()
        self.xp_tick_loop.start()

    async def cog_unload(self) -> None:
        self.duration_flush_loop.cancel()
        self.xp_tick_loop.cancel()

    def _is_tracked(self, channel: discord.abc.Connectable | None) -> bool:
        if channel is None:
            return False
        return getattr(channel, "id", None) not in self.bot.cfg.ignored_voice_channel_ids

    # -------------------------------------------------------------------
    # Gateway events
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        try:
            await self._handle_voice_update(member, before, after)
        except Exception:
            logger.exception("Error processing voice state update for user %s", member.id)

    async def _handle_voice_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot:
            return

        was_tracked = self._is_tracked(before.channel)
        now_tracked = self._is_tracked(after.channel)

        # --- JOIN (including moving out of an ignored channel) ---
        if not was_tracked and now_tracked:
            self.tracker.on_join(member.id, member.guild.id)
            logger.debug("%s joined voice channel %s", member, after.channel)

        # --- LEAVE (including moving into an ignored channel) ---
        elif was_tracked and not now_tracked:
            await self.tracker.on_leave(member.id)
            logger.debug("%s left voice channel %s", member, before.channel)

        # --- MOVE between tracked channels: session continues ---
        elif was_tracked and now_tracked and member.id not in self.tracker:
            # Tracker lost the session (e.g. evicted); pick it back up
            self.tracker.on_join(member.id, member.guild.id)

    @commands.Cog.listener()
    async def on_ready(self) -> None:
        """Open sessions for members already in voice when the bot connects."""
        seeded = 0
        for guild in self.bot.guilds:
            for vc in guild.voice_channels:
                if not self._is_tracked(vc):
                    continue
                for member in vc.members:
                    if member.bot or member.id in self.tracker:
                        continue
                    self.tracker.on_join(member.id, guild.id)
                    seeded += 1
        if seeded:
            logger.info("Seeded %d voice session(s) from connected members", seeded)

    # -------------------------------------------------------------------
    # Sweepers
    # -------------------------------------------------------------------
    @tasks.loop(minutes=5)
    async def duration_flush_loop(self) -> None:
        """Persist unflushed voice time for every open session."""
        try:
            flushed = await self.tracker.flush_durations()
        except Exception:
            logger.exception("Voice duration flush failed", extra={"task": "voice_flush"})
            return
        if flushed:
            logger.info("Voice duration flush: %d session(s)", flushed)

    @duration_flush_loop.before_loop
    async def _wait_flush(self) -> None:
        await self.bot.wait_until_ready()

    @tasks.loop(seconds=30)
    async def xp_tick_loop(self) -> None:
        """Grant voice XP to sessions whose interval has elapsed."""
        try:
            await self.tracker.xp_tick()
        except Exception:
            logger.exception("Voice XP tick failed", extra={"task": "voice_xp"})

    @xp_tick_loop.before_loop
    async def _wait_xp_tick(self) -> None:
        await self.bot.wait_until_ready()


async def setup(bot: SurgeBot) -> None:
    await bot.add_cog(Voice(bot))
