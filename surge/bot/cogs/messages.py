"""
surge.bot.cogs.messages — Message XP
=====================================

Listens for on_message events and hands qualifying messages to the bot's
:class:`~surge.engine.message_gate.MessageActivityGate`.

Gates applied here: bots and DMs are ignored.  Cooldown and character
counting live in the gate itself.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import discord
from discord.ext import commands

if TYPE_CHECKING:
    from surge.bot.core import SurgeBot

logger = logging.getLogger(__name__)


class Messages(commands.Cog, name="Messages"):
    """Awards XP for guild messages through the cooldown gate."""

    def __init__(self, bot: SurgeBot) -> None:
        self.bot = bot

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        try:
            await self._handle_message(message)
        except Exception:
            logger.exception(
                "Error processing message %s from user %s",
                message.id,
                message.author.id,
            )

    async def _handle_message(self, message: discord.Message) -> None:
        if message.author.bot:
            return
        if message.guild is None:
            return

        result = await self.bot.message_gate.on_message(
            message.author.id, message.guild.id, message.content,
        )
        if result is None:
            return

        level_str = f" Level {result.new_level} UP!" if result.level_up else ""
        logger.info(
            "Message XP: %s (+%d XP, total %d)%s",
            message.author.display_name,
            result.xp_added,
            result.total_xp,
            level_str,
        )


async def setup(bot: SurgeBot) -> None:
    await bot.add_cog(Messages(bot))
