"""
surge.services.announcement_service — Level-Up Announcements
=============================================================

The notification collaborator handed to the XP grant service.  Resolves the
announcement channel, member details and current rank, then posts the
embed.  Delivery is best-effort: lookup and send failures are logged and
dropped.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from discord.abc import Messageable
from sqlalchemy.exc import SQLAlchemyError

from surge.database.engine import run_db_bounded
from surge.services.embeds import build_level_up_embed
from surge.services.level_service import LevelStanding, get_progress

if TYPE_CHECKING:
    from surge.bot.core import SurgeBot
    from surge.services.xp_service import GrantResult

logger = logging.getLogger(__name__)


async def _fetch_standing(bot: SurgeBot, result: GrantResult) -> LevelStanding | None:
    try:
        return await run_db_bounded(
            get_progress, bot.engine, result.user_id, result.guild_id,
            timeout=bot.cfg.database.timeout_seconds,
        )
    except (SQLAlchemyError, TimeoutError) as exc:
        logger.warning("Rank lookup for user %d failed: %s", result.user_id, exc)
        return None


def resolve_announce_channel(bot: SurgeBot) -> Messageable | None:
    """Return the configured level-up channel, if the bot can see it."""
    channel_id = bot.cfg.announce_channel_id
    if not channel_id:
        return None
    channel = bot.get_channel(channel_id)
    if channel is not None and isinstance(channel, Messageable):
        return channel
    return None


async def announce_level_up(bot: SurgeBot, result: GrantResult) -> None:
    """Post a level-up embed for *result* to the announcement channel."""
    channel = resolve_announce_channel(bot)
    if channel is None:
        logger.debug(
            "No announcement channel configured — level %d for user %d not announced",
            result.new_level, result.user_id,
        )
        return

    display_name = str(result.user_id)
    avatar_url: str | None = None
    guild = bot.get_guild(result.guild_id)
    member = guild.get_member(result.user_id) if guild else None
    if member is not None:
        display_name = member.display_name
        avatar_url = member.display_avatar.url

    standing = await _fetch_standing(bot, result)
    embed = build_level_up_embed(result, display_name, avatar_url, standing=standing)
    try:
        await channel.send(embed=embed)
    except Exception:
        logger.exception(
            "Failed to send level-up announcement to channel %s",
            getattr(channel, "id", "?"),
        )
