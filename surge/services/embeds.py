"""
surge.services.embeds — Discord embed builders for announcements
=================================================================
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord

from surge.engine.levels import is_milestone_level, required_xp, tier_name

if TYPE_CHECKING:
    from surge.services.level_service import LevelStanding
    from surge.services.xp_service import GrantResult


def build_level_up_embed(
    result: GrantResult,
    display_name: str,
    avatar_url: str | None = None,
    *,
    standing: LevelStanding | None = None,
) -> discord.Embed:
    """Build a level-up embed: new level, XP toward the next one, reward,
    and the server rank when *standing* is known.
    """
    lines = [
        f"<@{result.user_id}> reached **Level {result.new_level}**! "
        f"`[{result.total_xp:,}/{required_xp(result.new_level + 1):,}]`",
    ]
    if standing is not None:
        lines.append(
            f"Rank **#{standing.rank}** · {standing.xp_to_next:,} XP to Level {standing.level + 1}"
        )
    if result.reward_total:
        lines.append(f"+{result.reward_total:,} \U0001fa99 awarded.")
    if result.new_level - result.old_level > 1:
        lines.append(f"Jumped {result.new_level - result.old_level} levels at once!")

    tier = tier_name(result.new_level)
    if tier and is_milestone_level(result.new_level):
        lines.append(f"\U0001f3c5 Reached the **{tier}** tier!")

    embed = discord.Embed(
        title="⚡ Level Up!",
        description="\n".join(lines),
        color=discord.Color.gold(),
    )
    embed.set_author(name=display_name)
    if avatar_url:
        embed.set_thumbnail(url=avatar_url)
    if result.multiplier > 1:
        embed.set_footer(text=f"XP boost active: x{result.multiplier}")
    return embed
