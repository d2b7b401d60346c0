"""
surge.bot.core — Bot Instance, Service Wiring & Cog Loader
===========================================================

Defines :class:`SurgeBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``) and DB engine (``bot.engine``).
2. Builds the leveling services once and exposes them to every Cog:
   ``bot.xp_service``, ``bot.voice_tracker``, ``bot.message_gate``.
3. Loads every Cog listed in :data:`EXTENSIONS`.

The voice tracker and message gate only ever reach the database through
``bot.xp_service`` and the two activity-counter callbacks below.
"""

from __future__ import annotations

import logging

import discord
from discord.ext import commands
from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from surge.config import SurgeConfig
from surge.database.engine import run_db_bounded
from surge.engine.message_gate import MessageActivityGate
from surge.engine.voice_tracker import VoiceTracker
from surge.services.activity_service import add_message_characters, add_voice_seconds
from surge.services.announcement_service import announce_level_up
from surge.services.boost_service import get_active_boost
from surge.services.reward_service import RewardDispatcher
from surge.services.role_service import RoleReconciler
from surge.services.xp_service import GrantResult, XpGrantService

logger = logging.getLogger(__name__)

# Cog modules to load on startup.
EXTENSIONS: list[str] = [
    "surge.bot.cogs.messages",
    "surge.bot.cogs.voice",
    "surge.bot.cogs.tasks",
]


class SurgeBot(commands.Bot):
    """Custom Bot subclass that carries the leveling services.

    Parameters
    ----------
    cfg:
        The parsed :class:`SurgeConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to PostgreSQL.
    """

    def __init__(self, cfg: SurgeConfig, engine: Engine) -> None:
        intents = discord.Intents.default()
        intents.message_content = True    # Privileged: message length → XP
        intents.members = True            # Privileged: member lookup for role sync
        intents.presences = False

        super().__init__(command_prefix=cfg.bot_prefix, intents=intents)

        self.cfg = cfg
        self.engine = engine
        timeout = cfg.database.timeout_seconds
        leveling = cfg.leveling

        self.xp_service = XpGrantService(
            engine,
            rewards=RewardDispatcher(engine, db_timeout=timeout),
            roles=RoleReconciler(cfg.level_roles),
            resolve_member=self.resolve_member,
            notify=self._notify_level_up,
            db_timeout=timeout,
        )
        self.voice_tracker = VoiceTracker(
            grant=self.xp_service.grant,
            record_seconds=self._record_voice_seconds,
            xp_amount=leveling.voice_xp_amount,
            xp_interval=leveling.voice_xp_interval_seconds,
            max_session_age=leveling.voice_session_max_hours * 3600,
            max_per_tick=leveling.max_sessions_per_tick,
        )
        self.message_gate = MessageActivityGate(
            grant=self.xp_service.grant,
            record_characters=self._record_characters,
            cooldown_seconds=leveling.message_cooldown_seconds,
        )

    # -----------------------------------------------------------------------
    # Collaborators handed to the services
    # -----------------------------------------------------------------------
    async def resolve_member(self, guild_id: int, user_id: int) -> discord.Member | None:
        """Find a guild member from cache, falling back to the API."""
        guild = self.get_guild(guild_id)
        if guild is None:
            return None
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None

    async def _notify_level_up(self, result: GrantResult) -> None:
        await announce_level_up(self, result)

    async def _record_voice_seconds(
        self, user_id: int, guild_id: int, seconds: int, *, still_connected: bool = False
    ) -> int:
        return await run_db_bounded(
            add_voice_seconds, self.engine, user_id, guild_id, seconds,
            still_connected=still_connected,
            timeout=self.cfg.database.timeout_seconds,
        )

    async def _record_characters(self, user_id: int, guild_id: int, characters: int) -> int:
        return await run_db_bounded(
            add_message_characters, self.engine, user_id, guild_id, characters,
            timeout=self.cfg.database.timeout_seconds,
        )

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Load all Cog extensions.  One broken Cog shouldn't take down the bot."""
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        assert self.user is not None
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)
        if self.get_guild(self.cfg.guild_id) is None:
            logger.warning("Primary guild %d not found in cache", self.cfg.guild_id)

        try:
            boost = await run_db_bounded(
                get_active_boost, self.engine, self.cfg.guild_id,
                timeout=self.cfg.database.timeout_seconds,
            )
        except (SQLAlchemyError, TimeoutError):
            logger.exception("Could not read boost state for guild %d", self.cfg.guild_id)
            return
        if boost is not None:
            logger.info(
                "XP boost x%d active in guild %d until %s",
                boost.multiplier, self.cfg.guild_id, boost.expires_at.isoformat(),
            )

    async def close(self) -> None:
        """Graceful shutdown — flush voice time before the loop goes away."""
        logger.info("Bot shutting down…")
        if len(self.voice_tracker):
            flushed = await self.voice_tracker.flush_durations()
            logger.info("Flushed voice time for %d open session(s)", flushed)
        await super().close()
