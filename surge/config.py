"""
surge.config — YAML Configuration Loader
=========================================

Reads ``config.yaml`` for soft settings: guild identity, the level → role
map, announcement channel, and leveling cadence.  Secrets (``DISCORD_TOKEN``,
``DATABASE_URL``) stay in ``.env``.

Usage::

    from surge.config import load_config

    cfg = load_config()                       # reads ./config.yaml by default
    print(cfg.guild_id)                       # 1468816181854081229
    print(cfg.leveling.message_cooldown_seconds)  # 60
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class LevelingSettings:
    """Cadence and amounts for the two XP ingestion paths."""

    message_cooldown_seconds: int = 60
    voice_xp_amount: int = 10
    voice_xp_interval_seconds: int = 180
    voice_tick_seconds: int = 30
    voice_flush_minutes: int = 5
    voice_session_max_hours: int = 24
    boost_cleanup_minutes: int = 30
    max_sessions_per_tick: int = 500


@dataclass(frozen=True, slots=True)
class DatabaseSettings:
    timeout_seconds: float = 10.0


@dataclass(frozen=True, slots=True)
class SurgeConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str
    guild_id: int  # Primary guild snowflake

    # Level threshold → role id.  Earned roles stack.
    level_roles: dict[int, int] = field(default_factory=dict)

    # Optional
    announce_channel_id: int | None = None  # Where to post level-ups
    ignored_voice_channel_ids: frozenset[int] = frozenset()  # e.g. AFK channel

    leveling: LevelingSettings = field(default_factory=LevelingSettings)
    database: DatabaseSettings = field(default_factory=DatabaseSettings)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------
def _parse_level_roles(raw: dict | None) -> dict[int, int]:
    """Coerce the ``level_roles`` mapping, dropping unset role ids."""
    roles: dict[int, int] = {}
    for level, role_id in (raw or {}).items():
        if not role_id:
            continue
        threshold = int(level)
        if threshold < 1:
            raise ValueError(f"level_roles threshold must be >= 1, got {level!r}")
        roles[threshold] = int(role_id)
    return dict(sorted(roles.items()))


def _parse_leveling(raw: dict | None) -> LevelingSettings:
    raw = raw or {}
    defaults = LevelingSettings()
    return LevelingSettings(**{
        name: int(raw.get(name, getattr(defaults, name)))
        for name in LevelingSettings.__dataclass_fields__
    })


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> SurgeConfig:
    """Read *path* and return a :class:`SurgeConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    ValueError
        If the level → role map holds a threshold below 1.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    db_raw = raw.get("database") or {}

    return SurgeConfig(
        bot_prefix=raw["bot_prefix"],
        guild_id=int(raw["guild_id"]),
        level_roles=_parse_level_roles(raw.get("level_roles")),
        announce_channel_id=(
            int(raw["announce_channel_id"]) if raw.get("announce_channel_id") else None
        ),
        ignored_voice_channel_ids=frozenset(
            int(ch) for ch in raw.get("ignored_voice_channel_ids") or []
        ),
        leveling=_parse_leveling(raw.get("leveling")),
        database=DatabaseSettings(
            timeout_seconds=float(db_raw.get("timeout_seconds", 10.0)),
        ),
    )
