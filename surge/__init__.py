"""
Surge — Experience & Leveling Engine for Discord
=================================================
Turns member activity (chat messages, voice presence) into XP and levels,
applies temporary server-wide boosts, and pays out currency and level roles
exactly once for every level crossed.

Package layout::

    surge/
    ├── config.py          # YAML → typed Python config
    ├── errors.py          # Validation / persistence / side-effect errors
    ├── database/
    │   ├── engine.py      # SQLAlchemy engine + async bridge with timeouts
    │   └── models.py      # LevelProgress, Boost, Balance, activity counters
    ├── engine/
    │   ├── levels.py        # Staircase threshold curve (pure)
    │   ├── voice_tracker.py # In-memory voice sessions + sweepers
    │   └── message_gate.py  # Per-member message cooldown gate
    ├── services/
    │   ├── xp_service.py        # grant(): the core read-modify-write
    │   ├── boost_service.py     # Per-guild XP multiplier with expiry
    │   ├── reward_service.py    # Currency credit per level crossed
    │   ├── role_service.py      # Idempotent level-role reconciliation
    │   ├── activity_service.py  # Voice seconds / character counters
    │   ├── announcement_service.py  # Level-up announcements
    │   └── embeds.py            # Embed builders
    └── bot/
        ├── core.py        # Bot subclass, service wiring, cog loader
        └── cogs/
            ├── messages.py  # on_message → Message Activity Gate
            ├── voice.py     # voice state → Voice Presence Tracker + sweepers
            └── tasks.py     # Boost purge + cooldown pruning
"""

__version__ = "0.1.0"
