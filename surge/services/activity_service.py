"""
surge.services.activity_service — Activity Counters
====================================================

Plain accumulators fed by the ingestion paths: cumulative voice seconds
(flushed by the voice tracker) and message characters (counted on every
message, cooldown or not).  Neither affects XP.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import Engine

from surge.database.engine import get_session
from surge.database.models import MessageActivity, VoiceActivity


def add_voice_seconds(
    engine: Engine,
    user_id: int,
    guild_id: int,
    seconds: int,
    *,
    still_connected: bool = False,
) -> int:
    """Add *seconds* to the member's voice total and return the new total.

    ``last_joined_at`` is refreshed while the member is still connected
    (periodic flush) and cleared when they leave.
    """
    seconds = max(0, int(seconds))
    with get_session(engine) as session:
        row = session.get(VoiceActivity, (user_id, guild_id), with_for_update=True)
        if row is None:
            row = VoiceActivity(user_id=user_id, guild_id=guild_id, voice_seconds=0)
            session.add(row)
        row.voice_seconds += seconds
        row.last_joined_at = datetime.now(UTC) if still_connected else None
        session.flush()
        return row.voice_seconds


def add_message_characters(
    engine: Engine, user_id: int, guild_id: int, characters: int
) -> int:
    """Add *characters* to the member's character count and return the total."""
    with get_session(engine) as session:
        row = session.get(MessageActivity, (user_id, guild_id), with_for_update=True)
        if row is None:
            row = MessageActivity(user_id=user_id, guild_id=guild_id, characters=0)
            session.add(row)
        row.characters += max(0, int(characters))
        row.last_message_at = datetime.now(UTC)
        session.flush()
        return row.characters
