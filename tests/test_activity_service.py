"""
tests/test_activity_service.py — Activity Counter Tests
========================================================
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from surge.database.models import MessageActivity, VoiceActivity
from surge.services.activity_service import add_message_characters, add_voice_seconds

USER, GUILD = 4242, 1468816181854081229


class TestVoiceSeconds:
    def test_accumulates(self, db_engine):
        assert add_voice_seconds(db_engine, USER, GUILD, 300, still_connected=True) == 300
        assert add_voice_seconds(db_engine, USER, GUILD, 45) == 345

    def test_last_joined_tracks_connection(self, db_engine):
        add_voice_seconds(db_engine, USER, GUILD, 300, still_connected=True)
        with Session(db_engine) as session:
            assert session.get(VoiceActivity, (USER, GUILD)).last_joined_at is not None

        add_voice_seconds(db_engine, USER, GUILD, 10, still_connected=False)
        with Session(db_engine) as session:
            assert session.get(VoiceActivity, (USER, GUILD)).last_joined_at is None

    def test_negative_clamped(self, db_engine):
        assert add_voice_seconds(db_engine, USER, GUILD, -5) == 0


class TestMessageCharacters:
    def test_accumulates(self, db_engine):
        add_message_characters(db_engine, USER, GUILD, 120)
        assert add_message_characters(db_engine, USER, GUILD, 2) == 122
        with Session(db_engine) as session:
            row = session.get(MessageActivity, (USER, GUILD))
            assert row.last_message_at is not None
