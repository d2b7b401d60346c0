"""
surge.database.models — SQLAlchemy 2.0 Data Models
===================================================

Tables:
- level_progress    — XP + level per (user, guild)
- boosts            — At most one XP multiplier per guild, with expiry
- balances          — Currency ledger credited on level-up
- voice_activity    — Cumulative voice seconds per (user, guild)
- message_activity  — Cumulative message characters per (user, guild)
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Surge ORM models."""


# ---------------------------------------------------------------------------
# LevelProgress — one row per member per guild
# ---------------------------------------------------------------------------
class LevelProgress(Base):
    __tablename__ = "level_progress"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    xp: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    level: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("xp >= 0", name="ck_level_progress_xp_nonneg"),
        CheckConstraint("level >= 1", name="ck_level_progress_level_min"),
        Index("ix_level_progress_guild_xp", "guild_id", "xp"),
    )

    def __repr__(self) -> str:
        return (
            f"<LevelProgress user={self.user_id} guild={self.guild_id} "
            f"xp={self.xp} lvl={self.level}>"
        )


# ---------------------------------------------------------------------------
# Boost — guild-wide XP multiplier
# ---------------------------------------------------------------------------
class Boost(Base):
    __tablename__ = "boosts"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    multiplier: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        CheckConstraint(
            "multiplier >= 1 AND multiplier <= 10", name="ck_boosts_multiplier_range"
        ),
        Index("ix_boosts_expires_at", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Boost guild={self.guild_id} x{self.multiplier} until={self.expires_at}>"


# ---------------------------------------------------------------------------
# Balance — currency ledger (credited only by the reward dispatcher)
# ---------------------------------------------------------------------------
class Balance(Base):
    __tablename__ = "balances"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    amount: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_balances_amount_nonneg"),
    )

    def __repr__(self) -> str:
        return f"<Balance user={self.user_id} guild={self.guild_id} amount={self.amount}>"


# ---------------------------------------------------------------------------
# Activity counters
# ---------------------------------------------------------------------------
class VoiceActivity(Base):
    __tablename__ = "voice_activity"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    voice_seconds: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_joined_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    __table_args__ = (
        CheckConstraint("voice_seconds >= 0", name="ck_voice_activity_seconds_nonneg"),
    )


class MessageActivity(Base):
    __tablename__ = "message_activity"

    user_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    characters: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    last_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
