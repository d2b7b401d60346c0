"""
surge.services.boost_service — Guild XP Boost Registry
=======================================================

Each guild has at most one :class:`Boost` row.  ``set_boost`` replaces it
wholesale, so boosts never stack and no history is kept.

Expiry is decided at read time (``now < expires_at``).  The periodic
:func:`purge_expired_boosts` sweep only tidies the table; nothing depends on
it running promptly.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, delete
from sqlalchemy.orm import Session

from surge.database.engine import get_session
from surge.database.models import Boost
from surge.errors import ValidationError

logger = logging.getLogger(__name__)

MIN_MULTIPLIER = 1
MAX_MULTIPLIER = 10


def _as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; treat those as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _is_live(boost: Boost, now: datetime) -> bool:
    return now < _as_utc(boost.expires_at)


def active_multiplier(
    session: Session, guild_id: int, *, now: datetime | None = None
) -> int:
    """Return the guild's live multiplier, or 1 when no boost is active.

    Takes an open *session* so the lookup shares the caller's transaction.
    """
    now = now or datetime.now(UTC)
    boost = session.get(Boost, guild_id)
    if boost is None or not _is_live(boost, now):
        return 1
    return boost.multiplier


def get_active_boost(
    engine: Engine, guild_id: int, *, now: datetime | None = None
) -> Boost | None:
    """Fetch the guild's boost if it is still live (detached from the session)."""
    now = now or datetime.now(UTC)
    with Session(engine, expire_on_commit=False) as session:
        boost = session.get(Boost, guild_id)
        if boost is None or not _is_live(boost, now):
            return None
        session.expunge(boost)
        return boost


def set_boost(
    engine: Engine,
    guild_id: int,
    multiplier: int,
    duration_hours: float,
    *,
    now: datetime | None = None,
) -> Boost:
    """Activate a boost for *duration_hours*, replacing any existing one.

    Raises
    ------
    ValidationError
        If *multiplier* is not an int in [1, 10] or *duration_hours* <= 0.
    """
    if isinstance(multiplier, bool) or not isinstance(multiplier, int):
        raise ValidationError(f"Boost multiplier must be an integer, got {multiplier!r}")
    if not MIN_MULTIPLIER <= multiplier <= MAX_MULTIPLIER:
        raise ValidationError(
            f"Boost multiplier must be between {MIN_MULTIPLIER} and "
            f"{MAX_MULTIPLIER}, got {multiplier}"
        )
    if isinstance(duration_hours, bool) or not duration_hours > 0:
        raise ValidationError(f"Boost duration must be positive, got {duration_hours!r}")

    now = now or datetime.now(UTC)
    expires_at = now + timedelta(hours=duration_hours)

    with Session(engine, expire_on_commit=False) as session:
        boost = session.get(Boost, guild_id)
        if boost is None:
            boost = Boost(guild_id=guild_id, multiplier=multiplier, expires_at=expires_at)
            session.add(boost)
        else:
            boost.multiplier = multiplier
            boost.expires_at = expires_at
        session.commit()
        session.refresh(boost)
        session.expunge(boost)

    logger.info(
        "Boost set for guild %d: x%d until %s", guild_id, multiplier, expires_at.isoformat(),
    )
    return boost


def clear_boost(engine: Engine, guild_id: int) -> bool:
    """Remove the guild's boost.  Returns True if one existed."""
    with get_session(engine) as session:
        boost = session.get(Boost, guild_id)
        if boost is None:
            return False
        session.delete(boost)
    logger.info("Boost cleared for guild %d", guild_id)
    return True


def purge_expired_boosts(engine: Engine, *, now: datetime | None = None) -> int:
    """Delete every boost whose ``expires_at`` has passed.  Returns the count."""
    now = now or datetime.now(UTC)
    with get_session(engine) as session:
        result = session.execute(delete(Boost).where(Boost.expires_at <= now))
        deleted = result.rowcount or 0
    if deleted:
        logger.info("Purged %d expired boost(s)", deleted)
    return deleted
