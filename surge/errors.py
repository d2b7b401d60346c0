"""
surge.errors — Error Taxonomy
==============================

Three failure classes flow through the leveling core:

* :class:`ValidationError` — bad input; nothing was attempted.
* :class:`PersistenceError` — the store was unreachable or timed out; the
  grant was aborted before any reward or role side effect.
* :class:`PartialSideEffectError` — a side effect failed *after* the level
  was committed.  Logged per item, never rolled back.

None of these escape a grant or a sweeper tick; they are caught and logged
at that boundary.
"""

from __future__ import annotations


class SurgeError(Exception):
    """Base class for all leveling-core errors."""


class ValidationError(SurgeError, ValueError):
    """Input rejected before any state was read or written."""


class PersistenceError(SurgeError):
    """The persistence collaborator failed or exceeded its timeout."""


class PartialSideEffectError(SurgeError):
    """A reward credit or role change failed after the level was saved."""

    def __init__(self, message: str, *, user_id: int, guild_id: int, level: int) -> None:
        super().__init__(message)
        self.user_id = user_id
        self.guild_id = guild_id
        self.level = level
