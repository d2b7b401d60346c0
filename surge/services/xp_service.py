"""
surge.services.xp_service — XP Grant Service
=============================================

The one place that mutates :class:`LevelProgress`.  Both ingestion paths
(message gate, voice tick) call :meth:`XpGrantService.grant`; nothing else
does.

Pipeline for ``grant(user_id, guild_id, base_xp)``:

1. Validate input — bad ids or XP abort with no side effects.
2. Serialize on ``(user_id, guild_id)`` so a message grant and a voice grant
   for the same member can't interleave their read-modify-write.
3. One DB transaction (:func:`apply_xp`): load-or-create, apply the guild
   boost, add XP, walk the level curve, commit.
4. If that write fails, or overruns its time budget and rolls back, stop.
   No reward, no roles.  A slow write that does commit is waited for and
   treated as a success.
5. On level-up: one reward credit per level crossed, in order.
6. On level-up: one role reconciliation with the final level.
7. On level-up: hand the result to the notifier, if any.

Steps 5–7 happen after the commit.  A failure there is logged and does not
roll back the level.
"""

from __future__ import annotations

import asyncio
import logging
import math
import weakref
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from surge.database.engine import (
    DEFAULT_DB_TIMEOUT,
    bound_statements,
    check_deadline,
    get_session,
    run_db_settled,
)
from surge.database.models import LevelProgress
from surge.engine.levels import advance_level
from surge.errors import PartialSideEffectError, PersistenceError, ValidationError
from surge.services.boost_service import active_multiplier

if TYPE_CHECKING:
    import discord

    from surge.services.reward_service import RewardDispatcher
    from surge.services.role_service import RoleReconciler

logger = logging.getLogger(__name__)

MemberResolver = Callable[[int, int], Awaitable["discord.Member | None"]]
Notifier = Callable[["GrantResult"], Awaitable[None]]


# ---------------------------------------------------------------------------
# GrantResult — what a grant did
# ---------------------------------------------------------------------------
@dataclass
class GrantResult:
    user_id: int
    guild_id: int
    xp_added: int
    total_xp: int
    old_level: int
    new_level: int
    multiplier: int = 1
    reward_total: int = 0  # Filled in after reward dispatch

    @property
    def level_up(self) -> bool:
        return self.new_level > self.old_level

    @property
    def levels_gained(self) -> range:
        """Every level newly reached by this grant, lowest first."""
        return range(self.old_level + 1, self.new_level + 1)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------
def validate_grant(user_id: object, guild_id: object, base_xp: object) -> None:
    """Raise :class:`ValidationError` unless the grant arguments are usable."""
    for name, value in (("user_id", user_id), ("guild_id", guild_id)):
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            raise ValidationError(f"{name} must be a positive integer, got {value!r}")
    if isinstance(base_xp, bool) or not isinstance(base_xp, (int, float)):
        raise ValidationError(f"base_xp must be numeric, got {base_xp!r}")
    if not math.isfinite(base_xp) or base_xp < 0:
        raise ValidationError(f"base_xp must be a finite non-negative number, got {base_xp!r}")


# ---------------------------------------------------------------------------
# Persistence (sync — run via run_db_bounded)
# ---------------------------------------------------------------------------
def get_or_create_progress(
    session: Session, user_id: int, guild_id: int, *, for_update: bool = False
) -> LevelProgress:
    """Fetch or insert the LevelProgress row for user+guild."""
    progress = session.get(
        LevelProgress, (user_id, guild_id), with_for_update=for_update or None
    )
    if progress is None:
        progress = LevelProgress(user_id=user_id, guild_id=guild_id, xp=0, level=1)
        session.add(progress)
        session.flush()
    return progress


def apply_xp(
    engine: Engine,
    user_id: int,
    guild_id: int,
    base_xp: int | float,
    *,
    now: datetime | None = None,
    deadline: float | None = None,
) -> GrantResult:
    """Apply one grant in a single transaction and return what changed.

    With a *deadline* (``time.monotonic()`` value) the transaction rolls back
    instead of committing once the deadline has passed.
    """
    with get_session(engine) as session:
        bound_statements(session, deadline)
        progress = get_or_create_progress(session, user_id, guild_id, for_update=True)
        multiplier = active_multiplier(session, guild_id, now=now)
        final_xp = math.floor(base_xp * multiplier)

        old_level = progress.level
        progress.xp += final_xp
        if final_xp > 0:
            progress.level = advance_level(progress.xp, progress.level)

        result = GrantResult(
            user_id=user_id,
            guild_id=guild_id,
            xp_added=final_xp,
            total_xp=progress.xp,
            old_level=old_level,
            new_level=progress.level,
            multiplier=multiplier,
        )
        check_deadline(deadline)
    return result


# ---------------------------------------------------------------------------
# Per-member serialization
# ---------------------------------------------------------------------------
class KeyedLocks:
    """One :class:`asyncio.Lock` per key, dropped once nobody holds it."""

    def __init__(self) -> None:
        self._locks: weakref.WeakValueDictionary[tuple[int, int], asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def get(self, key: tuple[int, int]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------
class XpGrantService:
    """Grants XP and fans out level-up side effects.

    Parameters
    ----------
    engine:
        SQLAlchemy engine holding LevelProgress and Boost rows.
    rewards:
        Dispatcher called once per level crossed.
    roles:
        Reconciler called once per level-up with the final level.
    resolve_member:
        ``async (guild_id, user_id) -> Member | None`` used for role sync.
        Without it (or when it returns None) role sync is skipped.
    notify:
        Optional ``async (GrantResult) -> None`` called on level-up.
    db_timeout:
        Budget for the grant transaction.  Past it the transaction rolls
        back rather than commit; the grant waits for that outcome while
        still holding the member's lock.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        rewards: RewardDispatcher,
        roles: RoleReconciler,
        resolve_member: MemberResolver | None = None,
        notify: Notifier | None = None,
        db_timeout: float = DEFAULT_DB_TIMEOUT,
    ) -> None:
        self.engine = engine
        self.rewards = rewards
        self.roles = roles
        self.resolve_member = resolve_member
        self.notify = notify
        self.db_timeout = db_timeout
        self._locks = KeyedLocks()

    async def grant(
        self, user_id: int, guild_id: int, base_xp: int | float
    ) -> GrantResult | None:
        """Grant *base_xp* (boosted) to a member.

        Returns the :class:`GrantResult`, or None if the grant was rejected or
        could not be persisted.  Never raises.
        """
        try:
            validate_grant(user_id, guild_id, base_xp)
        except ValidationError as exc:
            logger.warning("Grant rejected: %s", exc)
            return None

        try:
            async with self._locks.get((user_id, guild_id)):
                result = await self._persist(user_id, guild_id, base_xp)
        except PersistenceError:
            logger.exception(
                "Grant of %s XP to user %d in guild %d aborted",
                base_xp, user_id, guild_id,
            )
            return None

        if result.level_up:
            logger.info(
                "User %d in guild %d leveled up %d → %d (+%d XP, x%d)",
                user_id, guild_id, result.old_level, result.new_level,
                result.xp_added, result.multiplier,
            )
            await self._apply_level_up_effects(result)

        return result

    async def _persist(
        self, user_id: int, guild_id: int, base_xp: int | float
    ) -> GrantResult:
        # Settles before returning, so the caller's lock spans the whole
        # transaction and a committed level-up is never reported as failed.
        try:
            return await run_db_settled(
                apply_xp, self.engine, user_id, guild_id, base_xp,
                timeout=self.db_timeout,
            )
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Grant transaction failed: {exc}") from exc

    async def _apply_level_up_effects(self, result: GrantResult) -> None:
        # Rewards: every level crossed, lowest first
        for level in result.levels_gained:
            try:
                result.reward_total += await self.rewards.dispatch(
                    result.user_id, result.guild_id, level,
                )
            except PartialSideEffectError as exc:
                logger.warning(
                    "Reward for level %d not credited to user %d: %s",
                    exc.level, exc.user_id, exc,
                )

        # Roles: final state only
        await self._sync_roles(result)

        if self.notify is not None:
            try:
                await self.notify(result)
            except Exception:
                logger.exception(
                    "Level-up notification failed for user %d", result.user_id
                )

    async def _sync_roles(self, result: GrantResult) -> None:
        if self.resolve_member is None:
            return
        try:
            member = await self.resolve_member(result.guild_id, result.user_id)
        except Exception:
            logger.exception(
                "Could not resolve member %d in guild %d for role sync",
                result.user_id, result.guild_id,
            )
            return
        if member is None:
            logger.debug(
                "Member %d not found in guild %d — skipping role sync",
                result.user_id, result.guild_id,
            )
            return

        try:
            sync = await self.roles.reconcile(member, result.new_level)
        except Exception:
            logger.exception("Role sync crashed for user %d", result.user_id)
            return
        if sync is not None and sync.failed:
            logger.warning(
                "Role sync for user %d at level %d left %d role(s) unsynced: %s",
                result.user_id, result.new_level, len(sync.failed), sync.failed,
            )
