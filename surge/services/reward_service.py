"""
surge.services.reward_service — Level-Up Currency Rewards
==========================================================

Credits ``level * 100`` to the member's balance for every level crossed.

Delivery is at-least-once: no idempotency key is attached to a credit, so a
caller-side retry would pay twice.  The grant service never retries, which
keeps that acceptable.
"""

from __future__ import annotations

import logging

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from surge.database.engine import (
    DEFAULT_DB_TIMEOUT,
    bound_statements,
    check_deadline,
    get_session,
    run_db_settled,
)
from surge.database.models import Balance
from surge.errors import PartialSideEffectError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

REWARD_PER_LEVEL = 100


def reward_for_level(level: int) -> int:
    """Currency paid for reaching *level*."""
    return level * REWARD_PER_LEVEL


def credit_balance(
    engine: Engine,
    user_id: int,
    guild_id: int,
    amount: int,
    *,
    deadline: float | None = None,
) -> int:
    """Add *amount* to the member's balance and return the new total.

    Only positive credits are accepted, so this path can never take a
    balance below zero.
    """
    if amount <= 0:
        raise ValidationError(f"Credit amount must be positive, got {amount}")

    with get_session(engine) as session:
        bound_statements(session, deadline)
        balance = session.get(Balance, (user_id, guild_id), with_for_update=True)
        if balance is None:
            balance = Balance(user_id=user_id, guild_id=guild_id, amount=0)
            session.add(balance)
        balance.amount += amount
        session.flush()
        total = balance.amount
        check_deadline(deadline)
    return total


class RewardDispatcher:
    """Pays the per-level reward through the currency ledger."""

    def __init__(self, engine: Engine, *, db_timeout: float = DEFAULT_DB_TIMEOUT) -> None:
        self.engine = engine
        self.db_timeout = db_timeout

    async def dispatch(self, user_id: int, guild_id: int, level: int) -> int:
        """Credit the reward for *level* and return the amount paid.

        Raises
        ------
        PartialSideEffectError
            If the ledger write fails, or overruns its time budget and is
            rolled back.  Either way nothing was credited.
        """
        amount = reward_for_level(level)
        try:
            await run_db_settled(
                credit_balance, self.engine, user_id, guild_id, amount,
                timeout=self.db_timeout,
            )
        except (SQLAlchemyError, PersistenceError) as exc:
            raise PartialSideEffectError(
                f"Failed to credit {amount} for level {level}: {exc!r}",
                user_id=user_id,
                guild_id=guild_id,
                level=level,
            ) from exc

        logger.debug(
            "Credited %d to user %d in guild %d for level %d",
            amount, user_id, guild_id, level,
        )
        return amount
