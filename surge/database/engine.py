"""
surge.database.engine — Database Connection & Async Helper
===========================================================

Discord bots run on an ``asyncio`` event loop, while SQLAlchemy + psycopg2 is
synchronous.  Every DB function in Surge is therefore a plain sync function
that opens its own session, and async callers ship it to the default thread
pool:

    1. A gateway event or sweeper tick fires (async world).
    2. The caller does ``await run_db_bounded(func, *args, timeout=10)``.
    3. ``func`` runs on a worker thread via ``asyncio.to_thread()``.
    4. If it doesn't finish within *timeout* seconds, the awaiting caller
       gets a :class:`TimeoutError` and moves on.  The worker thread is not
       interrupted and may still commit afterwards.

Writes whose outcome the caller must know (XP grants, reward credits) use
:func:`run_db_settled` instead: the worker gets a ``deadline`` it checks with
:func:`check_deadline` before committing, and the caller waits for the
transaction to either commit or roll back.

Usage::

    from surge.database.engine import create_db_engine, init_db, run_db_bounded

    engine = create_db_engine()          # reads DATABASE_URL from .env
    init_db(engine)                      # CREATE TABLE IF NOT EXISTS …

    result = await run_db_bounded(apply_xp, engine, user_id, guild_id, 25, timeout=10)
"""

from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Callable
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session

from surge.database.models import Base
from surge.errors import PersistenceError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_DB_TIMEOUT = 10.0


# ---------------------------------------------------------------------------
# Engine creation
# ---------------------------------------------------------------------------
def create_db_engine() -> Engine:
    """Build a SQLAlchemy :class:`Engine` from the ``DATABASE_URL`` env var.

    Pool sizing mirrors a small-to-medium community bot: five persistent
    connections, up to ten overflow, 10 s checkout timeout, hourly recycle.

    Raises
    ------
    RuntimeError
        If ``DATABASE_URL`` is not set.
    """
    url = os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError(
            "DATABASE_URL is not set.  "
            "Copy .env.example → .env and set a valid PostgreSQL URL."
        )

    engine = create_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=3600,
    )
    logger.info("Database engine created → %s", engine.url.host)
    return engine


def init_db(engine: Engine) -> None:
    """Create all tables defined in :mod:`surge.database.models`.

    Safe on every startup.  Production schemas are managed by Alembic
    (``alembic upgrade head``); this is the dev/test safety net.
    """
    Base.metadata.create_all(engine)
    logger.info("Database tables verified / created.")


# ---------------------------------------------------------------------------
# Session helper
# ---------------------------------------------------------------------------
@contextmanager
def get_session(engine: Engine):
    """Yield a :class:`Session` that commits on success and rolls back on
    exception.
    """
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# ---------------------------------------------------------------------------
# Transaction deadlines
# ---------------------------------------------------------------------------
def bound_statements(session: Session, deadline: float | None) -> None:
    """Cap statement and lock waits for the rest of the transaction.

    PostgreSQL only; other dialects rely on :func:`check_deadline` alone.
    """
    if deadline is None or session.get_bind().dialect.name != "postgresql":
        return
    ms = max(1, int((deadline - time.monotonic()) * 1000))
    session.execute(text(f"SET LOCAL statement_timeout = {ms}"))
    session.execute(text(f"SET LOCAL lock_timeout = {ms}"))


def check_deadline(deadline: float | None) -> None:
    """Raise :class:`PersistenceError` if the ``time.monotonic()`` *deadline*
    has passed.  Call it last inside ``get_session`` so an overrun rolls back.
    """
    if deadline is not None and time.monotonic() > deadline:
        raise PersistenceError(
            f"Transaction overran its deadline by {time.monotonic() - deadline:.2f}s"
        )


# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------
async def run_db_bounded(
    func: Callable[..., T],
    *args,
    timeout: float = DEFAULT_DB_TIMEOUT,
    **kwargs,
) -> T:
    """Run a **synchronous** database function on a background thread,
    giving up after *timeout* seconds.

    The worker thread itself cannot be interrupted; the caller simply stops
    waiting for it, and the transaction may still commit later.  Only use
    this for writes where a late commit is harmless (activity counters,
    housekeeping).

    Raises
    ------
    TimeoutError
        If *func* has not returned within *timeout* seconds.
    """
    return await asyncio.wait_for(
        asyncio.to_thread(func, *args, **kwargs), timeout=timeout,
    )


async def run_db_settled(
    func: Callable[..., T],
    *args,
    timeout: float = DEFAULT_DB_TIMEOUT,
    **kwargs,
) -> T:
    """Run *func* on a background thread and return its real outcome.

    *func* receives a ``deadline`` keyword (``time.monotonic()`` + *timeout*)
    and must pass it to :func:`bound_statements` / :func:`check_deadline`, so
    an overrunning transaction rolls back instead of committing late.  If the
    worker is still busy after *timeout*, a warning is logged and the caller
    keeps waiting: whatever this returns or raises is what the database saw.

    Raises
    ------
    PersistenceError
        If the transaction overran its deadline and was rolled back.
    """
    deadline = time.monotonic() + timeout
    worker = asyncio.ensure_future(
        asyncio.to_thread(func, *args, deadline=deadline, **kwargs)
    )
    try:
        return await asyncio.wait_for(asyncio.shield(worker), timeout=timeout)
    except TimeoutError:
        logger.warning(
            "%s still running after %.1fs — waiting for it to commit or roll back",
            getattr(func, "__name__", "DB call"), timeout,
        )
    return await worker
