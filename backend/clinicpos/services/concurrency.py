# Overview: Transaction helpers for row locking and concurrency-failure handling.

from __future__ import annotations

import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConcurrencyConflictError


def begin_write():
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks; BEGIN IMMEDIATE serializes writers so that a
    read-then-write inside one operation cannot interleave with another.
    Write operations start here, so a transaction the session already holds
    (auth lookups, lazy loads on g.current_user) is committed first and the
    write lock is always taken.
    """
    if db.engine.dialect.name != "sqlite":
        return
    session = db.session()
    if session.in_transaction():
        session.commit()
    session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 1, backoff_base: float = 0.1):
    """
    Execute a DB operation, rolling back on concurrency-related failures.

    OperationalError (deadlocks, lock timeouts) and StaleDataError
    (optimistic locking conflicts) are retried up to `attempts` times in
    total; when they are exhausted the failure surfaces as
    ConcurrencyConflictError so the caller can re-fetch and resubmit.
    Any other exception rolls the session back and propagates unchanged.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise ConcurrencyConflictError(
                    "Record was modified concurrently; reload and retry",
                    details={"cause": exc.__class__.__name__},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
