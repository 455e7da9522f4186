# Overview: Row locking and whole-unit-of-work retry helpers.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

TRANSIENT_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE for read-then-write checkpoints.

    Used where two concurrent callers could both observe "no active reorder"
    or "sufficient stock" and proceed. SQLite ignores the clause; its
    database-level write lock serializes the writers instead.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a whole unit of work, retrying on transient storage failures.

    Retries on deadlocks/lock timeouts (OperationalError) and version_id
    conflicts (StaleDataError). Domain errors propagate on the first attempt.
    func must open its own UnitOfWork so each attempt starts clean.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except TRANSIENT_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Transient storage error (attempt %s/%s), retrying in %.2fs: %s", attempt, attempts, delay, exc
            )
            time.sleep(delay)
