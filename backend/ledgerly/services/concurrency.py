# Overview: Row locking and commit retries for writes that race with the scheduler.

from __future__ import annotations

import time
from typing import Callable, TypeVar

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    Lock the selected rows until the surrounding batch commits.

    SQLite ignores SELECT ... FOR UPDATE; the batch commit is still serialized
    by its database-level write lock.
    """
    return query.with_for_update()


def run_with_retry(op: Callable[[], T], *, attempts: int = 3, backoff_base: float = 0.1) -> T:
    """
    Run `op`, rolling back and retrying on lock or stale-row failures.

    The delay doubles after each failed attempt. The last failure propagates.
    """
    for attempt in range(1, attempts + 1):
        try:
            return op()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            delay = backoff_base * (2 ** (attempt - 1))
            current_app.logger.warning(
                "Store write failed (attempt %s of %s), retrying in %.2fs: %s",
                attempt, attempts, delay, exc,
            )
            time.sleep(delay)
    raise ValueError("attempts must be >= 1")


def commit_with_retry(
    op: Callable[[], T] | None = None, *, attempts: int = 3, backoff_base: float = 0.1
) -> T | None:
    """
    Run `op` and commit as one retryable unit.

    A rollback discards pending changes, so without `op` there is nothing to
    replay and the commit is attempted once.
    """
    def _unit():
        result = op() if op is not None else None
        db.session.commit()
        return result

    if op is None:
        attempts = 1
    return run_with_retry(_unit, attempts=attempts, backoff_base=backoff_base)
