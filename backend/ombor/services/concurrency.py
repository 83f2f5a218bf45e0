# Overview: Transaction boundary helpers shared by every write path.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock up front instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start the write transaction before the first read of a
    read-modify-write sequence.

    On SQLite this is BEGIN IMMEDIATE, which serializes writers so two
    checkouts cannot both read the same pre-decrement stock level.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Call func, rolling back and calling again when the write lost a race.

    A race is a locked database (OperationalError) or a version_id mismatch
    (StaleDataError); the last one propagates once attempts are used up.
    Any other exception rolls back and propagates on the first try.
    """
    attempts = max(attempts or current_app.config.get("WRITE_RETRY_ATTEMPTS", 3), 1)
    attempt = 1
    while True:
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            current_app.logger.warning(
                "Write conflict on attempt %d of %d, retrying: %s", attempt, attempts, exc
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
            attempt += 1
        except Exception:
            db.session.rollback()
            raise


def atomic(func):
    """Run func as one write transaction: BEGIN, func(), COMMIT, with retry."""
    def _op():
        begin_write()
        result = func()
        db.session.commit()
        return result
    return run_with_retry(_op)
