# Overview: Locking and optimistic-retry helpers shared by every ledger command.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the version_id columns still catch a stale write at flush time.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a read-validate-write closure with retry on concurrency failures.

    Retries on OperationalError (deadlocks, busy database) and StaleDataError
    (optimistic locking conflicts). Each attempt re-runs func from the top, so
    it re-reads current state. Any other exception rolls the session back and
    propagates unchanged; business rule failures are never retried.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)

    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.info(
                "Concurrent write conflict (%s); retrying attempt %d/%d",
                type(exc).__name__, attempt + 2, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc
