# Overview: Transaction helpers shared by the fulfillment services (locking, retry).

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import Conflict


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Take the database write lock up front on SQLite.

    SQLite has no row locks, so a read-check-write sequence (capacity check
    then insert) is only serialized if the transaction starts as IMMEDIATE.
    Other dialects rely on lock_for_update().
    """
    if db.engine.dialect.name != "sqlite":
        return
    conn = db.session.connection()
    if not conn.connection.driver_connection.in_transaction:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def run_with_retry(func, *, attempts: int = 2, backoff_base: float = 0.05):
    """
    Execute a unit of work, retrying once on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks, serialization failures) and
    StaleDataError (optimistic locking conflicts). When the retry also fails
    the failure is surfaced as Conflict. Any other exception rolls the session
    back and propagates unchanged, so no partial write is ever committed.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning("Transaction conflict after %s attempts: %s", attempts, exc)
                raise Conflict(
                    "Concurrent update conflict, please retry",
                    details={"attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
