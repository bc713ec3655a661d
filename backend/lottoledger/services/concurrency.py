# Overview: Service-layer helpers for row locking, optimistic retries and commit error mapping.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrencyConflictError, LedgerError, PersistenceError
from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The version_id column still catches lost updates there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.05):
    """
    Execute a read-modify-write DB operation with retry on concurrency failures.

    func must load its rows itself so every attempt re-reads current state.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Once attempts are exhausted:
    - StaleDataError -> ConcurrencyConflictError
    - OperationalError -> PersistenceError
    LedgerErrors raised by func roll back and propagate untouched.
    """
    for attempt in range(attempts):
        try:
            return func()
        except LedgerError:
            db.session.rollback()
            raise
        except StaleDataError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.warning("Optimistic update conflict persisted after %d attempts", attempts)
                raise ConcurrencyConflictError(
                    "Record was modified concurrently; retry the request"
                ) from exc
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                logger.error("Storage unavailable after %d attempts: %s", attempts, exc)
                raise PersistenceError("Storage unavailable") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            logger.exception("Unexpected storage failure")
            raise PersistenceError("Storage failure") from exc
        time.sleep(backoff_base * (2 ** attempt))
    raise ConcurrencyConflictError("Record was modified concurrently; retry the request")

