# Overview: Transaction scope, row locking and retry helpers shared by write paths.

from __future__ import annotations

import time
from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import BillingError, ConflictRetryable, StorageFailure

# Contention that a clean rerun of the whole transaction can resolve:
# SQLite busy/locked, deadlocks and optimistic version conflicts.
RETRYABLE_ERRORS = (OperationalError, StaleDataError)

# The one integrity error a rerun resolves: two first sales of a tenant both
# creating its bill_sequences row. SQLite names the column, other backends
# the constraint.
SEQUENCE_RACE_MARKERS = ("bill_sequences.tenant_id", "uq_bill_sequences_tenant_id")


def is_sequence_race(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in SEQUENCE_RACE_MARKERS)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    One atomic, isolated transaction around a block of reads and writes.

    Commits when the block exits normally; rolls back on every other exit
    path (domain errors, storage errors, KeyboardInterrupt / cancellation).

    On SQLite the transaction starts with BEGIN IMMEDIATE so the write lock
    is held from the first read: concurrent writers queue on the busy
    timeout instead of validating against stock that is about to change.
    Elsewhere callers lock the rows they read with lock_for_update().

    The session must not carry uncommitted writes when this is entered.

    Raises ConflictRetryable for contention (including the bill sequence
    creation race) and StorageFailure for other database errors, constraint
    violations included; BillingError subclasses pass through unchanged.
    """
    session = db.session
    try:
        if db.engine.dialect.name == "sqlite":
            session.execute(text("BEGIN IMMEDIATE"))
        yield session
        session.commit()
    except BillingError:
        session.rollback()
        raise
    except IntegrityError as exc:
        session.rollback()
        if is_sequence_race(exc):
            raise ConflictRetryable(
                "Bill sequence created concurrently, transaction rolled back",
                details={"cause": type(exc).__name__},
            ) from exc
        raise StorageFailure(
            "Write rejected by a database constraint",
            details={"cause": type(exc).__name__},
        ) from exc
    except RETRYABLE_ERRORS as exc:
        session.rollback()
        raise ConflictRetryable(
            "Storage contention, transaction rolled back",
            details={"cause": type(exc).__name__},
        ) from exc
    except SQLAlchemyError as exc:
        session.rollback()
        raise StorageFailure(
            "Could not commit transaction",
            details={"cause": type(exc).__name__},
        ) from exc
    except BaseException:
        session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation, rerunning it from scratch on retryable conflicts.

    Retries on ConflictRetryable (raised by unit_of_work) and on raw
    OperationalError / StaleDataError from callers that commit directly.
    Once attempts are exhausted the conflict surfaces as StorageFailure.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except ConflictRetryable as exc:
            last_exc = exc
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
        if attempt < attempts - 1:
            delay = backoff_base * (2 ** attempt)
            current_app.logger.warning(
                "Retrying after storage conflict (attempt %s/%s, sleeping %.3fs): %s",
                attempt + 1, attempts, delay, last_exc,
            )
            time.sleep(delay)

    raise StorageFailure(
        "Transaction could not be committed after retries",
        details={"attempts": attempts, "cause": type(last_exc).__name__ if last_exc else None},
    ) from last_exc
