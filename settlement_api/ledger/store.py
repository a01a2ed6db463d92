"""
Ledger store access layer.

Thin helpers over the Django ORM that the settlement services share:

- ``unit_of_work``: the atomic boundary every multi-row write runs in
- ``lock`` / ``fetch``: row lookup (optionally ``SELECT ... FOR UPDATE``)
  that raises the settlement ``NotFound`` kind
- ``retry_on_conflict``: bounded retry with backoff for benign races
"""
import logging
import time
from contextlib import contextmanager
from functools import wraps

from django.conf import settings
from django.db import OperationalError, connection, transaction

from .exceptions import ConflictRetryable, NotFound

logger = logging.getLogger(__name__)

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
CONFLICT_SQLSTATES = {"40001", "40P01", "55P03", "57014"}


def is_conflict(exc):
    """Return True when a database error is a lock/serialization race."""
    cause = exc.__cause__ or exc
    sqlstate = getattr(cause, "sqlstate", None) or getattr(cause, "pgcode", None)
    if sqlstate in CONFLICT_SQLSTATES:
        return True
    # SQLite reports writer contention this way
    return "database is locked" in str(exc)


def _apply_statement_timeout():
    if connection.vendor != "postgresql":
        return
    timeout_ms = getattr(settings, "LEDGER_STATEMENT_TIMEOUT_MS", 5000)
    with connection.cursor() as cursor:
        cursor.execute("SELECT set_config('statement_timeout', %s, true)", [str(timeout_ms)])
        cursor.execute("SELECT set_config('lock_timeout', %s, true)", [str(timeout_ms)])


@contextmanager
def unit_of_work():
    """
    All-or-nothing block of ledger writes.

    Nested blocks become savepoints. Lock timeouts and serialization
    failures are surfaced as ``ConflictRetryable`` after the rollback.
    """
    try:
        with transaction.atomic():
            _apply_statement_timeout()
            yield
    except OperationalError as exc:
        if is_conflict(exc):
            logger.warning("Unit of work aborted by concurrent update: %s", exc)
            raise ConflictRetryable() from exc
        raise


def _not_found(model):
    return NotFound(f"{model._meta.verbose_name.capitalize()} not found.")


def fetch(queryset, **lookup):
    """Plain read that raises the settlement NotFound kind."""
    try:
        return queryset.get(**lookup)
    except queryset.model.DoesNotExist:
        raise _not_found(queryset.model)


def lock(queryset, **lookup):
    """
    Load a single row with a row-level lock.

    Must be called inside ``unit_of_work``; the lock is held until the
    outermost block commits or rolls back. Joined rows from
    ``select_related`` are read but not locked.
    """
    try:
        return queryset.select_for_update(of=('self',)).get(**lookup)
    except queryset.model.DoesNotExist:
        raise _not_found(queryset.model)


def retry_on_conflict(func=None, *, attempts=None, backoff=0.05):
    """
    Retry ``func`` when it raises ``ConflictRetryable``.

    Retries only happen at the outermost level: inside an enclosing atomic
    block the transaction is already spoiled, so the error propagates.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            max_attempts = attempts or getattr(settings, "LEDGER_CONFLICT_RETRIES", 3)
            delay = backoff
            attempt = 1
            while True:
                try:
                    return fn(*args, **kwargs)
                except ConflictRetryable:
                    if attempt >= max_attempts or connection.in_atomic_block:
                        raise
                    logger.warning(
                        "Conflict in %s, retrying (%s/%s)", fn.__name__, attempt, max_attempts
                    )
                    time.sleep(delay)
                    delay *= 2
                    attempt += 1
        return wrapper

    if func is not None:
        return decorator(func)
    return decorator
