"""
Exponential-backoff retry for transient database failures.

Only failures that may succeed on a second attempt are retried: lock
contention, serialization failures, deadlocks and lost connections.
Deterministic failures (bad input, missing rows, constraint violations)
are raised on the first attempt.
"""

import time
from typing import Callable, TypeVar

import psycopg
from psycopg import errors as pg_errors

from inventra.config import config
from inventra.errors import DatabaseError
from inventra.logs import log_warning

T = TypeVar("T")

_TRANSIENT_PG = (
    pg_errors.SerializationFailure,
    pg_errors.DeadlockDetected,
    pg_errors.LockNotAvailable,
    pg_errors.QueryCanceled,
    pg_errors.AdminShutdown,
    pg_errors.CannotConnectNow,
)
_FATAL_PG = (psycopg.IntegrityError, psycopg.DataError, psycopg.ProgrammingError)


def is_transient(error: BaseException) -> bool:
    """Classify an error as worth retrying."""
    if isinstance(error, _TRANSIENT_PG):
        return True
    if isinstance(error, _FATAL_PG):
        return False
    if isinstance(error, psycopg.OperationalError):
        return True
    if isinstance(error, (ConnectionError, TimeoutError)):
        return True
    # Wrapped driver errors are judged by their cause
    if isinstance(error, DatabaseError) and error.__cause__ is not None:
        return is_transient(error.__cause__)
    return False


def retry(
    fn: Callable[[], T],
    attempts: int | None = None,
    base_delay_ms: int | None = None,
    *,
    is_retryable: Callable[[BaseException], bool] = is_transient,
) -> T:
    """
    Call `fn` until it succeeds or `attempts` calls have failed.

    Sleeps base_delay_ms * 2 ** (attempt - 1) between attempts. The last
    error is re-raised unchanged. Errors rejected by `is_retryable` are
    re-raised immediately.

    Args:
        fn: Zero-argument callable, typically a closure over one transaction
        attempts: Total number of calls (default from config)
        base_delay_ms: Delay before the second call (default from config)
        is_retryable: Error classifier
    """
    attempts = config.retry_attempts if attempts is None else attempts
    base_delay_ms = config.retry_base_delay_ms if base_delay_ms is None else base_delay_ms
    if attempts < 1:
        raise ValueError("attempts must be >= 1")

    for attempt in range(1, attempts + 1):
        try:
            return fn()
        except Exception as exc:
            if not is_retryable(exc):
                raise
            final = attempt >= attempts
            delay_ms = 0 if final else base_delay_ms * 2 ** (attempt - 1)
            log_warning(
                "Giving up after transient failure" if final else "Retrying after transient failure",
                context="sql/retry",
                attempt=attempt,
                attempts=attempts,
                delay_ms=delay_ms,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            if final:
                raise
            time.sleep(delay_ms / 1000)

    raise AssertionError("unreachable")
