"""
Database connection and query utilities.

Provides a simple interface for executing queries with psycopg, returning
results as dictionaries. Connections come from a lazily created
psycopg_pool.ConnectionPool.

Every helper accepts an optional `conn`. When given, the statement runs on
that connection and the caller owns the transaction (commit, rollback and
release). When omitted, a pooled connection is borrowed for the call and
committed on success.

For testing, use set_connection_override() to inject a connection
that will be used instead of borrowing from the pool. This enables
transaction rollback between tests.
"""

import time
from contextlib import contextmanager
from typing import Any, Sequence

import psycopg
from psycopg.pq import TransactionStatus
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from inventra.config import config
from inventra.logs import log_exception, log_warning

# =============================================================================
# Connection Override (for testing)
# =============================================================================

_connection_override: psycopg.Connection | None = None


def set_connection_override(conn: psycopg.Connection) -> None:
    """
    Set a connection to use instead of borrowing from the pool.

    Used by test fixtures to ensure all database operations run
    within a single transaction that can be rolled back.

    Args:
        conn: The connection to use for all subsequent operations
    """
    global _connection_override
    _connection_override = conn


def clear_connection_override() -> None:
    """Clear the connection override, restoring normal behavior."""
    global _connection_override
    _connection_override = None


# =============================================================================
# Pool Management
# =============================================================================

_pool: ConnectionPool | None = None


def get_pool() -> ConnectionPool:
    """Return the process-wide pool, opening it on first use."""
    global _pool
    if _pool is None:
        _pool = ConnectionPool(
            config.database_url,
            min_size=config.pool_min_size,
            max_size=config.pool_max_size,
            timeout=config.pool_timeout,
            open=True,
        )
    return _pool


def close_pool() -> None:
    """Close the pool. Calling it when no pool is open is a no-op."""
    global _pool
    if _pool is None:
        log_warning("Connection pool already closed", context="db/close_pool")
        return
    _pool.close()
    _pool = None


# =============================================================================
# Connection Management
# =============================================================================


@contextmanager
def get_connection():
    """
    Context manager for database connections.

    In normal operation:
        - Borrows a connection from the pool
        - Commits on successful exit
        - Rolls back on exception
        - Returns the connection to the pool when done

    With override set (testing):
        - Returns the override connection
        - Does NOT commit, rollback, or close
        - Caller (test fixture) manages the transaction

    Usage:
        with get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT ...")
    """
    if _connection_override is not None:
        yield _connection_override
        return

    with get_pool().connection() as conn:
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise


# A transaction is a borrowed connection whose lifetime is the block.
transaction = get_connection


@contextmanager
def snapshot():
    """
    Context manager for a read-only, repeatable-read transaction.

    Statements executed inside the block all observe the same committed
    data. The test override connection is yielded untouched; its
    transaction is owned by the fixture.
    """
    if _connection_override is not None:
        yield _connection_override
        return

    with get_connection() as conn:
        if conn.info.transaction_status == TransactionStatus.IDLE:
            # psycopg opens the transaction implicitly; this must be its first statement
            conn.execute("SET TRANSACTION ISOLATION LEVEL REPEATABLE READ, READ ONLY")
        yield conn


@contextmanager
def _use(conn: psycopg.Connection | None):
    if conn is not None:
        yield conn
    else:
        with get_connection() as borrowed:
            yield borrowed


# =============================================================================
# Query Helpers
# =============================================================================


def query(
    sql: str, params: Sequence[Any] | None = None, conn: psycopg.Connection | None = None
) -> list[dict[str, Any]]:
    """
    Execute a statement and return its rows as a list of dicts.

    Statements that produce no result set (UPDATE without RETURNING, ...)
    return an empty list. Statements slower than the configured threshold
    are logged.

    Args:
        sql: SQL query with %s placeholders
        params: Parameter values, bound positionally
        conn: Connection to run on (caller-owned transaction)

    Returns:
        List of dicts, empty list if no rows
    """
    started = time.perf_counter()
    with _use(conn) as active:
        try:
            with active.cursor(row_factory=dict_row) as cur:
                cur.execute(sql, params)
                rows = cur.fetchall() if cur.description else []
        except psycopg.Error as exc:
            log_exception(exc, "Query execution failed", context="db/query", query=sql)
            raise

    elapsed_ms = (time.perf_counter() - started) * 1000
    if elapsed_ms > config.slow_query_threshold_ms:
        log_warning(
            "Slow query detected",
            context="db/query",
            query=sql,
            duration_ms=round(elapsed_ms, 1),
        )
    return rows


def execute(query_text: str, params: Sequence[Any] | None = None, conn=None) -> None:
    """
    Execute a query without returning results.

    Use for INSERT, UPDATE, DELETE when you don't need the affected rows.
    """
    query(query_text, params, conn)


def fetch_one(query_text: str, params: Sequence[Any] | None = None, conn=None) -> dict | None:
    """
    Execute a query and return a single row as dict.

    Returns:
        Dict of column names to values, or None if no row found
    """
    rows = query(query_text, params, conn)
    return rows[0] if rows else None


def fetch_all(query_text: str, params: Sequence[Any] | None = None, conn=None) -> list[dict]:
    """Execute a query and return all rows as list of dicts."""
    return query(query_text, params, conn)


def check_connection() -> bool:
    """Run a trivial query; raises on failure."""
    return fetch_one("SELECT 1 AS ok")["ok"] == 1
