"""
Pagination orchestrator.

Runs a count query and a data query for the same predicate on ONE
connection, one after the other, so both see the same rows. When the
caller does not pass a connection, both run inside a read-only
repeatable-read transaction (db.snapshot()).

Every variant returns a uniform envelope:

    {
        "data": [...],
        "pagination": {"page": 3, "limit": 10, "totalRecords": 25, "totalPages": 3},
    }
"""

import math
from typing import Any, Sequence

from inventra import db
from inventra.errors import ValidationError
from inventra.sql.ident import Table, quote_column_ref, resolve_table

MAX_LIMIT = 100


def validate_page(page: int, limit: int) -> tuple[int, int]:
    """Return (page, limit) as ints, or raise ValidationError."""
    for value in (page, limit):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError("page and limit must be integers", {"value": repr(value)})
    if page < 1:
        raise ValidationError("page must be >= 1", {"page": page})
    if not 1 <= limit <= MAX_LIMIT:
        raise ValidationError(f"limit must be between 1 and {MAX_LIMIT}", {"limit": limit})
    return page, limit


def total_pages(total_records: int, limit: int) -> int:
    return math.ceil(total_records / limit) if total_records else 0


def _order_clause(order_by: str) -> str:
    return f" ORDER BY {order_by}" if order_by else ""


def _run(count_sql, data_sql, params, page, limit, conn) -> dict:
    count_row = db.fetch_one(count_sql, params, conn)
    total_records = int(count_row["total_records"]) if count_row else 0

    rows: list[dict[str, Any]] = []
    if total_records:
        offset = (page - 1) * limit
        rows = db.query(data_sql, [*params, limit, offset], conn)

    return {
        "data": rows,
        "pagination": {
            "page": page,
            "limit": limit,
            "totalRecords": total_records,
            "totalPages": total_pages(total_records, limit),
        },
    }


def paginate(
    query_text: str,
    params: Sequence[Any],
    page: int,
    limit: int,
    *,
    order_by: str = "",
    conn=None,
) -> dict:
    """
    Paginate an arbitrary SELECT.

    `query_text` must not contain ORDER BY, LIMIT or OFFSET; ordering is
    passed separately so the count query can wrap the statement as-is.

    Args:
        query_text: SELECT statement with %s placeholders
        params: Values for the placeholders in `query_text`
        page: 1-based page number
        limit: Rows per page (1-100)
        order_by: Vetted ORDER BY expression (see sql.sorting.build_order_by)
        conn: Caller-owned connection; when omitted a snapshot is opened

    Raises:
        ValidationError: page or limit out of range
    """
    page, limit = validate_page(page, limit)
    params = list(params or [])
    count_sql = f"SELECT COUNT(*) AS total_records FROM ({query_text}) AS paged_source"
    data_sql = f"{query_text}{_order_clause(order_by)} LIMIT %s OFFSET %s"

    if conn is not None:
        return _run(count_sql, data_sql, params, page, limit, conn)
    with db.snapshot() as snapshot_conn:
        return _run(count_sql, data_sql, params, page, limit, snapshot_conn)


def paginate_query(
    table: Table | str,
    alias: str,
    joins: Sequence[str],
    where_clause: str,
    query_text: str,
    params: Sequence[Any],
    page: int,
    limit: int,
    *,
    order_by: str = "",
    distinct_column: str | None = None,
    conn=None,
) -> dict:
    """
    Paginate a query whose FROM clause is known to the caller.

    The count is built directly from the allowlisted base table, the joins
    and the predicate instead of wrapping the whole data query. Pass
    `distinct_column` when one-to-many joins fan out rows so the count is
    of logical entities: COUNT(DISTINCT <column>).
    """
    page, limit = validate_page(page, limit)
    params = list(params or [])
    source = f"{resolve_table(table)} {quote_column_ref(alias)}"
    joined = " ".join(joins)
    counted = f"DISTINCT {quote_column_ref(distinct_column)}" if distinct_column else "*"
    count_sql = (
        f"SELECT COUNT({counted}) AS total_records FROM {source} {joined} "
        f"WHERE {where_clause or 'TRUE'}"
    )
    data_sql = f"{query_text}{_order_clause(order_by)} LIMIT %s OFFSET %s"

    if conn is not None:
        return _run(count_sql, data_sql, params, page, limit, conn)
    with db.snapshot() as snapshot_conn:
        return _run(count_sql, data_sql, params, page, limit, snapshot_conn)


def paginate_by_offset(
    query_text: str,
    params: Sequence[Any],
    offset: int = 0,
    limit: int = 50,
    *,
    order_by: str = "",
    conn=None,
) -> dict:
    """
    Offset/limit variant for lookup dropdowns and infinite scroll.

    Returns {"data": [...], "pagination": {"offset", "limit", "totalRecords", "hasMore"}}.
    """
    if isinstance(offset, bool) or not isinstance(offset, int) or offset < 0:
        raise ValidationError("offset must be a non-negative integer", {"offset": offset})
    _, limit = validate_page(1, limit)
    params = list(params or [])
    count_sql = f"SELECT COUNT(*) AS total_records FROM ({query_text}) AS paged_source"
    data_sql = f"{query_text}{_order_clause(order_by)} LIMIT %s OFFSET %s"

    def run(active) -> dict:
        count_row = db.fetch_one(count_sql, params, active)
        total_records = int(count_row["total_records"]) if count_row else 0
        rows = db.query(data_sql, [*params, limit, offset], active) if offset < total_records else []
        return {
            "data": rows,
            "pagination": {
                "offset": offset,
                "limit": limit,
                "totalRecords": total_records,
                "hasMore": offset + len(rows) < total_records,
            },
        }

    if conn is not None:
        return run(conn)
    with db.snapshot() as snapshot_conn:
        return run(snapshot_conn)
