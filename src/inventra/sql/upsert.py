"""
Bulk upsert composer.

Builds a single multi-row INSERT ... ON CONFLICT statement. What happens
to each non-key column on conflict is declared per column:

    overwrite   col = EXCLUDED.col
    keep        column left out of the SET list (stored value wins)
    add         col = t.col + EXCLUDED.col            (quantities)
    coalesce    col = COALESCE(EXCLUDED.col, t.col)   (fill only when given)

Columns missing from the policy are kept. If no column is updated the
statement uses DO NOTHING, which makes resubmitting a batch idempotent.
"""

from enum import Enum
from typing import Any, Mapping, Sequence

import psycopg

from inventra import db
from inventra.errors import DatabaseError, ValidationError
from inventra.logs import log_exception, log_info
from inventra.sql.ident import Table, quote, resolve_table, table_name

TARGET_ALIAS = "t"


class Resolution(str, Enum):
    OVERWRITE = "overwrite"
    KEEP = "keep"
    ADD = "add"
    COALESCE = "coalesce"


def _set_expression(column: str, resolution: Resolution) -> str | None:
    col = quote(column)
    if resolution is Resolution.OVERWRITE:
        return f"{col} = EXCLUDED.{col}"
    if resolution is Resolution.ADD:
        return f"{col} = {TARGET_ALIAS}.{col} + EXCLUDED.{col}"
    if resolution is Resolution.COALESCE:
        return f"{col} = COALESCE(EXCLUDED.{col}, {TARGET_ALIAS}.{col})"
    return None


def _normalize_policy(
    columns: Sequence[str], conflict_columns: Sequence[str], policy: Mapping[str, Any] | None
) -> dict[str, Resolution]:
    normalized = {}
    for column, value in (policy or {}).items():
        if column not in columns:
            raise ValidationError(
                f"Resolution policy names unknown column: {column}", {"column": column}
            )
        if column in conflict_columns:
            raise ValidationError(
                f"Conflict column cannot be updated on conflict: {column}", {"column": column}
            )
        try:
            normalized[column] = Resolution(value)
        except ValueError:
            raise ValidationError(
                f"Unknown resolution '{value}' for column {column}", {"column": column}
            ) from None
    return normalized


def build_bulk_insert(
    table: Table | str,
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    conflict_columns: Sequence[str] = (),
    policy: Mapping[str, Resolution | str] | None = None,
    *,
    returning: str | Sequence[str] | None = "id",
    schema: str | None = None,
) -> tuple[str, list]:
    """
    Compose the INSERT statement and its row-major parameter list.

    Raises:
        ValidationError: empty columns, ragged rows, conflict or policy
            columns that are not inserted, unsafe identifiers
    """
    columns = list(columns)
    conflict_columns = list(conflict_columns)
    if not columns:
        raise ValidationError("At least one column is required")
    if len(set(columns)) != len(columns):
        raise ValidationError("Duplicate column in insert", {"columns": columns})
    if not rows:
        raise ValidationError("At least one row is required")
    for index, row in enumerate(rows):
        if len(row) != len(columns):
            raise ValidationError(
                f"Row {index} has {len(row)} values, expected {len(columns)}",
                {"row": index},
            )
    missing = [column for column in conflict_columns if column not in columns]
    if missing:
        raise ValidationError(f"Conflict columns not inserted: {', '.join(missing)}")

    resolutions = _normalize_policy(columns, conflict_columns, policy)
    target = f"{resolve_table(table, schema)} AS {TARGET_ALIAS}"
    column_list = ", ".join(quote(column) for column in columns)
    row_placeholder = "(" + ", ".join(["%s"] * len(columns)) + ")"
    values = ", ".join([row_placeholder] * len(rows))

    sql = f"INSERT INTO {target} ({column_list}) VALUES {values}"
    if conflict_columns:
        updates = [
            expression
            for column in columns
            if column in resolutions
            and (expression := _set_expression(column, resolutions[column])) is not None
        ]
        conflict_target = ", ".join(quote(column) for column in conflict_columns)
        if updates:
            sql += f" ON CONFLICT ({conflict_target}) DO UPDATE SET {', '.join(updates)}"
        else:
            sql += f" ON CONFLICT ({conflict_target}) DO NOTHING"

    if returning:
        if isinstance(returning, str):
            returning = [returning]
        sql += " RETURNING " + ", ".join(quote(column) for column in returning)

    params = [value for row in rows for value in row]
    return sql, params


def bulk_insert(
    table: Table | str,
    columns: Sequence[str],
    rows: Sequence[Sequence[Any]],
    conflict_columns: Sequence[str] = (),
    policy: Mapping[str, Resolution | str] | None = None,
    *,
    conn=None,
    returning: str | Sequence[str] | None = "id",
    schema: str | None = None,
) -> list[dict]:
    """
    Insert many rows in one statement and return the RETURNING rows.

    An empty `rows` returns [] without touching the database. Rows skipped
    by DO NOTHING are not returned.

    Raises:
        ValidationError: malformed batch (see build_bulk_insert)
        DatabaseError: the statement failed
    """
    if not rows:
        return []

    sql, params = build_bulk_insert(
        table,
        columns,
        rows,
        conflict_columns,
        policy,
        returning=returning,
        schema=schema,
    )
    try:
        result = db.query(sql, params, conn)
    except psycopg.Error as exc:
        log_exception(
            exc,
            "Bulk insert failed",
            context="sql/bulk_insert",
            table=table_name(table),
            row_count=len(rows),
        )
        raise DatabaseError(
            f"Bulk insert into {table_name(table)} failed",
            {"table": table_name(table), "rowCount": len(rows)},
        ) from exc

    log_info(
        "Bulk insert completed",
        context="sql/bulk_insert",
        table=table_name(table),
        row_count=len(rows),
        returned=len(result),
    )
    return result
