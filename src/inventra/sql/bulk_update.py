"""
Bulk update composer.

Turns a map of row key -> partial update into ONE statement:

    UPDATE "public"."location_inventory" AS t
    SET "location_quantity" = COALESCE(v."location_quantity", t."location_quantity"),
        "updated_at" = NOW(),
        "updated_by" = %s
    FROM (VALUES (%s::uuid, %s::integer), (%s::uuid, %s::integer))
        AS v("id", "location_quantity")
    WHERE t."id" = v."id"
    RETURNING t."id"

A multi-row VALUES list carries no type information, so every cell is cast
to its declared type. Cells for columns a row does not update are NULL and
fall back to the stored value through COALESCE.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from inventra import db
from inventra.errors import ValidationError
from inventra.sql.ident import Table, quote, resolve_table

DEFAULT_KEY_TYPE = "uuid"

_TYPE_NAMES = frozenset(
    {
        "bigint",
        "boolean",
        "date",
        "double precision",
        "integer",
        "interval",
        "jsonb",
        "numeric",
        "real",
        "smallint",
        "text",
        "timestamp",
        "timestamptz",
        "uuid",
        "varchar",
    }
)
_TYPE_RE = re.compile(r"^(?P<base>[a-z ]+?)(\(\d+(,\s*\d+)?\))?(?P<array>\[\])?$")


def check_type_name(type_name: str) -> str:
    """Accept known PostgreSQL type names, optionally sized (numeric(10,2)) or arrays."""
    text = str(type_name).strip().lower()
    match = _TYPE_RE.match(text)
    if not match or match.group("base") not in _TYPE_NAMES:
        raise ValidationError(f"Unsupported column type: {type_name}", {"type": type_name})
    return text


@dataclass(frozen=True)
class BulkUpdateQuery:
    """base_query is None when there is nothing to update."""

    base_query: str | None
    params: list = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.base_query is None


def _key_values(key: Any, key_columns: Sequence[str]) -> tuple:
    if len(key_columns) == 1:
        return key if isinstance(key, tuple) and len(key) == 1 else (key,)
    if not isinstance(key, tuple) or len(key) != len(key_columns):
        raise ValidationError(
            f"Composite key must be a tuple of {len(key_columns)} values",
            {"key": str(key)},
        )
    return key


def format_bulk_update(
    table: Table | str,
    update_columns: Sequence[str],
    key_columns: Sequence[str],
    updates: Mapping[Any, Any],
    actor_id: Any,
    column_types: Mapping[str, str],
) -> BulkUpdateQuery:
    """
    Compose a bulk UPDATE ... FROM (VALUES ...) statement.

    Each SET is COALESCE(v.col, t.col): a column a row omits, or sets to
    None, keeps its stored value. This cannot clear a column to NULL; use
    update_by_id() for that.

    Args:
        table: Allowlisted target table
        update_columns: Columns that may be updated, in SET order
        key_columns: Columns identifying a row (matched against v)
        updates: key -> {column: value}. Keys are tuples for composite
            keys. With exactly one update column a bare value is accepted.
        actor_id: Stored in updated_by
        column_types: Type for every update column; key columns default to uuid

    Returns:
        BulkUpdateQuery; BulkUpdateQuery(None, []) when `updates` is empty.

    Raises:
        ValidationError: unknown columns, missing or unsupported types,
            malformed keys, unsafe identifiers
    """
    if not updates:
        return BulkUpdateQuery(None, [])

    update_columns = list(update_columns)
    key_columns = list(key_columns)
    if not update_columns or not key_columns:
        raise ValidationError("Bulk update needs key columns and update columns")
    overlap = set(update_columns) & set(key_columns)
    if overlap:
        raise ValidationError(f"Key columns cannot be updated: {', '.join(sorted(overlap))}")

    types = {}
    for column in key_columns:
        types[column] = check_type_name(column_types.get(column, DEFAULT_KEY_TYPE))
    for column in update_columns:
        if column not in column_types:
            raise ValidationError(f"Missing type for column: {column}", {"column": column})
        types[column] = check_type_name(column_types[column])

    all_columns = key_columns + update_columns
    quoted = {column: quote(column) for column in all_columns}
    row_placeholder = "(" + ", ".join(f"%s::{types[column]}" for column in all_columns) + ")"

    params: list[Any] = [actor_id]
    rows_sql = []
    for key, change in updates.items():
        if not isinstance(change, Mapping):
            if len(update_columns) != 1:
                raise ValidationError(
                    "Updates must be column maps when more than one column is updated",
                    {"key": str(key)},
                )
            change = {update_columns[0]: change}
        unknown = set(change) - set(update_columns)
        if unknown:
            raise ValidationError(
                f"Unknown update columns: {', '.join(sorted(unknown))}",
                {"key": str(key)},
            )
        params.extend(_key_values(key, key_columns))
        params.extend(change.get(column) for column in update_columns)
        rows_sql.append(row_placeholder)

    set_sql = ", ".join(
        f"{quoted[column]} = COALESCE(v.{quoted[column]}, t.{quoted[column]})"
        for column in update_columns
    )
    join_sql = " AND ".join(f"t.{quoted[column]} = v.{quoted[column]}" for column in key_columns)
    alias_columns = ", ".join(quoted[column] for column in all_columns)
    returning = ", ".join(f"t.{quoted[column]}" for column in key_columns)

    base_query = (
        f"UPDATE {resolve_table(table)} AS t "
        f'SET {set_sql}, "updated_at" = NOW(), "updated_by" = %s '
        f"FROM (VALUES {', '.join(rows_sql)}) AS v({alias_columns}) "
        f"WHERE {join_sql} "
        f"RETURNING {returning}"
    )
    return BulkUpdateQuery(base_query, params)


def execute_bulk_update(plan: BulkUpdateQuery, conn=None) -> list[dict]:
    """Run a composed bulk update; the empty plan is a no-op returning []."""
    if plan.is_empty:
        return []
    return db.query(plan.base_query, plan.params, conn)
