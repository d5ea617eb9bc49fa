"""
Single-record lookups and updates by column equality.

All identifiers are quoted and tables checked against the allowlist;
values are bound.
"""

from typing import Any, Mapping, Sequence

from inventra import db
from inventra.errors import ConflictError, DataIntegrityError, NotFoundError, ValidationError
from inventra.sql.ident import Table, quote, resolve_table, table_name

AUDIT_COLUMNS = frozenset({"updated_at", "updated_by"})


def _equality_clause(where: Mapping[str, Any]) -> tuple[str, list]:
    if not where:
        raise ValidationError("At least one lookup column is required")
    clause = " AND ".join(f"{quote(column)} = %s" for column in where)
    return clause, list(where.values())


def get_unique_scalar_value(
    table: Table | str,
    where: Mapping[str, Any],
    select: str,
    *,
    conn=None,
    schema: str | None = None,
) -> Any:
    """
    Return `select` from the one row matching `where`.

    Fetches at most two rows so that "none" and "too many" are told apart
    in one round trip.

    Raises:
        NotFoundError: no row matches
        DataIntegrityError: more than one row matches
    """
    clause, params = _equality_clause(where)
    column = quote(select)
    rows = db.query(
        f"SELECT {column} FROM {resolve_table(table, schema)} WHERE {clause} LIMIT 2",
        params,
        conn,
    )
    details = {"table": table_name(table), "where": {k: str(v) for k, v in where.items()}}
    if not rows:
        raise NotFoundError(f"No {table_name(table)} row matches the lookup", details)
    if len(rows) > 1:
        raise DataIntegrityError(
            f"Expected one {table_name(table)} row, found several", details
        )
    return rows[0][select]


def check_record_exists(table: Table | str, where: Mapping[str, Any], conn=None) -> bool:
    clause, params = _equality_clause(where)
    row = db.fetch_one(
        f"SELECT EXISTS (SELECT 1 FROM {resolve_table(table)} WHERE {clause}) AS found",
        params,
        conn,
    )
    return bool(row and row["found"])


def get_fields_by_id(
    table: Table | str, row_id: Any, fields: Sequence[str], conn=None
) -> dict:
    """Fetch selected columns of one row by id; NotFoundError if absent."""
    if not fields:
        raise ValidationError("At least one field is required")
    columns = ", ".join(quote(field) for field in fields)
    row = db.fetch_one(
        f'SELECT {columns} FROM {resolve_table(table)} WHERE "id" = %s',
        (row_id,),
        conn,
    )
    if row is None:
        raise NotFoundError(
            f"{table_name(table)} row {row_id} not found",
            {"table": table_name(table), "id": str(row_id)},
        )
    return row


def update_by_id(
    table: Table | str,
    row_id: Any,
    fields: Mapping[str, Any],
    actor_id: Any = None,
    *,
    expected: Mapping[str, Any] | None = None,
    conn=None,
) -> dict:
    """
    Update columns of one row and return the updated row.

    updated_at is always stamped; updated_by is set when `actor_id` is
    given. `expected` adds equality guards (optimistic concurrency): when
    the row exists but a guard no longer holds, the update loses the race
    and ConflictError is raised.

    Raises:
        ValidationError: no fields, or audit columns passed explicitly
        NotFoundError: no row with that id
        ConflictError: the row exists but `expected` did not match
    """
    if not fields:
        raise ValidationError("No fields to update")
    reserved = AUDIT_COLUMNS.intersection(fields)
    if reserved:
        raise ValidationError(f"Audit columns are set automatically: {', '.join(sorted(reserved))}")

    assignments = [f"{quote(column)} = %s" for column in fields]
    params: list[Any] = list(fields.values())
    assignments.append('"updated_at" = NOW()')
    if actor_id is not None:
        assignments.append('"updated_by" = %s')
        params.append(actor_id)

    where = '"id" = %s'
    params.append(row_id)
    if expected:
        guard, guard_params = _equality_clause(expected)
        where = f"{where} AND {guard}"
        params.extend(guard_params)

    target = resolve_table(table)
    row = db.fetch_one(
        f"UPDATE {target} SET {', '.join(assignments)} WHERE {where} RETURNING *",
        params,
        conn,
    )
    if row is not None:
        return row

    details = {"table": table_name(table), "id": str(row_id)}
    if expected and check_record_exists(table, {"id": row_id}, conn):
        raise ConflictError(f"{table_name(table)} row {row_id} was modified concurrently", details)
    raise NotFoundError(f"{table_name(table)} row {row_id} not found", details)
