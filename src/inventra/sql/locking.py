"""
Row locking inside a caller-owned transaction.

These helpers never open, commit or roll back a transaction. Outside an
open transaction a row lock is released as soon as the statement ends,
so always call them on a connection obtained from db.transaction().

    with db.transaction() as conn:
        row = lock_row(conn, Table.SKUS, sku_id)
        ...
"""

from enum import Enum
from typing import Any, Mapping, Sequence

from inventra import db
from inventra.errors import NotFoundError, ValidationError
from inventra.sql.ident import Table, quote, resolve_table, table_name


class LockMode(str, Enum):
    FOR_UPDATE = "FOR UPDATE"
    FOR_NO_KEY_UPDATE = "FOR NO KEY UPDATE"
    FOR_SHARE = "FOR SHARE"
    FOR_KEY_SHARE = "FOR KEY SHARE"


def _require_conn(conn) -> None:
    if conn is None:
        raise ValidationError("Row locks require an open transaction connection")


def lock_row(conn, table: Table | str, row_id: Any, mode: LockMode = LockMode.FOR_UPDATE) -> dict:
    """
    Lock one row by id and return it.

    Blocks until any conflicting lock held by another transaction is released.

    Raises:
        ValidationError: table not allowlisted, or no connection given
        NotFoundError: no row with that id
    """
    _require_conn(conn)
    mode = LockMode(mode)
    row = db.fetch_one(
        f'SELECT * FROM {resolve_table(table)} WHERE "id" = %s {mode.value}',
        (row_id,),
        conn,
    )
    if row is None:
        raise NotFoundError(
            f"{table_name(table)} row {row_id} not found",
            {"table": table_name(table), "id": str(row_id)},
        )
    return row


def lock_rows(
    conn,
    table: Table | str,
    keys: Sequence[Any] | Sequence[Mapping[str, Any]],
    mode: LockMode = LockMode.FOR_UPDATE,
) -> list[dict]:
    """
    Lock several rows and return those that exist.

    `keys` is either a list of ids or a list of dicts mapping key columns
    to values, e.g. [{"sku_id": ..., "location_id": ...}]. Rows are locked
    in key-column order so concurrent callers acquire locks in the same
    order.
    """
    _require_conn(conn)
    mode = LockMode(mode)
    keys = list(keys)
    if not keys:
        return []

    target = resolve_table(table)
    if not isinstance(keys[0], Mapping):
        return db.query(
            f'SELECT * FROM {target} WHERE "id" = ANY(%s) ORDER BY "id" {mode.value}',
            (keys,),
            conn,
        )

    columns = list(keys[0])
    if not columns or any(not isinstance(key, Mapping) or list(key) != columns for key in keys):
        raise ValidationError("All lock keys must name the same columns in the same order")
    quoted = [quote(column) for column in columns]

    group = "(" + " AND ".join(f"{column} = %s" for column in quoted) + ")"
    params = [key[column] for key in keys for column in columns]
    where = " OR ".join([group] * len(keys))
    return db.query(
        f"SELECT * FROM {target} WHERE {where} ORDER BY {', '.join(quoted)} {mode.value}",
        params,
        conn,
    )
