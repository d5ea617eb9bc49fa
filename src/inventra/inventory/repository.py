"""
Repositories for location and warehouse inventory.

Both tables hold one row per (scope, batch) where scope is a location or a
warehouse, and batch is a batch_registry entry that is either a product
batch or a packaging material batch. Listings join both batch paths and
resolve the per-type columns with br.batch_type.
"""

from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Sequence

import psycopg

from inventra.errors import DatabaseError, ValidationError
from inventra.filters import build_location_inventory_filter, build_warehouse_inventory_filter
from inventra.logs import log_exception
from inventra.sql.bulk_update import execute_bulk_update, format_bulk_update
from inventra.sql.filters import QueryPlan
from inventra.sql.ident import Table
from inventra.sql.locking import LockMode, lock_rows
from inventra.sql.pagination import paginate_query
from inventra.sql.sorting import SortModule, build_order_by
from inventra.sql.upsert import Resolution, bulk_insert

_BATCH_JOINS = (
    "INNER JOIN batch_registry br ON {alias}.batch_id = br.id",
    "LEFT JOIN product_batches pb ON br.product_batch_id = pb.id",
    "LEFT JOIN skus s ON pb.sku_id = s.id",
    "LEFT JOIN products p ON s.product_id = p.id",
    "LEFT JOIN packaging_material_batches pmb ON br.packaging_material_batch_id = pmb.id",
    "LEFT JOIN packaging_materials pm ON pmb.packaging_material_id = pm.id",
    "LEFT JOIN status st ON {alias}.status_id = st.id",
)


class _InventoryRepository:
    table: Table
    alias: str
    scope_table: str
    scope_alias: str
    scope_column: str
    quantity_column: str
    sort_module: SortModule
    build_filter: Callable[..., QueryPlan]

    @property
    def joins(self) -> tuple[str, ...]:
        scope = (
            f"INNER JOIN {self.scope_table} {self.scope_alias} "
            f"ON {self.alias}.{self.scope_column} = {self.scope_alias}.id"
        )
        return (scope, *(join.format(alias=self.alias) for join in _BATCH_JOINS))

    @property
    def key_columns(self) -> tuple[str, str]:
        return (self.scope_column, "batch_id")

    def fetch_paginated(
        self,
        page: int = 1,
        limit: int = 20,
        sort_by: str | None = None,
        sort_order: str | None = None,
        filters: dict | None = None,
        conn=None,
    ) -> dict:
        """
        List inventory rows of both batch types, filtered, sorted and paginated.

        Counted by distinct row id since the batch joins are optional.
        """
        plan = self.build_filter(filters)
        order_by = build_order_by(sort_by, sort_order, self.sort_module)
        a = self.alias
        query_text = f"""
            SELECT
                {a}.id,
                {a}.{self.scope_column},
                {self.scope_alias}.name AS scope_name,
                {a}.batch_id,
                br.batch_type,
                {a}.{self.quantity_column},
                {a}.reserved_quantity,
                ({a}.{self.quantity_column} - {a}.reserved_quantity) AS available_quantity,
                {a}.inbound_date,
                {a}.last_update,
                {a}.created_at,
                st.name AS status_name,
                CASE WHEN br.batch_type = 'product' THEN pb.lot_number
                     ELSE pmb.lot_number END AS lot_number,
                CASE WHEN br.batch_type = 'product' THEN pb.expiry_date
                     ELSE pmb.expiry_date END AS expiry_date,
                s.sku,
                p.name AS product_name,
                p.brand,
                pmb.material_snapshot_name AS material_name,
                pm.code AS material_code
            FROM {self.table.value} {a}
            {" ".join(self.joins)}
            WHERE {plan.where_clause}
        """
        return paginate_query(
            self.table,
            a,
            self.joins,
            plan.where_clause,
            query_text,
            plan.params,
            page,
            limit,
            order_by=order_by,
            distinct_column=f"{a}.id",
            conn=conn,
        )

    def insert_records(self, records: Sequence[Mapping[str, Any]], conn=None) -> list[dict]:
        """
        Insert inventory rows; an existing (scope, batch) row has the
        incoming quantity ADDED to its stored quantity.
        """
        if not records:
            return []
        columns = [
            "batch_id",
            self.scope_column,
            self.quantity_column,
            "inbound_date",
            "status_id",
            "last_update",
            "created_by",
            "updated_by",
        ]
        now = datetime.now(timezone.utc)
        rows = []
        for index, record in enumerate(records):
            quantity = record.get(self.quantity_column, 0) or 0
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 0:
                raise ValidationError(
                    f"Record {index}: {self.quantity_column} must be a non-negative integer",
                    {"index": index},
                )
            rows.append(
                [
                    record["batch_id"],
                    record[self.scope_column],
                    quantity,
                    record.get("inbound_date"),
                    record.get("status_id"),
                    now,
                    record.get("created_by"),
                    record.get("created_by"),
                ]
            )
        return bulk_insert(
            self.table,
            columns,
            rows,
            conflict_columns=self.key_columns,
            policy={
                self.quantity_column: Resolution.ADD,
                "status_id": Resolution.COALESCE,
                "last_update": Resolution.OVERWRITE,
                "updated_by": Resolution.OVERWRITE,
            },
            returning=("id", *self.key_columns),
            conn=conn,
        )

    def lock_quantities(self, keys: Sequence[Mapping[str, Any]], conn) -> list[dict]:
        """Lock the rows for the given (scope, batch) key dicts and return them."""
        ordered = [{column: key[column] for column in self.key_columns} for key in keys]
        return lock_rows(conn, self.table, ordered, LockMode.FOR_UPDATE)

    def bulk_update_quantities(
        self, updates: Mapping[tuple, Mapping[str, Any]], actor_id, conn=None
    ) -> list[dict]:
        """
        Apply new quantities keyed by (scope_id, batch_id).

        Each update may set the quantity, status_id and last_update.
        """
        plan = format_bulk_update(
            self.table,
            [self.quantity_column, "status_id", "last_update"],
            list(self.key_columns),
            updates,
            actor_id,
            {
                self.quantity_column: "integer",
                "status_id": "uuid",
                "last_update": "timestamptz",
            },
        )
        try:
            return execute_bulk_update(plan, conn)
        except psycopg.Error as exc:
            message = f"Failed to bulk update {self.table.value} quantities"
            log_exception(
                exc,
                message,
                context=f"inventory/{self.table.value}/bulk_update_quantities",
                row_count=len(updates),
                actor_id=str(actor_id),
            )
            raise DatabaseError(message, {"rowCount": len(updates)}) from exc


class LocationInventoryRepository(_InventoryRepository):
    """Inventory held at storage locations (li)."""

    table = Table.LOCATION_INVENTORY
    alias = "li"
    scope_table = "locations"
    scope_alias = "loc"
    scope_column = "location_id"
    quantity_column = "location_quantity"
    sort_module = SortModule.LOCATION_INVENTORY
    build_filter = staticmethod(build_location_inventory_filter)


class WarehouseInventoryRepository(_InventoryRepository):
    """Inventory held at warehouses (wi)."""

    table = Table.WAREHOUSE_INVENTORY
    alias = "wi"
    scope_table = "warehouses"
    scope_alias = "wh"
    scope_column = "warehouse_id"
    quantity_column = "warehouse_quantity"
    sort_module = SortModule.WAREHOUSE_INVENTORY
    build_filter = staticmethod(build_warehouse_inventory_filter)
