from typing import Any, Optional, Sequence

import psycopg

from inventra import db
from inventra.errors import AppError, DatabaseError, ValidationError
from inventra.filters import build_sku_filter
from inventra.logs import log_exception, log_info
from inventra.sql.ident import Table
from inventra.sql.locking import lock_row
from inventra.sql.lookup import get_unique_scalar_value, update_by_id
from inventra.sql.pagination import paginate_query
from inventra.sql.sorting import SortModule, build_order_by
from inventra.sql.upsert import Resolution, bulk_insert

SKU_COLUMNS = (
    "product_id",
    "sku",
    "barcode",
    "language",
    "country_code",
    "market_region",
    "size_label",
    "description",
    "status_id",
    "created_by",
)

_SKU_JOINS = (
    "INNER JOIN products p ON s.product_id = p.id",
    "LEFT JOIN status st ON s.status_id = st.id",
)


class SkuRepository:
    """
    Repository for SKU data access.
    Encapsulates all SQL and queries for the skus table.
    """

    def fetch_paginated(
        self,
        page: int = 1,
        limit: int = 10,
        sort_by: str | None = None,
        sort_order: str | None = None,
        filters: dict | None = None,
        *,
        active_status_id=None,
        allow_all: bool = True,
        conn=None,
    ) -> dict:
        """
        List SKUs with their product, filtered, sorted and paginated.

        Returns:
            {"data": [...], "pagination": {...}}
        """
        plan = build_sku_filter(filters, active_status_id=active_status_id, allow_all=allow_all)
        order_by = build_order_by(sort_by, sort_order, SortModule.SKU)
        query_text = f"""
            SELECT
                s.id,
                s.sku,
                s.barcode,
                s.language,
                s.country_code,
                s.market_region,
                s.size_label,
                s.description,
                s.created_at,
                s.updated_at,
                st.name AS status_name,
                p.id AS product_id,
                p.name AS product_name,
                p.brand,
                p.category
            FROM skus s
            {" ".join(_SKU_JOINS)}
            WHERE {plan.where_clause}
        """
        return paginate_query(
            Table.SKUS,
            "s",
            _SKU_JOINS,
            plan.where_clause,
            query_text,
            plan.params,
            page,
            limit,
            order_by=order_by,
            conn=conn,
        )

    def get_by_id(self, sku_id, conn=None) -> Optional[dict]:
        """Get a SKU by its ID."""
        return db.fetch_one("SELECT * FROM skus WHERE id = %s", (sku_id,), conn)

    def get_id_by_code(self, sku: str, conn=None):
        """Get the id of the one SKU with this code."""
        return get_unique_scalar_value(Table.SKUS, {"sku": sku}, "id", conn=conn)

    def get_last_sku(self, brand_code: str, category_code: str, conn=None) -> Optional[str]:
        """
        Get the stored SKU with the highest sequence for a brand/category.

        Sequences are compared numerically, so CH-HN100 ranks above CH-HN99.
        """
        pattern = f"^{brand_code}-{category_code}([0-9]+)(-|$)"
        try:
            row = db.fetch_one(
                """
                SELECT sku
                FROM skus
                WHERE sku ~ %s
                ORDER BY CAST(substring(sku FROM %s) AS INTEGER) DESC
                LIMIT 1
                """,
                (pattern, pattern),
                conn,
            )
        except psycopg.Error as exc:
            log_exception(
                exc,
                "Failed to fetch last SKU",
                context="sku/get_last_sku",
                brand_code=brand_code,
                category_code=category_code,
            )
            raise DatabaseError(
                "Database error while retrieving last SKU",
                {"brandCode": brand_code, "categoryCode": category_code},
            ) from exc

        last_sku = row["sku"] if row else None
        log_info(
            "Retrieved last SKU",
            context="sku/get_last_sku",
            brand_code=brand_code,
            category_code=category_code,
            last_sku=last_sku,
        )
        return last_sku

    def insert_skus(self, skus: Sequence[dict[str, Any]], conn=None) -> list[dict]:
        """
        Insert SKUs; a SKU already stored for the same product keeps its
        row but takes the new description.

        Each dict supplies the SKU_COLUMNS it has; missing columns are NULL.
        """
        if not skus:
            return []
        for index, sku in enumerate(skus):
            if not sku.get("product_id") or not sku.get("sku"):
                raise ValidationError(
                    f"SKU {index} needs product_id and sku", {"index": index}
                )
        rows = [[sku.get(column) for column in SKU_COLUMNS] for sku in skus]
        return bulk_insert(
            Table.SKUS,
            SKU_COLUMNS,
            rows,
            conflict_columns=("product_id", "sku"),
            policy={"description": Resolution.OVERWRITE},
            returning=("id", "sku"),
            conn=conn,
        )

    def update_status(self, sku_id, status_id, actor_id=None) -> dict:
        """
        Change a SKU's status inside one transaction.

        The row is locked first so concurrent status changes serialize.
        """
        try:
            with db.transaction() as conn:
                current = lock_row(conn, Table.SKUS, sku_id)
                if current["status_id"] == status_id:
                    return current
                return update_by_id(
                    Table.SKUS, sku_id, {"status_id": status_id}, actor_id, conn=conn
                )
        except AppError:
            raise
        except psycopg.Error as exc:
            log_exception(
                exc,
                "Failed to update SKU status",
                context="sku/update_status",
                sku_id=str(sku_id),
                status_id=str(status_id),
            )
            raise DatabaseError("Failed to update SKU status", {"skuId": str(sku_id)}) from exc
