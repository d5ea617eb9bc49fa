"""
SQL

Building blocks for dynamic queries: identifier safety, filter and sort
composition, pagination, bulk upsert/update, row locking, retry and
single-record lookups.
"""

from inventra.sql.bulk_update import BulkUpdateQuery, execute_bulk_update, format_bulk_update
from inventra.sql.filters import FilterSchema, MatchMode, QueryPlan
from inventra.sql.ident import Table, assert_allowed, is_safe_ident, qualify, quote
from inventra.sql.locking import LockMode, lock_row, lock_rows
from inventra.sql.lookup import (
    check_record_exists,
    get_fields_by_id,
    get_unique_scalar_value,
    update_by_id,
)
from inventra.sql.pagination import paginate, paginate_by_offset, paginate_query
from inventra.sql.retry import is_transient, retry
from inventra.sql.sorting import (
    SortModule,
    build_order_by,
    get_sort_map,
    sanitize_sort_by,
    sanitize_sort_order,
)
from inventra.sql.upsert import Resolution, build_bulk_insert, bulk_insert

__all__ = [
    "BulkUpdateQuery",
    "FilterSchema",
    "LockMode",
    "MatchMode",
    "QueryPlan",
    "Resolution",
    "SortModule",
    "Table",
    "assert_allowed",
    "build_bulk_insert",
    "build_order_by",
    "bulk_insert",
    "check_record_exists",
    "execute_bulk_update",
    "format_bulk_update",
    "get_fields_by_id",
    "get_sort_map",
    "get_unique_scalar_value",
    "is_safe_ident",
    "is_transient",
    "lock_row",
    "lock_rows",
    "paginate",
    "paginate_by_offset",
    "paginate_query",
    "qualify",
    "quote",
    "retry",
    "sanitize_sort_by",
    "sanitize_sort_order",
    "update_by_id",
]
