"""
SQL identifier safety.

These helpers are ONLY for identifiers (schema, table and column names).
Values are always bound as %s parameters. Identifiers cannot be bound, so
any identifier that is not a literal in our own source must pass through
quote() and, for tables, assert_allowed() before it is interpolated.

Usage:
    table = resolve_table("skus")          # -> "public"."skus"
    column = quote("id")                   # -> "id"
    sql = f"SELECT {column} FROM {table} WHERE {column} = %s"
"""

import re
from enum import Enum
from types import MappingProxyType

from inventra.errors import ValidationError

_IDENT_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*\Z")

DEFAULT_SCHEMA = "public"


def is_safe_ident(value) -> bool:
    """Letters, digits and underscores, not starting with a digit."""
    return bool(_IDENT_RE.match(str(value)))


def quote(value) -> str:
    """Validate an identifier and return it double-quoted."""
    text = str(value)
    if not is_safe_ident(text):
        raise ValidationError(f"Unsafe identifier: {text}", {"identifier": text})
    return '"' + text.replace('"', '""') + '"'


def qualify(schema: str | None, table: str) -> str:
    """Return `"schema"."table"`, or just `"table"` when schema is empty."""
    if schema:
        return f"{quote(schema)}.{quote(table)}"
    return quote(table)


def quote_column_ref(ref: str) -> str:
    """Quote a `column` or `alias.column` reference."""
    parts = str(ref).split(".")
    if len(parts) > 2:
        raise ValidationError(f"Unsafe column reference: {ref}", {"identifier": ref})
    return ".".join(quote(part) for part in parts)


class Table(str, Enum):
    """Tables that may be named dynamically, all in the public schema."""

    ADDRESSES = "addresses"
    BATCH_REGISTRY = "batch_registry"
    BOM_ITEMS = "bom_items"
    BOMS = "boms"
    COMPLIANCE_RECORDS = "compliance_records"
    CUSTOMERS = "customers"
    INVENTORY_ACTIVITY_LOG = "inventory_activity_log"
    INVENTORY_ALLOCATIONS = "inventory_allocations"
    LOCATION_INVENTORY = "location_inventory"
    LOCATION_TYPES = "location_types"
    LOCATIONS = "locations"
    LOT_ADJUSTMENT_TYPES = "lot_adjustment_types"
    MANUFACTURERS = "manufacturers"
    ORDER_FULFILLMENTS = "order_fulfillments"
    ORDER_ITEMS = "order_items"
    ORDER_STATUS = "order_status"
    ORDER_TYPES = "order_types"
    ORDERS = "orders"
    OUTBOUND_SHIPMENTS = "outbound_shipments"
    PACKAGING_MATERIAL_BATCHES = "packaging_material_batches"
    PACKAGING_MATERIAL_SUPPLIERS = "packaging_material_suppliers"
    PACKAGING_MATERIALS = "packaging_materials"
    PARTS = "parts"
    PAYMENT_METHODS = "payment_methods"
    PRICING = "pricing"
    PRICING_TYPES = "pricing_types"
    PRODUCT_BATCHES = "product_batches"
    PRODUCTS = "products"
    ROLES = "roles"
    SALES_ORDERS = "sales_orders"
    SKU_CODE_BASES = "sku_code_bases"
    SKU_IMAGES = "sku_images"
    SKUS = "skus"
    STATUS = "status"
    SUPPLIERS = "suppliers"
    TAX_RATES = "tax_rates"
    USERS = "users"
    WAREHOUSE_INVENTORY = "warehouse_inventory"
    WAREHOUSES = "warehouses"

    @property
    def schema(self) -> str:
        return DEFAULT_SCHEMA

    @property
    def qualified(self) -> str:
        return qualify(self.schema, self.value)


# Keep this tight; never populate it from information_schema.
ALLOWED_TABLES = MappingProxyType(
    {DEFAULT_SCHEMA: frozenset(table.value for table in Table)}
)


def assert_allowed(schema: str | None, table: str) -> None:
    """
    Raise ValidationError unless (schema, table) is allowlisted.

    Call this BEFORE interpolating a table name into SQL text.
    """
    schema = schema or DEFAULT_SCHEMA
    if schema not in ALLOWED_TABLES:
        allowed = ", ".join(sorted(ALLOWED_TABLES))
        raise ValidationError(
            f"Schema not allowed: {schema}. Allowed: {allowed}",
            {"schema": schema},
        )
    if table not in ALLOWED_TABLES[schema]:
        raise ValidationError(
            f"Table not allowed: {schema}.{table}",
            {"schema": schema, "table": table},
        )


def resolve_table(table: "Table | str", schema: str | None = None) -> str:
    """Check a table against the allowlist and return its quoted, qualified name."""
    if isinstance(table, Table):
        return table.qualified
    schema = schema or DEFAULT_SCHEMA
    assert_allowed(schema, table)
    return qualify(schema, table)


def table_name(table: "Table | str") -> str:
    """Plain (unquoted) name, for log metadata."""
    return table.value if isinstance(table, Table) else str(table)
