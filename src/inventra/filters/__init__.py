"""
Filters

Per-domain WHERE clause builders, selected through the FilterDomain enum.
Each builder takes an untrusted filter dict (plus optional server-side
keyword arguments) and returns a QueryPlan.
"""

from enum import Enum
from types import MappingProxyType
from typing import Callable

from inventra.errors import ValidationError
from inventra.filters.activity_log import build_inventory_activity_log_filter
from inventra.filters.batches import (
    build_packaging_material_batch_filter,
    build_product_batch_filter,
)
from inventra.filters.customers import build_address_filter, build_customer_filter
from inventra.filters.inventory import (
    build_location_inventory_filter,
    build_warehouse_inventory_filter,
)
from inventra.filters.orders import build_order_filter, build_order_type_filter
from inventra.filters.pricing import build_pricing_filter
from inventra.filters.sku import build_sku_filter
from inventra.sql.filters import QueryPlan


class FilterDomain(str, Enum):
    SKU = "sku"
    PRODUCT_BATCH = "productBatch"
    PACKAGING_MATERIAL_BATCH = "packagingMaterialBatch"
    LOCATION_INVENTORY = "locationInventory"
    WAREHOUSE_INVENTORY = "warehouseInventory"
    INVENTORY_ACTIVITY_LOG = "inventoryActivityLog"
    ORDER = "order"
    ORDER_TYPE = "orderType"
    PRICING = "pricing"
    CUSTOMER = "customer"
    ADDRESS = "address"


FILTER_BUILDERS: "MappingProxyType[FilterDomain, Callable[..., QueryPlan]]" = MappingProxyType(
    {
        FilterDomain.SKU: build_sku_filter,
        FilterDomain.PRODUCT_BATCH: build_product_batch_filter,
        FilterDomain.PACKAGING_MATERIAL_BATCH: build_packaging_material_batch_filter,
        FilterDomain.LOCATION_INVENTORY: build_location_inventory_filter,
        FilterDomain.WAREHOUSE_INVENTORY: build_warehouse_inventory_filter,
        FilterDomain.INVENTORY_ACTIVITY_LOG: build_inventory_activity_log_filter,
        FilterDomain.ORDER: build_order_filter,
        FilterDomain.ORDER_TYPE: build_order_type_filter,
        FilterDomain.PRICING: build_pricing_filter,
        FilterDomain.CUSTOMER: build_customer_filter,
        FilterDomain.ADDRESS: build_address_filter,
    }
)


def build_filter(domain: FilterDomain, filters: dict | None = None, **system) -> QueryPlan:
    """Dispatch to the builder registered for `domain`."""
    try:
        domain = FilterDomain(domain)
    except ValueError:
        raise ValidationError(f"Unknown filter domain: {domain}") from None
    return FILTER_BUILDERS[domain](filters, **system)


__all__ = [
    "FILTER_BUILDERS",
    "FilterDomain",
    "build_address_filter",
    "build_customer_filter",
    "build_filter",
    "build_inventory_activity_log_filter",
    "build_location_inventory_filter",
    "build_order_filter",
    "build_order_type_filter",
    "build_packaging_material_batch_filter",
    "build_pricing_filter",
    "build_product_batch_filter",
    "build_sku_filter",
    "build_warehouse_inventory_filter",
]
