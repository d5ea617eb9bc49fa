"""
Filters for location and warehouse inventory.

An inventory row points at a batch_registry entry (br) which is either a
product batch (pb -> s -> p) or a packaging material batch (pmb -> pm),
told apart by br.batch_type. Lot number and expiry live on different
tables per type, so those filters are polymorphic.
"""

from inventra.sql.filters import (
    DayField,
    ExistsField,
    FilterSchema,
    MatchMode,
    PolymorphicField,
    QueryPlan,
    TextField,
)

BATCH_TYPES = ("product", "packaging_material")

_LOT_COLUMNS = {"product": "pb.lot_number", "packaging_material": "pmb.lot_number"}
_EXPIRY_COLUMNS = {"product": "pb.expiry_date", "packaging_material": "pmb.expiry_date"}

# Parts are linked to packaging materials many-to-many, so part filters
# run as correlated subqueries instead of joins.
_PART_SUBQUERY = (
    "SELECT 1 FROM part_materials pmat JOIN parts pt ON pmat.part_id = pt.id "
    "WHERE pmat.packaging_material_id = pm.id"
)


def _batch_rules():
    return [
        TextField("batchType", "br.batch_type", MatchMode.EXACT),
        TextField("sku", "s.sku"),
        TextField("productName", "p.name"),
        TextField("materialName", "pmb.material_snapshot_name"),
        TextField("materialCode", "pm.code"),
        ExistsField("partCode", _PART_SUBQUERY, "pt.code"),
        ExistsField("partName", _PART_SUBQUERY, "pt.name"),
        ExistsField("partType", _PART_SUBQUERY, "pt.type"),
        PolymorphicField("lotNumber", "br.batch_type", _LOT_COLUMNS),
        PolymorphicField("expiryDate", "br.batch_type", _EXPIRY_COLUMNS, MatchMode.DAY),
        TextField("status", "st.name", MatchMode.EXACT),
    ]


LOCATION_INVENTORY_FILTERS = FilterSchema(
    "locationInventory",
    [
        TextField("locationName", "loc.name"),
        *_batch_rules(),
        DayField("inboundDate", "li.inbound_date"),
        DayField("createdAt", "li.created_at"),
    ],
    system_predicates=["li.location_quantity > 0"],
)

WAREHOUSE_INVENTORY_FILTERS = FilterSchema(
    "warehouseInventory",
    [
        TextField("warehouseName", "wh.name"),
        *_batch_rules(),
        DayField("inboundDate", "wi.inbound_date"),
        DayField("createdAt", "wi.created_at"),
    ],
    system_predicates=["(wi.warehouse_quantity > 0 OR wi.reserved_quantity > 0)"],
)


def build_location_inventory_filter(filters: dict | None = None) -> QueryPlan:
    return LOCATION_INVENTORY_FILTERS.build(filters)


def build_warehouse_inventory_filter(filters: dict | None = None) -> QueryPlan:
    return WAREHOUSE_INVENTORY_FILTERS.build(filters)
