"""
Filters for batch listings.

Product batches: pb = product_batches, s = skus, p = products,
m = manufacturers. Packaging material batches: pmb =
packaging_material_batches, pm = packaging_materials, sup = suppliers.
"""

from inventra.sql.filters import (
    AnyField,
    DayField,
    FilterSchema,
    KeywordField,
    QueryPlan,
    RangeField,
    TextField,
)

PRODUCT_BATCH_FILTERS = FilterSchema(
    "productBatch",
    [
        AnyField("statusIds", "pb.status_id", cast="uuid[]"),
        AnyField("skuIds", "pb.sku_id", cast="uuid[]"),
        AnyField("productIds", "p.id", cast="uuid[]"),
        AnyField("manufacturerIds", "pb.manufacturer_id", cast="uuid[]"),
        TextField("lotNumber", "pb.lot_number"),
        TextField("sku", "s.sku"),
        TextField("productName", "p.name"),
        RangeField("expiryAfter", "expiryBefore", "pb.expiry_date"),
        DayField("manufactureDate", "pb.manufacture_date"),
        RangeField("createdAfter", "createdBefore", "pb.created_at"),
        KeywordField("keyword", ["pb.lot_number", "p.name", "s.sku", "m.name"]),
    ],
)

PACKAGING_MATERIAL_BATCH_FILTERS = FilterSchema(
    "packagingMaterialBatch",
    [
        AnyField("statusIds", "pmb.status_id", cast="uuid[]"),
        AnyField("packagingMaterialIds", "pm.id", cast="uuid[]"),
        AnyField("supplierIds", "pmb.supplier_id", cast="uuid[]"),
        TextField("lotNumber", "pmb.lot_number"),
        TextField("materialName", "pmb.material_snapshot_name"),
        TextField("materialCode", "pm.code"),
        RangeField("expiryAfter", "expiryBefore", "pmb.expiry_date"),
        DayField("receivedDate", "pmb.received_at"),
        RangeField("createdAfter", "createdBefore", "pmb.created_at"),
        KeywordField(
            "keyword", ["pmb.lot_number", "pmb.material_snapshot_name", "pm.code", "sup.name"]
        ),
    ],
)


def build_product_batch_filter(filters: dict | None = None) -> QueryPlan:
    return PRODUCT_BATCH_FILTERS.build(filters)


def build_packaging_material_batch_filter(filters: dict | None = None) -> QueryPlan:
    return PACKAGING_MATERIAL_BATCH_FILTERS.build(filters)
