"""
Filters for the inventory activity log (ial).

Log rows join out to the inventory row they touched (li or wi), its batch
(br, pb, s, p) and the originating order (o).
"""

from inventra.sql.filters import AnyField, FilterSchema, MatchMode, QueryPlan, RangeField, TextField

INVENTORY_ACTIVITY_LOG_FILTERS = FilterSchema(
    "inventoryActivityLog",
    [
        AnyField("warehouseIds", "wi.warehouse_id", cast="uuid[]"),
        AnyField("locationIds", "li.location_id", cast="uuid[]"),
        AnyField("productIds", "p.id", cast="uuid[]"),
        AnyField("skuIds", "s.id", cast="uuid[]"),
        AnyField("batchIds", "br.id", cast="uuid[]"),
        TextField("orderId", "o.id", MatchMode.EXACT),
        TextField("statusId", "ial.status_id", MatchMode.EXACT),
        AnyField("actionTypeIds", "ial.inventory_action_type_id", cast="uuid[]"),
        TextField("adjustmentTypeId", "ial.adjustment_type_id", MatchMode.EXACT),
        TextField("performedBy", "ial.performed_by", MatchMode.EXACT),
        TextField("sourceType", "ial.source_type", MatchMode.EXACT),
        TextField("batchType", "br.batch_type", MatchMode.EXACT),
        RangeField("fromDate", "toDate", "ial.action_timestamp"),
    ],
)


def build_inventory_activity_log_filter(filters: dict | None = None) -> QueryPlan:
    return INVENTORY_ACTIVITY_LOG_FILTERS.build(filters)
