"""Filters for orders (o, with ot = order_types, os = order_status) and order types."""

from inventra.sql.filters import (
    AnyField,
    DayField,
    FilterSchema,
    FlagField,
    KeywordField,
    MatchMode,
    QueryPlan,
    RangeField,
    TextField,
    contains_pattern,
    is_blank,
    require_scalar,
)

ORDER_FILTERS = FilterSchema(
    "order",
    [
        TextField("orderNumber", "o.order_number"),
        AnyField("statusIds", "o.order_status_id", cast="uuid[]"),
        AnyField("orderTypeIds", "o.order_type_id", cast="uuid[]"),
        TextField("orderCategory", "ot.category", MatchMode.EXACT),
        TextField("createdBy", "o.created_by", MatchMode.EXACT),
        DayField("orderDate", "o.order_date"),
        RangeField("createdAfter", "createdBefore", "o.created_at"),
        RangeField("statusDateAfter", "statusDateBefore", "o.status_date"),
        KeywordField("keyword", ["o.order_number", "o.note", "ot.name"]),
    ],
    system_predicates=["o.is_archived = FALSE"],
)


def build_order_filter(filters: dict | None = None) -> QueryPlan:
    return ORDER_FILTERS.build(filters)


ORDER_TYPE_FILTERS = FilterSchema(
    "orderType",
    [
        TextField("name", "ot.name"),
        TextField("code", "ot.code"),
        TextField("category", "ot.category", MatchMode.EXACT),
        TextField("statusId", "ot.status_id", MatchMode.EXACT),
        FlagField("requiresPayment", "ot.requires_payment = TRUE", "ot.requires_payment = FALSE"),
        TextField("createdBy", "ot.created_by", MatchMode.EXACT),
        TextField("updatedBy", "ot.updated_by", MatchMode.EXACT),
        RangeField("createdAfter", "createdBefore", "ot.created_at"),
        RangeField("updatedAfter", "updatedBefore", "ot.updated_at"),
        KeywordField("keyword", ["ot.name", "ot.code"]),
    ],
)


def build_order_type_filter(
    filters: dict | None = None,
    *,
    active_status_id=None,
    keyword_name_only: bool = False,
) -> QueryPlan:
    """
    Build the WHERE clause for order types (ot).

    `active_status_id` replaces any caller statusId. With
    `keyword_name_only` the keyword matches ot.name but not ot.code.
    """
    filters = dict(filters or {})
    system = []
    if active_status_id is not None:
        filters.pop("statusId", None)
        system.append(("ot.status_id = %s", (active_status_id,)))
    if keyword_name_only and not is_blank(filters.get("keyword")):
        keyword = require_scalar("keyword", filters.pop("keyword"))
        system.append(("ot.name ILIKE %s", (contains_pattern(keyword),)))
    return ORDER_TYPE_FILTERS.build(filters, system)
