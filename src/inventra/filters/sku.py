"""Filters for SKU listings (aliases: s = skus, p = products, st = status)."""

from inventra.errors import ValidationError
from inventra.sql.filters import (
    AnyField,
    FilterSchema,
    KeywordField,
    MatchMode,
    QueryPlan,
    RangeField,
    TextField,
)

SKU_FILTERS = FilterSchema(
    "sku",
    [
        TextField("brand", "p.brand", MatchMode.EXACT),
        TextField("category", "p.category", MatchMode.EXACT),
        TextField("marketRegion", "s.market_region", MatchMode.EXACT),
        TextField("sizeLabel", "s.size_label", MatchMode.EXACT),
        TextField("countryCode", "s.country_code", MatchMode.EXACT),
        TextField("sku", "s.sku"),
        TextField("barcode", "s.barcode"),
        TextField("productName", "p.name"),
        AnyField("statusIds", "s.status_id", cast="uuid[]"),
        AnyField("productIds", "s.product_id", cast="uuid[]"),
        RangeField("createdAfter", "createdBefore", "s.created_at"),
        KeywordField("keyword", ["s.sku", "s.barcode", "p.name", "s.size_label"]),
    ],
)


def build_sku_filter(
    filters: dict | None = None,
    *,
    active_status_id=None,
    allow_all: bool = True,
) -> QueryPlan:
    """
    Build the WHERE clause for SKU listings.

    Unless `allow_all` is set, only SKUs whose product and own status both
    equal `active_status_id` are visible.
    """
    system = []
    if not allow_all:
        if active_status_id is None:
            raise ValidationError("active_status_id is required when allow_all is False")
        system.append(("p.status_id = %s AND s.status_id = %s", (active_status_id, active_status_id)))
    return SKU_FILTERS.build(filters, system)
