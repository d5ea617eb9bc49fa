"""
Filters for pricing records.

Aliases: p = pricing, pr = products, s = skus, pt = pricing_types.
"""

from inventra.sql.filters import (
    FilterSchema,
    FlagField,
    KeywordField,
    MatchMode,
    QueryPlan,
    RangeField,
    TextField,
    WithinPeriodField,
)

CURRENTLY_VALID = "p.valid_from <= NOW() AND (p.valid_to IS NULL OR p.valid_to >= NOW())"

PRICING_FILTERS = FilterSchema(
    "pricing",
    [
        TextField("skuId", "p.sku_id", MatchMode.EXACT),
        TextField("priceTypeId", "p.price_type_id", MatchMode.EXACT),
        TextField("locationId", "p.location_id", MatchMode.EXACT),
        TextField("statusId", "p.status_id", MatchMode.EXACT),
        TextField("brand", "pr.brand", MatchMode.EXACT),
        TextField("pricingType", "pt.name", MatchMode.EXACT),
        TextField("countryCode", "s.country_code", MatchMode.EXACT),
        TextField("sizeLabel", "s.size_label", MatchMode.EXACT),
        KeywordField("keyword", ["pr.name", "s.sku", "pt.name"]),
        FlagField("currentlyValid", f"({CURRENTLY_VALID})"),
        RangeField("validFrom", None, "p.valid_from"),
        RangeField(None, "validTo", "p.valid_to"),
        WithinPeriodField("validOn", "p.valid_from", "p.valid_to"),
        RangeField("createdAfter", "createdBefore", "p.created_at"),
        TextField("createdBy", "p.created_by", MatchMode.EXACT),
        TextField("updatedBy", "p.updated_by", MatchMode.EXACT),
    ],
)


def build_pricing_filter(
    filters: dict | None = None, *, currently_valid_only: bool = False
) -> QueryPlan:
    """
    Build the WHERE clause for pricing records.

    `currently_valid_only` is set server-side for lookups that must never
    offer an expired or future price, whatever the caller's filters say.
    """
    system = [(f"({CURRENTLY_VALID})", ())] if currently_valid_only else []
    return PRICING_FILTERS.build(filters, system)
