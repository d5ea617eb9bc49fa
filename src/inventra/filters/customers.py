"""Filters for customers (c) and their addresses (a)."""

from inventra.sql.filters import (
    AnyField,
    FilterSchema,
    FlagField,
    KeywordField,
    MatchMode,
    QueryPlan,
    RangeField,
    TextField,
    is_blank,
    require_scalar,
)

CUSTOMER_FILTERS = FilterSchema(
    "customer",
    [
        TextField("region", "c.region", MatchMode.EXACT),
        TextField("country", "c.country", MatchMode.EXACT),
        TextField("email", "c.email"),
        TextField("phoneNumber", "c.phone_number"),
        AnyField("statusIds", "c.status_id", cast="uuid[]"),
        TextField("createdBy", "c.created_by", MatchMode.EXACT),
        FlagField(
            "onlyWithAddress",
            "EXISTS (SELECT 1 FROM addresses a WHERE a.customer_id = c.id)",
            "NOT EXISTS (SELECT 1 FROM addresses a WHERE a.customer_id = c.id)",
        ),
        RangeField("createdAfter", "createdBefore", "c.created_at"),
        KeywordField("keyword", ["c.firstname", "c.lastname", "c.email", "c.phone_number"]),
    ],
)

ADDRESS_FILTERS = FilterSchema(
    "address",
    [
        TextField("customerId", "a.customer_id", MatchMode.EXACT),
        TextField("createdBy", "a.created_by", MatchMode.EXACT),
        TextField("updatedBy", "a.updated_by", MatchMode.EXACT),
        TextField("region", "a.region", MatchMode.EXACT),
        TextField("country", "a.country", MatchMode.EXACT),
        TextField("city", "a.city"),
        RangeField("createdAfter", "createdBefore", "a.created_at"),
        RangeField("updatedAfter", "updatedBefore", "a.updated_at"),
        KeywordField("keyword", ["a.label", "a.full_name", "a.email", "a.phone", "a.city"]),
    ],
)


def build_customer_filter(filters: dict | None = None) -> QueryPlan:
    return CUSTOMER_FILTERS.build(filters)


def build_address_filter(filters: dict | None = None, *, include_unassigned: bool = False) -> QueryPlan:
    """
    Build the WHERE clause for addresses.

    With `include_unassigned`, a `customerId` filter also matches addresses
    not yet attached to any customer.
    """
    filters = dict(filters or {})
    system = []
    if include_unassigned and not is_blank(filters.get("customerId")):
        customer_id = require_scalar("customerId", filters.pop("customerId"))
        system.append(("(a.customer_id = %s OR a.customer_id IS NULL)", (customer_id,)))
    return ADDRESS_FILTERS.build(filters, system)
