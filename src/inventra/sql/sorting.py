"""
Sort resolution: mapping caller sort keys onto vetted ORDER BY fragments.

Each module's map is the only source of ORDER BY text. A caller's raw sort
string is used purely as a lookup key; tokens that are not in the map are
dropped. The `defaultNaturalSort` entry of a map is used when nothing
resolves. Natural sorts order embedded numbers numerically by stripping
non-digits from names, so "Item 2" sorts before "Item 10".
"""

import re
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from inventra.logs import log_warning

DEFAULT_SORT_KEY = "defaultNaturalSort"
_DIRECTION_RE = re.compile(r"\b(ASC|DESC|NULLS)\b")


def _natural(expression: str) -> str:
    return f"CAST(NULLIF(REGEXP_REPLACE({expression}, '[^0-9]', '', 'g'), '') AS INTEGER)"


_BATCH_EXPIRY = (
    "CASE WHEN br.batch_type = 'product' THEN pb.expiry_date "
    "WHEN br.batch_type = 'packaging_material' THEN pmb.expiry_date ELSE NULL END"
)
_BATCH_LOT = (
    "CASE WHEN br.batch_type = 'product' THEN pb.lot_number "
    "WHEN br.batch_type = 'packaging_material' THEN pmb.lot_number ELSE NULL END"
)
_BATCH_NAME = (
    "CASE WHEN br.batch_type = 'product' THEN p.name "
    "ELSE COALESCE(pmb.material_snapshot_name, pm.name, p.name) END"
)
_BATCH_NATURAL = (
    f"CASE WHEN br.batch_type = 'product' THEN {_natural('p.name')} "
    f"ELSE {_natural('COALESCE(pmb.material_snapshot_name, pm.name)')} END NULLS LAST"
)


class SortModule(str, Enum):
    SKU = "skuSortMap"
    SKU_PRODUCT_CARDS = "skuProductCards"
    PRODUCT_BATCH = "productBatchSortMap"
    PACKAGING_MATERIAL_BATCH = "packagingMaterialBatchSortMap"
    LOCATION_INVENTORY = "locationInventorySortMap"
    LOCATION_INVENTORY_SUMMARY = "locationInventorySummarySortMap"
    WAREHOUSE_INVENTORY = "warehouseInventorySortMap"
    INVENTORY_ACTIVITY_LOG = "inventoryActivityLogSortMap"
    ORDER = "orderSortMap"
    ORDER_TYPE = "orderTypeSortMap"
    PRICING = "pricingRecords"
    CUSTOMER = "customerSortMap"
    ADDRESS = "addressSortMap"


SORT_MAPS: Mapping[SortModule, Mapping[str, str]] = MappingProxyType(
    {
        module: MappingProxyType(fields)
        for module, fields in {
            SortModule.SKU: {
                "sku": "s.sku",
                "barcode": "s.barcode",
                "productName": "p.name",
                "brand": "p.brand",
                "category": "p.category",
                "marketRegion": "s.market_region",
                "sizeLabel": "s.size_label",
                "status": "st.name",
                "createdAt": "s.created_at",
                "updatedAt": "s.updated_at",
                DEFAULT_SORT_KEY: f"p.brand, {_natural('p.name')} NULLS LAST, p.name, s.sku",
            },
            SortModule.SKU_PRODUCT_CARDS: {
                "brand": "p.brand",
                "category": "p.category",
                "marketRegion": "s.market_region",
                "sizeLabel": "s.size_label",
                "keyword": "p.name",
                "createdAt": "s.created_at",
                DEFAULT_SORT_KEY: f"p.brand, {_natural('p.name')} NULLS LAST, s.created_at DESC",
            },
            SortModule.PRODUCT_BATCH: {
                "lotNumber": "pb.lot_number",
                "expiryDate": "pb.expiry_date",
                "manufactureDate": "pb.manufacture_date",
                "productName": "p.name",
                "sku": "s.sku",
                "manufacturerName": "m.name",
                "status": "st.name",
                "createdAt": "pb.created_at",
                DEFAULT_SORT_KEY: "pb.expiry_date ASC NULLS LAST, pb.lot_number",
            },
            SortModule.PACKAGING_MATERIAL_BATCH: {
                "lotNumber": "pmb.lot_number",
                "materialName": "pmb.material_snapshot_name",
                "materialCode": "pm.code",
                "supplierName": "sup.name",
                "expiryDate": "pmb.expiry_date",
                "receivedAt": "pmb.received_at",
                "status": "st.name",
                "createdAt": "pmb.created_at",
                DEFAULT_SORT_KEY: f"{_natural('pmb.material_snapshot_name')} NULLS LAST, pmb.received_at DESC",
            },
            SortModule.LOCATION_INVENTORY: {
                "locationName": "loc.name",
                "productName": "p.name",
                "materialName": "pmb.material_snapshot_name",
                "sku": "s.sku",
                "lotNumber": _BATCH_LOT,
                "inboundDate": "li.inbound_date",
                "outboundDate": "li.outbound_date",
                "expiryDate": _BATCH_EXPIRY,
                "createdAt": "li.created_at",
                "lastUpdate": "li.last_update",
                "locationQuantity": "li.location_quantity",
                "reservedQuantity": "li.reserved_quantity",
                "availableQuantity": "(li.location_quantity - li.reserved_quantity)",
                "status": "st.name",
                "name": _BATCH_NAME,
                DEFAULT_SORT_KEY: (
                    f"loc.name, p.brand, br.batch_type, {_BATCH_NATURAL}, li.last_update DESC"
                ),
            },
            SortModule.LOCATION_INVENTORY_SUMMARY: {
                "lotNumber": _BATCH_LOT,
                "sku": "s.sku",
                "productName": "p.name",
                "materialName": "pm.name",
                "inboundDate": "li.inbound_date",
                "expiryDate": _BATCH_EXPIRY,
                "status": "st.name",
                "locationQuantity": "li.location_quantity",
                "reservedQuantity": "li.reserved_quantity",
                "availableQuantity": "(li.location_quantity - li.reserved_quantity)",
                "createdAt": "li.created_at",
                DEFAULT_SORT_KEY: f"p.brand, br.batch_type, {_BATCH_NATURAL}, li.inbound_date",
            },
            SortModule.WAREHOUSE_INVENTORY: {
                "warehouseName": "wh.name",
                "productName": "p.name",
                "materialName": "pmb.material_snapshot_name",
                "sku": "s.sku",
                "lotNumber": _BATCH_LOT,
                "inboundDate": "wi.inbound_date",
                "expiryDate": _BATCH_EXPIRY,
                "createdAt": "wi.created_at",
                "lastUpdate": "wi.last_update",
                "warehouseQuantity": "wi.warehouse_quantity",
                "reservedQuantity": "wi.reserved_quantity",
                "availableQuantity": "(wi.warehouse_quantity - wi.reserved_quantity)",
                "status": "st.name",
                "name": _BATCH_NAME,
                DEFAULT_SORT_KEY: (
                    f"wh.name, p.brand, br.batch_type, {_BATCH_NATURAL}, wi.last_update DESC"
                ),
            },
            SortModule.INVENTORY_ACTIVITY_LOG: {
                "actionTimestamp": "ial.action_timestamp",
                "quantityChange": "ial.quantity_change",
                "previousQuantity": "ial.previous_quantity",
                "newQuantity": "ial.new_quantity",
                "sourceType": "ial.source_type",
                "batchType": "br.batch_type",
                "actionType": "iat.name",
                "adjustmentType": "lat.name",
                "performedBy": "(u.firstname || ' ' || u.lastname)",
                "productName": "p.name",
                "productBrand": "p.brand",
                "sku": "s.sku",
                "sizeLabel": "s.size_label",
                "countryCode": "s.country_code",
                "productLotNumber": "pb.lot_number",
                "productExpiryDate": "pb.expiry_date",
                "materialLotNumber": "pmb.lot_number",
                "materialExpiryDate": "pmb.expiry_date",
                "materialName": "pmb.material_snapshot_name",
                "orderNumber": "o.order_number",
                "orderType": "ot.name",
                "orderStatus": "os.name",
                "warehouseName": "wh.name",
                "locationName": "loc.name",
                DEFAULT_SORT_KEY: "ial.action_timestamp DESC",
            },
            SortModule.ORDER: {
                "orderNumber": "o.order_number",
                "orderDate": "o.order_date",
                "orderType": "ot.name",
                "status": "os.name",
                "statusDate": "o.status_date",
                "createdAt": "o.created_at",
                "updatedAt": "o.updated_at",
                DEFAULT_SORT_KEY: "o.created_at DESC, o.order_number",
            },
            SortModule.ORDER_TYPE: {
                "name": "ot.name",
                "code": "ot.code",
                "category": "ot.category",
                "requiresPayment": "ot.requires_payment",
                "description": "ot.description",
                "statusName": "st.name",
                "statusDate": "ot.status_date",
                "createdAt": "ot.created_at",
                "updatedAt": "ot.updated_at",
                DEFAULT_SORT_KEY: f"ot.category, {_natural('ot.name')} NULLS LAST, ot.name",
            },
            SortModule.PRICING: {
                "productName": "pr.name",
                "brand": "pr.brand",
                "category": "pr.category",
                "sku": "s.sku",
                "countryCode": "s.country_code",
                "sizeLabel": "s.size_label",
                "pricingType": "pt.name",
                "marketRegion": "s.market_region",
                "price": "p.price",
                "validFrom": "p.valid_from",
                "validTo": "p.valid_to",
                DEFAULT_SORT_KEY: "pr.brand, pr.name, s.sku, pt.name, p.valid_from DESC",
            },
            SortModule.CUSTOMER: {
                "customerName": "COALESCE(TRIM(c.firstname || ' ' || c.lastname), '')",
                "email": "c.email",
                "phoneNumber": "c.phone_number",
                "region": "c.region",
                "status": "st.name",
                "createdAt": "c.created_at",
                "updatedAt": "c.updated_at",
                DEFAULT_SORT_KEY: (
                    "c.region, st.name, COALESCE(TRIM(c.firstname || ' ' || c.lastname), ''), "
                    "c.created_at DESC"
                ),
            },
            SortModule.ADDRESS: {
                "createdAt": "a.created_at",
                "updatedAt": "a.updated_at",
                "city": "a.city",
                "state": "a.state",
                "postalCode": "a.postal_code",
                "country": "a.country",
                "region": "a.region",
                "label": "a.label",
                "recipientName": "a.full_name",
                "email": "a.email",
                "customerName": "c.firstname",
                DEFAULT_SORT_KEY: "a.created_at DESC",
            },
        }.items()
    }
)

_EMPTY: Mapping[str, str] = MappingProxyType({})


def get_sort_map(module: SortModule | str) -> Mapping[str, str]:
    """Return the sort map for a module, or an empty map if the module is unknown."""
    try:
        return SORT_MAPS[SortModule(module)]
    except ValueError:
        return _EMPTY


def sanitize_sort_by(raw_csv: str | None, module: SortModule | str) -> str:
    """
    Resolve a comma-separated list of sort keys to an ORDER BY expression.

    Unknown keys are logged and dropped. When nothing resolves, the
    module's default natural sort is returned ("" for an unknown module).
    The result only ever contains values from the module's own map.
    """
    fields = get_sort_map(module)
    resolved = []
    dropped = []
    for token in (raw_csv or "").split(","):
        token = token.strip()
        if not token:
            continue
        expression = fields.get(token)
        if expression is None or token == DEFAULT_SORT_KEY:
            dropped.append(token)
        else:
            resolved.append(expression)

    if dropped:
        log_warning(
            "Dropped unknown sort keys",
            context="sql/sorting",
            module=str(getattr(module, "value", module)),
            dropped=dropped,
        )
    if resolved:
        return ", ".join(resolved)
    return fields.get(DEFAULT_SORT_KEY, "")


def sanitize_sort_order(raw: str | None) -> str:
    """'ASC' only for an explicit (case-insensitive) ASC, otherwise 'DESC'."""
    if isinstance(raw, str) and raw.strip().upper() == "ASC":
        return "ASC"
    return "DESC"


def has_embedded_direction(expression: str) -> bool:
    """Multi-column, CASE and already-directed expressions carry their own ordering."""
    upper = expression.upper()
    return "," in expression or "CASE" in upper or bool(_DIRECTION_RE.search(upper))


def build_order_by(
    raw_sort_by: str | None, raw_sort_order: str | None, module: SortModule | str
) -> str:
    """
    Return a complete ORDER BY expression (without the keywords), or "".

    The direction is only appended to single-column expressions.
    """
    expression = sanitize_sort_by(raw_sort_by, module)
    if not expression:
        return ""
    if has_embedded_direction(expression):
        return expression
    return f"{expression} {sanitize_sort_order(raw_sort_order)}"
