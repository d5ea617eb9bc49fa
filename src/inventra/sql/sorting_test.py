"""
Tests for sort resolution.

Run with: pytest src/inventra/sql/sorting_test.py -v
"""

import pytest
from structlog.testing import capture_logs

from inventra.sql.sorting import (
    DEFAULT_SORT_KEY,
    SORT_MAPS,
    SortModule,
    build_order_by,
    get_sort_map,
    sanitize_sort_by,
    sanitize_sort_order,
)


class TestGetSortMap:
    """Tests for get_sort_map()"""

    def test_known_module_by_string(self):
        assert get_sort_map("skuSortMap") is SORT_MAPS[SortModule.SKU]

    def test_unknown_module_is_empty(self):
        assert dict(get_sort_map("nopeSortMap")) == {}

    @pytest.mark.parametrize("module", list(SortModule))
    def test_every_module_has_a_default(self, module):
        assert get_sort_map(module)[DEFAULT_SORT_KEY]

    def test_maps_are_read_only(self):
        with pytest.raises(TypeError):
            SORT_MAPS[SortModule.SKU]["evil"] = "1; DROP TABLE skus"


class TestSanitizeSortBy:
    """Tests for sanitize_sort_by()"""

    def test_drops_and_logs_unknown_keys(self):
        with capture_logs() as logs:
            result = sanitize_sort_by("productName,bogusKey", "skuSortMap")

        assert result == "p.name"
        warnings = [log for log in logs if log["log_level"] == "warning"]
        assert len(warnings) == 1
        assert warnings[0]["dropped"] == ["bogusKey"]
        assert warnings[0]["context"] == "sql/sorting"

    def test_multiple_keys_in_order(self):
        assert sanitize_sort_by(" brand , sku ", SortModule.SKU) == "p.brand, s.sku"

    @pytest.mark.parametrize("raw", [None, "", " , ", "bogus"])
    def test_falls_back_to_default(self, raw):
        expected = SORT_MAPS[SortModule.SKU][DEFAULT_SORT_KEY]

        assert sanitize_sort_by(raw, SortModule.SKU) == expected

    def test_default_is_natural_sort(self):
        default = sanitize_sort_by(None, SortModule.SKU)

        assert "REGEXP_REPLACE" in default
        assert "[^0-9]" in default

    def test_unknown_module_returns_empty(self):
        assert sanitize_sort_by("productName", "nopeSortMap") == ""

    def test_default_key_cannot_be_requested_directly(self):
        assert sanitize_sort_by(f"{DEFAULT_SORT_KEY},sku", SortModule.SKU) == "s.sku"

    @pytest.mark.parametrize(
        "raw",
        [
            "p.name; DROP TABLE skus",
            "productName DESC, (SELECT 1)",
            "sku,--",
            "1",
            "productName,productName;",
        ],
    )
    @pytest.mark.parametrize("module", list(SortModule))
    def test_output_only_contains_map_values(self, raw, module):
        result = sanitize_sort_by(raw, module)
        values = set(get_sort_map(module).values())

        assert result in values or all(part in values for part in result.split(", "))


class TestSortOrder:
    """Tests for sanitize_sort_order() and build_order_by()"""

    @pytest.mark.parametrize("raw", ["ASC", "asc", " Asc "])
    def test_asc(self, raw):
        assert sanitize_sort_order(raw) == "ASC"

    @pytest.mark.parametrize("raw", [None, "", "DESC", "ascending", "ASC; DROP", 1])
    def test_everything_else_is_desc(self, raw):
        assert sanitize_sort_order(raw) == "DESC"

    def test_direction_appended_to_single_column(self):
        assert build_order_by("productName", "asc", SortModule.SKU) == "p.name ASC"

    def test_direction_not_appended_to_multi_column(self):
        result = build_order_by("brand,sku", "ASC", SortModule.SKU)

        assert result == "p.brand, s.sku"

    def test_direction_not_appended_to_case_expression(self):
        result = build_order_by("expiryDate", "ASC", SortModule.LOCATION_INVENTORY)

        assert result.startswith("CASE WHEN br.batch_type")
        assert not result.endswith("ASC")

    def test_directed_default_not_doubled(self):
        assert build_order_by(None, "ASC", SortModule.INVENTORY_ACTIVITY_LOG) == (
            "ial.action_timestamp DESC"
        )
        assert build_order_by(None, None, SortModule.ADDRESS) == "a.created_at DESC"

    def test_column_named_like_a_direction_still_gets_one(self):
        assert build_order_by("description", "ASC", SortModule.ORDER_TYPE) == (
            "ot.description ASC"
        )

    def test_unknown_module(self):
        assert build_order_by("sku", "ASC", "nopeSortMap") == ""


class TestModuleRegistry:
    """Sort modules shared with other listings"""

    @pytest.mark.parametrize(
        "name",
        [
            "inventoryActivityLogSortMap",
            "orderTypeSortMap",
            "pricingRecords",
            "locationInventorySummarySortMap",
        ],
    )
    def test_registered_by_name(self, name):
        assert get_sort_map(name)

    def test_activity_log_keys(self):
        assert sanitize_sort_by("orderNumber,locationName", "inventoryActivityLogSortMap") == (
            "o.order_number, loc.name"
        )

    def test_pricing_keys(self):
        assert build_order_by("price", "ASC", SortModule.PRICING) == "p.price ASC"

    def test_summary_lot_number_is_polymorphic(self):
        result = build_order_by("lotNumber", "ASC", SortModule.LOCATION_INVENTORY_SUMMARY)

        assert "pmb.lot_number" in result and "pb.lot_number" in result
