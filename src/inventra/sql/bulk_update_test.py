"""
Tests for the bulk update composer.

Run with: pytest src/inventra/sql/bulk_update_test.py -v
"""

from unittest.mock import MagicMock, patch

import pytest

from inventra.errors import ValidationError
from inventra.sql.bulk_update import (
    BulkUpdateQuery,
    check_type_name,
    execute_bulk_update,
    format_bulk_update,
)
from inventra.sql.ident import Table

ACTOR = "a0000000-0000-0000-0000-000000000001"
TYPES = {"location_quantity": "integer", "status_id": "uuid", "last_update": "timestamptz"}


class TestFormatBulkUpdate:
    """Tests for format_bulk_update()"""

    def test_empty_updates_is_noop_signal(self):
        plan = format_bulk_update(
            Table.LOCATION_INVENTORY,
            ["location_quantity"],
            ["location_id", "batch_id"],
            {},
            ACTOR,
            TYPES,
        )

        assert plan == BulkUpdateQuery(None, [])
        assert plan.is_empty

    def test_composite_keys_and_partial_rows(self):
        plan = format_bulk_update(
            Table.LOCATION_INVENTORY,
            ["location_quantity", "status_id"],
            ["location_id", "batch_id"],
            {
                ("loc-1", "b-1"): {"location_quantity": 4, "status_id": "st-1"},
                ("loc-1", "b-2"): {"location_quantity": 0},
            },
            ACTOR,
            TYPES,
        )

        assert plan.base_query == (
            'UPDATE "public"."location_inventory" AS t '
            'SET "location_quantity" = COALESCE(v."location_quantity", t."location_quantity"), '
            '"status_id" = COALESCE(v."status_id", t."status_id"), '
            '"updated_at" = NOW(), "updated_by" = %s '
            "FROM (VALUES (%s::uuid, %s::uuid, %s::integer, %s::uuid), "
            "(%s::uuid, %s::uuid, %s::integer, %s::uuid)) "
            'AS v("location_id", "batch_id", "location_quantity", "status_id") '
            'WHERE t."location_id" = v."location_id" AND t."batch_id" = v."batch_id" '
            'RETURNING t."location_id", t."batch_id"'
        )
        assert plan.params == [
            ACTOR,
            "loc-1", "b-1", 4, "st-1",
            "loc-1", "b-2", 0, None,
        ]

    def test_explicit_none_is_sent_as_null_and_coalesced(self):
        plan = format_bulk_update(
            Table.LOCATION_INVENTORY,
            ["location_quantity", "status_id"],
            ["location_id", "batch_id"],
            {("loc-1", "b-1"): {"location_quantity": 3, "status_id": None}},
            ACTOR,
            TYPES,
        )

        # None keeps the stored status_id; it cannot clear it
        assert plan.params[-1] is None
        assert '"status_id" = COALESCE(v."status_id", t."status_id")' in plan.base_query

    def test_placeholders_match_params(self):
        plan = format_bulk_update(
            "skus",
            ["status_id"],
            ["id"],
            {"s-1": "st-1", "s-2": "st-2", "s-3": "st-1"},
            ACTOR,
            {"status_id": "uuid"},
        )

        assert plan.base_query.count("%s") == len(plan.params) == 7

    def test_bare_value_needs_single_update_column(self):
        with pytest.raises(ValidationError):
            format_bulk_update(
                "skus", ["status_id", "description"], ["id"], {"s-1": "x"}, ACTOR,
                {"status_id": "uuid", "description": "text"},
            )

    def test_missing_type_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            format_bulk_update("skus", ["description"], ["id"], {"s-1": "x"}, ACTOR, {})

        assert exc_info.value.details == {"column": "description"}

    def test_unknown_update_column_rejected(self):
        with pytest.raises(ValidationError):
            format_bulk_update(
                "skus", ["description"], ["id"], {"s-1": {"sku": "x"}}, ACTOR,
                {"description": "text"},
            )

    def test_malformed_composite_key_rejected(self):
        with pytest.raises(ValidationError):
            format_bulk_update(
                Table.LOCATION_INVENTORY, ["location_quantity"], ["location_id", "batch_id"],
                {"loc-1": 3}, ACTOR, TYPES,
            )

    def test_key_column_cannot_be_updated(self):
        with pytest.raises(ValidationError):
            format_bulk_update("skus", ["id"], ["id"], {"s-1": "s-2"}, ACTOR, {"id": "uuid"})


class TestCheckTypeName:
    """Tests for check_type_name()"""

    @pytest.mark.parametrize(
        "type_name", ["uuid", "INTEGER", "numeric(10,2)", "varchar(255)", "text[]", "double precision"]
    )
    def test_accepted(self, type_name):
        assert check_type_name(type_name) == type_name.lower()

    @pytest.mark.parametrize("type_name", ["uuid); DROP TABLE x; --", "regclass", "", "int4range"])
    def test_rejected(self, type_name):
        with pytest.raises(ValidationError):
            check_type_name(type_name)


class TestExecuteBulkUpdate:
    """Tests for execute_bulk_update()"""

    def test_empty_plan_runs_nothing(self):
        with patch("inventra.sql.bulk_update.db") as mock_db:
            assert execute_bulk_update(BulkUpdateQuery(None, [])) == []

        mock_db.query.assert_not_called()

    def test_runs_plan_on_connection(self):
        conn = MagicMock()
        plan = BulkUpdateQuery("UPDATE x", [1])
        with patch("inventra.sql.bulk_update.db") as mock_db:
            mock_db.query.return_value = [{"id": 1}]

            assert execute_bulk_update(plan, conn) == [{"id": 1}]

        mock_db.query.assert_called_once_with("UPDATE x", [1], conn)
