"""
Tests for single-record lookups.

Run with: INVENTRA_ENV=test pytest src/inventra/sql/lookup_test.py -v
"""

from unittest.mock import patch

import pytest

from inventra.errors import ConflictError, DataIntegrityError, NotFoundError, ValidationError
from inventra.sql.ident import Table
from inventra.sql.lookup import (
    check_record_exists,
    get_fields_by_id,
    get_unique_scalar_value,
    update_by_id,
)


@pytest.fixture
def mock_db():
    with patch("inventra.sql.lookup.db") as db:
        yield db


class TestGetUniqueScalarValue:
    """Tests for get_unique_scalar_value()"""

    def test_single_row(self, mock_db):
        mock_db.query.return_value = [{"id": "st-1"}]

        assert get_unique_scalar_value(Table.STATUS, {"name": "active"}, "id") == "st-1"
        mock_db.query.assert_called_once_with(
            'SELECT "id" FROM "public"."status" WHERE "name" = %s LIMIT 2', ["active"], None
        )

    def test_multiple_columns(self, mock_db):
        mock_db.query.return_value = [{"id": "x"}]

        get_unique_scalar_value("skus", {"product_id": "p", "sku": "s"}, "id")

        sql, params, _ = mock_db.query.call_args.args
        assert 'WHERE "product_id" = %s AND "sku" = %s LIMIT 2' in sql
        assert params == ["p", "s"]

    def test_no_rows_is_not_found(self, mock_db):
        mock_db.query.return_value = []

        with pytest.raises(NotFoundError):
            get_unique_scalar_value(Table.STATUS, {"name": "nope"}, "id")

    def test_two_rows_is_integrity_error(self, mock_db):
        mock_db.query.return_value = [{"id": "a"}, {"id": "b"}]

        with pytest.raises(DataIntegrityError) as exc_info:
            get_unique_scalar_value(Table.STATUS, {"name": "dup"}, "id")

        assert not isinstance(exc_info.value, NotFoundError)
        assert exc_info.value.details["table"] == "status"

    def test_unsafe_select_rejected(self, mock_db):
        with pytest.raises(ValidationError):
            get_unique_scalar_value(Table.STATUS, {"name": "x"}, "id, password")

    def test_empty_where_rejected(self, mock_db):
        with pytest.raises(ValidationError):
            get_unique_scalar_value(Table.STATUS, {}, "id")


class TestUpdateById:
    """Tests for update_by_id()"""

    def test_stamps_audit_columns(self, mock_db):
        mock_db.fetch_one.return_value = {"id": "s-1"}

        update_by_id(Table.SKUS, "s-1", {"description": "d"}, actor_id="u-1")

        sql, params, _ = mock_db.fetch_one.call_args.args
        assert sql == (
            'UPDATE "public"."skus" SET "description" = %s, "updated_at" = NOW(), '
            '"updated_by" = %s WHERE "id" = %s RETURNING *'
        )
        assert params == ["d", "u-1", "s-1"]

    def test_expected_guard_lost_race_is_conflict(self, mock_db):
        mock_db.fetch_one.side_effect = [None, {"found": True}]

        with pytest.raises(ConflictError):
            update_by_id(
                Table.SKUS, "s-1", {"status_id": "st-2"}, expected={"status_id": "st-1"}
            )

    def test_missing_row_is_not_found(self, mock_db):
        mock_db.fetch_one.side_effect = [None, {"found": False}]

        with pytest.raises(NotFoundError):
            update_by_id(
                Table.SKUS, "s-1", {"status_id": "st-2"}, expected={"status_id": "st-1"}
            )

    def test_audit_columns_are_reserved(self, mock_db):
        with pytest.raises(ValidationError):
            update_by_id(Table.SKUS, "s-1", {"updated_by": "u-2"})


class TestLookupIntegration:
    """Integration tests against PostgreSQL"""

    def test_unique_status_id(self, db_connection, statuses):
        assert get_unique_scalar_value(Table.STATUS, {"name": "active"}, "id") == statuses["active"]

    def test_duplicate_matches_raise_integrity_error(self, db_connection, sample_skus):
        # All sample SKUs share one product
        with pytest.raises(DataIntegrityError):
            get_unique_scalar_value(
                Table.SKUS, {"product_id": sample_skus[0]["product_id"]}, "sku"
            )

    def test_record_exists(self, db_connection, sample_skus):
        assert check_record_exists(Table.SKUS, {"sku": "CH-HN100-R-CN"})
        assert not check_record_exists(Table.SKUS, {"sku": "CH-HN999-R-CN"})

    def test_fields_by_id(self, db_connection, sample_skus):
        row = get_fields_by_id(Table.SKUS, sample_skus[1]["id"], ["sku", "market_region"])

        assert row == {"sku": "CH-HN101-R-CA", "market_region": "CA"}

    def test_update_with_stale_guard(self, db_connection, sample_skus, statuses):
        sku = sample_skus[0]

        with pytest.raises(ConflictError):
            update_by_id(
                Table.SKUS,
                sku["id"],
                {"status_id": statuses["inactive"]},
                expected={"status_id": statuses["inactive"]},
            )
