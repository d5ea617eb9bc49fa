"""
Integration tests for the inventory repositories.

Run with: INVENTRA_ENV=test pytest src/inventra/inventory/repository_test.py -v
"""

from unittest.mock import patch

from inventra.inventory import WarehouseInventoryRepository


class TestFetchPaginated:
    """Tests for LocationInventoryRepository.fetch_paginated()"""

    def test_lists_both_batch_types(self, location_inventory_repo, sample_inventory):
        result = location_inventory_repo.fetch_paginated()

        assert result["pagination"]["totalRecords"] == 2
        by_type = {row["batch_type"]: row for row in result["data"]}
        assert by_type["product"]["lot_number"] == "LOT-P-001"
        assert by_type["product"]["sku"] == "CH-HN100-R-CN"
        assert by_type["packaging_material"]["lot_number"] == "LOT-M-001"
        assert by_type["packaging_material"]["material_code"] == "PM-BOX-01"

    def test_polymorphic_lot_filter(self, location_inventory_repo, sample_inventory):
        result = location_inventory_repo.fetch_paginated(filters={"lotNumber": "lot-m"})

        assert [row["batch_type"] for row in result["data"]] == ["packaging_material"]

    def test_polymorphic_expiry_filter(self, location_inventory_repo, sample_inventory):
        result = location_inventory_repo.fetch_paginated(filters={"expiryDate": "2027-03-31"})

        assert [row["batch_type"] for row in result["data"]] == ["product"]

    def test_part_filter_matches_linked_material_once(
        self, location_inventory_repo, sample_inventory, db_cursor
    ):
        db_cursor.execute("SELECT id FROM packaging_materials WHERE code = 'PM-BOX-01'")
        material_id = db_cursor.fetchone()["id"]
        for code in ("CAP-01", "CAP-02"):
            db_cursor.execute(
                "INSERT INTO parts (code, name, type) VALUES (%s, 'Cap', 'cap') RETURNING id",
                (code,),
            )
            db_cursor.execute(
                "INSERT INTO part_materials (part_id, packaging_material_id) VALUES (%s, %s)",
                (db_cursor.fetchone()["id"], material_id),
            )

        result = location_inventory_repo.fetch_paginated(filters={"partCode": "cap"})

        assert [row["batch_type"] for row in result["data"]] == ["packaging_material"]
        assert result["pagination"]["totalRecords"] == 1

    def test_zero_quantity_rows_hidden(self, location_inventory_repo, sample_inventory, db_cursor):
        db_cursor.execute(
            "UPDATE location_inventory SET location_quantity = 0, reserved_quantity = 0 WHERE id = %s",
            (sample_inventory["rows"]["product"]["id"],),
        )

        result = location_inventory_repo.fetch_paginated()

        assert result["pagination"]["totalRecords"] == 1

    def test_sort_by_quantity(self, location_inventory_repo, sample_inventory):
        result = location_inventory_repo.fetch_paginated(
            sort_by="locationQuantity", sort_order="DESC"
        )

        assert [row["location_quantity"] for row in result["data"]] == [200, 50]


class TestInsertRecords:
    """Tests for insert_records()"""

    def test_conflict_adds_quantity(self, location_inventory_repo, sample_inventory, db_cursor):
        key = {
            "location_id": sample_inventory["location"]["id"],
            "batch_id": sample_inventory["product_batch_id"],
        }

        returned = location_inventory_repo.insert_records([{**key, "location_quantity": 25}])

        assert returned[0]["id"] == sample_inventory["rows"]["product"]["id"]
        db_cursor.execute(
            "SELECT location_quantity, status_id FROM location_inventory WHERE id = %s",
            (returned[0]["id"],),
        )
        row = db_cursor.fetchone()
        assert row["location_quantity"] == 75
        # status_id was not supplied, so the stored one is kept
        assert row["status_id"] == sample_inventory["rows"]["product"]["status_id"]


class TestBulkUpdateQuantities:
    """Tests for bulk_update_quantities()"""

    def test_updates_only_given_columns(self, location_inventory_repo, sample_inventory, sample_user):
        location_id = sample_inventory["location"]["id"]
        product_batch = sample_inventory["product_batch_id"]
        material_batch = sample_inventory["material_batch_id"]

        updated = location_inventory_repo.bulk_update_quantities(
            {
                (location_id, product_batch): {"location_quantity": 10},
                (location_id, material_batch): {"location_quantity": 150},
            },
            sample_user["id"],
        )

        assert len(updated) == 2
        rows = {
            row["batch_type"]: row for row in location_inventory_repo.fetch_paginated()["data"]
        }
        assert rows["product"]["location_quantity"] == 10
        assert rows["packaging_material"]["location_quantity"] == 150
        assert rows["product"]["status_name"] == "inventory_in_stock"

    def test_empty_updates_issue_no_sql(self, location_inventory_repo):
        with patch("inventra.sql.bulk_update.db") as mock_db:
            assert location_inventory_repo.bulk_update_quantities({}, "u-1") == []

        mock_db.query.assert_not_called()


class TestWarehouseRepository:
    """Shape checks for WarehouseInventoryRepository"""

    def test_joins_use_warehouse_alias(self):
        repo = WarehouseInventoryRepository()

        assert repo.joins[0] == "INNER JOIN warehouses wh ON wi.warehouse_id = wh.id"
        assert "INNER JOIN batch_registry br ON wi.batch_id = br.id" in repo.joins
        assert repo.key_columns == ("warehouse_id", "batch_id")
