from datetime import datetime, timezone
from typing import Any, Mapping, Sequence

from inventra import db
from inventra.errors import NotFoundError, ValidationError
from inventra.inventory.repository import (
    LocationInventoryRepository,
    WarehouseInventoryRepository,
    _InventoryRepository,
)
from inventra.logs import log_info
from inventra.sql.ident import Table
from inventra.sql.lookup import get_unique_scalar_value
from inventra.sql.retry import retry

IN_STOCK_STATUS = "inventory_in_stock"
OUT_OF_STOCK_STATUS = "inventory_out_of_stock"


class InventoryService:
    """
    Quantity adjustments for location and warehouse inventory.

    An adjustment is a dict with the scope id (location_id or
    warehouse_id), batch_id and a signed integer delta. All adjustments in
    one call are applied in a single transaction: the affected rows are
    locked, the new quantities computed from the locked values, and written
    back with one bulk update. The whole transaction is retried on
    transient failures such as deadlocks.
    """

    def __init__(
        self,
        location_repo: LocationInventoryRepository | None = None,
        warehouse_repo: WarehouseInventoryRepository | None = None,
        *,
        attempts: int | None = None,
        base_delay_ms: int | None = None,
    ):
        self.location_repo = location_repo or LocationInventoryRepository()
        self.warehouse_repo = warehouse_repo or WarehouseInventoryRepository()
        self.attempts = attempts
        self.base_delay_ms = base_delay_ms

    def adjust_location_quantities(
        self, adjustments: Sequence[Mapping[str, Any]], actor_id
    ) -> list[dict]:
        """
        Apply quantity deltas to location inventory rows.

        Returns:
            The (location_id, batch_id) keys of the updated rows

        Raises:
            ValidationError: malformed adjustment, or a quantity would drop
                below zero or below the reserved quantity
            NotFoundError: no inventory row for a (location, batch) pair
        """
        return self._adjust(self.location_repo, adjustments, actor_id)

    def adjust_warehouse_quantities(
        self, adjustments: Sequence[Mapping[str, Any]], actor_id
    ) -> list[dict]:
        """Apply quantity deltas to warehouse inventory rows."""
        return self._adjust(self.warehouse_repo, adjustments, actor_id)

    def _collect_deltas(self, repo: _InventoryRepository, adjustments) -> dict[tuple, int]:
        deltas: dict[tuple, int] = {}
        for index, adjustment in enumerate(adjustments):
            delta = adjustment.get("delta")
            if isinstance(delta, bool) or not isinstance(delta, int):
                raise ValidationError(
                    f"Adjustment {index}: delta must be an integer", {"index": index}
                )
            try:
                key = tuple(str(adjustment[column]) for column in repo.key_columns)
            except KeyError as exc:
                raise ValidationError(
                    f"Adjustment {index}: missing {exc.args[0]}", {"index": index}
                ) from None
            deltas[key] = deltas.get(key, 0) + delta
        return deltas

    def _status_ids(self, conn) -> dict[str, Any]:
        return {
            name: get_unique_scalar_value(Table.STATUS, {"name": name}, "id", conn=conn)
            for name in (IN_STOCK_STATUS, OUT_OF_STOCK_STATUS)
        }

    def _adjust(self, repo: _InventoryRepository, adjustments, actor_id) -> list[dict]:
        if not adjustments:
            return []
        deltas = self._collect_deltas(repo, adjustments)
        scope_column, quantity_column = repo.scope_column, repo.quantity_column

        def apply() -> list[dict]:
            with db.transaction() as conn:
                keys = [dict(zip(repo.key_columns, key)) for key in sorted(deltas)]
                locked = {
                    (str(row[scope_column]), str(row["batch_id"])): row
                    for row in repo.lock_quantities(keys, conn)
                }
                missing = [key for key in deltas if key not in locked]
                if missing:
                    raise NotFoundError(
                        f"No {repo.table.value} row for {len(missing)} adjustment(s)",
                        {"missing": [dict(zip(repo.key_columns, key)) for key in missing]},
                    )

                statuses = self._status_ids(conn)
                now = datetime.now(timezone.utc)
                updates = {}
                for key, delta in deltas.items():
                    row = locked[key]
                    quantity = row[quantity_column] + delta
                    if quantity < 0:
                        raise ValidationError(
                            f"{quantity_column} would drop below zero",
                            {"key": dict(zip(repo.key_columns, key)), "quantity": quantity},
                        )
                    if quantity < row["reserved_quantity"]:
                        raise ValidationError(
                            f"{quantity_column} would drop below the reserved quantity",
                            {"key": dict(zip(repo.key_columns, key)), "quantity": quantity},
                        )
                    status = IN_STOCK_STATUS if quantity > 0 else OUT_OF_STOCK_STATUS
                    updates[(row[scope_column], row["batch_id"])] = {
                        quantity_column: quantity,
                        "status_id": statuses[status],
                        "last_update": now,
                    }
                return repo.bulk_update_quantities(updates, actor_id, conn)

        updated = retry(apply, self.attempts, self.base_delay_ms)
        log_info(
            "Adjusted inventory quantities",
            context=f"inventory/{repo.table.value}/adjust",
            row_count=len(updated),
            actor_id=str(actor_id),
        )
        return updated
