"""
Inventory

Location and warehouse inventory listings, bulk inserts and quantity
adjustments.
"""

from inventra.inventory.repository import LocationInventoryRepository, WarehouseInventoryRepository
from inventra.inventory.service import InventoryService

__all__ = ["InventoryService", "LocationInventoryRepository", "WarehouseInventoryRepository"]
