"""
SKU

Data access for stock keeping units and generation of their codes.
"""

from inventra.sku.codes import SkuCodeContext, generate_sku
from inventra.sku.repository import SkuRepository

__all__ = ["SkuCodeContext", "SkuRepository", "generate_sku"]
