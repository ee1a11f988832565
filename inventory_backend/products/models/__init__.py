"""
PATH: products/models/__init__.py

Products models export surface.
"""

from .batch_allocation import BatchAllocation
from .product import ProductVariant
from .stock_batch import StockBatch

__all__ = [
    "BatchAllocation",
    "ProductVariant",
    "StockBatch",
]
