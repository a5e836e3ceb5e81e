# products/views/__init__.py

"""
Products views package exports.

Purpose:
- Central export point for router imports.
"""

from .product import ProductViewSet
from .stock_batch import StockBatchViewSet
from .stock_movement import StockMovementViewSet

__all__ = [
    "ProductViewSet",
    "StockBatchViewSet",
    "StockMovementViewSet",
]
