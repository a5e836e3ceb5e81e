# products/serializers/__init__.py

from .product import ProductSerializer
from .stock_batch import QuarantineInputSerializer, StockBatchSerializer, StockReceiptSerializer
from .stock_movement import StockMovementSerializer

__all__ = [
    "ProductSerializer",
    "QuarantineInputSerializer",
    "StockBatchSerializer",
    "StockMovementSerializer",
    "StockReceiptSerializer",
]
