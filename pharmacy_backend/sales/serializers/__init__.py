from .sale import (
    RevenueQuerySerializer,
    SaleCancelSerializer,
    SaleCreateSerializer,
    SaleEditSerializer,
    SaleSerializer,
    SaleUndoSerializer,
)
from .sale_item import SaleItemInputSerializer, SaleItemSerializer

__all__ = [
    "RevenueQuerySerializer",
    "SaleCancelSerializer",
    "SaleCreateSerializer",
    "SaleEditSerializer",
    "SaleItemInputSerializer",
    "SaleItemSerializer",
    "SaleSerializer",
    "SaleUndoSerializer",
]
