# products/services/exceptions.py

"""
STOCK DOMAIN ERRORS

Every error carries structured details so API callers can render an
actionable message (product id, available vs requested, conflicting batch).
"""

from __future__ import annotations


class StockError(Exception):
    """Base class for stock-domain errors."""

    code = "stock_error"

    def __init__(self, message: str = "", **details):
        self.details = {k: v for k, v in details.items()}
        super().__init__(message or self.code)

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "message": self.message,
            "details": {k: _plain(v) for k, v in self.details.items()},
        }


def _plain(value):
    if value is None or isinstance(value, (int, float, str, bool)):
        return value
    return str(value)


class InsufficientStockError(StockError):
    code = "insufficient_stock"

    def __init__(self, *, product_id, available: int, requested: int):
        self.product_id = product_id
        self.available = int(available)
        self.requested = int(requested)
        super().__init__(
            f"Insufficient stock for product {product_id}. "
            f"Requested: {self.requested}, Available: {self.available}",
            product_id=product_id,
            available=self.available,
            requested=self.requested,
        )


class NoBatchesTrackedError(StockError):
    """
    Product has no eligible batches but still carries a legacy flat counter.
    Callers fall back to the legacy deduction path.
    """

    code = "no_batches_tracked"

    def __init__(self, *, product_id, legacy_stock: int):
        self.product_id = product_id
        self.legacy_stock = int(legacy_stock)
        super().__init__(
            f"Product {product_id} has no tracked batches "
            f"(legacy stock on hand: {self.legacy_stock})",
            product_id=product_id,
            legacy_stock=self.legacy_stock,
        )


class StockConflictError(StockError):
    """
    A batch (or legacy counter) changed between planning and applying.
    Never retried inside the engine.
    """

    code = "stock_conflict"

    def __init__(self, *, product_id, batch_id=None, requested: int, remaining: int | None = None):
        self.product_id = product_id
        self.batch_id = batch_id
        self.requested = int(requested)
        self.remaining = remaining
        target = f"batch {batch_id}" if batch_id else "legacy stock counter"
        super().__init__(
            f"Concurrent stock change detected on {target} of product {product_id}: "
            f"requested {self.requested}, remaining {remaining}",
            product_id=product_id,
            batch_id=batch_id,
            requested=self.requested,
            remaining=remaining,
        )


class ProductNotFoundError(StockError):
    code = "product_not_found"

    def __init__(self, *, product_id):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found", product_id=product_id)
