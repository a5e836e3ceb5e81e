# products/services/fefo_allocator.py

"""
FEFO ALLOCATOR (PURE)

Purpose:
- Map (product, quantity requested) -> AllocationPlan.
- No database access, no side effects. Batches are passed in by the caller
  (any object exposing id, quantity_remaining, status, expiry_date, created_at).

Rules:
- Eligible batches: status "active" and quantity_remaining > 0.
- Order: expiry_date ascending, batches WITHOUT expiry sort LAST;
  tie-break created_at ascending (oldest stock first), then id.
- Draw min(remaining, still_needed) from each batch in order.
- All-or-nothing: if the eligible total is short, no plan is produced.
- Zero eligible batches + non-zero legacy counter -> NoBatchesTrackedError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

from products.services.exceptions import InsufficientStockError, NoBatchesTrackedError
from products.services.validation import field_error

ACTIVE_STATUS = "active"


@dataclass(frozen=True)
class Draw:
    batch_id: object
    quantity: int
    expiry_date: date | None = None


@dataclass(frozen=True)
class AllocationPlan:
    product_id: object
    requested: int
    draws: tuple = field(default_factory=tuple)

    @property
    def total(self) -> int:
        return sum(d.quantity for d in self.draws)

    @property
    def primary_draw(self) -> Draw | None:
        """The draw that consumed the most stock (first one on ties)."""
        if not self.draws:
            return None
        return max(self.draws, key=lambda d: d.quantity)


def _require_quantity(quantity) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise field_error(
            "quantity", "quantity must be a whole number of pieces", code="invalid_quantity"
        )
    if quantity <= 0:
        raise field_error(
            "quantity", "quantity must be greater than zero", code="invalid_quantity"
        )
    return quantity


def fefo_sort_key(batch):
    expiry = getattr(batch, "expiry_date", None)
    created = getattr(batch, "created_at", None)
    # Rows without created_at first among equal expiries
    created_ts = created.timestamp() if isinstance(created, datetime) else float("-inf")
    return (expiry is None, expiry or date.max, created_ts, str(batch.id))


def eligible(batches) -> list:
    return [
        b for b in batches
        if getattr(b, "status", ACTIVE_STATUS) == ACTIVE_STATUS
        and int(getattr(b, "quantity_remaining", 0) or 0) > 0
    ]


def plan_allocation(*, product_id, quantity, batches, legacy_stock: int = 0) -> AllocationPlan:
    """
    Compute a FEFO allocation plan.

    Raises:
    - ValidationError          quantity is not a positive integer
    - NoBatchesTrackedError    no eligible batches, legacy counter > 0
    - InsufficientStockError   eligible total < quantity (no partial plan)
    """
    qty = _require_quantity(quantity)

    candidates = sorted(eligible(batches), key=fefo_sort_key)

    if not candidates and int(legacy_stock or 0) > 0:
        raise NoBatchesTrackedError(product_id=product_id, legacy_stock=legacy_stock)

    available = sum(int(b.quantity_remaining) for b in candidates)
    if available < qty:
        raise InsufficientStockError(
            product_id=product_id, available=available, requested=qty
        )

    still_needed = qty
    draws = []
    for batch in candidates:
        if still_needed <= 0:
            break
        take = min(int(batch.quantity_remaining), still_needed)
        draws.append(
            Draw(
                batch_id=batch.id,
                quantity=take,
                expiry_date=getattr(batch, "expiry_date", None),
            )
        )
        still_needed -= take

    return AllocationPlan(product_id=product_id, requested=qty, draws=tuple(draws))
