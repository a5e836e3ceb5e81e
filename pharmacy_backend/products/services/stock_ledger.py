# products/services/stock_ledger.py

"""
STOCK LEDGER SERVICE

Purpose:
- Append one immutable StockMovement per stock mutation.
- Provide read access to movement history by product or by reference (sale).

Rules:
- record_movement() is called AFTER the mutation it describes, inside the
  same atomic unit. A movement is never written for a change that did not
  happen.
- The ledger is read-only for every other component.
"""

from __future__ import annotations

from collections import OrderedDict, defaultdict

from django.db.models import F, Sum

from products.models import StockMovement
from products.services.fefo_allocator import Draw

# Note on SALE_UNDO movements that return a batchless (legacy) draw into a
# batch. outstanding_sale_draws nets them against the batchless SALE out.
LEGACY_DRAW_NOTE = "legacy draw"


def record_movement(
    *,
    product_id,
    batch_id=None,
    direction: str,
    quantity: int,
    reason: str,
    reference_type: str = "",
    reference_id="",
    actor_id,
    stock_before: int,
    stock_after: int,
    unit_cost_snapshot=None,
    note: str = "",
) -> StockMovement:
    return StockMovement.objects.create(
        product_id=product_id,
        batch_id=batch_id,
        direction=direction,
        quantity=int(quantity),
        reason=reason,
        reference_type=reference_type or "",
        reference_id=str(reference_id or ""),
        actor_id=str(actor_id),
        stock_before=int(stock_before),
        stock_after=int(stock_after),
        unit_cost_snapshot=unit_cost_snapshot,
        note=(note or "")[:255],
    )


# ============================================================
# READS
# ============================================================

def movements_for_product(product_id):
    return StockMovement.objects.filter(product_id=product_id).order_by("created_at", "id")


def movements_for_reference(reference_id, reference_type: str | None = None):
    qs = StockMovement.objects.filter(reference_id=str(reference_id))
    if reference_type:
        qs = qs.filter(reference_type=reference_type)
    return qs.order_by("created_at", "id")


def outstanding_sale_draws(sale_id) -> "OrderedDict[object, list[Draw]]":
    """
    Per product, the batch draws still deducted for a sale.

    outstanding(product, batch) = SALE outs - SALE_UNDO restores
    recorded against the sale id. Restores noted LEGACY_DRAW_NOTE count
    against the batchless draw, whatever batch they landed in. A sale
    that was completed, edited and completed again nets to the latest
    completion only.
    """
    ref = str(sale_id)

    restored = defaultdict(int)
    undo_rows = (
        StockMovement.objects
        .filter(reference_id=ref, reason=StockMovement.Reason.SALE_UNDO)
        .values("product_id", "batch_id", "note")
        .annotate(total_qty=Sum("quantity"))
    )
    for row in undo_rows:
        batch_id = None if row["note"] == LEGACY_DRAW_NOTE else row["batch_id"]
        restored[(row["product_id"], batch_id)] += int(row["total_qty"] or 0)

    sold = OrderedDict()
    sale_rows = (
        StockMovement.objects
        .filter(
            reference_id=ref,
            reference_type=StockMovement.ReferenceType.SALE,
            reason=StockMovement.Reason.SALE,
            direction=StockMovement.Direction.OUT,
        )
        .order_by("created_at", "id")
        .values_list("product_id", "batch_id", "quantity")
    )
    for product_id, batch_id, qty in sale_rows:
        key = (product_id, batch_id)
        sold[key] = sold.get(key, 0) + int(qty)

    outstanding = OrderedDict()
    for (product_id, batch_id), qty in sold.items():
        remaining = qty - restored.get((product_id, batch_id), 0)
        if remaining <= 0:
            continue
        outstanding.setdefault(product_id, []).append(
            Draw(batch_id=batch_id, quantity=remaining)
        )
    return outstanding


def reconstruct_stock_on_hand(product_id) -> int | None:
    """
    Rebuild a product's stock projection from the ledger alone.

    opening balance (stock_before of the first movement) + sum of deltas.
    Returns None when the product has no movements.
    """
    qs = movements_for_product(product_id)
    first = qs.first()
    if first is None:
        return None

    delta = qs.aggregate(total=Sum(F("stock_after") - F("stock_before")))["total"] or 0
    return int(first.stock_before) + int(delta)
