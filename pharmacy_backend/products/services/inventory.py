# products/services/inventory.py

"""
======================================================
PATH: products/services/inventory.py
======================================================
INVENTORY CORE SERVICES

Purpose:
- Canonical stock receipt: create StockBatch + RECEIPT movement.
- Legacy adoption: turn a flat stock_on_hand counter into an opening batch
  the first time a legacy product is batch-tracked.
- Maintenance: expiry sweep and manual quarantine. These change batch
  status only, never quantities.

Rules:
- Quantities are integer pieces.
- Every mutation is followed by a ledger movement in the same atomic unit.
- Product.stock_on_hand is re-synced from batches after every mutation.
"""

from __future__ import annotations

import logging

from django.db import transaction
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.batch_store import (
    expire_batch,
    expire_overdue_batches,
    generate_batch_number,
    has_batch_history,
    project_stock_on_hand,
    sync_stock_on_hand,
)
from products.services.exceptions import ProductNotFoundError
from products.services.stock_ledger import record_movement
from products.services.validation import field_error, require_actor, require_positive_int

logger = logging.getLogger(__name__)


# ============================================================
# RECEIVING
# ============================================================

@transaction.atomic
def adopt_legacy_stock(*, product, actor_id) -> StockBatch | None:
    """
    Move a legacy flat counter into an undated opening batch.

    The projection does not change (counter N -> active batch N), so the
    movement is a zero-delta ADJUSTMENT. No-op for batch-tracked products
    or an empty counter.
    """
    actor = require_actor(actor_id)
    product_id = getattr(product, "pk", product)

    locked = Product.objects.select_for_update().filter(pk=product_id).first()
    if locked is None:
        raise ProductNotFoundError(product_id=product_id)

    if has_batch_history(product_id):
        return None

    legacy_qty = int(locked.stock_on_hand or 0)
    if legacy_qty <= 0:
        return None

    batch = StockBatch.objects.create(
        product=locked,
        batch_number=generate_batch_number(),
        expiry_date=None,
        quantity_received=legacy_qty,
        quantity_remaining=legacy_qty,
        unit_cost=None,
    )

    stock_after = sync_stock_on_hand(product_id)

    record_movement(
        product_id=product_id,
        batch_id=batch.pk,
        direction=StockMovement.Direction.ADJUSTMENT,
        quantity=legacy_qty,
        reason=StockMovement.Reason.LEGACY_MIGRATION,
        reference_type=StockMovement.ReferenceType.BATCH,
        reference_id=batch.pk,
        actor_id=actor,
        stock_before=legacy_qty,
        stock_after=stock_after,
        note="opening batch for legacy stock",
    )

    logger.info(
        "Legacy stock adopted into batch",
        extra={"product_id": str(product_id), "batch_id": str(batch.pk), "quantity": legacy_qty},
    )
    return batch


@transaction.atomic
def receive_stock(
    *,
    product,
    quantity,
    actor_id,
    expiry_date=None,
    unit_cost=None,
    batch_number: str | None = None,
) -> StockBatch:
    """
    CANONICAL STOCK RECEIPT

    Creates:
    - StockBatch (quantity_remaining initialized to quantity_received)
    - RECEIPT StockMovement (IN)

    The first receipt of a legacy product adopts its counter first, so the
    old stock is not lost when the projection switches to batches.
    """
    actor = require_actor(actor_id)
    qty = require_positive_int(quantity, field_name="quantity")
    product_id = getattr(product, "pk", product)

    if expiry_date and expiry_date < timezone.localdate():
        raise field_error(
            "expiry_date",
            "Cannot receive stock that is already expired",
            code="expired_on_receipt",
        )

    locked = Product.objects.select_for_update().filter(pk=product_id).first()
    if locked is None:
        raise ProductNotFoundError(product_id=product_id)

    expire_overdue_batches(product_id, actor_id=actor)
    adopt_legacy_stock(product=locked, actor_id=actor)

    bn = (batch_number or "").strip() or generate_batch_number()
    stock_before = project_stock_on_hand(product_id)

    batch = StockBatch.objects.create(
        product=locked,
        batch_number=bn,
        expiry_date=expiry_date,
        quantity_received=qty,
        quantity_remaining=qty,
        unit_cost=unit_cost,
    )

    stock_after = sync_stock_on_hand(product_id)

    record_movement(
        product_id=product_id,
        batch_id=batch.pk,
        direction=StockMovement.Direction.IN,
        quantity=qty,
        reason=StockMovement.Reason.RECEIPT,
        reference_type=StockMovement.ReferenceType.BATCH,
        reference_id=batch.pk,
        actor_id=actor,
        stock_before=stock_before,
        stock_after=stock_after,
        unit_cost_snapshot=batch.unit_cost,
    )

    logger.info(
        "Stock received",
        extra={"product_id": str(product_id), "batch_id": str(batch.pk), "quantity": qty},
    )
    return batch


# ============================================================
# MAINTENANCE
# ============================================================

@transaction.atomic
def mark_expired_batches(*, actor_id, today=None) -> list:
    """
    Expiry sweep: active batches past their expiry date with stock left
    become EXPIRED. Quantities are untouched; the projection drops.
    Idempotent.
    """
    actor = require_actor(actor_id)
    today = today or timezone.localdate()

    batches = list(
        StockBatch.objects.select_for_update()
        .filter(
            status=StockBatch.Status.ACTIVE,
            quantity_remaining__gt=0,
            expiry_date__lt=today,
        )
        .order_by("product_id", "expiry_date", "created_at")
    )

    for batch in batches:
        expire_batch(batch, actor_id=actor)

    if batches:
        logger.info(
            "Expired batches swept",
            extra={"count": len(batches), "as_of": today.isoformat()},
        )
    return batches


@transaction.atomic
def quarantine_batch(*, batch_id, actor_id, reason: str = "") -> StockBatch:
    """
    Manual hold on a batch. Stock leaves the sellable projection but stays
    on the batch. Idempotent for already-quarantined batches.
    """
    actor = require_actor(actor_id)

    batch = StockBatch.objects.select_for_update().filter(pk=batch_id).first()
    if batch is None:
        raise field_error("batch_id", f"Batch {batch_id} not found", code="batch_not_found")

    expire_overdue_batches(batch.product_id, actor_id=actor)
    batch.refresh_from_db()

    if batch.status == StockBatch.Status.QUARANTINED:
        return batch

    if batch.status == StockBatch.Status.DEPLETED or int(batch.quantity_remaining) <= 0:
        raise field_error(
            "batch_id", "A depleted batch cannot be quarantined", code="batch_depleted"
        )

    stock_before = project_stock_on_hand(batch.product_id)
    StockBatch.objects.filter(pk=batch.pk).update(status=StockBatch.Status.QUARANTINED)
    stock_after = sync_stock_on_hand(batch.product_id)

    record_movement(
        product_id=batch.product_id,
        batch_id=batch.pk,
        direction=StockMovement.Direction.ADJUSTMENT,
        quantity=batch.quantity_remaining,
        reason=StockMovement.Reason.QUARANTINE,
        reference_type=StockMovement.ReferenceType.BATCH,
        reference_id=batch.pk,
        actor_id=actor,
        stock_before=stock_before,
        stock_after=stock_after,
        unit_cost_snapshot=batch.unit_cost,
        note=reason,
    )

    logger.info(
        "Batch quarantined",
        extra={"batch_id": str(batch.pk), "product_id": str(batch.product_id), "reason": reason},
    )

    batch.refresh_from_db()
    return batch
