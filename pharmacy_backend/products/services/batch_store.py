# products/services/batch_store.py

"""
BATCH STORE

Purpose:
- Apply an AllocationPlan to batch rows (reserve_and_deduct) and its
  inverse (restore), recording a ledger movement after every mutation.
- Expose FEFO-ordered batch queries for the allocator.
- Keep Product.stock_on_hand as a projection of ACTIVE batch quantities.

Rules:
- Apply-time re-validation happens in the UPDATE itself
  (quantity_remaining >= qty AND status = active). A draw that no longer
  fits raises StockConflictError and the whole plan rolls back.
- A restore never fails because a batch disappeared: the draw is skipped
  and reported as a PartialRestoreWarning.
- Products that never had a batch keep a flat legacy counter; the
  *_legacy functions are the only writers of that counter. A legacy draw
  restored after adoption goes back into batches, never into the counter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.db import transaction
from django.db.models import F, Q, Sum
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.exceptions import (
    InsufficientStockError,
    ProductNotFoundError,
    StockConflictError,
)
from products.services.fefo_allocator import AllocationPlan, Draw
from products.services.stock_ledger import LEGACY_DRAW_NOTE, record_movement

logger = logging.getLogger(__name__)

BATCH_NUMBER_PREFIX = "BT"


@dataclass(frozen=True)
class PartialRestoreWarning:
    product_id: object
    reason: str
    batch_id: object = None
    quantity: int = 0
    message: str = ""

    def to_dict(self) -> dict:
        return {
            "product_id": str(self.product_id) if self.product_id else None,
            "batch_id": str(self.batch_id) if self.batch_id else None,
            "quantity": int(self.quantity),
            "reason": self.reason,
            "message": self.message,
        }


@dataclass
class RestoreOutcome:
    movements: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def restored_quantity(self) -> int:
        return sum(int(m.quantity) for m in self.movements)


# ============================================================
# QUERIES + PROJECTION
# ============================================================

def has_batch_history(product_id) -> bool:
    return StockBatch.objects.filter(product_id=product_id).exists()


def generate_batch_number(*, today=None) -> str:
    """
    BT<MMDDYY>-<n>, n being the next sequence number for the day.
    """
    today = today or timezone.localdate()
    prefix = f"{BATCH_NUMBER_PREFIX}{today:%m%d%y}-"

    highest = 0
    for number in StockBatch.objects.filter(batch_number__startswith=prefix).values_list(
        "batch_number", flat=True
    ):
        suffix = number[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))

    return f"{prefix}{highest + 1}"


def eligible_batches(product, *, today=None, for_update: bool = False):
    """
    Sellable batches in FEFO order: active, remaining > 0, not past expiry.
    Undated batches sort last.
    """
    today = today or timezone.localdate()
    product_id = getattr(product, "pk", product)

    qs = StockBatch.objects.filter(
        product_id=product_id,
        status=StockBatch.Status.ACTIVE,
        quantity_remaining__gt=0,
    ).filter(Q(expiry_date__isnull=True) | Q(expiry_date__gte=today))

    if for_update:
        qs = qs.select_for_update()

    return qs.order_by(F("expiry_date").asc(nulls_last=True), "created_at", "id")


def available_quantity(product, *, today=None) -> int:
    """
    Advisory availability: eligible batch total, or the legacy counter for
    products that were never batch-tracked.
    """
    product_id = getattr(product, "pk", product)
    if not has_batch_history(product_id):
        return int(
            Product.objects.filter(pk=product_id)
            .values_list("stock_on_hand", flat=True)
            .first()
            or 0
        )
    total = eligible_batches(product_id, today=today).aggregate(total=Sum("quantity_remaining"))
    return int(total["total"] or 0)


def project_stock_on_hand(product_id, *, today=None) -> int:
    """
    Sellable stock: ACTIVE batches not past their expiry date, or the
    legacy counter for products that were never batch-tracked.
    """
    if not has_batch_history(product_id):
        return int(
            Product.objects.filter(pk=product_id)
            .values_list("stock_on_hand", flat=True)
            .first()
            or 0
        )
    today = today or timezone.localdate()
    total = (
        StockBatch.objects.filter(
            product_id=product_id,
            status__in=StockBatch.SELLABLE_STATUSES,
        )
        .filter(Q(expiry_date__isnull=True) | Q(expiry_date__gte=today))
        .aggregate(total=Sum("quantity_remaining"))
    )
    return int(total["total"] or 0)


def _active_total(product_id) -> int:
    total = StockBatch.objects.filter(
        product_id=product_id,
        status__in=StockBatch.SELLABLE_STATUSES,
    ).aggregate(total=Sum("quantity_remaining"))
    return int(total["total"] or 0)


def sync_stock_on_hand(product_id) -> int:
    """Write the batch projection back to Product.stock_on_hand."""
    value = project_stock_on_hand(product_id)
    Product.objects.filter(pk=product_id).update(stock_on_hand=value)
    return value


def _lock_product(product_id) -> Product:
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise ProductNotFoundError(product_id=product_id)
    return product


# ============================================================
# EXPIRY
# ============================================================

def expire_batch(batch, *, actor_id) -> StockMovement:
    """
    Mark one locked ACTIVE batch EXPIRED and record the EXPIRY adjustment.

    stock_before/after are taken from the undated ACTIVE total so that the
    drop is written to the ledger even when the projection already hides
    the batch by date.
    """
    stock_before = _active_total(batch.product_id)
    StockBatch.objects.filter(pk=batch.pk).update(status=StockBatch.Status.EXPIRED)
    stock_after = _active_total(batch.product_id)
    sync_stock_on_hand(batch.product_id)

    movement = record_movement(
        product_id=batch.product_id,
        batch_id=batch.pk,
        direction=StockMovement.Direction.ADJUSTMENT,
        quantity=batch.quantity_remaining,
        reason=StockMovement.Reason.EXPIRY,
        reference_type=StockMovement.ReferenceType.BATCH,
        reference_id=batch.pk,
        actor_id=actor_id,
        stock_before=stock_before,
        stock_after=stock_after,
        unit_cost_snapshot=batch.unit_cost,
    )
    batch.status = StockBatch.Status.EXPIRED
    return movement


def expire_overdue_batches(product_id, *, actor_id, today=None) -> list:
    """
    Expire this product's ACTIVE batches that are past their expiry date.
    Runs at the start of every stock mutation so the projection never
    drops without a ledger movement.
    """
    today = today or timezone.localdate()
    overdue = list(
        StockBatch.objects.select_for_update()
        .filter(
            product_id=product_id,
            status=StockBatch.Status.ACTIVE,
            quantity_remaining__gt=0,
            expiry_date__lt=today,
        )
        .order_by("expiry_date", "created_at", "id")
    )
    for batch in overdue:
        expire_batch(batch, actor_id=actor_id)
    return overdue


# ============================================================
# DEDUCTION
# ============================================================

def reserve_and_deduct(
    plan: AllocationPlan,
    *,
    actor_id,
    reference_type: str = StockMovement.ReferenceType.SALE,
    reference_id="",
) -> list:
    """
    Apply a FEFO plan. All-or-nothing across every draw of the plan.

    Returns the OUT/SALE movements created (one per draw).
    """
    movements = []

    with transaction.atomic():
        _lock_product(plan.product_id)
        expire_overdue_batches(plan.product_id, actor_id=actor_id)
        stock_before = project_stock_on_hand(plan.product_id)

        for draw in plan.draws:
            batch = (
                StockBatch.objects.select_for_update()
                .filter(pk=draw.batch_id, product_id=plan.product_id)
                .first()
            )

            updated = 0
            if batch is not None:
                updated = StockBatch.objects.filter(
                    pk=draw.batch_id,
                    product_id=plan.product_id,
                    status=StockBatch.Status.ACTIVE,
                    quantity_remaining__gte=draw.quantity,
                ).update(quantity_remaining=F("quantity_remaining") - draw.quantity)

            if updated != 1:
                remaining = None if batch is None else int(batch.quantity_remaining)
                logger.warning(
                    "Stock conflict while applying allocation",
                    extra={
                        "product_id": str(plan.product_id),
                        "batch_id": str(draw.batch_id),
                        "requested": draw.quantity,
                        "remaining": remaining,
                        "reference_id": str(reference_id),
                    },
                )
                raise StockConflictError(
                    product_id=plan.product_id,
                    batch_id=draw.batch_id,
                    requested=draw.quantity,
                    remaining=remaining,
                )

            StockBatch.objects.filter(
                pk=draw.batch_id,
                quantity_remaining=0,
                status=StockBatch.Status.ACTIVE,
            ).update(status=StockBatch.Status.DEPLETED)

            stock_after = sync_stock_on_hand(plan.product_id)

            movements.append(
                record_movement(
                    product_id=plan.product_id,
                    batch_id=draw.batch_id,
                    direction=StockMovement.Direction.OUT,
                    quantity=draw.quantity,
                    reason=StockMovement.Reason.SALE,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    actor_id=actor_id,
                    stock_before=stock_before,
                    stock_after=stock_after,
                    unit_cost_snapshot=batch.unit_cost,
                )
            )
            stock_before = stock_after

    return movements


def deduct_legacy(
    product_id,
    quantity: int,
    *,
    actor_id,
    reference_type: str = StockMovement.ReferenceType.SALE,
    reference_id="",
) -> StockMovement:
    """
    Flat-counter deduction for products without batch tracking.
    """
    qty = int(quantity)

    with transaction.atomic():
        product = _lock_product(product_id)
        stock_before = int(product.stock_on_hand or 0)

        if stock_before < qty:
            raise InsufficientStockError(
                product_id=product_id, available=stock_before, requested=qty
            )

        updated = Product.objects.filter(
            pk=product_id, stock_on_hand__gte=qty
        ).update(stock_on_hand=F("stock_on_hand") - qty)

        if updated != 1:
            raise StockConflictError(
                product_id=product_id, requested=qty, remaining=stock_before
            )

        return record_movement(
            product_id=product_id,
            batch_id=None,
            direction=StockMovement.Direction.OUT,
            quantity=qty,
            reason=StockMovement.Reason.SALE,
            reference_type=reference_type,
            reference_id=reference_id,
            actor_id=actor_id,
            stock_before=stock_before,
            stock_after=stock_before - qty,
        )


# ============================================================
# RESTORATION
# ============================================================

def restore(
    plan: AllocationPlan,
    *,
    actor_id,
    reference_type: str = StockMovement.ReferenceType.SALE_UNDO,
    reference_id="",
) -> RestoreOutcome:
    """
    Inverse of reserve_and_deduct.

    - Missing batch            -> skipped, PartialRestoreWarning
    - Depleted batch           -> back to active
    - Expired/quarantined batch-> quantity returned, recorded as ADJUSTMENT
                                  (not sellable, projection unchanged)
    - Draw without batch       -> legacy counter restore, or the opening
                                  batch once the product is batch-tracked
    """
    outcome = RestoreOutcome()

    with transaction.atomic():
        _lock_product(plan.product_id)
        expire_overdue_batches(plan.product_id, actor_id=actor_id)

        for draw in plan.draws:
            if draw.batch_id is None:
                _restore_legacy_draw(
                    plan.product_id,
                    draw,
                    outcome=outcome,
                    actor_id=actor_id,
                    reference_type=reference_type,
                    reference_id=reference_id,
                )
                continue

            batch = (
                StockBatch.objects.select_for_update()
                .filter(pk=draw.batch_id, product_id=plan.product_id)
                .first()
            )
            if batch is None:
                outcome.warnings.append(
                    PartialRestoreWarning(
                        product_id=plan.product_id,
                        batch_id=draw.batch_id,
                        quantity=draw.quantity,
                        reason="batch_not_found",
                        message="Batch no longer exists; quantity not restored.",
                    )
                )
                continue

            qty = min(int(draw.quantity), _headroom(batch))
            if qty < draw.quantity:
                outcome.warnings.append(
                    PartialRestoreWarning(
                        product_id=plan.product_id,
                        batch_id=draw.batch_id,
                        quantity=int(draw.quantity) - qty,
                        reason="exceeds_received",
                        message="Restore would exceed the quantity received for this batch.",
                    )
                )
            if qty <= 0:
                continue

            outcome.movements.append(
                _credit_batch(
                    batch,
                    qty,
                    actor_id=actor_id,
                    reference_type=reference_type,
                    reference_id=reference_id,
                )
            )

    return outcome


def _headroom(batch) -> int:
    return int(batch.quantity_received) - int(batch.quantity_remaining)


def _credit_batch(batch, qty: int, *, actor_id, reference_type, reference_id, note=None):
    """Return qty pieces to a locked batch and record the SALE_UNDO movement."""
    stock_before = project_stock_on_hand(batch.product_id)

    status = batch.status
    if status == StockBatch.Status.DEPLETED:
        status = StockBatch.Status.ACTIVE

    StockBatch.objects.filter(pk=batch.pk).update(
        quantity_remaining=F("quantity_remaining") + qty,
        status=status,
    )

    stock_after = sync_stock_on_hand(batch.product_id)
    direction = (
        StockMovement.Direction.IN
        if status in StockBatch.SELLABLE_STATUSES
        else StockMovement.Direction.ADJUSTMENT
    )
    if note is None:
        note = "" if direction == StockMovement.Direction.IN else f"returned to {status} batch"

    return record_movement(
        product_id=batch.product_id,
        batch_id=batch.pk,
        direction=direction,
        quantity=qty,
        reason=StockMovement.Reason.SALE_UNDO,
        reference_type=reference_type,
        reference_id=reference_id,
        actor_id=actor_id,
        stock_before=stock_before,
        stock_after=stock_after,
        unit_cost_snapshot=batch.unit_cost,
        note=note,
    )


def _opening_batch(product_id):
    """The undated batch a legacy counter was adopted into, if it still exists."""
    batch_id = (
        StockMovement.objects.filter(
            product_id=product_id,
            reason=StockMovement.Reason.LEGACY_MIGRATION,
        )
        .order_by("created_at")
        .values_list("batch_id", flat=True)
        .first()
    )
    if batch_id is None:
        return None
    return StockBatch.objects.select_for_update().filter(pk=batch_id).first()


def _restore_legacy_draw(product_id, draw: Draw, *, outcome, actor_id, reference_type, reference_id):
    qty = int(draw.quantity)

    if has_batch_history(product_id):
        # Counter is a batch projection now: credit the opening batch, and
        # put whatever it cannot hold into a fresh undated batch.
        opening = _opening_batch(product_id)
        credited = 0
        if opening is not None:
            credited = min(qty, _headroom(opening))
            if credited > 0:
                outcome.movements.append(
                    _credit_batch(
                        opening,
                        credited,
                        actor_id=actor_id,
                        reference_type=reference_type,
                        reference_id=reference_id,
                        note=LEGACY_DRAW_NOTE,
                    )
                )

        leftover = qty - credited
        if leftover > 0:
            batch = StockBatch.objects.create(
                product_id=product_id,
                batch_number=generate_batch_number(),
                expiry_date=None,
                quantity_received=leftover,
                quantity_remaining=0,
                status=StockBatch.Status.DEPLETED,
                unit_cost=None,
            )
            outcome.movements.append(
                _credit_batch(
                    batch,
                    leftover,
                    actor_id=actor_id,
                    reference_type=reference_type,
                    reference_id=reference_id,
                    note=LEGACY_DRAW_NOTE,
                )
            )

        logger.info(
            "Legacy draw restored into batches",
            extra={
                "product_id": str(product_id),
                "quantity": qty,
                "opening_batch_credit": credited,
                "reference_id": str(reference_id),
            },
        )
        return

    stock_before = project_stock_on_hand(product_id)
    Product.objects.filter(pk=product_id).update(
        stock_on_hand=F("stock_on_hand") + qty
    )

    outcome.movements.append(
        record_movement(
            product_id=product_id,
            batch_id=None,
            direction=StockMovement.Direction.IN,
            quantity=qty,
            reason=StockMovement.Reason.SALE_UNDO,
            reference_type=reference_type,
            reference_id=reference_id,
            actor_id=actor_id,
            stock_before=stock_before,
            stock_after=stock_before + qty,
        )
    )
