# products/models/stock_movement.py

"""
CANONICAL INVENTORY LEDGER

Immutable inventory ledger entry. One row per causal quantity change.

GUARANTEES:
- Append-only (no updates, no deletes)
- Created ONCE, never edited
- stock_after is consistent with stock_before, direction and quantity
- Direction validated against reason
- product/batch references survive deletion of the referenced rows
  (db_constraint=False), so history can always be reconstructed

Snapshot semantics:
- stock_before / stock_after are the product's stock_on_hand projection
  immediately before and after the mutation.
- ADJUSTMENT rows describe status/bookkeeping moves: the sellable projection
  may go up (+quantity), down (-quantity) or not change at all (0).
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from .product import Product
from .stock_batch import StockBatch


class StockMovement(models.Model):
    class Direction(models.TextChoices):
        IN = "in", "Stock In"
        OUT = "out", "Stock Out"
        ADJUSTMENT = "adjustment", "Adjustment"

    class Reason(models.TextChoices):
        RECEIPT = "receipt", "Stock Receipt"
        SALE = "sale", "Sale"
        SALE_UNDO = "sale_undo", "Sale Reversal"
        EXPIRY = "expiry", "Expired Stock"
        QUARANTINE = "quarantine", "Quarantine"
        LEGACY_MIGRATION = "legacy_migration", "Legacy Stock Adoption"

    class ReferenceType(models.TextChoices):
        SALE = "sale", "Sale"
        SALE_UNDO = "sale_undo", "Sale Undo"
        SALE_EDIT = "sale_edit", "Sale Edit"
        BATCH = "batch", "Batch"

    REASON_TO_DIRECTIONS = {
        Reason.RECEIPT: {Direction.IN},
        Reason.SALE: {Direction.OUT},
        Reason.SALE_UNDO: {Direction.IN, Direction.ADJUSTMENT},
        Reason.EXPIRY: {Direction.ADJUSTMENT},
        Reason.QUARANTINE: {Direction.ADJUSTMENT},
        Reason.LEGACY_MIGRATION: {Direction.ADJUSTMENT},
    }

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        related_name="stock_movements",
    )
    batch = models.ForeignKey(
        StockBatch,
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="stock_movements",
        help_text="NULL for legacy flat-counter movements",
    )

    direction = models.CharField(max_length=16, choices=Direction.choices)
    reason = models.CharField(max_length=32, choices=Reason.choices)

    quantity = models.PositiveIntegerField()

    reference_type = models.CharField(
        max_length=32, choices=ReferenceType.choices, blank=True, default=""
    )
    reference_id = models.CharField(max_length=64, blank=True, default="")

    actor_id = models.CharField(max_length=64)

    stock_before = models.PositiveIntegerField()
    stock_after = models.PositiveIntegerField()

    unit_cost_snapshot = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        default=None,
        help_text="Unit cost snapshot from batch at movement time (immutable).",
    )

    note = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["product", "created_at"], name="movement_product_created_idx"),
            models.Index(fields=["reference_type", "reference_id"], name="movement_reference_idx"),
            models.Index(fields=["batch", "created_at"], name="movement_batch_created_idx"),
        ]

    def clean(self):
        if not self.quantity or self.quantity <= 0:
            raise ValidationError({"quantity": "quantity must be greater than zero"})

        if not (self.actor_id or "").strip():
            raise ValidationError({"actor_id": "actor_id is required"})

        allowed = self.REASON_TO_DIRECTIONS.get(self.reason)
        if allowed is not None and self.direction not in allowed:
            raise ValidationError(
                f"{self.reason} cannot be recorded with direction={self.direction}"
            )

        before = int(self.stock_before)
        after = int(self.stock_after)
        qty = int(self.quantity)

        if self.direction == self.Direction.IN:
            consistent = after == before + qty
        elif self.direction == self.Direction.OUT:
            consistent = after == before - qty
        else:
            consistent = (after - before) in (qty, -qty, 0)

        if not consistent:
            raise ValidationError(
                f"stock_after={after} is inconsistent with stock_before={before}, "
                f"direction={self.direction}, quantity={qty}"
            )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("StockMovement records are immutable")

        self.full_clean(exclude=["product", "batch"])
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "StockMovement records are immutable and cannot be deleted"
        )

    @property
    def delta(self) -> int:
        return int(self.stock_after) - int(self.stock_before)

    @property
    def total_cost(self) -> Decimal:
        unit_cost = (
            self.unit_cost_snapshot
            if self.unit_cost_snapshot is not None
            else Decimal("0.00")
        )
        return unit_cost * Decimal(int(self.quantity or 0))

    def __str__(self):
        return f"{self.product_id} | {self.reason} | {self.direction} {self.quantity}"
