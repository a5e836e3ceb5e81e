# products/models/stock_batch.py

"""
STOCK BATCH (DELIVERY-BASED INVENTORY)

Represents ONE received lot of a product.

CANONICAL MODEL:
- quantity_received is immutable after creation
- quantity_remaining is mutated ONLY via products.services.batch_store
- 0 <= quantity_remaining <= quantity_received (DB-enforced)
- expiry_date NULL means the lot never expires (consumed last by FEFO)
- status active/depleted is derived from quantity_remaining;
  expired/quarantined are set by maintenance services and are sticky
- Non-deletable once referenced by StockMovement (audit safety)
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .product import Product


class StockBatch(models.Model):
    class Status(models.TextChoices):
        ACTIVE = "active", "Active"
        QUARANTINED = "quarantined", "Quarantined"
        EXPIRED = "expired", "Expired"
        DEPLETED = "depleted", "Depleted"

    # Statuses whose remaining quantity counts toward stock_on_hand
    SELLABLE_STATUSES = (Status.ACTIVE,)

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="stock_batches",
    )

    batch_number = models.CharField(
        max_length=128,
        help_text="Human-readable lot reference (BT<MMDDYY>-<n> when generated)",
    )

    expiry_date = models.DateField(null=True, blank=True)

    quantity_received = models.PositiveIntegerField(
        help_text="Quantity delivered (immutable)"
    )

    quantity_remaining = models.PositiveIntegerField(
        default=0,
        help_text="Remaining quantity (service-managed only)",
    )

    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        default=None,
        help_text="Unit purchase cost for this lot (may be null for adopted legacy stock).",
    )

    status = models.CharField(
        max_length=16,
        choices=Status.choices,
        default=Status.ACTIVE,
    )

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["expiry_date", "created_at"]
        indexes = [
            models.Index(
                fields=["product", "status", "expiry_date"],
                name="batch_product_status_exp_idx",
            ),
            models.Index(fields=["created_at"], name="batch_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["product", "batch_number"],
                name="unique_batch_number_per_product",
            ),
            models.CheckConstraint(
                condition=Q(quantity_received__gt=0),
                name="chk_stockbatch_qty_received_gt_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__lte=F("quantity_received")),
                name="chk_stockbatch_remaining_lte_received",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        if self.quantity_received is None or self.quantity_received <= 0:
            raise ValidationError(
                {"quantity_received": "quantity_received must be greater than zero"}
            )

        if self.quantity_remaining is None or self.quantity_remaining < 0:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot be negative"}
            )

        if self.quantity_remaining > self.quantity_received:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot exceed quantity_received"}
            )

        if self.unit_cost is not None and self.unit_cost <= Decimal("0.00"):
            raise ValidationError({"unit_cost": "unit_cost must be greater than zero"})

    # -------------------------------------------------
    # IMMUTABILITY + DERIVED STATE
    # -------------------------------------------------

    def _derive_status(self):
        if self.status in (self.Status.EXPIRED, self.Status.QUARANTINED):
            return
        self.status = (
            self.Status.ACTIVE
            if int(self.quantity_remaining or 0) > 0
            else self.Status.DEPLETED
        )

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = StockBatch.objects.only("quantity_received").get(pk=self.pk)
            if self.quantity_received != original.quantity_received:
                raise ValidationError({"quantity_received": "quantity_received is immutable"})

        self._derive_status()

        update_fields = kwargs.get("update_fields")
        if update_fields is not None and "quantity_remaining" in update_fields:
            kwargs["update_fields"] = set(update_fields) | {"status"}

        self.full_clean(validate_unique=self._state.adding)
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        from products.models.stock_movement import StockMovement

        if StockMovement.objects.filter(batch_id=self.pk).exists():
            raise ValidationError("Cannot delete StockBatch: it has StockMovement audit history.")
        return super().delete(*args, **kwargs)

    # -------------------------------------------------
    # READ-ONLY HELPERS
    # -------------------------------------------------

    @property
    def is_sellable(self) -> bool:
        return self.status in self.SELLABLE_STATUSES

    def is_past_expiry(self, today=None) -> bool:
        if self.expiry_date is None:
            return False
        return self.expiry_date < (today or timezone.localdate())

    def __str__(self):
        product_name = getattr(self.product, "name", "Product")
        return f"{product_name} | Batch {self.batch_number}"
