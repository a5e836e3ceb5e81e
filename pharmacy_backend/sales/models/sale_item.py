# sales/models/sale_item.py

"""
SALE ITEM (LINE SNAPSHOT)

Represents one line of a Sale.

Notes:
- quantity is always in pieces; unit_type (piece/sheet/box) only records
  how the cashier entered it.
- total_price = quantity * unit_price (recomputed on save).
- Lines are never patched in place: an edit deletes and re-creates them
  while the sale is PENDING.
- One controlled enrichment is allowed while the sale is PENDING:
  the batch / expiry snapshot written by sale completion.
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

from products.models import Product, StockBatch

from .sale import Sale


class SaleItem(models.Model):
    UNIT_PIECE = "piece"
    UNIT_SHEET = "sheet"
    UNIT_BOX = "box"

    UNIT_CHOICES = [
        (UNIT_PIECE, "Piece"),
        (UNIT_SHEET, "Sheet"),
        (UNIT_BOX, "Box"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sale = models.ForeignKey(
        Sale,
        on_delete=models.CASCADE,
        related_name="items",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.SET_NULL,
        null=True,
        related_name="sale_items",
    )

    product_name = models.CharField(max_length=255, blank=True, default="")

    quantity = models.PositiveIntegerField(help_text="Quantity in pieces")

    unit_type = models.CharField(max_length=8, choices=UNIT_CHOICES, default=UNIT_PIECE)

    unit_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="Price per piece",
    )

    total_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        editable=False,
    )

    # Single-batch reference: the batch primarily consumed at completion.
    batch = models.ForeignKey(
        StockBatch,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="sale_items",
    )

    # Receipt display only
    expiry_date = models.DateField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["sale", "created_at"], name="saleitem_sale_created_idx"),
            models.Index(fields=["product", "created_at"], name="saleitem_product_created_idx"),
        ]

    _ENRICHMENT_FIELDS = {"batch_id", "expiry_date"}

    def _allow_pending_enrichment_only(self, previous: "SaleItem"):
        if getattr(self.sale, "status", None) != Sale.STATUS_PENDING:
            raise ValidationError(
                "SaleItem records are immutable once the sale is not pending"
            )

        for field in ("sale_id", "product_id", "quantity", "unit_type", "unit_price", "created_at"):
            if getattr(self, field) != getattr(previous, field):
                raise ValidationError(f"SaleItem field '{field}' is immutable")

    def save(self, *args, **kwargs):
        self.total_price = Decimal(self.unit_price) * Decimal(int(self.quantity or 0))

        if not self._state.adding:
            previous = SaleItem.objects.filter(pk=self.pk).first()
            if previous is None:
                raise ValidationError("SaleItem records are immutable")
            self._allow_pending_enrichment_only(previous)

        if not self.product_name and self.product_id:
            self.product_name = getattr(self.product, "name", "") or ""

        super().save(*args, **kwargs)

    @property
    def display_quantity(self) -> int:
        """Quantity expressed in unit_type (for receipts)."""
        product = self.product
        if product is None or self.unit_type == self.UNIT_PIECE:
            return int(self.quantity)
        per_unit = product.pieces_for(1, self.unit_type)
        return int(self.quantity) // per_unit if per_unit else int(self.quantity)

    def __str__(self):
        return f"{self.product_name or self.product_id} x {self.quantity}"
