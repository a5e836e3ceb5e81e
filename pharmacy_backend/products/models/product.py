# products/models/product.py

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q


class Product(models.Model):
    """
    Represents a sellable product.

    STOCK MODEL (IMPORTANT):
    - Batch rows (StockBatch) are the source of truth for stock.
    - stock_on_hand is a cached projection: sum of quantity_remaining over
      ACTIVE batches. It is written ONLY by products.services.batch_store.
    - Products with no batch history at all are "legacy" products:
      stock_on_hand is their only stock record (flat counter path).

    UNITS:
    - Stock is always counted in pieces.
    - pieces_per_sheet / sheets_per_box are presentation multipliers
      used to convert sheet/box quantities at the point of sale.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)

    # Selling price per piece
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)

    pieces_per_sheet = models.PositiveIntegerField(default=1)
    sheets_per_box = models.PositiveIntegerField(default=1)

    # Projection (service-managed only)
    stock_on_hand = models.PositiveIntegerField(default=0)

    low_stock_threshold = models.PositiveIntegerField(default=10)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["name"], name="product_name_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(pieces_per_sheet__gte=1),
                name="chk_product_pieces_per_sheet_gte_one",
            ),
            models.CheckConstraint(
                condition=Q(sheets_per_box__gte=1),
                name="chk_product_sheets_per_box_gte_one",
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def clean(self):
        if self.unit_price is None or Decimal(self.unit_price) <= 0:
            raise ValidationError({"unit_price": "Unit price must be greater than zero"})

        if not self.pieces_per_sheet or self.pieces_per_sheet < 1:
            raise ValidationError({"pieces_per_sheet": "pieces_per_sheet must be at least 1"})

        if not self.sheets_per_box or self.sheets_per_box < 1:
            raise ValidationError({"sheets_per_box": "sheets_per_box must be at least 1"})

    # -------------------------------------------------
    # UNIT CONVERSION
    # -------------------------------------------------

    @property
    def pieces_per_box(self) -> int:
        return int(self.pieces_per_sheet or 1) * int(self.sheets_per_box or 1)

    def pieces_for(self, quantity: int, unit_type: str = "piece") -> int:
        """
        Convert a quantity in the given unit into pieces.
        """
        qty = int(quantity)
        if unit_type == "sheet":
            return qty * int(self.pieces_per_sheet or 1)
        if unit_type == "box":
            return qty * self.pieces_per_box
        if unit_type == "piece":
            return qty
        raise ValidationError({"unit_type": f"Unknown unit type '{unit_type}'"})

    @property
    def is_low_stock(self) -> bool:
        return int(self.stock_on_hand or 0) <= int(self.low_stock_threshold or 0)
