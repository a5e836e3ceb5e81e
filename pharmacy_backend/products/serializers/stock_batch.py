# products/serializers/stock_batch.py
"""
======================================================
PATH: products/serializers/stock_batch.py
======================================================
STOCK BATCH SERIALIZERS

Purpose:
- Read shape for StockBatch.
- Input shape for stock receipt (POST) and quarantine actions.

Rules:
- Quantities and status are service-managed; never writable here.
- batch_number is OPTIONAL on receipt: blank -> generated BT<MMDDYY>-<n>.
- expiry_date is OPTIONAL: no expiry means the lot is consumed last (FEFO).
"""

from __future__ import annotations

from django.utils import timezone
from rest_framework import serializers

from products.models import StockBatch


class StockBatchSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)

    class Meta:
        model = StockBatch
        fields = [
            "id",
            "product",
            "product_name",
            "batch_number",
            "expiry_date",
            "quantity_received",
            "quantity_remaining",
            "unit_cost",
            "status",
            "created_at",
        ]
        read_only_fields = fields


class StockReceiptSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    expiry_date = serializers.DateField(required=False, allow_null=True, default=None)
    unit_cost = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        allow_null=True,
        default=None,
    )
    batch_number = serializers.CharField(
        required=False,
        allow_blank=True,
        allow_null=True,
        default=None,
        help_text="Lot reference (optional; auto-generated if missing).",
    )

    def validate_expiry_date(self, value):
        if value is not None and value < timezone.localdate():
            raise serializers.ValidationError("expiry_date cannot be in the past")
        return value

    def validate_unit_cost(self, value):
        if value is not None and value <= 0:
            raise serializers.ValidationError("unit_cost must be greater than zero")
        return value

    def validate_batch_number(self, value):
        if value is None:
            return None
        return str(value).strip() or None


class QuarantineInputSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
