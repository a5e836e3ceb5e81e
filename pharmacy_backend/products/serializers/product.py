# products/serializers/product.py

"""
PRODUCT SERIALIZER

Purpose:
- Canonical Product serializer for staff endpoints.
- stock_on_hand is read-only: it is the batch projection maintained by
  the stock services, never written through the API.
"""

from rest_framework import serializers

from products.models import Product


class ProductSerializer(serializers.ModelSerializer):
    """
    GUARANTEES:
    - stock_on_hand is never client-writable
    - pieces_per_box exposed for unit conversion in the POS UI
    """

    pieces_per_box = serializers.IntegerField(read_only=True)
    is_low_stock = serializers.BooleanField(read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "sku",
            "name",
            "unit_price",
            "pieces_per_sheet",
            "sheets_per_box",
            "pieces_per_box",
            "stock_on_hand",
            "low_stock_threshold",
            "is_low_stock",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = [
            "id",
            "pieces_per_box",
            "stock_on_hand",
            "is_low_stock",
            "created_at",
            "updated_at",
        ]

    def validate_sku(self, value):
        value = (value or "").strip().upper()
        if not value:
            raise serializers.ValidationError("SKU is required")
        return value

    def validate_unit_price(self, value):
        if value is None or value <= 0:
            raise serializers.ValidationError("Unit price must be greater than zero")
        return value
