# products/serializers/stock_movement.py

from rest_framework import serializers

from products.models import StockMovement


class StockMovementSerializer(serializers.ModelSerializer):
    """
    Ledger entry (read-only). product/batch are raw ids: the rows they
    point to may no longer exist.
    """

    product_id = serializers.UUIDField(read_only=True)
    batch_id = serializers.UUIDField(read_only=True, allow_null=True)
    delta = serializers.IntegerField(read_only=True)

    class Meta:
        model = StockMovement
        fields = [
            "id",
            "product_id",
            "batch_id",
            "direction",
            "reason",
            "quantity",
            "delta",
            "reference_type",
            "reference_id",
            "actor_id",
            "stock_before",
            "stock_after",
            "unit_cost_snapshot",
            "note",
            "created_at",
        ]
        read_only_fields = fields
