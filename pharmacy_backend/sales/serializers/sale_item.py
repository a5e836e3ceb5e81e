# sales/serializers/sale_item.py

from rest_framework import serializers

from sales.models import SaleItem


class SaleItemSerializer(serializers.ModelSerializer):
    """
    Sale line item serializer (read-only).
    Designed for receipts + UI display.
    """

    batch_number = serializers.SerializerMethodField()
    display_quantity = serializers.IntegerField(read_only=True)

    class Meta:
        model = SaleItem
        fields = [
            "id",
            "product",
            "product_name",
            "quantity",
            "unit_type",
            "display_quantity",
            "unit_price",
            "total_price",
            "batch",
            "batch_number",
            "expiry_date",
            "created_at",
        ]
        read_only_fields = fields

    def get_batch_number(self, obj):
        batch = getattr(obj, "batch", None)
        return getattr(batch, "batch_number", None)


class SaleItemInputSerializer(serializers.Serializer):
    """
    One cart line. quantity is in pieces; unit_type is presentation only.
    total_price, when sent, is checked against quantity x unit_price.
    """

    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    unit_type = serializers.ChoiceField(
        choices=SaleItem.UNIT_CHOICES,
        required=False,
        default=SaleItem.UNIT_PIECE,
    )
    unit_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )
    total_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )
