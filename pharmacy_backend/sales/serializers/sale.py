# sales/serializers/sale.py

"""
SALE SERIALIZERS

Read:
- SaleSerializer: header + items (receipts, sales history).

Commands (input only, never bound to a model):
- SaleCreateSerializer   POST /sales/
- SaleEditSerializer     POST /sales/<id>/edit/
- SaleUndoSerializer     POST /sales/<id>/undo/
- SaleCancelSerializer   POST /sales/<id>/cancel/

Totals in command payloads are CLAIMS: the server recomputes them and
rejects any mismatch beyond one cent.
"""

from rest_framework import serializers

from sales.models import Sale
from sales.serializers.sale_item import SaleItemInputSerializer, SaleItemSerializer


class SaleSerializer(serializers.ModelSerializer):
    items = SaleItemSerializer(many=True, read_only=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Sale
        fields = [
            "id",
            "invoice_no",
            "status",
            "subtotal_amount",
            "discount_type",
            "discount_percentage",
            "discount_amount",
            "pwd_senior_id",
            "pwd_senior_holder_name",
            "total_amount",
            "payment_method",
            "customer_id",
            "customer_name",
            "notes",
            "created_by",
            "created_at",
            "completed_at",
            "is_edited",
            "edit_reason",
            "edited_at",
            "edited_by",
            "original_total_amount",
            "item_count",
            "items",
        ]
        read_only_fields = fields

    def get_item_count(self, obj) -> int:
        return len(obj.items.all())


class SaleHeaderInputSerializer(serializers.Serializer):
    payment_method = serializers.CharField(required=False, default="cash")
    discount_type = serializers.ChoiceField(
        choices=Sale.DISCOUNT_CHOICES,
        required=False,
        default=Sale.DISCOUNT_NONE,
    )
    discount_percentage = serializers.DecimalField(
        max_digits=5, decimal_places=2, required=False, allow_null=True, default=None
    )
    pwd_senior_id = serializers.CharField(required=False, allow_blank=True, default="")
    pwd_senior_holder_name = serializers.CharField(required=False, allow_blank=True, default="")
    customer_id = serializers.CharField(required=False, allow_blank=True, default="")
    customer_name = serializers.CharField(required=False, allow_blank=True, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    subtotal_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )
    discount_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )
    total_amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, default=None
    )

    HEADER_FIELDS = (
        "payment_method",
        "discount_type",
        "discount_percentage",
        "pwd_senior_id",
        "pwd_senior_holder_name",
        "customer_id",
        "customer_name",
        "notes",
        "subtotal_amount",
        "discount_amount",
        "total_amount",
    )

    def header_data(self) -> dict:
        return {k: self.validated_data.get(k) for k in self.HEADER_FIELDS}


class SaleCreateSerializer(SaleHeaderInputSerializer):
    items = SaleItemInputSerializer(many=True, allow_empty=False)


class SaleEditSerializer(SaleHeaderInputSerializer):
    """
    Header fields are optional on edit: only the fields sent replace the
    existing header (discount, customer, payment); the rest is kept and
    the sale is re-priced.
    """

    items = SaleItemInputSerializer(many=True, allow_empty=False)
    edit_reason = serializers.CharField(allow_blank=False)

    def header_data(self):
        sent = set(self.initial_data or {}) & set(self.HEADER_FIELDS)
        if not sent:
            return None
        return {k: self.validated_data.get(k) for k in self.HEADER_FIELDS if k in sent}


class SaleUndoSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")
    refund = serializers.BooleanField(required=False, default=False)


class SaleCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class RevenueQuerySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False, allow_null=True, default=None)
    date_to = serializers.DateField(required=False, allow_null=True, default=None)

    def validate(self, attrs):
        if attrs["date_from"] and attrs["date_to"] and attrs["date_from"] > attrs["date_to"]:
            raise serializers.ValidationError("date_from must be on or before date_to")
        return attrs
