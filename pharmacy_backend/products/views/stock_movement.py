# products/views/stock_movement.py

"""
STOCK MOVEMENT (LEDGER) VIEWSET

Read-only. The ledger is append-only; there is no write endpoint.

Filters (django-filter):
- product, batch, reason, direction, reference_type, reference_id
- created_after / created_before (ISO datetimes)
"""

import django_filters
from rest_framework import viewsets
from rest_framework.permissions import IsAuthenticated

from products.models import StockMovement
from products.serializers.stock_movement import StockMovementSerializer


class StockMovementFilter(django_filters.FilterSet):
    product = django_filters.UUIDFilter(field_name="product_id")
    batch = django_filters.UUIDFilter(field_name="batch_id")
    reference_id = django_filters.CharFilter(field_name="reference_id")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = StockMovement
        fields = ["product", "batch", "reason", "direction", "reference_type", "reference_id"]


class StockMovementViewSet(viewsets.ReadOnlyModelViewSet):
    serializer_class = StockMovementSerializer
    permission_classes = [IsAuthenticated]
    filterset_class = StockMovementFilter

    def get_queryset(self):
        return StockMovement.objects.all().order_by("created_at", "id")
