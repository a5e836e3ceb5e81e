# products/views/product.py

"""
PRODUCT VIEWSET

Purpose:
- Staff product management endpoints (CRUD + low stock alert)

Key rule alignment:
- stock_on_hand is the batch projection; it is read-only here and only
  moves through the stock services.
"""

from django.db.models import F, Q
from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.request_context import query_flag
from products.models import Product
from products.serializers.product import ProductSerializer


class ProductViewSet(viewsets.ModelViewSet):
    """
    Product endpoints.

    - CRUD (stock_on_hand read-only)
    - GET /products/products/?q=<search>
    - GET /products/products/alerts/low-stock/
    """

    serializer_class = ProductSerializer
    permission_classes = [IsAuthenticated]
    http_method_names = ["get", "post", "patch", "head", "options"]

    def get_queryset(self):
        qs = Product.objects.all().order_by("name")

        q = (self.request.query_params.get("q") or "").strip()
        if q:
            qs = qs.filter(Q(name__icontains=q) | Q(sku__icontains=q))

        if not query_flag(self.request, "include_inactive", default="true"):
            qs = qs.filter(is_active=True)

        return qs

    # -----------------------------
    # Alerts: Low stock
    # -----------------------------
    @extend_schema(
        parameters=[
            OpenApiParameter(
                name="threshold",
                type=int,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Override the per-product low_stock_threshold.",
            ),
        ],
        responses={
            200: OpenApiResponse(
                response=ProductSerializer(many=True),
                description="Active products at or below their threshold",
            ),
            400: OpenApiResponse(description="Invalid threshold"),
        },
    )
    @action(detail=False, methods=["get"], url_path="alerts/low-stock")
    def low_stock_alerts(self, request):
        """
        GET /products/products/alerts/low-stock/?threshold=<int>
        """
        qs = self.get_queryset().filter(is_active=True)

        raw_threshold = (request.query_params.get("threshold") or "").strip()
        if raw_threshold:
            try:
                threshold = int(raw_threshold)
                if threshold < 0:
                    raise ValueError
            except ValueError:
                return Response(
                    {"detail": "threshold must be a non-negative integer"},
                    status=status.HTTP_400_BAD_REQUEST,
                )
            qs = qs.filter(stock_on_hand__lte=threshold)
        else:
            qs = qs.filter(stock_on_hand__lte=F("low_stock_threshold"))

        data = self.get_serializer(qs, many=True).data
        return Response({"count": len(data), "results": data})
