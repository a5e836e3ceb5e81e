"""
======================================================
PATH: products/views/stock_batch.py
======================================================
STOCK BATCH VIEWSET

Purpose:
- Read StockBatch rows (FEFO order).
- Controlled inventory operations: receive (POST) and quarantine.

Rules:
- Creating a batch IS a stock receipt: receive_stock() creates the batch
  and its RECEIPT movement atomically.
- Quantity and status are service-managed; no PUT/PATCH/DELETE.
"""

from __future__ import annotations

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.api_errors import DOMAIN_ERRORS, domain_error_response
from backend.request_context import actor_id_for
from products.models import Product, StockBatch
from products.serializers.stock_batch import (
    QuarantineInputSerializer,
    StockBatchSerializer,
    StockReceiptSerializer,
)
from products.services.inventory import quarantine_batch, receive_stock


class StockBatchViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Stock batch endpoints.

    - GET  /api/products/stock-batches/?product_id=<uuid>&status=<status>
    - POST /api/products/stock-batches/               (receive stock)
    - POST /api/products/stock-batches/{id}/quarantine/
    """

    serializer_class = StockBatchSerializer
    permission_classes = [IsAuthenticated]

    def get_queryset(self):
        qs = StockBatch.objects.select_related("product").order_by("expiry_date", "created_at")

        product_id = (self.request.query_params.get("product_id") or "").strip()
        if product_id:
            qs = qs.filter(product_id=product_id)

        status_filter = (self.request.query_params.get("status") or "").strip()
        if status_filter:
            qs = qs.filter(status=status_filter)

        return qs

    # -------------------------------------------------
    # CREATE (stock receipt)
    # -------------------------------------------------
    @extend_schema(
        request=StockReceiptSerializer,
        responses={
            201: StockBatchSerializer,
            400: OpenApiResponse(description="Invalid receipt"),
            404: OpenApiResponse(description="Unknown product"),
        },
    )
    def create(self, request, *args, **kwargs):
        """
        POST /api/products/stock-batches/

        batch_number is OPTIONAL (service auto-generates if missing/blank).
        """
        serializer = StockReceiptSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        v = serializer.validated_data

        product = get_object_or_404(Product, pk=v["product_id"])

        try:
            batch = receive_stock(
                product=product,
                quantity=v["quantity"],
                actor_id=actor_id_for(request),
                expiry_date=v.get("expiry_date"),
                unit_cost=v.get("unit_cost"),
                batch_number=v.get("batch_number"),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        batch.refresh_from_db()
        return Response(StockBatchSerializer(batch).data, status=status.HTTP_201_CREATED)

    # -------------------------------------------------
    # ACTION: quarantine
    # -------------------------------------------------
    @extend_schema(
        request=QuarantineInputSerializer,
        responses={
            200: StockBatchSerializer,
            400: OpenApiResponse(description="Batch is depleted"),
        },
    )
    @action(detail=True, methods=["post"], url_path="quarantine")
    def quarantine(self, request, pk=None):
        batch = self.get_object()

        serializer = QuarantineInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            batch = quarantine_batch(
                batch_id=batch.pk,
                actor_id=actor_id_for(request),
                reason=serializer.validated_data["reason"],
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(StockBatchSerializer(batch).data, status=status.HTTP_200_OK)
