# sales/api/viewsets/sale.py

"""
======================================================
PATH: sales/api/viewsets/sale.py
======================================================
SALE VIEWSET (STAFF)

Purpose:
- Sales history: list + retrieve with basic filters.
- Transaction commands, each a thin call into the orchestrator:
    POST /api/sales/                       create pending sale
    POST /api/sales/<id>/complete/         deduct stock (FEFO), complete
    POST /api/sales/<id>/undo/             restore stock, cancel/refund
    POST /api/sales/<id>/edit/             reopen (if completed) + replace items
    POST /api/sales/<id>/cancel/           abandon a pending sale
- Revenue summary:
    GET  /api/sales/revenue/?date_from=&date_to=

Errors:
- Domain errors are rendered as {"error": {"code", "message", "details"}}
  with 400 / 404 / 409 (see backend.api_errors).
======================================================
"""

from __future__ import annotations

from datetime import datetime

from django.db.models import Q
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import mixins, serializers, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from backend.api_errors import DOMAIN_ERRORS, domain_error_response
from backend.request_context import actor_id_for
from sales.models import Sale
from sales.serializers.sale import (
    RevenueQuerySerializer,
    SaleCancelSerializer,
    SaleCreateSerializer,
    SaleEditSerializer,
    SaleSerializer,
    SaleUndoSerializer,
)
from sales.services.revenue_service import revenue_summary
from sales.services.transaction_orchestrator import (
    cancel_pending_sale,
    complete_sale,
    create_pending_sale,
    edit_sale,
    get_sale,
    undo_sale,
)

DOMAIN_ERROR_RESPONSES = {
    400: OpenApiResponse(description="Validation error"),
    404: OpenApiResponse(description="Sale or product not found"),
    409: OpenApiResponse(description="Stock conflict or invalid state transition"),
}


def _parse_date(s: str):
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


class SaleViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = SaleSerializer
    permission_classes = [IsAuthenticated]

    # ======================================================
    # QUERYSET
    # ======================================================

    def get_queryset(self):
        qs = (
            Sale.objects.all()
            .prefetch_related("items", "items__batch")
            .order_by("-created_at")
        )

        params = self.request.query_params

        status_val = (params.get("status") or "").strip()
        if status_val:
            qs = qs.filter(status=status_val)

        pm = (params.get("payment_method") or "").strip().lower()
        if pm:
            qs = qs.filter(payment_method__iexact=pm)

        q = (params.get("q") or "").strip()
        if q:
            qs = qs.filter(Q(invoice_no__icontains=q) | Q(customer_name__icontains=q))

        d1 = _parse_date((params.get("date_from") or "").strip())
        if d1:
            qs = qs.filter(created_at__date__gte=d1)

        d2 = _parse_date((params.get("date_to") or "").strip())
        if d2:
            qs = qs.filter(created_at__date__lte=d2)

        return qs

    def _sale_payload(self, sale_id) -> dict:
        return SaleSerializer(get_sale(sale_id)).data

    # ======================================================
    # CREATE (PENDING)
    # ======================================================

    @extend_schema(
        request=SaleCreateSerializer,
        responses={201: SaleSerializer, **DOMAIN_ERROR_RESPONSES},
    )
    def create(self, request, *args, **kwargs):
        ser = SaleCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            sale = create_pending_sale(
                sale_data=ser.header_data(),
                items=ser.validated_data["items"],
                actor_id=actor_id_for(request),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(self._sale_payload(sale.pk), status=status.HTTP_201_CREATED)

    # ======================================================
    # COMPLETE
    # ======================================================

    @extend_schema(request=None, responses={200: SaleSerializer, **DOMAIN_ERROR_RESPONSES})
    @action(detail=True, methods=["post"], url_path="complete")
    def complete(self, request, pk=None):
        try:
            sale = complete_sale(sale_id=pk, actor_id=actor_id_for(request))
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(self._sale_payload(sale.pk), status=status.HTTP_200_OK)

    # ======================================================
    # UNDO (CANCEL / REFUND A COMPLETED SALE)
    # ======================================================

    @extend_schema(
        request=SaleUndoSerializer,
        responses={200: serializers.DictField(), **DOMAIN_ERROR_RESPONSES},
    )
    @action(detail=True, methods=["post"], url_path="undo")
    def undo(self, request, pk=None):
        ser = SaleUndoSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            result = undo_sale(
                sale_id=pk,
                actor_id=actor_id_for(request),
                reason=ser.validated_data["reason"],
                refund=ser.validated_data["refund"],
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(result.to_dict(), status=status.HTTP_200_OK)

    # ======================================================
    # EDIT
    # ======================================================

    @extend_schema(
        request=SaleEditSerializer,
        responses={200: serializers.DictField(), **DOMAIN_ERROR_RESPONSES},
    )
    @action(detail=True, methods=["post"], url_path="edit")
    def edit(self, request, pk=None):
        ser = SaleEditSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            result = edit_sale(
                sale_id=pk,
                new_items=ser.validated_data["items"],
                edit_reason=ser.validated_data["edit_reason"],
                actor_id=actor_id_for(request),
                sale_data=ser.header_data(),
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        payload = result.to_dict()
        payload["sale"] = self._sale_payload(result.sale.pk)
        return Response(payload, status=status.HTTP_200_OK)

    # ======================================================
    # CANCEL (PENDING ONLY)
    # ======================================================

    @extend_schema(
        request=SaleCancelSerializer,
        responses={200: SaleSerializer, **DOMAIN_ERROR_RESPONSES},
    )
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        ser = SaleCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        try:
            sale = cancel_pending_sale(
                sale_id=pk,
                actor_id=actor_id_for(request),
                reason=ser.validated_data["reason"],
            )
        except DOMAIN_ERRORS as exc:
            return domain_error_response(exc)

        return Response(self._sale_payload(sale.pk), status=status.HTTP_200_OK)

    # ======================================================
    # REVENUE
    # ======================================================

    @extend_schema(parameters=[RevenueQuerySerializer], responses={200: serializers.DictField()})
    @action(detail=False, methods=["get"], url_path="revenue")
    def revenue(self, request):
        ser = RevenueQuerySerializer(data=request.query_params)
        ser.is_valid(raise_exception=True)

        summary = revenue_summary(
            date_from=ser.validated_data["date_from"],
            date_to=ser.validated_data["date_to"],
        )
        return Response(summary, status=status.HTTP_200_OK)
