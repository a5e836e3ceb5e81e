# backend/api_errors.py

"""
API ERROR NORMALIZATION

Canonical error body:
    {"error": {"code": "...", "message": "...", "details": {...}}}

Domain error -> HTTP status:
- ValidationError                                   400
- SaleNotFoundError / ProductNotFoundError          404
- InsufficientStock / StockConflict / NoBatches /
  InvalidSaleTransition                             409
"""

from __future__ import annotations

from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.response import Response

from products.services.exceptions import (
    InsufficientStockError,
    NoBatchesTrackedError,
    ProductNotFoundError,
    StockConflictError,
    StockError,
)
from sales.services.exceptions import SaleError, SaleNotFoundError
from sales.services.sale_lifecycle import InvalidSaleTransitionError

DOMAIN_STATUS = (
    (SaleNotFoundError, status.HTTP_404_NOT_FOUND),
    (ProductNotFoundError, status.HTTP_404_NOT_FOUND),
    (InsufficientStockError, status.HTTP_409_CONFLICT),
    (StockConflictError, status.HTTP_409_CONFLICT),
    (NoBatchesTrackedError, status.HTTP_409_CONFLICT),
    (InvalidSaleTransitionError, status.HTTP_409_CONFLICT),
)


def error_response(*, code: str, message: str, http_status: int, details=None):
    """
    Canonical API error response.
    """
    body = {"code": code, "message": message}
    if details:
        body["details"] = details
    return Response({"error": body}, status=http_status)


def _validation_code(exc: ValidationError) -> str:
    if hasattr(exc, "error_dict"):
        for errors in exc.error_dict.values():
            for err in errors:
                if getattr(err, "code", None):
                    return err.code
    for err in getattr(exc, "error_list", [exc]):
        if getattr(err, "code", None):
            return err.code
    return "validation_error"


def domain_error_response(exc: Exception):
    """Render a ValidationError, StockError or SaleError."""
    if isinstance(exc, ValidationError):
        details = exc.message_dict if hasattr(exc, "error_dict") else {"non_field_errors": exc.messages}
        return error_response(
            code=_validation_code(exc),
            message="; ".join(exc.messages),
            http_status=status.HTTP_400_BAD_REQUEST,
            details=details,
        )

    payload = exc.to_dict()
    http_status = status.HTTP_400_BAD_REQUEST
    for error_class, mapped in DOMAIN_STATUS:
        if isinstance(exc, error_class):
            http_status = mapped
            break
    return error_response(
        code=payload["code"],
        message=payload["message"],
        http_status=http_status,
        details=payload["details"],
    )


DOMAIN_ERRORS = (ValidationError, StockError, SaleError)
