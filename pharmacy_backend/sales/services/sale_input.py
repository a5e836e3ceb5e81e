# sales/services/sale_input.py

"""
SALE INPUT RECORDS

Purpose:
- Convert loosely-typed request payloads (dicts) into fixed-shape records
  before any business logic runs.

Rules:
- Line quantity is in pieces; unit_type is presentation only.
- unit_price is optional (defaults to the product's price later);
  total_price, when given, is a claim to be checked, never trusted.
- PWD / senior discounts require the holder's ID number and name.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from products.services.validation import field_error, require_positive_int
from sales.models import Sale, SaleItem
from sales.services.pricing import money


@dataclass(frozen=True)
class SaleLineInput:
    product_id: str
    quantity: int
    unit_type: str = SaleItem.UNIT_PIECE
    unit_price: Decimal | None = None
    total_price: Decimal | None = None


@dataclass(frozen=True)
class SaleHeaderInput:
    payment_method: str = "cash"
    discount_type: str = Sale.DISCOUNT_NONE
    discount_percentage: Decimal | None = None
    pwd_senior_id: str = ""
    pwd_senior_holder_name: str = ""
    customer_id: str = ""
    customer_name: str = ""
    notes: str = ""
    subtotal_amount: Decimal | None = None
    discount_amount: Decimal | None = None
    total_amount: Decimal | None = None


def _optional_money(value):
    if value is None or value == "":
        return None
    return money(value)


def _text(value) -> str:
    return str(value or "").strip()


def parse_line(raw, *, index: int = 0) -> SaleLineInput:
    if isinstance(raw, SaleLineInput):
        return raw
    if not isinstance(raw, dict):
        raise field_error("items", f"Item #{index + 1} must be an object", code="invalid_item")

    product_id = _text(raw.get("product_id") or raw.get("product"))
    if not product_id:
        raise field_error("items", f"Item #{index + 1} is missing product_id", code="invalid_item")

    unit_type = _text(raw.get("unit_type")) or SaleItem.UNIT_PIECE
    if unit_type not in dict(SaleItem.UNIT_CHOICES):
        raise field_error("items", f"Item #{index + 1} has unknown unit_type '{unit_type}'", code="invalid_item")

    unit_price = _optional_money(raw.get("unit_price"))
    if unit_price is not None and unit_price <= Decimal("0.00"):
        raise field_error("items", f"Item #{index + 1} unit_price must be greater than zero", code="invalid_item")

    return SaleLineInput(
        product_id=product_id,
        quantity=require_positive_int(raw.get("quantity"), field_name="quantity"),
        unit_type=unit_type,
        unit_price=unit_price,
        total_price=_optional_money(raw.get("total_price")),
    )


def parse_items(items) -> list[SaleLineInput]:
    if not items or not isinstance(items, (list, tuple)):
        raise field_error("items", "A sale requires at least one item", code="empty_sale")
    return [parse_line(raw, index=i) for i, raw in enumerate(items)]


def parse_header(sale_data) -> SaleHeaderInput:
    if isinstance(sale_data, SaleHeaderInput):
        data = sale_data
    else:
        raw = dict(sale_data or {})
        data = SaleHeaderInput(
            payment_method=_text(raw.get("payment_method")) or "cash",
            discount_type=_text(raw.get("discount_type")) or Sale.DISCOUNT_NONE,
            discount_percentage=_optional_money(raw.get("discount_percentage")),
            pwd_senior_id=_text(raw.get("pwd_senior_id")),
            pwd_senior_holder_name=_text(raw.get("pwd_senior_holder_name")),
            customer_id=_text(raw.get("customer_id")),
            customer_name=_text(raw.get("customer_name")),
            notes=_text(raw.get("notes")),
            subtotal_amount=_optional_money(raw.get("subtotal_amount")),
            discount_amount=_optional_money(raw.get("discount_amount")),
            total_amount=_optional_money(raw.get("total_amount")),
        )

    if data.discount_type in (Sale.DISCOUNT_PWD, Sale.DISCOUNT_SENIOR):
        if not data.pwd_senior_id:
            raise field_error(
                "pwd_senior_id",
                f"{data.discount_type} discount requires an ID number",
                code="discount_id_required",
            )
        if not data.pwd_senior_holder_name:
            raise field_error(
                "pwd_senior_holder_name",
                f"{data.discount_type} discount requires the ID holder's name",
                code="discount_id_required",
            )

    return data
