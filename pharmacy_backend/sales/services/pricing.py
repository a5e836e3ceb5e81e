# sales/services/pricing.py

"""
SALE PRICING RULES

Purpose:
- Server-side computation of line totals, subtotal, discount and total.
- Validation of caller-supplied figures (never trusted, only checked).

Rules:
- Money is Decimal, quantized to 0.01 (ROUND_HALF_UP).
- PWD and senior discounts are a fixed 20% of the subtotal.
- Custom discount is a percentage in [0, 100].
- Caller figures must match within TOTAL_TOLERANCE.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.core.exceptions import ValidationError

from products.services.validation import field_error
from sales.models import Sale

TWOPLACES = Decimal("0.01")
TOTAL_TOLERANCE = Decimal("0.01")

DISCOUNT_RATES = {
    Sale.DISCOUNT_NONE: Decimal("0.00"),
    Sale.DISCOUNT_PWD: Decimal("20.00"),
    Sale.DISCOUNT_SENIOR: Decimal("20.00"),
}


def money(value) -> Decimal:
    if value is None or value == "":
        return Decimal("0.00")
    try:
        return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Invalid money value: {value!r}", code="invalid_amount") from exc


def within_tolerance(a, b) -> bool:
    return abs(money(a) - money(b)) <= TOTAL_TOLERANCE


@dataclass(frozen=True)
class SaleTotals:
    subtotal_amount: Decimal
    discount_type: str
    discount_percentage: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def line_total(*, quantity: int, unit_price) -> Decimal:
    return money(Decimal(int(quantity)) * money(unit_price))


def resolve_discount_percentage(discount_type: str, discount_percentage=None) -> Decimal:
    if discount_type not in dict(Sale.DISCOUNT_CHOICES):
        raise field_error(
            "discount_type", f"Unknown discount type '{discount_type}'", code="invalid_discount"
        )

    if discount_type == Sale.DISCOUNT_CUSTOM:
        pct = money(discount_percentage)
        if pct < Decimal("0.00") or pct > Decimal("100.00"):
            raise field_error(
                "discount_percentage",
                "Custom discount must be between 0 and 100",
                code="invalid_discount",
            )
        return pct

    fixed = DISCOUNT_RATES[discount_type]
    if discount_percentage not in (None, "") and money(discount_percentage) != fixed:
        raise field_error(
            "discount_percentage",
            f"{discount_type} discount is fixed at {fixed} percent",
            code="invalid_discount",
        )
    return fixed


def compute_totals(*, lines, discount_type: str = Sale.DISCOUNT_NONE, discount_percentage=None) -> SaleTotals:
    """
    lines: iterable of objects exposing quantity and unit_price.
    """
    subtotal = money(
        sum(
            (line_total(quantity=line.quantity, unit_price=line.unit_price) for line in lines),
            Decimal("0.00"),
        )
    )
    pct = resolve_discount_percentage(discount_type, discount_percentage)
    discount = money(subtotal * pct / Decimal("100"))
    return SaleTotals(
        subtotal_amount=subtotal,
        discount_type=discount_type,
        discount_percentage=pct,
        discount_amount=discount,
        total_amount=money(subtotal - discount),
    )


def validate_claimed_totals(totals: SaleTotals, *, subtotal_amount=None, discount_amount=None, total_amount=None):
    """
    Compare caller-supplied figures with the computed ones.
    Missing figures are not checked.
    """
    claimed = {
        "subtotal_amount": subtotal_amount,
        "discount_amount": discount_amount,
        "total_amount": total_amount,
    }
    for field_name, value in claimed.items():
        if value in (None, ""):
            continue
        expected = getattr(totals, field_name)
        if not within_tolerance(value, expected):
            raise field_error(
                field_name,
                f"{field_name} {money(value)} does not match computed {expected}",
                code="total_mismatch",
                params={"field": field_name, "expected": str(expected), "received": str(money(value))},
            )


def verify_sale_totals(sale: Sale) -> SaleTotals:
    """
    Recompute a persisted sale and check its stored figures and line totals.
    """
    items = list(sale.items.all())
    for item in items:
        expected_line = line_total(quantity=item.quantity, unit_price=item.unit_price)
        if not within_tolerance(item.total_price, expected_line):
            raise ValidationError(
                f"Line {item.id} total {item.total_price} does not match "
                f"{item.quantity} x {item.unit_price}",
                code="line_total_mismatch",
            )

    totals = compute_totals(
        lines=items,
        discount_type=sale.discount_type,
        discount_percentage=sale.discount_percentage,
    )
    validate_claimed_totals(
        totals,
        subtotal_amount=sale.subtotal_amount,
        discount_amount=sale.discount_amount,
        total_amount=sale.total_amount,
    )
    return totals
