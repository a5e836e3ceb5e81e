# sales/tests/test_pricing.py

from decimal import Decimal
from types import SimpleNamespace

from django.core.exceptions import ValidationError
from django.test import SimpleTestCase

from sales.models import Sale
from sales.services.pricing import (
    compute_totals,
    line_total,
    money,
    resolve_discount_percentage,
    validate_claimed_totals,
)
from sales.services.sale_input import parse_header, parse_items


def line(quantity, unit_price):
    return SimpleNamespace(quantity=quantity, unit_price=Decimal(unit_price))


class PricingTests(SimpleTestCase):
    """
    GUARANTEES:
    - Money is rounded half-up to cents
    - PWD / senior discounts are fixed at 20%
    - Caller figures are checked, never trusted
    """

    def test_money_rounds_half_up(self):
        self.assertEqual(money("2.345"), Decimal("2.35"))
        self.assertEqual(money(None), Decimal("0.00"))

    def test_money_rejects_garbage(self):
        with self.assertRaises(ValidationError):
            money("abc")

    def test_line_total(self):
        self.assertEqual(line_total(quantity=3, unit_price="12.50"), Decimal("37.50"))

    def test_totals_without_discount(self):
        totals = compute_totals(lines=[line(2, "10.00"), line(3, "1.25")])

        self.assertEqual(totals.subtotal_amount, Decimal("23.75"))
        self.assertEqual(totals.discount_amount, Decimal("0.00"))
        self.assertEqual(totals.total_amount, Decimal("23.75"))

    def test_senior_discount(self):
        totals = compute_totals(lines=[line(1, "99.99")], discount_type=Sale.DISCOUNT_SENIOR)

        self.assertEqual(totals.discount_percentage, Decimal("20.00"))
        self.assertEqual(totals.discount_amount, Decimal("20.00"))
        self.assertEqual(totals.total_amount, Decimal("79.99"))

    def test_fixed_discount_cannot_be_overridden(self):
        with self.assertRaises(ValidationError):
            resolve_discount_percentage(Sale.DISCOUNT_PWD, "30")

    def test_custom_discount_bounds(self):
        self.assertEqual(resolve_discount_percentage(Sale.DISCOUNT_CUSTOM, "100"), Decimal("100.00"))
        for bad in ("-1", "100.01"):
            with self.subTest(pct=bad):
                with self.assertRaises(ValidationError):
                    resolve_discount_percentage(Sale.DISCOUNT_CUSTOM, bad)

    def test_unknown_discount_type(self):
        with self.assertRaises(ValidationError):
            resolve_discount_percentage("loyalty")

    def test_claimed_totals_within_tolerance(self):
        totals = compute_totals(lines=[line(1, "10.00")])

        validate_claimed_totals(totals, total_amount="10.01", subtotal_amount=None)

        with self.assertRaises(ValidationError) as ctx:
            validate_claimed_totals(totals, total_amount="10.02")
        self.assertEqual(ctx.exception.error_dict["total_amount"][0].code, "total_mismatch")


class SaleInputTests(SimpleTestCase):
    """
    GUARANTEES:
    - Untyped payloads become fixed-shape records before any logic runs
    """

    def test_items_are_parsed(self):
        lines = parse_items([{"product_id": "p-1", "quantity": "4", "unit_type": "box"}])

        self.assertEqual(lines[0].quantity, 4)
        self.assertEqual(lines[0].unit_type, "box")
        self.assertIsNone(lines[0].unit_price)

    def test_bad_items_are_rejected(self):
        bad_payloads = [
            [{"quantity": 1}],
            [{"product_id": "p-1", "quantity": 0}],
            [{"product_id": "p-1", "quantity": 1, "unit_type": "crate"}],
            [{"product_id": "p-1", "quantity": 1, "unit_price": "-2"}],
            ["p-1"],
        ]
        for payload in bad_payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(ValidationError):
                    parse_items(payload)

    def test_discount_requires_holder_identity(self):
        with self.assertRaises(ValidationError) as ctx:
            parse_header({"discount_type": "senior", "pwd_senior_id": "SC-1"})

        self.assertEqual(
            ctx.exception.error_dict["pwd_senior_holder_name"][0].code, "discount_id_required"
        )

    def test_header_defaults(self):
        header = parse_header({})

        self.assertEqual(header.payment_method, "cash")
        self.assertEqual(header.discount_type, Sale.DISCOUNT_NONE)
        self.assertIsNone(header.total_amount)
