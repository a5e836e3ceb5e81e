# sales/tests/test_revenue.py

from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone

from products.models import Product
from products.services.inventory import receive_stock
from sales.models import Sale
from sales.services.revenue_service import revenue_summary
from sales.services.transaction_orchestrator import (
    complete_sale,
    create_pending_sale,
    undo_sale,
)


class RevenueSummaryTests(TestCase):
    """
    GUARANTEES:
    - Only COMPLETED sales count as revenue
    - Cancelled / refunded totals are reported as voided
    - Pending sales are counted, never summed
    """

    def setUp(self):
        self.product = Product.objects.create(sku="MTF-500", name="Metformin", unit_price="4.00")
        receive_stock(
            product=self.product,
            quantity=100,
            expiry_date=timezone.localdate() + timedelta(days=200),
            actor_id="receiver-1",
        )

    def _sale(self, quantity, **sale_data):
        return create_pending_sale(
            sale_data=sale_data,
            items=[{"product_id": str(self.product.pk), "quantity": quantity}],
            actor_id="cashier-1",
        )

    def test_summary_splits_revenue_and_voids(self):
        complete_sale(sale_id=self._sale(10).pk, actor_id="cashier-1")
        complete_sale(
            sale_id=self._sale(
                5, discount_type="custom", discount_percentage="10"
            ).pk,
            actor_id="cashier-1",
        )
        voided = complete_sale(sale_id=self._sale(3).pk, actor_id="cashier-1")
        undo_sale(sale_id=voided.pk, actor_id="supervisor-1", refund=True)
        self._sale(1)

        summary = revenue_summary()

        self.assertEqual(summary["total_revenue"], Decimal("58.00"))
        self.assertEqual(summary["total_discounts"], Decimal("2.00"))
        self.assertEqual(summary["average_sale"], Decimal("29.00"))
        self.assertEqual(summary["voided_amount"], Decimal("12.00"))
        self.assertEqual(
            [str(summary[k]) for k in ("total_revenue", "total_discounts", "voided_amount")],
            ["58.00", "2.00", "12.00"],
        )
        self.assertEqual(
            summary["counts"],
            {
                Sale.STATUS_PENDING: 1,
                Sale.STATUS_COMPLETED: 2,
                Sale.STATUS_CANCELLED: 0,
                Sale.STATUS_REFUNDED: 1,
            },
        )

    def test_date_window_excludes_other_days(self):
        complete_sale(sale_id=self._sale(2).pk, actor_id="cashier-1")
        tomorrow = timezone.localdate() + timedelta(days=1)

        summary = revenue_summary(date_from=tomorrow)

        self.assertEqual(summary["total_revenue"], Decimal("0.00"))
        self.assertEqual(summary["average_sale"], Decimal("0.00"))
        self.assertEqual(summary["date_from"], tomorrow.isoformat())
