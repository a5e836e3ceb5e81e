# sales/tests/test_lifecycle.py

from types import SimpleNamespace

from django.test import SimpleTestCase

from sales.models import Sale
from sales.services.sale_lifecycle import (
    InvalidSaleTransitionError,
    can_transition,
    is_terminal,
    validate_transition,
)


class SaleLifecycleTests(SimpleTestCase):
    """
    State machine rules.

    GUARANTEES:
    - pending -> completed | cancelled
    - completed -> cancelled | refunded | pending (edit)
    - cancelled and refunded are terminal
    """

    def test_allowed_transitions(self):
        allowed = [
            (Sale.STATUS_PENDING, Sale.STATUS_COMPLETED),
            (Sale.STATUS_PENDING, Sale.STATUS_CANCELLED),
            (Sale.STATUS_COMPLETED, Sale.STATUS_CANCELLED),
            (Sale.STATUS_COMPLETED, Sale.STATUS_REFUNDED),
            (Sale.STATUS_COMPLETED, Sale.STATUS_PENDING),
        ]
        for from_status, to_status in allowed:
            with self.subTest(from_status=from_status, to_status=to_status):
                self.assertTrue(can_transition(from_status=from_status, to_status=to_status))

    def test_forbidden_transitions(self):
        forbidden = [
            (Sale.STATUS_PENDING, Sale.STATUS_REFUNDED),
            (Sale.STATUS_PENDING, Sale.STATUS_PENDING),
            (Sale.STATUS_COMPLETED, Sale.STATUS_COMPLETED),
            (Sale.STATUS_CANCELLED, Sale.STATUS_PENDING),
            (Sale.STATUS_CANCELLED, Sale.STATUS_COMPLETED),
            (Sale.STATUS_REFUNDED, Sale.STATUS_COMPLETED),
        ]
        for from_status, to_status in forbidden:
            with self.subTest(from_status=from_status, to_status=to_status):
                self.assertFalse(can_transition(from_status=from_status, to_status=to_status))

    def test_terminal_states(self):
        self.assertTrue(is_terminal(Sale.STATUS_CANCELLED))
        self.assertTrue(is_terminal(Sale.STATUS_REFUNDED))
        self.assertFalse(is_terminal(Sale.STATUS_COMPLETED))

    def test_validate_transition_raises_with_details(self):
        sale = SimpleNamespace(id="sale-1", status=Sale.STATUS_REFUNDED)

        with self.assertRaises(InvalidSaleTransitionError) as ctx:
            validate_transition(sale=sale, target_status=Sale.STATUS_PENDING)

        payload = ctx.exception.to_dict()
        self.assertEqual(payload["code"], "invalid_state_transition")
        self.assertEqual(payload["details"]["from_status"], Sale.STATUS_REFUNDED)
        self.assertEqual(payload["details"]["to_status"], Sale.STATUS_PENDING)

    def test_only_completed_counts_as_revenue(self):
        self.assertTrue(Sale(status=Sale.STATUS_COMPLETED).counts_as_revenue)
        self.assertFalse(Sale(status=Sale.STATUS_REFUNDED).counts_as_revenue)
        self.assertFalse(Sale(status=Sale.STATUS_PENDING).counts_as_revenue)
