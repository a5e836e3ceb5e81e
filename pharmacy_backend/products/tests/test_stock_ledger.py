# products/tests/test_stock_ledger.py

from datetime import timedelta
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.batch_store import eligible_batches, reserve_and_deduct, restore
from products.services.fefo_allocator import plan_allocation
from products.services.inventory import receive_stock
from products.services.stock_ledger import (
    movements_for_reference,
    outstanding_sale_draws,
    reconstruct_stock_on_hand,
    record_movement,
)


class StockLedgerTests(TestCase):
    """
    Ledger integrity.

    GUARANTEES:
    - Movements are append-only
    - before/after snapshots agree with direction and quantity
    - Reason and direction agree
    - Stock can be rebuilt from movements alone
    """

    def setUp(self):
        self.product = Product.objects.create(
            sku="CET-10",
            name="Cetirizine 10mg",
            unit_price="6.00",
        )
        self.batch = receive_stock(
            product=self.product,
            quantity=20,
            expiry_date=timezone.localdate() + timedelta(days=60),
            actor_id="receiver-1",
        )

    def _deduct(self, quantity, sale_ref):
        plan = plan_allocation(
            product_id=self.product.pk,
            quantity=quantity,
            batches=list(StockBatch.objects.filter(product=self.product)),
        )
        reserve_and_deduct(plan, actor_id="cashier-1", reference_id=sale_ref)
        return plan

    # =====================================================
    # IMMUTABILITY
    # =====================================================

    def test_movement_cannot_be_updated(self):
        movement = StockMovement.objects.get(reason=StockMovement.Reason.RECEIPT)
        movement.note = "tampered"

        with self.assertRaises(ValidationError):
            movement.save()

    def test_movement_cannot_be_deleted(self):
        movement = StockMovement.objects.get(reason=StockMovement.Reason.RECEIPT)

        with self.assertRaises(ValidationError):
            movement.delete()

    def test_batch_with_history_cannot_be_deleted(self):
        with self.assertRaises(ValidationError):
            self.batch.delete()

    # =====================================================
    # VALIDATION
    # =====================================================

    def test_inconsistent_snapshot_is_rejected(self):
        with self.assertRaises(ValidationError):
            record_movement(
                product_id=self.product.pk,
                batch_id=self.batch.pk,
                direction=StockMovement.Direction.OUT,
                quantity=3,
                reason=StockMovement.Reason.SALE,
                actor_id="cashier-1",
                stock_before=20,
                stock_after=18,
            )

    def test_reason_direction_mismatch_is_rejected(self):
        with self.assertRaises(ValidationError):
            record_movement(
                product_id=self.product.pk,
                batch_id=self.batch.pk,
                direction=StockMovement.Direction.IN,
                quantity=3,
                reason=StockMovement.Reason.SALE,
                actor_id="cashier-1",
                stock_before=20,
                stock_after=23,
            )

    def test_actor_is_required(self):
        with self.assertRaises(ValidationError):
            record_movement(
                product_id=self.product.pk,
                direction=StockMovement.Direction.OUT,
                quantity=1,
                reason=StockMovement.Reason.SALE,
                actor_id="",
                stock_before=20,
                stock_after=19,
            )

    # =====================================================
    # READS
    # =====================================================

    def test_movements_for_reference_filters_by_sale(self):
        self._deduct(3, "sale-a")
        self._deduct(2, "sale-b")

        rows = list(movements_for_reference("sale-a"))

        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].quantity, 3)
        self.assertEqual(rows[0].delta, -3)

    def test_outstanding_draws_net_out_restores(self):
        plan = self._deduct(6, "sale-a")
        self.assertEqual(
            [(d.batch_id, d.quantity) for d in outstanding_sale_draws("sale-a")[self.product.pk]],
            [(self.batch.pk, 6)],
        )

        restore(plan, actor_id="cashier-1", reference_id="sale-a")

        self.assertEqual(outstanding_sale_draws("sale-a"), {})

    def test_outstanding_draws_after_recompletion_reflect_latest_only(self):
        first = self._deduct(6, "sale-a")
        restore(first, actor_id="cashier-1", reference_id="sale-a")
        self._deduct(2, "sale-a")

        draws = outstanding_sale_draws("sale-a")[self.product.pk]

        self.assertEqual(sum(d.quantity for d in draws), 2)

    # =====================================================
    # RECONSTRUCTION
    # =====================================================

    def test_reconstruct_matches_projection(self):
        plan = self._deduct(7, "sale-a")
        restore(plan, actor_id="cashier-1", reference_id="sale-a")
        self._deduct(4, "sale-b")

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_on_hand, 16)
        self.assertEqual(reconstruct_stock_on_hand(self.product.pk), 16)

    def test_batch_passing_its_expiry_date_stays_reconstructible(self):
        receive_stock(product=self.product, quantity=5, actor_id="receiver-1")
        StockBatch.objects.filter(pk=self.batch.pk).update(
            expiry_date=timezone.localdate() - timedelta(days=1)
        )

        plan = plan_allocation(
            product_id=self.product.pk,
            quantity=2,
            batches=list(eligible_batches(self.product)),
        )
        reserve_and_deduct(plan, actor_id="cashier-1", reference_id="sale-c")

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_on_hand, 3)
        self.assertEqual(reconstruct_stock_on_hand(self.product.pk), 3)
        call_command("verify_stock_ledger", stdout=StringIO())

    def test_reconstruct_returns_none_without_history(self):
        fresh = Product.objects.create(sku="NEW-1", name="New", unit_price="1.00")

        self.assertIsNone(reconstruct_stock_on_hand(fresh.pk))

    def test_verify_command_passes_when_in_sync(self):
        self._deduct(5, "sale-a")

        call_command("verify_stock_ledger", stdout=StringIO())

    def test_verify_command_flags_drift(self):
        Product.objects.filter(pk=self.product.pk).update(stock_on_hand=3)

        with self.assertRaises(CommandError):
            call_command("verify_stock_ledger", stdout=StringIO())
