# products/tests/test_inventory.py

from datetime import timedelta
from decimal import Decimal
from io import StringIO

from django.core.exceptions import ValidationError
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.inventory import (
    generate_batch_number,
    mark_expired_batches,
    quarantine_batch,
    receive_stock,
)


class StockReceiptTests(TestCase):
    """
    Receiving stock.

    GUARANTEES:
    - Each receipt creates one batch and one RECEIPT movement
    - Expired stock is never received
    - Legacy counters are adopted, not lost
    """

    def setUp(self):
        self.today = timezone.localdate()
        self.product = Product.objects.create(
            sku="PCM-500",
            name="Paracetamol 500mg",
            unit_price="5.00",
        )

    def test_receipt_creates_batch_and_movement(self):
        batch = receive_stock(
            product=self.product,
            quantity=50,
            expiry_date=self.today + timedelta(days=365),
            unit_cost=Decimal("2.10"),
            batch_number="LOT-A",
            actor_id="receiver-1",
        )

        self.product.refresh_from_db()
        movement = StockMovement.objects.get(batch=batch)

        self.assertEqual(batch.quantity_received, 50)
        self.assertEqual(batch.quantity_remaining, 50)
        self.assertEqual(batch.status, StockBatch.Status.ACTIVE)
        self.assertEqual(self.product.stock_on_hand, 50)
        self.assertEqual(movement.reason, StockMovement.Reason.RECEIPT)
        self.assertEqual(movement.direction, StockMovement.Direction.IN)
        self.assertEqual((movement.stock_before, movement.stock_after), (0, 50))
        self.assertEqual(movement.unit_cost_snapshot, Decimal("2.10"))

    def test_batch_numbers_are_generated_per_day(self):
        first = receive_stock(product=self.product, quantity=1, actor_id="receiver-1")
        second = receive_stock(product=self.product, quantity=1, actor_id="receiver-1")

        prefix = f"BT{self.today:%m%d%y}-"
        self.assertEqual(first.batch_number, f"{prefix}1")
        self.assertEqual(second.batch_number, f"{prefix}2")
        self.assertEqual(generate_batch_number(), f"{prefix}3")

    def test_expired_stock_is_rejected(self):
        with self.assertRaises(ValidationError) as ctx:
            receive_stock(
                product=self.product,
                quantity=5,
                expiry_date=self.today - timedelta(days=1),
                actor_id="receiver-1",
            )

        self.assertEqual(ctx.exception.error_dict["expiry_date"][0].code, "expired_on_receipt")
        self.assertFalse(StockBatch.objects.filter(product=self.product).exists())

    def test_actor_is_required(self):
        with self.assertRaises(ValidationError) as ctx:
            receive_stock(product=self.product, quantity=5, actor_id="  ")

        self.assertEqual(ctx.exception.error_dict["actor_id"][0].code, "actor_required")

    def test_quantity_must_be_positive(self):
        with self.assertRaises(ValidationError):
            receive_stock(product=self.product, quantity=0, actor_id="receiver-1")

    def test_first_receipt_adopts_legacy_counter(self):
        Product.objects.filter(pk=self.product.pk).update(stock_on_hand=40)

        received = receive_stock(product=self.product, quantity=10, actor_id="receiver-1")

        self.product.refresh_from_db()
        opening = StockBatch.objects.exclude(pk=received.pk).get(product=self.product)
        adoption = StockMovement.objects.get(reason=StockMovement.Reason.LEGACY_MIGRATION)

        self.assertEqual(self.product.stock_on_hand, 50)
        self.assertIsNone(opening.expiry_date)
        self.assertEqual(opening.quantity_remaining, 40)
        self.assertEqual(adoption.direction, StockMovement.Direction.ADJUSTMENT)
        self.assertEqual(adoption.stock_before, adoption.stock_after)


class BatchMaintenanceTests(TestCase):
    """
    Expiry sweep and quarantine.

    GUARANTEES:
    - Status changes never touch quantities
    - Affected stock leaves the sellable projection
    - Both operations are idempotent
    """

    def setUp(self):
        self.today = timezone.localdate()
        self.product = Product.objects.create(
            sku="IBU-200",
            name="Ibuprofen 200mg",
            unit_price="7.00",
        )
        self.soon = receive_stock(
            product=self.product,
            quantity=6,
            expiry_date=self.today + timedelta(days=5),
            actor_id="receiver-1",
        )
        self.later = receive_stock(
            product=self.product,
            quantity=9,
            expiry_date=self.today + timedelta(days=300),
            actor_id="receiver-1",
        )

    def test_sweep_expires_past_batches_only(self):
        expired = mark_expired_batches(actor_id="system", today=self.today + timedelta(days=10))

        self.soon.refresh_from_db()
        self.later.refresh_from_db()
        self.product.refresh_from_db()

        self.assertEqual([b.pk for b in expired], [self.soon.pk])
        self.assertEqual(self.soon.status, StockBatch.Status.EXPIRED)
        self.assertEqual(self.soon.quantity_remaining, 6)
        self.assertEqual(self.later.status, StockBatch.Status.ACTIVE)
        self.assertEqual(self.product.stock_on_hand, 9)

        movement = StockMovement.objects.get(reason=StockMovement.Reason.EXPIRY)
        self.assertEqual((movement.stock_before, movement.stock_after), (15, 9))

    def test_sweep_is_idempotent(self):
        as_of = self.today + timedelta(days=10)
        mark_expired_batches(actor_id="system", today=as_of)

        self.assertEqual(mark_expired_batches(actor_id="system", today=as_of), [])
        self.assertEqual(
            StockMovement.objects.filter(reason=StockMovement.Reason.EXPIRY).count(), 1
        )

    def test_sweep_command(self):
        out = StringIO()
        as_of = (self.today + timedelta(days=10)).isoformat()

        call_command("expire_batches", "--as-of", as_of, "--actor", "cron", stdout=out)

        self.assertIn("Expired 1 batch(es).", out.getvalue())
        self.assertEqual(
            StockMovement.objects.get(reason=StockMovement.Reason.EXPIRY).actor_id, "cron"
        )

    def test_quarantine_removes_stock_from_projection(self):
        batch = quarantine_batch(batch_id=self.later.pk, actor_id="pharmacist-1", reason="recall")

        self.product.refresh_from_db()
        movement = StockMovement.objects.get(reason=StockMovement.Reason.QUARANTINE)

        self.assertEqual(batch.status, StockBatch.Status.QUARANTINED)
        self.assertEqual(batch.quantity_remaining, 9)
        self.assertEqual(self.product.stock_on_hand, 6)
        self.assertEqual(movement.note, "recall")

    def test_quarantine_is_idempotent(self):
        quarantine_batch(batch_id=self.later.pk, actor_id="pharmacist-1")
        quarantine_batch(batch_id=self.later.pk, actor_id="pharmacist-1")

        self.assertEqual(
            StockMovement.objects.filter(reason=StockMovement.Reason.QUARANTINE).count(), 1
        )

    def test_depleted_batch_cannot_be_quarantined(self):
        StockBatch.objects.filter(pk=self.soon.pk).update(
            quantity_remaining=0, status=StockBatch.Status.DEPLETED
        )

        with self.assertRaises(ValidationError) as ctx:
            quarantine_batch(batch_id=self.soon.pk, actor_id="pharmacist-1")

        self.assertEqual(ctx.exception.error_dict["batch_id"][0].code, "batch_depleted")
