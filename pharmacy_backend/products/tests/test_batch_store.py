# products/tests/test_batch_store.py

from datetime import timedelta
from uuid import uuid4

from django.test import TestCase
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.batch_store import (
    available_quantity,
    deduct_legacy,
    eligible_batches,
    expire_overdue_batches,
    project_stock_on_hand,
    reserve_and_deduct,
    restore,
    sync_stock_on_hand,
)
from products.services.exceptions import InsufficientStockError, StockConflictError
from products.services.fefo_allocator import AllocationPlan, Draw, plan_allocation
from products.services.inventory import adopt_legacy_stock, quarantine_batch, receive_stock
from products.services.stock_ledger import LEGACY_DRAW_NOTE, outstanding_sale_draws

ACTOR = "cashier-1"


class BatchStoreTests(TestCase):
    """
    Applying and reversing allocation plans.

    GUARANTEES:
    - A plan is applied in full or not at all
    - Every batch mutation writes exactly one ledger movement
    - stock_on_hand always equals the ACTIVE batch total
    - Restores never fail because a batch disappeared
    """

    def setUp(self):
        self.today = timezone.localdate()
        self.product = Product.objects.create(
            sku="AMOX-500",
            name="Amoxicillin 500mg",
            unit_price="12.50",
        )
        self.b1 = receive_stock(
            product=self.product,
            quantity=5,
            expiry_date=self.today + timedelta(days=30),
            actor_id="receiver-1",
        )
        self.b2 = receive_stock(
            product=self.product,
            quantity=10,
            expiry_date=self.today + timedelta(days=180),
            actor_id="receiver-1",
        )

    def _plan(self, quantity):
        return plan_allocation(
            product_id=self.product.pk,
            quantity=quantity,
            batches=list(eligible_batches(self.product)),
        )

    def _sale_movements(self):
        return StockMovement.objects.filter(
            product_id=self.product.pk, reason=StockMovement.Reason.SALE
        )

    # =====================================================
    # QUERIES
    # =====================================================

    def test_eligible_batches_are_fefo_ordered(self):
        undated = receive_stock(product=self.product, quantity=3, actor_id="receiver-1")

        ids = list(eligible_batches(self.product).values_list("id", flat=True))

        self.assertEqual(ids, [self.b1.pk, self.b2.pk, undated.pk])

    def test_past_expiry_batches_are_not_eligible(self):
        stale = StockBatch.objects.create(
            product=self.product,
            batch_number="OLD-1",
            expiry_date=self.today - timedelta(days=1),
            quantity_received=40,
            quantity_remaining=40,
        )

        self.assertNotIn(stale.pk, eligible_batches(self.product).values_list("id", flat=True))
        self.assertEqual(available_quantity(self.product), 15)

    def test_projection_counts_only_active_batches(self):
        quarantine_batch(batch_id=self.b1.pk, actor_id="pharmacist-1")

        self.assertEqual(project_stock_on_hand(self.product.pk), 10)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_on_hand, 10)

    def test_sync_repairs_a_drifted_counter(self):
        Product.objects.filter(pk=self.product.pk).update(stock_on_hand=999)

        self.assertEqual(sync_stock_on_hand(self.product.pk), 15)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock_on_hand, 15)

    # =====================================================
    # DEDUCTION
    # =====================================================

    def test_deduct_spans_batches_and_depletes_first(self):
        movements = reserve_and_deduct(
            self._plan(8), actor_id=ACTOR, reference_id="sale-1"
        )

        self.b1.refresh_from_db()
        self.b2.refresh_from_db()
        self.product.refresh_from_db()

        self.assertEqual(self.b1.quantity_remaining, 0)
        self.assertEqual(self.b1.status, StockBatch.Status.DEPLETED)
        self.assertEqual(self.b2.quantity_remaining, 7)
        self.assertEqual(self.b2.status, StockBatch.Status.ACTIVE)
        self.assertEqual(self.product.stock_on_hand, 7)

        self.assertEqual(len(movements), 2)
        self.assertEqual(
            [(m.batch_id, m.quantity, m.stock_before, m.stock_after) for m in movements],
            [(self.b1.pk, 5, 15, 10), (self.b2.pk, 3, 10, 7)],
        )
        for movement in movements:
            self.assertEqual(movement.direction, StockMovement.Direction.OUT)
            self.assertEqual(movement.reference_id, "sale-1")
            self.assertEqual(movement.actor_id, ACTOR)

    def test_conflict_rolls_back_every_draw(self):
        plan = self._plan(8)
        # Another terminal sells most of B2 after planning.
        StockBatch.objects.filter(pk=self.b2.pk).update(quantity_remaining=1)

        with self.assertRaises(StockConflictError) as ctx:
            reserve_and_deduct(plan, actor_id=ACTOR, reference_id="sale-1")

        self.assertEqual(ctx.exception.batch_id, self.b2.pk)
        self.assertEqual(ctx.exception.remaining, 1)

        self.b1.refresh_from_db()
        self.assertEqual(self.b1.quantity_remaining, 5)
        self.assertEqual(self.b1.status, StockBatch.Status.ACTIVE)
        self.assertFalse(self._sale_movements().exists())

    def test_conflict_on_quarantined_batch(self):
        plan = self._plan(3)
        quarantine_batch(batch_id=self.b1.pk, actor_id="pharmacist-1")

        with self.assertRaises(StockConflictError):
            reserve_and_deduct(plan, actor_id=ACTOR, reference_id="sale-1")

        self.b1.refresh_from_db()
        self.assertEqual(self.b1.quantity_remaining, 5)

    def test_legacy_deduction_uses_flat_counter(self):
        legacy = Product.objects.create(
            sku="ORS-1", name="ORS Sachet", unit_price="8.00", stock_on_hand=30
        )

        movement = deduct_legacy(legacy.pk, 4, actor_id=ACTOR, reference_id="sale-9")

        legacy.refresh_from_db()
        self.assertEqual(legacy.stock_on_hand, 26)
        self.assertIsNone(movement.batch_id)
        self.assertEqual((movement.stock_before, movement.stock_after), (30, 26))

    def test_legacy_deduction_refuses_to_go_negative(self):
        legacy = Product.objects.create(
            sku="ORS-2", name="ORS Sachet", unit_price="8.00", stock_on_hand=3
        )

        with self.assertRaises(InsufficientStockError) as ctx:
            deduct_legacy(legacy.pk, 4, actor_id=ACTOR)

        self.assertEqual(ctx.exception.available, 3)
        legacy.refresh_from_db()
        self.assertEqual(legacy.stock_on_hand, 3)

    # =====================================================
    # RESTORATION
    # =====================================================

    def test_restore_is_inverse_of_deduct(self):
        plan = self._plan(8)
        reserve_and_deduct(plan, actor_id=ACTOR, reference_id="sale-1")

        outcome = restore(plan, actor_id=ACTOR, reference_id="sale-1")

        self.b1.refresh_from_db()
        self.b2.refresh_from_db()
        self.product.refresh_from_db()

        self.assertEqual(outcome.warnings, [])
        self.assertEqual(outcome.restored_quantity, 8)
        self.assertEqual((self.b1.quantity_remaining, self.b1.status), (5, StockBatch.Status.ACTIVE))
        self.assertEqual(self.b2.quantity_remaining, 10)
        self.assertEqual(self.product.stock_on_hand, 15)
        self.assertTrue(
            all(m.direction == StockMovement.Direction.IN for m in outcome.movements)
        )

    def test_restore_skips_missing_batch_with_warning(self):
        ghost = uuid4()
        plan = AllocationPlan(product_id=self.product.pk, requested=3, draws=(Draw(ghost, 3),))

        outcome = restore(plan, actor_id=ACTOR, reference_id="sale-1")

        self.assertEqual(outcome.movements, [])
        self.assertEqual(len(outcome.warnings), 1)
        self.assertEqual(outcome.warnings[0].reason, "batch_not_found")
        self.assertEqual(outcome.warnings[0].batch_id, ghost)

    def test_restore_never_exceeds_quantity_received(self):
        reserve_and_deduct(self._plan(2), actor_id=ACTOR, reference_id="sale-1")
        plan = AllocationPlan(
            product_id=self.product.pk, requested=5, draws=(Draw(self.b1.pk, 5),)
        )

        outcome = restore(plan, actor_id=ACTOR, reference_id="sale-1")

        self.b1.refresh_from_db()
        self.assertEqual(self.b1.quantity_remaining, 5)
        self.assertEqual(outcome.restored_quantity, 2)
        self.assertEqual(outcome.warnings[0].reason, "exceeds_received")
        self.assertEqual(outcome.warnings[0].quantity, 3)

    def test_restore_into_quarantined_batch_is_an_adjustment(self):
        plan = self._plan(2)
        reserve_and_deduct(plan, actor_id=ACTOR, reference_id="sale-1")
        quarantine_batch(batch_id=self.b1.pk, actor_id="pharmacist-1")

        outcome = restore(plan, actor_id=ACTOR, reference_id="sale-1")

        self.b1.refresh_from_db()
        self.product.refresh_from_db()
        movement = outcome.movements[0]

        self.assertEqual(self.b1.quantity_remaining, 5)
        self.assertEqual(self.b1.status, StockBatch.Status.QUARANTINED)
        self.assertEqual(self.product.stock_on_hand, 10)
        self.assertEqual(movement.direction, StockMovement.Direction.ADJUSTMENT)
        self.assertEqual(movement.stock_before, movement.stock_after)

    def test_legacy_restore_credits_flat_counter(self):
        legacy = Product.objects.create(
            sku="ORS-3", name="ORS Sachet", unit_price="8.00", stock_on_hand=30
        )
        deduct_legacy(legacy.pk, 4, actor_id=ACTOR, reference_id="sale-2")

        outcome = restore(
            AllocationPlan(product_id=legacy.pk, requested=4, draws=(Draw(None, 4),)),
            actor_id=ACTOR,
            reference_id="sale-2",
        )

        legacy.refresh_from_db()
        self.assertEqual(legacy.stock_on_hand, 30)
        self.assertEqual(outcome.restored_quantity, 4)

    def test_legacy_restore_after_adoption_goes_into_a_batch(self):
        legacy = Product.objects.create(
            sku="ORS-4", name="ORS Sachet", unit_price="8.00", stock_on_hand=30
        )
        deduct_legacy(legacy.pk, 4, actor_id=ACTOR, reference_id="sale-3")
        receive_stock(product=legacy, quantity=10, actor_id="receiver-1")

        outcome = restore(
            AllocationPlan(product_id=legacy.pk, requested=4, draws=(Draw(None, 4),)),
            actor_id=ACTOR,
            reference_id="sale-3",
        )

        legacy.refresh_from_db()
        movement = outcome.movements[0]
        self.assertEqual(outcome.warnings, [])
        self.assertEqual(legacy.stock_on_hand, 40)
        self.assertEqual(movement.direction, StockMovement.Direction.IN)
        self.assertEqual(movement.note, LEGACY_DRAW_NOTE)

        credited = StockBatch.objects.get(pk=movement.batch_id)
        self.assertIsNone(credited.expiry_date)
        self.assertEqual(credited.quantity_received, 4)
        self.assertEqual(credited.quantity_remaining, 4)
        self.assertEqual(credited.status, StockBatch.Status.ACTIVE)
        self.assertEqual(outstanding_sale_draws("sale-3"), {})

    def test_legacy_restore_uses_opening_batch_headroom_first(self):
        legacy = Product.objects.create(
            sku="ORS-7", name="ORS Sachet", unit_price="8.00", stock_on_hand=30
        )
        deduct_legacy(legacy.pk, 4, actor_id=ACTOR, reference_id="sale-4")
        opening = adopt_legacy_stock(product=legacy, actor_id="receiver-1")
        reserve_and_deduct(
            AllocationPlan(product_id=legacy.pk, requested=3, draws=(Draw(opening.pk, 3),)),
            actor_id=ACTOR,
            reference_id="sale-5",
        )

        outcome = restore(
            AllocationPlan(product_id=legacy.pk, requested=4, draws=(Draw(None, 4),)),
            actor_id=ACTOR,
            reference_id="sale-4",
        )

        opening.refresh_from_db()
        legacy.refresh_from_db()
        self.assertEqual([m.quantity for m in outcome.movements], [3, 1])
        self.assertEqual(outcome.movements[0].batch_id, opening.pk)
        self.assertEqual(opening.quantity_remaining, 26)
        self.assertEqual(legacy.stock_on_hand, 27)

    # =====================================================
    # EXPIRY
    # =====================================================

    def _stale_batch(self, quantity=40):
        return StockBatch.objects.create(
            product=self.product,
            batch_number="OLD-2",
            expiry_date=self.today - timedelta(days=1),
            quantity_received=quantity,
            quantity_remaining=quantity,
        )

    def test_projection_excludes_past_expiry_batches(self):
        self._stale_batch()

        self.assertEqual(project_stock_on_hand(self.product.pk), 15)
        self.assertEqual(project_stock_on_hand(self.product.pk), available_quantity(self.product))

    def test_mutation_expires_overdue_batches_first(self):
        stale = self._stale_batch()

        reserve_and_deduct(self._plan(2), actor_id=ACTOR, reference_id="sale-6")

        stale.refresh_from_db()
        self.product.refresh_from_db()
        self.assertEqual(stale.status, StockBatch.Status.EXPIRED)
        self.assertEqual(self.product.stock_on_hand, 13)

        expiry = StockMovement.objects.get(batch=stale, reason=StockMovement.Reason.EXPIRY)
        self.assertEqual(expiry.stock_before - expiry.stock_after, 40)

    def test_expire_overdue_is_idempotent(self):
        stale = self._stale_batch()

        self.assertEqual(expire_overdue_batches(self.product.pk, actor_id=ACTOR), [stale])
        self.assertEqual(expire_overdue_batches(self.product.pk, actor_id=ACTOR), [])
