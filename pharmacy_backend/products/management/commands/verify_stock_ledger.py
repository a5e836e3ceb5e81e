# products/management/commands/verify_stock_ledger.py

"""
LEDGER RECONCILIATION (READ-ONLY)

Purpose:
- For every product with ledger history, rebuild stock_on_hand from the
  movements and compare it with the stored projection.

Rules:
- Never writes. Use it after incidents or data migrations.
- Exit code 1 (CommandError) when any product is out of sync.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from products.models import Product
from products.services.stock_ledger import reconstruct_stock_on_hand


class Command(BaseCommand):
    help = "Compare Product.stock_on_hand with the stock rebuilt from StockMovement rows."

    def handle(self, *args, **options):
        mismatches = 0
        checked = 0

        for product in Product.objects.order_by("sku").iterator():
            rebuilt = reconstruct_stock_on_hand(product.pk)
            if rebuilt is None:
                continue

            checked += 1
            if rebuilt != product.stock_on_hand:
                mismatches += 1
                self.stdout.write(
                    self.style.ERROR(
                        f"  {product.sku}: stock_on_hand={product.stock_on_hand} ledger={rebuilt}"
                    )
                )

        if mismatches:
            raise CommandError(f"{mismatches} of {checked} product(s) out of sync with the ledger.")

        self.stdout.write(self.style.SUCCESS(f"{checked} product(s) consistent with the ledger."))
