# products/management/commands/expire_batches.py

"""
EXPIRY SWEEP

Purpose:
- Mark ACTIVE batches past their expiry date (with stock left) as EXPIRED
  and write one EXPIRY adjustment per batch.

Rules:
- Idempotent: rerunning the same day changes nothing.
- Quantities are untouched; only the sellable projection drops.
- Intended for a daily cron / scheduler.
"""

from __future__ import annotations

from datetime import date

from django.core.management.base import BaseCommand, CommandError

from products.services.inventory import mark_expired_batches


class Command(BaseCommand):
    help = "Mark past-expiry batches as EXPIRED and record ledger adjustments."

    def add_arguments(self, parser):
        parser.add_argument(
            "--actor",
            type=str,
            default="system:expiry-sweep",
            help="Actor id recorded on the ledger entries.",
        )
        parser.add_argument(
            "--as-of",
            type=str,
            default="",
            help="Run the sweep as if today were YYYY-MM-DD (default: today).",
        )

    def handle(self, *args, **options):
        raw_date = (options.get("as_of") or "").strip()
        today = None
        if raw_date:
            try:
                today = date.fromisoformat(raw_date)
            except ValueError as exc:
                raise CommandError("--as-of must be YYYY-MM-DD") from exc

        batches = mark_expired_batches(actor_id=options["actor"], today=today)

        for batch in batches:
            self.stdout.write(
                f"  expired {batch.batch_number} "
                f"(product={batch.product_id}, remaining={batch.quantity_remaining})"
            )

        self.stdout.write(self.style.SUCCESS(f"Expired {len(batches)} batch(es)."))
