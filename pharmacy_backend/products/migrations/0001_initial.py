"""
======================================================
PATH: products/migrations/0001_initial.py
======================================================
MIGRATION: INITIAL PRODUCTS SCHEMA

Creates:
- Product (projection counter + unit multipliers)
- StockBatch (received lots, FEFO-indexed)
- StockMovement (append-only ledger; FKs without DB constraints so
  history survives product/batch deletion)
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Product",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                ("sku", models.CharField(max_length=128, unique=True, db_index=True)),
                ("name", models.CharField(max_length=255, db_index=True)),
                ("unit_price", models.DecimalField(max_digits=10, decimal_places=2)),
                ("pieces_per_sheet", models.PositiveIntegerField(default=1)),
                ("sheets_per_box", models.PositiveIntegerField(default=1)),
                ("stock_on_hand", models.PositiveIntegerField(default=0)),
                ("low_stock_threshold", models.PositiveIntegerField(default=10)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["name"], name="product_name_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(pieces_per_sheet__gte=1),
                        name="chk_product_pieces_per_sheet_gte_one",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(sheets_per_box__gte=1),
                        name="chk_product_sheets_per_box_gte_one",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockBatch",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                (
                    "batch_number",
                    models.CharField(
                        max_length=128,
                        help_text="Human-readable lot reference (BT<MMDDYY>-<n> when generated)",
                    ),
                ),
                ("expiry_date", models.DateField(null=True, blank=True)),
                (
                    "quantity_received",
                    models.PositiveIntegerField(help_text="Quantity delivered (immutable)"),
                ),
                (
                    "quantity_remaining",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Remaining quantity (service-managed only)",
                    ),
                ),
                (
                    "unit_cost",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        null=True,
                        blank=True,
                        default=None,
                        help_text="Unit purchase cost for this lot (may be null for adopted legacy stock).",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("active", "Active"),
                            ("quarantined", "Quarantined"),
                            ("expired", "Expired"),
                            ("depleted", "Depleted"),
                        ],
                        default="active",
                    ),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="stock_batches",
                        to="products.product",
                    ),
                ),
            ],
            options={
                "ordering": ["expiry_date", "created_at"],
                "indexes": [
                    models.Index(
                        fields=["product", "status", "expiry_date"],
                        name="batch_product_status_exp_idx",
                    ),
                    models.Index(fields=["created_at"], name="batch_created_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("product", "batch_number"),
                        name="unique_batch_number_per_product",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(quantity_received__gt=0),
                        name="chk_stockbatch_qty_received_gt_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(quantity_remaining__lte=models.F("quantity_received")),
                        name="chk_stockbatch_remaining_lte_received",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="StockMovement",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        primary_key=True,
                        default=uuid.uuid4,
                        editable=False,
                        serialize=False,
                    ),
                ),
                (
                    "direction",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("in", "Stock In"),
                            ("out", "Stock Out"),
                            ("adjustment", "Adjustment"),
                        ],
                    ),
                ),
                (
                    "reason",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("receipt", "Stock Receipt"),
                            ("sale", "Sale"),
                            ("sale_undo", "Sale Reversal"),
                            ("expiry", "Expired Stock"),
                            ("quarantine", "Quarantine"),
                            ("legacy_migration", "Legacy Stock Adoption"),
                        ],
                    ),
                ),
                ("quantity", models.PositiveIntegerField()),
                (
                    "reference_type",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("sale", "Sale"),
                            ("sale_undo", "Sale Undo"),
                            ("sale_edit", "Sale Edit"),
                            ("batch", "Batch"),
                        ],
                        blank=True,
                        default="",
                    ),
                ),
                ("reference_id", models.CharField(max_length=64, blank=True, default="")),
                ("actor_id", models.CharField(max_length=64)),
                ("stock_before", models.PositiveIntegerField()),
                ("stock_after", models.PositiveIntegerField()),
                (
                    "unit_cost_snapshot",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        null=True,
                        blank=True,
                        default=None,
                        help_text="Unit cost snapshot from batch at movement time (immutable).",
                    ),
                ),
                ("note", models.CharField(max_length=255, blank=True, default="")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        db_constraint=False,
                        related_name="stock_movements",
                        to="products.product",
                    ),
                ),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        db_constraint=False,
                        null=True,
                        blank=True,
                        related_name="stock_movements",
                        help_text="NULL for legacy flat-counter movements",
                        to="products.stockbatch",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["product", "created_at"],
                        name="movement_product_created_idx",
                    ),
                    models.Index(
                        fields=["reference_type", "reference_id"],
                        name="movement_reference_idx",
                    ),
                    models.Index(
                        fields=["batch", "created_at"],
                        name="movement_batch_created_idx",
                    ),
                ],
            },
        ),
    ]
