"""
======================================================
PATH: sales/migrations/0001_initial.py
======================================================
MIGRATION: INITIAL SALES SCHEMA

Creates:
- Sale (pending -> completed -> cancelled/refunded, edit metadata)
- SaleItem (piece quantities, primary batch reference)
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("products", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Sale",
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
                    "invoice_no",
                    models.CharField(
                        max_length=64,
                        unique=True,
                        blank=True,
                        help_text="System-generated invoice / receipt number",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                    ),
                ),
                (
                    "subtotal_amount",
                    models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00")),
                ),
                (
                    "discount_type",
                    models.CharField(
                        max_length=16,
                        choices=[
                            ("none", "No Discount"),
                            ("pwd", "PWD"),
                            ("senior", "Senior Citizen"),
                            ("custom", "Custom"),
                        ],
                        default="none",
                    ),
                ),
                (
                    "discount_percentage",
                    models.DecimalField(max_digits=5, decimal_places=2, default=Decimal("0.00")),
                ),
                (
                    "discount_amount",
                    models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00")),
                ),
                ("pwd_senior_id", models.CharField(max_length=64, blank=True, default="")),
                (
                    "pwd_senior_holder_name",
                    models.CharField(max_length=255, blank=True, default=""),
                ),
                (
                    "total_amount",
                    models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00")),
                ),
                (
                    "payment_method",
                    models.CharField(
                        max_length=32,
                        default="cash",
                        help_text="cash/card/gcash/bank/transfer",
                    ),
                ),
                ("customer_id", models.CharField(max_length=64, blank=True, default="")),
                ("customer_name", models.CharField(max_length=255, blank=True, default="")),
                ("notes", models.TextField(blank=True, default="")),
                (
                    "created_by",
                    models.CharField(max_length=64, help_text="Actor who created the sale"),
                ),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("completed_at", models.DateTimeField(null=True, blank=True)),
                ("is_edited", models.BooleanField(default=False)),
                ("edit_reason", models.TextField(blank=True, default="")),
                ("edited_at", models.DateTimeField(null=True, blank=True)),
                ("edited_by", models.CharField(max_length=64, blank=True, default="")),
                (
                    "original_total_amount",
                    models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="sale_status_created_idx"),
                    models.Index(fields=["completed_at"], name="sale_completed_at_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="SaleItem",
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
                ("product_name", models.CharField(max_length=255, blank=True, default="")),
                ("quantity", models.PositiveIntegerField(help_text="Quantity in pieces")),
                (
                    "unit_type",
                    models.CharField(
                        max_length=8,
                        choices=[("piece", "Piece"), ("sheet", "Sheet"), ("box", "Box")],
                        default="piece",
                    ),
                ),
                (
                    "unit_price",
                    models.DecimalField(max_digits=10, decimal_places=2, help_text="Price per piece"),
                ),
                (
                    "total_price",
                    models.DecimalField(max_digits=12, decimal_places=2, editable=False),
                ),
                ("expiry_date", models.DateField(null=True, blank=True)),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, db_index=True),
                ),
                (
                    "sale",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="sales.sale",
                    ),
                ),
                (
                    "product",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.SET_NULL,
                        null=True,
                        related_name="sale_items",
                        to="products.product",
                    ),
                ),
                (
                    "batch",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.SET_NULL,
                        null=True,
                        blank=True,
                        related_name="sale_items",
                        to="products.stockbatch",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["sale", "created_at"], name="saleitem_sale_created_idx"),
                    models.Index(
                        fields=["product", "created_at"],
                        name="saleitem_product_created_idx",
                    ),
                ],
            },
        ),
    ]
