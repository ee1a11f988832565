"""
======================================================
PATH: products/migrations/0001_initial.py
======================================================
MIGRATION: CREATE ProductVariant + StockBatch

StockBatch rows are receipt lines, so this depends on purchases.0001.
BatchAllocation comes in 0002 (it needs sales.OrderLine).
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
        ("purchases", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="ProductVariant",
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
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
            ],
            options={
                "ordering": ["sku"],
                "indexes": [
                    models.Index(fields=["is_active"], name="products_variant_active_idx"),
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
                    "quantity_received",
                    models.PositiveIntegerField(
                        help_text="Quantity received on the receipt line (immutable)"
                    ),
                ),
                (
                    "quantity_remaining",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Remaining quantity (allocator-managed only)",
                    ),
                ),
                (
                    "unit_cost",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        help_text="Per-unit input cost for this lot (immutable).",
                    ),
                ),
                (
                    "received_at",
                    models.DateTimeField(
                        default=django.utils.timezone.now,
                        db_index=True,
                        help_text="FIFO ordering key.",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "receipt",
                    models.ForeignKey(
                        to="purchases.purchasereceipt",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="batches",
                    ),
                ),
                (
                    "product_variant",
                    models.ForeignKey(
                        to="products.productvariant",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="stock_batches",
                    ),
                ),
            ],
            options={
                "ordering": ["received_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["product_variant", "received_at"],
                        name="stockbatch_variant_recv_idx",
                    ),
                    models.Index(fields=["receipt"], name="stockbatch_receipt_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity_remaining__gte=0),
                        name="chk_stockbatch_qty_remaining_gte_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            quantity_remaining__lte=models.F("quantity_received")
                        ),
                        name="chk_stockbatch_remaining_lte_received",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(unit_cost__gte=Decimal("0.00")),
                        name="chk_stockbatch_unit_cost_gte_zero",
                    ),
                ],
            },
        ),
    ]
