"""
======================================================
PATH: products/migrations/0002_batchallocation.py
======================================================
MIGRATION: CREATE BatchAllocation (APPEND-ONLY COGS TRAIL)

Separate from 0001 because it points at sales.OrderLine,
which itself depends on products.ProductVariant.
"""

from __future__ import annotations

import uuid

from django.db import migrations, models
import django.db.models.deletion


class Migration(migrations.Migration):
    dependencies = [
        ("products", "0001_initial"),
        ("sales", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="BatchAllocation",
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
                ("quantity", models.PositiveIntegerField()),
                (
                    "unit_cost_snapshot",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        help_text="Batch unit cost at allocation time (immutable).",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                (
                    "batch",
                    models.ForeignKey(
                        to="products.stockbatch",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="allocations",
                    ),
                ),
                (
                    "order_line",
                    models.ForeignKey(
                        to="sales.orderline",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="batch_allocations",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["order_line", "created_at"],
                        name="batchalloc_line_created_idx",
                    ),
                    models.Index(
                        fields=["batch", "created_at"],
                        name="batchalloc_batch_created_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity__gt=0),
                        name="chk_batchallocation_qty_gt_zero",
                    ),
                ],
            },
        ),
    ]
