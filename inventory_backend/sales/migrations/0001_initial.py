"""
======================================================
PATH: sales/migrations/0001_initial.py
======================================================
MIGRATION: CREATE Order + OrderLine
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import migrations, models
import django.db.models.deletion
import django.utils.timezone


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        ("products", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Order",
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
                    "order_no",
                    models.CharField(
                        max_length=64,
                        unique=True,
                        blank=True,
                        help_text="System-generated order number",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        max_length=32,
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed_cod", "Confirmed (cash on delivery)"),
                            ("paid_processing", "Paid, processing"),
                            ("waiting_deposit", "Waiting for deposit"),
                            ("deposit_paid", "Deposit paid"),
                            ("delivering", "Delivering"),
                            ("waiting_pickup", "Waiting for pickup"),
                            ("completed", "Completed"),
                            ("cancelled", "Cancelled"),
                            ("refunding", "Refunding"),
                            ("refunded", "Refunded"),
                        ],
                        default="pending",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("last_status_changed_at", models.DateTimeField(null=True, blank=True)),
                ("completed_at", models.DateTimeField(null=True, blank=True)),
                (
                    "completed_by",
                    models.ForeignKey(
                        to=settings.AUTH_USER_MODEL,
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="completed_orders",
                        help_text="Staff member who completed the order",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status"], name="order_status_idx"),
                    models.Index(fields=["created_at"], name="order_created_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="OrderLine",
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
                    "sale_price",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        default=Decimal("0.00"),
                    ),
                ),
                (
                    "cost_price",
                    models.DecimalField(
                        max_digits=12,
                        decimal_places=2,
                        null=True,
                        blank=True,
                        default=None,
                        help_text=(
                            "FIFO-derived unit cost, assigned once at completion. "
                            "Stays empty when nothing was fulfilled (partial undersupply policy)."
                        ),
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(default=django.utils.timezone.now, db_index=True),
                ),
                (
                    "order",
                    models.ForeignKey(
                        to="sales.order",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="lines",
                    ),
                ),
                (
                    "product_variant",
                    models.ForeignKey(
                        to="products.productvariant",
                        null=True,
                        blank=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="order_lines",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(
                        fields=["order", "created_at"],
                        name="orderline_order_created_idx",
                    ),
                    models.Index(
                        fields=["product_variant", "order"],
                        name="orderline_variant_order_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(quantity__gt=0),
                        name="chk_orderline_qty_gt_zero",
                    ),
                ],
            },
        ),
    ]
