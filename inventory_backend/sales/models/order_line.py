# sales/models/order_line.py

"""
ORDER LINE

One ordered product variant inside an Order.

Notes:
- quantity and sale_price are fixed when the line is created by the sales subsystem
- cost_price is WRITE-ONCE: it is populated by the fulfillment orchestrator from the
  FIFO allocation when the order first reaches "completed", and never rewritten
"""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from products.models import ProductVariant

from .order import Order


class OrderLine(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="lines",
    )

    product_variant = models.ForeignKey(
        ProductVariant,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_lines",
    )

    quantity = models.PositiveIntegerField()

    sale_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
    )

    cost_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        default=None,
        help_text=(
            "FIFO-derived unit cost, assigned once at completion. "
            "Stays empty when nothing was fulfilled (partial undersupply policy)."
        ),
    )

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order", "created_at"], name="orderline_order_created_idx"),
            models.Index(fields=["product_variant", "order"], name="orderline_variant_order_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="chk_orderline_qty_gt_zero",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            previous = OrderLine.objects.filter(pk=self.pk).first()
            if previous is not None and previous.cost_price is not None:
                if self.cost_price != previous.cost_price:
                    raise ValidationError("OrderLine.cost_price is write-once")

                for field in ("order_id", "product_variant_id", "quantity", "sale_price"):
                    if getattr(self, field) != getattr(previous, field):
                        raise ValidationError(
                            f"OrderLine field '{field}' is immutable once costed"
                        )

        super().save(*args, **kwargs)

    @property
    def line_total(self) -> Decimal:
        return Decimal(self.sale_price) * Decimal(int(self.quantity or 0))

    def __str__(self):
        return f"{self.product_variant} x {self.quantity}"
