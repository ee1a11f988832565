# products/models/stock_batch.py

"""
STOCK BATCH (RECEIPT-BASED INVENTORY)

Represents ONE purchase lot of ONE product variant.

CANONICAL MODEL:
- StockBatch = one purchase receipt line
- quantity_received is immutable after creation
- unit_cost is immutable after creation
- quantity_remaining is mutated ONLY by the FIFO allocator (products.services.stock_fifo)
- received_at is the FIFO ordering key (ties broken by id)

ELIGIBILITY:
- A batch only counts for allocation and availability once its owning
  PurchaseReceipt has reached status "finished". The receipt subsystem decides
  that; the engine only reads it (is_finalized).
"""

import uuid
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .product import ProductVariant


class StockBatch(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    receipt = models.ForeignKey(
        "purchases.PurchaseReceipt",
        on_delete=models.PROTECT,
        related_name="batches",
    )

    product_variant = models.ForeignKey(
        ProductVariant,
        on_delete=models.PROTECT,
        related_name="stock_batches",
    )

    quantity_received = models.PositiveIntegerField(
        help_text="Quantity received on the receipt line (immutable)"
    )

    quantity_remaining = models.PositiveIntegerField(
        default=0,
        help_text="Remaining quantity (allocator-managed only)",
    )

    unit_cost = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Per-unit input cost for this lot (immutable).",
    )

    received_at = models.DateTimeField(
        default=timezone.now,
        db_index=True,
        help_text="FIFO ordering key.",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["received_at", "id"]
        indexes = [
            models.Index(fields=["product_variant", "received_at"], name="stockbatch_variant_recv_idx"),
            models.Index(fields=["receipt"], name="stockbatch_receipt_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity_remaining__gte=0),
                name="chk_stockbatch_qty_remaining_gte_zero",
            ),
            models.CheckConstraint(
                condition=Q(quantity_remaining__lte=F("quantity_received")),
                name="chk_stockbatch_remaining_lte_received",
            ),
            models.CheckConstraint(
                condition=Q(unit_cost__gte=Decimal("0.00")),
                name="chk_stockbatch_unit_cost_gte_zero",
            ),
        ]

    # -------------------------------------------------
    # VALIDATION
    # -------------------------------------------------

    def clean(self):
        if self.quantity_received is None or self.quantity_received < 0:
            raise ValidationError(
                {"quantity_received": "quantity_received cannot be negative"}
            )

        if self.quantity_remaining < 0:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot be negative"}
            )

        if self.quantity_remaining > self.quantity_received:
            raise ValidationError(
                {"quantity_remaining": "quantity_remaining cannot exceed quantity_received"}
            )

        if self.unit_cost is None or Decimal(self.unit_cost) < Decimal("0.00"):
            raise ValidationError({"unit_cost": "unit_cost must be zero or greater"})

    # -------------------------------------------------
    # IMMUTABILITY
    # -------------------------------------------------

    def save(self, *args, **kwargs):
        if not self._state.adding:
            original = StockBatch.objects.only(
                "quantity_received", "quantity_remaining", "unit_cost", "received_at"
            ).get(pk=self.pk)

            if self.quantity_received != original.quantity_received:
                raise ValidationError({"quantity_received": "quantity_received is immutable"})

            if Decimal(self.unit_cost) != Decimal(original.unit_cost):
                raise ValidationError({"unit_cost": "unit_cost is immutable"})

            if self.received_at != original.received_at:
                raise ValidationError({"received_at": "received_at is immutable"})

            # remaining never grows back; depletion goes through the allocator
            if self.quantity_remaining > original.quantity_remaining:
                raise ValidationError(
                    {"quantity_remaining": "quantity_remaining is monotonically non-increasing"}
                )

        self.full_clean()
        super().save(*args, **kwargs)

    # -------------------------------------------------
    # READ-ONLY HELPERS
    # -------------------------------------------------

    @property
    def is_finalized(self) -> bool:
        from purchases.models import PurchaseReceipt

        return getattr(self.receipt, "status", None) == PurchaseReceipt.Status.FINISHED

    @property
    def total_remaining_value(self) -> Decimal:
        return Decimal(self.unit_cost) * Decimal(int(self.quantity_remaining or 0))

    def __str__(self):
        return f"{self.product_variant} | {self.received_at:%Y-%m-%d} | {self.quantity_remaining}/{self.quantity_received}"
