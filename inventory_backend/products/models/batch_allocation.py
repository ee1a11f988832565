# products/models/batch_allocation.py

"""
BATCH ALLOCATION (COGS AUDIT TRAIL)

Immutable record of ONE take made by the FIFO allocator:
"order line X consumed N units from batch Y at unit cost C".

GUARANTEES:
- Append-only (no updates, no deletes)
- unit_cost_snapshot is copied from the batch at allocation time
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from .stock_batch import StockBatch


class BatchAllocation(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    batch = models.ForeignKey(
        StockBatch,
        on_delete=models.PROTECT,
        related_name="allocations",
    )

    order_line = models.ForeignKey(
        "sales.OrderLine",
        on_delete=models.CASCADE,
        related_name="batch_allocations",
    )

    quantity = models.PositiveIntegerField()

    unit_cost_snapshot = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Batch unit cost at allocation time (immutable).",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["order_line", "created_at"], name="batchalloc_line_created_idx"),
            models.Index(fields=["batch", "created_at"], name="batchalloc_batch_created_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(quantity__gt=0),
                name="chk_batchallocation_qty_gt_zero",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("BatchAllocation records are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("BatchAllocation records cannot be deleted")

    def __str__(self):
        return f"{self.quantity} @ {self.unit_cost_snapshot} from batch {self.batch_id}"
