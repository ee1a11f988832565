# purchases/models.py

import uuid

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class PurchaseReceipt(models.Model):
    """
    Purchase receipt header (goods-in document).

    Lines are StockBatch rows (products app). Receiving is performed by services:
    - lines are recorded while the receipt is WORKING
    - finishing the receipt makes its batches eligible for FIFO allocation
      and stock availability
    - a cancelled receipt never contributes stock
    """

    class Status(models.TextChoices):
        WORKING = "working", "Working"
        FINISHED = "finished", "Finished"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    reference = models.CharField(
        max_length=64,
        blank=True,
        help_text="Supplier delivery / receipt reference",
    )
    notes = models.TextField(blank=True, default="")

    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.WORKING,
    )

    finished_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="purchase_receipts_created",
    )
    finished_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="purchase_receipts_finished",
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="receipt_status_created_idx"),
        ]

    def clean(self):
        if self.status not in self.Status.values:
            raise ValidationError({"status": f"Unknown receipt status '{self.status}'"})

    def save(self, *args, **kwargs):
        if not self.reference:
            prefix = timezone.now().strftime("RCV%Y%m%d")
            self.reference = f"{prefix}-{uuid.uuid4().hex[:8].upper()}"

        if self.status == self.Status.FINISHED and not self.finished_at:
            self.finished_at = timezone.now()

        super().save(*args, **kwargs)

    @property
    def is_editable(self) -> bool:
        return self.status == self.Status.WORKING

    def __str__(self):
        return f"{self.reference} ({self.status})"
