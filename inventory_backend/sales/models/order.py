# sales/models/order.py

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

User = settings.AUTH_USER_MODEL


class OrderStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    CONFIRMED_COD = "confirmed_cod", "Confirmed (cash on delivery)"
    PAID_PROCESSING = "paid_processing", "Paid, processing"
    WAITING_DEPOSIT = "waiting_deposit", "Waiting for deposit"
    DEPOSIT_PAID = "deposit_paid", "Deposit paid"
    DELIVERING = "delivering", "Delivering"
    WAITING_PICKUP = "waiting_pickup", "Waiting for pickup"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDING = "refunding", "Refunding"
    REFUNDED = "refunded", "Refunded"


class Order(models.Model):
    """
    Sales order aggregate.

    GUARANTEES:
    - status only changes through sales.services (lifecycle-validated)
    - a COMPLETED order is frozen: its status can never change again
    - line costs are assigned exactly once, by the fulfillment orchestrator
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_no = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated order number",
    )

    status = models.CharField(
        max_length=32,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    last_status_changed_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    completed_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="completed_orders",
        help_text="Staff member who completed the order",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="order_status_idx"),
            models.Index(fields=["created_at"], name="order_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous_status = (
                Order.objects.filter(pk=self.pk).values_list("status", flat=True).first()
            )
            if previous_status == OrderStatus.COMPLETED and self.status != previous_status:
                raise ValueError(
                    f"Order {self.pk} is completed. "
                    f"Status change {previous_status} -> {self.status} is not allowed."
                )

        if not self.order_no:
            prefix = timezone.now().strftime("ORD%Y%m%d")
            self.order_no = f"{prefix}-{uuid.uuid4().hex[:8].upper()}"

        super().save(*args, **kwargs)

    @property
    def is_completed(self) -> bool:
        return self.status == OrderStatus.COMPLETED

    def __str__(self):
        return f"{self.order_no} ({self.status})"
