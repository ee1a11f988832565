# products/services/availability.py

"""
======================================================
PATH: products/services/availability.py
======================================================
STOCK AVAILABILITY (READ PATH)

available = total_remaining - booked

- total_remaining: sum of quantity_remaining over FINALIZED batches
  (depleted batches contribute 0)
- booked: sum of OrderLine.quantity over orders in a booking-phase status
  (reserved, not yet deducted from batches)
- available may be negative when over-booked; that is a signal, not an error

Consumed by catalog/listing code. The fulfillment orchestrator never calls it.
"""

from __future__ import annotations

from dataclasses import dataclass

from django.db.models import Sum

from products.models import ProductVariant, StockBatch
from purchases.models import PurchaseReceipt
from sales.models import OrderLine
from sales.services.order_lifecycle import BOOKING_PHASES

IN_STOCK = "in_stock"
OUT_OF_STOCK = "out_of_stock"


@dataclass(frozen=True)
class StockSnapshot:
    variant_id: object
    total_remaining: int
    booked: int

    @property
    def available(self) -> int:
        return self.total_remaining - self.booked

    @property
    def is_in_stock(self) -> bool:
        return self.available > 0

    @property
    def status_tag(self) -> str:
        return IN_STOCK if self.is_in_stock else OUT_OF_STOCK

    def can_fulfill(self, quantity: int) -> bool:
        return quantity > 0 and self.available >= quantity

    def as_dict(self) -> dict:
        return {
            "variant_id": str(self.variant_id),
            "total_remaining": self.total_remaining,
            "booked": self.booked,
            "available": self.available,
            "status_tag": self.status_tag,
        }


def _variant_id(variant):
    return ProductVariant._meta.pk.to_python(getattr(variant, "pk", variant))


def _finalized_batches_qs():
    return StockBatch.objects.filter(receipt__status=PurchaseReceipt.Status.FINISHED)


def _booked_lines_qs():
    return OrderLine.objects.filter(order__status__in=BOOKING_PHASES)


def compute_availability(variant) -> StockSnapshot:
    variant_id = _variant_id(variant)

    total = (
        _finalized_batches_qs()
        .filter(product_variant_id=variant_id)
        .aggregate(total=Sum("quantity_remaining"))
        .get("total")
    )
    booked = (
        _booked_lines_qs()
        .filter(product_variant_id=variant_id)
        .aggregate(total=Sum("quantity"))
        .get("total")
    )

    return StockSnapshot(
        variant_id=variant_id,
        total_remaining=int(total or 0),
        booked=int(booked or 0),
    )


def compute_availability_many(variant_ids) -> dict:
    """
    Batch form for listings: {variant_id: StockSnapshot}.
    Variants without batches or bookings get a zero snapshot.
    """
    ids = [_variant_id(v) for v in variant_ids]
    if not ids:
        return {}

    totals = {
        row["product_variant_id"]: int(row["total"] or 0)
        for row in (
            _finalized_batches_qs()
            .filter(product_variant_id__in=ids)
            .order_by()
            .values("product_variant_id")
            .annotate(total=Sum("quantity_remaining"))
        )
    }
    booked = {
        row["product_variant_id"]: int(row["total"] or 0)
        for row in (
            _booked_lines_qs()
            .filter(product_variant_id__in=ids)
            .order_by()
            .values("product_variant_id")
            .annotate(total=Sum("quantity"))
        )
    }

    return {
        vid: StockSnapshot(
            variant_id=vid,
            total_remaining=totals.get(vid, 0),
            booked=booked.get(vid, 0),
        )
        for vid in ids
    }
