# products/services/batch_ledger.py

"""
======================================================
PATH: products/services/batch_ledger.py
======================================================
BATCH LEDGER (READ + DECREMENT INTERFACE)

Purpose:
- Canonical batch queries for the FIFO allocator and the availability calculator.
- The ONLY place a batch decrement is persisted.

FIFO contract:
- Eligible = owning receipt FINISHED and quantity_remaining > 0
- Ordered by received_at ascending, ties broken by id (deterministic)
- When locking, rows are locked in that same order so concurrent allocations
  against one variant always queue behind each other in FIFO order

Non-negativity:
- Decrements are conditional UPDATEs (remaining >= take). If another writer got
  there first, zero rows match and ConcurrencyConflict is raised; remaining can
  never go below zero.
"""

from __future__ import annotations

from django.db.models import F

from products.models import StockBatch
from purchases.models import PurchaseReceipt

FIFO_ORDERING = ("received_at", "id")


class ConcurrencyConflict(Exception):
    """A batch or order changed between read and write."""


def _variant_id(variant):
    return getattr(variant, "pk", variant)


def finalized_batches(variant):
    """
    All batches of the variant whose receipt is finished, depleted ones included.
    """
    return (
        StockBatch.objects.filter(
            product_variant_id=_variant_id(variant),
            receipt__status=PurchaseReceipt.Status.FINISHED,
        )
        .order_by(*FIFO_ORDERING)
    )


def eligible_batches(variant, *, lock: bool = False):
    qs = finalized_batches(variant).filter(quantity_remaining__gt=0)
    if lock:
        # of=("self",) keeps the lock off the joined receipt rows
        qs = qs.select_for_update(of=("self",))
    return qs


def save_batch_decrement(*, batch: StockBatch, take: int) -> None:
    """
    Persist `batch.quantity_remaining -= take` atomically against the DB row.
    """
    if take <= 0:
        raise ValueError("take must be greater than zero")

    updated = (
        StockBatch.objects.filter(pk=batch.pk, quantity_remaining__gte=take)
        .update(quantity_remaining=F("quantity_remaining") - take)
    )
    if updated != 1:
        raise ConcurrencyConflict(
            f"Batch {batch.pk} changed during allocation "
            f"(could not take {take} from it)."
        )

    batch.quantity_remaining = int(batch.quantity_remaining) - take
