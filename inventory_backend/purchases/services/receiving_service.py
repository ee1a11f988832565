# purchases/services/receiving_service.py


"""
======================================================
PATH: purchases/services/receiving_service.py
======================================================
PURCHASE RECEIVING SERVICE

Receipt lifecycle:
    working  -> finished | cancelled
    finished -> (terminal)
    cancelled -> (terminal)

Canonical flow:
1) Create receipt (WORKING)
2) Record lines: each line is one StockBatch (remaining = received)
3) Finish receipt: its batches become eligible for FIFO allocation and
   count towards available stock

Rules:
- Lines can only be recorded while the receipt is WORKING.
- Quantities are integer units; unit_cost is a 2dp decimal >= 0.
- Finishing an already finished receipt is an idempotent no-op.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from django.db import transaction
from django.utils import timezone

from products.models import StockBatch
from purchases.models import PurchaseReceipt

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")

ALLOWED_TRANSITIONS = {
    PurchaseReceipt.Status.WORKING: frozenset({
        PurchaseReceipt.Status.FINISHED,
        PurchaseReceipt.Status.CANCELLED,
    }),
    PurchaseReceipt.Status.FINISHED: frozenset(),
    PurchaseReceipt.Status.CANCELLED: frozenset(),
}


class PurchaseReceivingError(ValueError):
    pass


class InvalidReceiptTransition(PurchaseReceivingError):
    pass


def _money(v) -> Decimal:
    if v is None or v == "":
        raise PurchaseReceivingError("unit_cost is required")
    try:
        return Decimal(str(v)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError) as exc:
        raise PurchaseReceivingError("unit_cost must be a valid decimal") from exc


def _to_int_qty(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise PurchaseReceivingError("quantity must be a whole integer unit")
    return value


def is_receipt_transition_allowed(current, target) -> bool:
    if not current or not target:
        return False
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def _lock_receipt(receipt_id) -> PurchaseReceipt:
    try:
        return PurchaseReceipt.objects.select_for_update().get(pk=receipt_id)
    except PurchaseReceipt.DoesNotExist as exc:
        raise PurchaseReceivingError("Purchase receipt not found") from exc


def create_receipt(*, reference: str = "", notes: str = "", user=None) -> PurchaseReceipt:
    return PurchaseReceipt.objects.create(
        reference=(reference or "").strip(),
        notes=notes or "",
        created_by=user if getattr(user, "pk", None) else None,
    )


@transaction.atomic
def record_receipt_line(
    *,
    receipt_id,
    variant,
    quantity,
    unit_cost,
    received_at=None,
) -> StockBatch:
    """
    Add one line (= one StockBatch) to a WORKING receipt.
    """
    receipt = _lock_receipt(receipt_id)

    if not receipt.is_editable:
        raise PurchaseReceivingError(
            f"Receipt {receipt.reference} is {receipt.status}; lines can no longer be recorded"
        )

    if variant is None:
        raise PurchaseReceivingError("variant is required")

    qty = _to_int_qty(quantity)
    if qty < 0:
        raise PurchaseReceivingError("quantity cannot be negative")

    cost = _money(unit_cost)
    if cost < Decimal("0.00"):
        raise PurchaseReceivingError("unit_cost cannot be negative")

    return StockBatch.objects.create(
        receipt=receipt,
        product_variant_id=getattr(variant, "pk", variant),
        quantity_received=qty,
        quantity_remaining=qty,
        unit_cost=cost,
        received_at=received_at or timezone.now(),
    )


@transaction.atomic
def finish_receipt(*, receipt_id, user=None) -> PurchaseReceipt:
    receipt = _lock_receipt(receipt_id)

    if receipt.status == PurchaseReceipt.Status.FINISHED:
        return receipt

    if not is_receipt_transition_allowed(receipt.status, PurchaseReceipt.Status.FINISHED):
        raise InvalidReceiptTransition(
            f"Receipt {receipt.reference} cannot transition from "
            f"'{receipt.status}' to '{PurchaseReceipt.Status.FINISHED}'"
        )

    if not receipt.batches.exists():
        raise PurchaseReceivingError("Receipt has no lines")

    receipt.status = PurchaseReceipt.Status.FINISHED
    receipt.finished_at = timezone.now()
    receipt.finished_by = user if getattr(user, "pk", None) else None
    receipt.save(update_fields=["status", "finished_at", "finished_by"])

    logger.info(
        "Purchase receipt finished",
        extra={"receipt_id": str(receipt.pk), "lines": receipt.batches.count()},
    )
    return receipt


@transaction.atomic
def cancel_receipt(*, receipt_id) -> PurchaseReceipt:
    receipt = _lock_receipt(receipt_id)

    if not is_receipt_transition_allowed(receipt.status, PurchaseReceipt.Status.CANCELLED):
        raise InvalidReceiptTransition(
            f"Receipt {receipt.reference} cannot transition from "
            f"'{receipt.status}' to '{PurchaseReceipt.Status.CANCELLED}'"
        )

    receipt.status = PurchaseReceipt.Status.CANCELLED
    receipt.save(update_fields=["status"])

    logger.info("Purchase receipt cancelled", extra={"receipt_id": str(receipt.pk)})
    return receipt
