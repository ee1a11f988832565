# products/services/stock_fifo.py

"""
FIFO COGS ALLOCATOR

Purpose:
- Deduct stock from finalized batches strictly oldest-first (received_at, id).
- Return the weighted-average unit cost of the quantity actually fulfilled.
- Integer-only quantities (StockBatch.quantity_remaining is PositiveIntegerField).

UNDERSUPPLY POLICY:
- REJECT (default): if eligible batches cannot cover the request, raise
  InsufficientStock and deduct NOTHING.
- PARTIAL: legacy behavior. Allocate whatever is available and under-fulfil.
  The shortfall is logged and reported on AllocationResult.is_short.
- Default comes from settings.INVENTORY_UNDERSUPPLY_POLICY; callers may override.

HARD RULES:
- All depletion goes through allocate(); batch decrements are persisted by
  products.services.batch_ledger.save_batch_decrement (non-negative, conflict-checked).
- allocate() does NOT write OrderLine.cost_price; the fulfillment orchestrator does.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from django.conf import settings
from django.db import transaction

from products.models import BatchAllocation
from products.services.batch_ledger import (
    eligible_batches,
    save_batch_decrement,
)

logger = logging.getLogger(__name__)

TWOPLACES = Decimal("0.01")


# ============================================================
# DOMAIN ERRORS
# ============================================================

class StockAllocationError(Exception):
    pass


class InsufficientStock(StockAllocationError):
    def __init__(self, message, *, variant_id=None, requested=0, available=0):
        super().__init__(message)
        self.variant_id = variant_id
        self.requested = requested
        self.available = available


class UndersupplyPolicy(str, Enum):
    REJECT = "reject"
    PARTIAL = "partial"


# ============================================================
# RESULT TYPES
# ============================================================

@dataclass(frozen=True)
class BatchConsumption:
    batch_id: object
    quantity: int
    unit_cost: Decimal

    @property
    def cost(self) -> Decimal:
        return self.unit_cost * Decimal(self.quantity)


@dataclass(frozen=True)
class AllocationResult:
    variant_id: object
    quantity_requested: int
    quantity_fulfilled: int
    total_cost: Decimal
    unit_cost: Decimal
    consumptions: tuple = ()

    @property
    def is_short(self) -> bool:
        return self.quantity_fulfilled < self.quantity_requested

    @property
    def shortfall(self) -> int:
        return self.quantity_requested - self.quantity_fulfilled


# ============================================================
# HELPERS
# ============================================================

def _to_int_qty(value) -> int:
    """
    Quantity normalizer.
    HARD RULE: quantities are integer units in this system.
    """
    if isinstance(value, bool):
        raise ValueError("quantity must be a whole integer unit")

    if isinstance(value, int):
        return value

    if isinstance(value, str):
        s = value.strip()
        if s.isdigit():
            return int(s)

    raise ValueError("quantity must be a whole integer unit")


def resolve_policy(policy=None) -> UndersupplyPolicy:
    raw = policy if policy is not None else getattr(
        settings, "INVENTORY_UNDERSUPPLY_POLICY", UndersupplyPolicy.REJECT.value
    )
    try:
        return UndersupplyPolicy(raw)
    except ValueError as exc:
        raise ValueError(f"Unknown undersupply policy: {raw!r}") from exc


def weighted_unit_cost(*, total_cost: Decimal, quantity: int) -> Decimal:
    if quantity <= 0:
        return Decimal("0.00")
    return (total_cost / Decimal(quantity)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)


def _plan(batches, qty: int):
    """
    Walk batches oldest-first with an explicit cursor and decide each take.
    Returns (takes, fulfilled, total_cost) where takes is [(batch, take), ...].
    """
    takes = []
    remaining_qty = qty
    total_cost = Decimal("0.00")
    cursor = 0

    while remaining_qty > 0 and cursor < len(batches):
        batch = batches[cursor]
        cursor += 1

        available = int(batch.quantity_remaining or 0)
        if available <= 0:
            continue

        take = available if available <= remaining_qty else remaining_qty
        takes.append((batch, take))
        total_cost += Decimal(batch.unit_cost) * Decimal(take)
        remaining_qty -= take

    return takes, qty - remaining_qty, total_cost


# ============================================================
# FIFO ALLOCATION
# ============================================================

def preview_allocation(*, variant, quantity) -> AllocationResult:
    """
    Dry run: what allocate() would consume right now. No locks, no writes.
    """
    qty = _to_int_qty(quantity)
    if qty <= 0:
        raise ValueError("quantity must be greater than zero")

    variant_id = getattr(variant, "pk", variant)
    batches = list(eligible_batches(variant_id))
    takes, fulfilled, total_cost = _plan(batches, qty)

    return AllocationResult(
        variant_id=variant_id,
        quantity_requested=qty,
        quantity_fulfilled=fulfilled,
        total_cost=total_cost,
        unit_cost=weighted_unit_cost(total_cost=total_cost, quantity=fulfilled),
        consumptions=tuple(
            BatchConsumption(batch_id=b.pk, quantity=t, unit_cost=Decimal(b.unit_cost))
            for b, t in takes
        ),
    )


@transaction.atomic
def allocate(*, variant, quantity, order_line=None, policy=None) -> AllocationResult:
    """
    Deduct `quantity` units of `variant` from finalized batches, oldest first.

    Locks the variant's eligible batch rows (FIFO order) for the rest of the
    surrounding transaction, so concurrent completions for the same variant
    serialize here.
    """
    if variant is None:
        raise ValueError("variant is required")

    qty = _to_int_qty(quantity)
    if qty <= 0:
        raise ValueError("quantity must be greater than zero")

    mode = resolve_policy(policy)
    variant_id = getattr(variant, "pk", variant)

    batches = list(eligible_batches(variant_id, lock=True))
    takes, fulfilled, total_cost = _plan(batches, qty)

    if fulfilled < qty:
        if mode is UndersupplyPolicy.REJECT:
            raise InsufficientStock(
                f"Insufficient stock for variant {variant_id}. "
                f"Requested: {qty}, Available: {fulfilled}",
                variant_id=variant_id,
                requested=qty,
                available=fulfilled,
            )

        logger.warning(
            "FIFO allocation under-fulfilled",
            extra={
                "variant_id": str(variant_id),
                "requested": qty,
                "fulfilled": fulfilled,
                "shortfall": qty - fulfilled,
            },
        )

    consumptions = []
    for batch, take in takes:
        unit_cost = Decimal(batch.unit_cost)
        save_batch_decrement(batch=batch, take=take)

        if order_line is not None:
            BatchAllocation.objects.create(
                batch=batch,
                order_line=order_line,
                quantity=take,
                unit_cost_snapshot=unit_cost,
            )

        consumptions.append(
            BatchConsumption(batch_id=batch.pk, quantity=take, unit_cost=unit_cost)
        )

    result = AllocationResult(
        variant_id=variant_id,
        quantity_requested=qty,
        quantity_fulfilled=fulfilled,
        total_cost=total_cost,
        unit_cost=weighted_unit_cost(total_cost=total_cost, quantity=fulfilled),
        consumptions=tuple(consumptions),
    )

    logger.info(
        "FIFO allocation done",
        extra={
            "variant_id": str(variant_id),
            "requested": qty,
            "fulfilled": fulfilled,
            "batches": len(consumptions),
            "unit_cost": str(result.unit_cost),
        },
    )

    return result
