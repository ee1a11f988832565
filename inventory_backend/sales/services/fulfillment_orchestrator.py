# sales/services/fulfillment_orchestrator.py

"""
FULFILLMENT ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- Move an order into "completed" (atomic, auditable).
- Allocate FIFO cost of goods sold for every line and stamp OrderLine.cost_price.

Canonical flow (one attempt = one transaction):
1) Lock the order row
2) Validate current -> completed against the lifecycle table
3) For each line with a variant and a quantity: allocate() and assign cost_price
   (left unset when the partial policy fulfilled nothing)
4) Commit status=completed (conditional on the status we read)
5) Batch decrements + line costs + status change commit together or roll back together

Idempotency:
- "completed" has no outgoing transitions, so a second call is rejected at step 2
  before any allocation. Batches are never deducted twice.

Concurrency:
- Lines are allocated grouped by variant (product_variant_id, then creation order),
  so every completion takes batch row locks in the same global variant order.
- Batch rows are locked in FIFO order by the allocator; batch decrements and the
  status commit are conditional writes. A lost race raises ConcurrencyConflict and
  the WHOLE attempt is retried (bounded by settings.FULFILLMENT_MAX_RETRIES).
- Deadlock and serialization failures reported by the database (SQLSTATE 40P01,
  40001) are treated as a lost race too.

Acting identity is passed in explicitly (user=...), never read from ambient state.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from products.services.batch_ledger import ConcurrencyConflict
from products.services.stock_fifo import InsufficientStock, allocate
from sales.models import Order, OrderStatus
from sales.services.order_lifecycle import InvalidTransition, validate_transition

logger = logging.getLogger(__name__)

# deadlock_detected, serialization_failure
LOCK_CONFLICT_SQLSTATES = frozenset({"40P01", "40001"})

__all__ = [
    "ConcurrencyConflict",
    "FulfillmentError",
    "InsufficientStock",
    "InvalidTransition",
    "LineAlreadyCosted",
    "OrderNotFound",
    "PersistenceFailure",
    "complete_order",
]


class FulfillmentError(Exception):
    """Base fulfillment exception"""


class OrderNotFound(FulfillmentError):
    pass


class LineAlreadyCosted(FulfillmentError):
    pass


class PersistenceFailure(FulfillmentError):
    pass


def _acting_user(user):
    if user is None or not getattr(user, "is_authenticated", False):
        return None
    return user if getattr(user, "pk", None) else None


def _max_retries(value) -> int:
    if value is None:
        value = getattr(settings, "FULFILLMENT_MAX_RETRIES", 3)
    value = int(value)
    if value < 0:
        raise ValueError("max_retries cannot be negative")
    return value


@transaction.atomic
def _complete_once(*, order_id, user, policy) -> Order:
    try:
        order = Order.objects.select_for_update().get(pk=order_id)
    except (Order.DoesNotExist, ValidationError) as exc:
        raise OrderNotFound(f"Order {order_id} not found") from exc

    previous_status = order.status
    validate_transition(order=order, target_status=OrderStatus.COMPLETED)

    # one global lock order across completions: variant first, then creation order
    lines = list(
        order.lines.select_for_update().order_by("product_variant_id", "created_at", "id")
    )

    for line in lines:
        if line.product_variant_id is None or not line.quantity:
            continue

        if line.cost_price is not None:
            raise LineAlreadyCosted(
                f"Order line {line.pk} already carries a cost price; refusing to re-allocate."
            )

        result = allocate(
            variant=line.product_variant_id,
            quantity=line.quantity,
            order_line=line,
            policy=policy,
        )

        if result.quantity_fulfilled == 0:
            # partial policy with no stock: no cost basis, leave cost_price unset
            continue

        line.cost_price = result.unit_cost
        line.save(update_fields=["cost_price"])

    now = timezone.now()
    acting_user = _acting_user(user)

    updated = Order.objects.filter(pk=order.pk, status=previous_status).update(
        status=OrderStatus.COMPLETED,
        completed_at=now,
        last_status_changed_at=now,
        completed_by=acting_user,
    )
    if updated != 1:
        raise ConcurrencyConflict(
            f"Order {order.pk} changed status while being completed."
        )

    order.refresh_from_db()
    return order


def _is_lock_conflict(exc) -> bool:
    # Django keeps the driver error as __cause__ (psycopg: sqlstate, psycopg2: pgcode)
    for err in (exc, exc.__cause__):
        code = getattr(err, "sqlstate", None) or getattr(err, "pgcode", None)
        if code in LOCK_CONFLICT_SQLSTATES:
            return True
    return False


def _attempt(*, order_id, user, policy) -> Order:
    try:
        return _complete_once(order_id=order_id, user=user, policy=policy)
    except DatabaseError as exc:
        if _is_lock_conflict(exc):
            raise ConcurrencyConflict(
                f"Order {order_id} lost a lock race in the database: {exc}"
            ) from exc
        raise


def complete_order(*, order_id, user=None, policy=None, max_retries=None) -> Order:
    """
    Complete an order: FIFO-cost every line and mark it completed, atomically.

    Raises:
        OrderNotFound, InvalidTransition, InsufficientStock,
        ConcurrencyConflict (retries exhausted), PersistenceFailure.
    """
    retries = _max_retries(max_retries)
    attempt = 0

    while True:
        attempt += 1
        try:
            order = _attempt(order_id=order_id, user=user, policy=policy)
        except ConcurrencyConflict:
            if attempt > retries:
                logger.warning(
                    "Order completion conflict; retries exhausted",
                    extra={"order_id": str(order_id), "attempts": attempt},
                )
                raise
            logger.warning(
                "Order completion conflict; retrying",
                extra={"order_id": str(order_id), "attempt": attempt},
            )
            continue
        except DatabaseError as exc:
            logger.exception(
                "Order completion failed in persistence layer",
                extra={"order_id": str(order_id)},
            )
            raise PersistenceFailure(f"Could not complete order {order_id}: {exc}") from exc

        logger.info(
            "Order completed",
            extra={
                "order_id": str(order.pk),
                "attempts": attempt,
                "completed_by": str(getattr(order, "completed_by_id", "") or ""),
            },
        )
        return order
