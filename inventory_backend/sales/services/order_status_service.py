# sales/services/order_status_service.py

"""
ORDER STATUS SERVICE

Single entry point for status changes requested by order-management code.

- transition_order(): one order. "completed" is delegated to the fulfillment
  orchestrator (FIFO costing); every other legal target just moves the status.
- transition_orders(): many orders, all-or-nothing. Every problem is collected
  up front (missing ids, illegal transitions, stock shortfall for completion)
  and reported together before anything is written.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from django.core.exceptions import ValidationError
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from products.services.availability import compute_availability_many
from products.services.stock_fifo import UndersupplyPolicy, resolve_policy
from sales.models import Order, OrderLine, OrderStatus
from sales.services.fulfillment_orchestrator import OrderNotFound, complete_order
from sales.services.order_lifecycle import (
    InvalidStatus,
    InvalidTransition,
    allowed_transitions,
    is_transition_allowed,
    is_valid_status,
    validate_transition,
)

logger = logging.getLogger(__name__)


class BulkTransitionError(Exception):
    def __init__(self, errors):
        self.errors = list(errors)
        super().__init__("; ".join(e["detail"] for e in self.errors))


def _require_valid_status(target_status) -> str:
    if not is_valid_status(target_status):
        raise InvalidStatus(f"Status '{target_status}' is not a valid order status")
    return str(target_status).strip().lower()


@transaction.atomic
def _move_status(*, order_id, target_status: str) -> Order:
    try:
        order = Order.objects.select_for_update().get(pk=order_id)
    except (Order.DoesNotExist, ValidationError) as exc:
        raise OrderNotFound(f"Order {order_id} not found") from exc

    validate_transition(order=order, target_status=target_status)

    order.status = target_status
    order.last_status_changed_at = timezone.now()
    order.save(update_fields=["status", "last_status_changed_at"])

    logger.info(
        "Order status changed",
        extra={"order_id": str(order.pk), "status": target_status},
    )
    return order


def transition_order(*, order_id, target_status, user=None, policy=None) -> Order:
    status = _require_valid_status(target_status)

    if status == OrderStatus.COMPLETED:
        return complete_order(order_id=order_id, user=user, policy=policy)

    return _move_status(order_id=order_id, target_status=status)


def _demand_by_variant(order_ids) -> dict:
    rows = (
        OrderLine.objects.filter(order_id__in=order_ids, product_variant__isnull=False)
        .order_by()
        .values("product_variant_id")
        .annotate(total=Sum("quantity"))
    )
    return {row["product_variant_id"]: int(row["total"] or 0) for row in rows}


def _parse_ids(order_ids):
    """Split raw ids into (parsed UUIDs, malformed raw values), order kept, duplicates dropped."""
    ids, malformed = [], []
    for raw in order_ids:
        try:
            ids.append(Order._meta.pk.to_python(raw))
        except ValidationError:
            malformed.append(str(raw))
    return list(dict.fromkeys(ids)), list(dict.fromkeys(malformed))


def _collect_errors(*, order_ids, malformed, orders, status, policy) -> list:
    errors = []

    found = {o.pk for o in orders}
    missing = malformed + [str(oid) for oid in order_ids if oid not in found]
    if missing:
        errors.append({
            "field": "order_ids",
            "detail": f"{len(missing)} order(s) not found: {', '.join(missing)}",
        })

    for order in orders:
        if not is_transition_allowed(order.status, status):
            allowed = ", ".join(sorted(allowed_transitions(order.status))) or "none"
            errors.append({
                "field": "status",
                "order_id": str(order.pk),
                "detail": (
                    f"Order {order.pk}: cannot transition from '{order.status}' "
                    f"to '{status}'. Allowed: {allowed}"
                ),
            })

    if status == OrderStatus.COMPLETED and orders and resolve_policy(policy) is UndersupplyPolicy.REJECT:
        demand = _demand_by_variant([o.pk for o in orders])
        snapshots = compute_availability_many(demand.keys())
        for variant_id, needed in demand.items():
            on_hand = snapshots[variant_id].total_remaining
            if on_hand < needed:
                errors.append({
                    "field": "products",
                    "variant_id": str(variant_id),
                    "detail": (
                        f"Variant {variant_id}: insufficient stock. "
                        f"On hand: {on_hand}, needed: {needed}, short: {needed - on_hand}"
                    ),
                })

    return errors


@transaction.atomic
def transition_orders(*, order_ids, target_status, user=None, policy=None) -> list:
    """
    Move every order in `order_ids` to `target_status`, or none of them.

    Raises BulkTransitionError (with .errors) when any order cannot move.
    """
    status = _require_valid_status(target_status)

    ids, malformed = _parse_ids(order_ids)
    orders = list(Order.objects.select_for_update().filter(pk__in=ids).order_by("created_at", "id"))

    errors = _collect_errors(
        order_ids=ids,
        malformed=malformed,
        orders=orders,
        status=status,
        policy=policy,
    )
    if errors:
        raise BulkTransitionError(errors)

    out = []
    for order in orders:
        out.append(
            transition_order(
                order_id=order.pk,
                target_status=status,
                user=user,
                policy=policy,
            )
        )

    logger.info(
        "Bulk order status change",
        extra={"status": status, "orders": len(out)},
    )
    return out


__all__ = [
    "BulkTransitionError",
    "InvalidStatus",
    "InvalidTransition",
    "transition_order",
    "transition_orders",
]
