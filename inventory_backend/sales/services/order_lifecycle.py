"""
ORDER LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for Order entities.

DESIGN PRINCIPLES:
- No database writes
- No stock mutation
- No side effects
- Single source of truth
"""

from __future__ import annotations

from sales.models import OrderStatus

# ============================================================
# DOMAIN ERRORS
# ============================================================


class OrderLifecycleError(Exception):
    pass


class InvalidStatus(OrderLifecycleError):
    pass


class InvalidTransition(OrderLifecycleError):
    def __init__(self, message, *, current=None, target=None, allowed=frozenset()):
        super().__init__(message)
        self.current = current
        self.target = target
        self.allowed = frozenset(allowed)


# ============================================================
# STATE DEFINITIONS
# ============================================================

ALL_STATUSES = frozenset(OrderStatus.values)

INITIAL_STATE = OrderStatus.PENDING

TERMINAL_STATES = frozenset({
    OrderStatus.COMPLETED,
})

# Quantities on orders in these statuses are reserved against available stock.
BOOKING_PHASES = frozenset({
    OrderStatus.CONFIRMED_COD,
    OrderStatus.PAID_PROCESSING,
    OrderStatus.WAITING_DEPOSIT,
    OrderStatus.DEPOSIT_PAID,
    OrderStatus.DELIVERING,
    OrderStatus.WAITING_PICKUP,
})

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING: frozenset({
        OrderStatus.CONFIRMED_COD,
        OrderStatus.PAID_PROCESSING,
        OrderStatus.WAITING_DEPOSIT,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.CONFIRMED_COD: frozenset({
        OrderStatus.DELIVERING,
        OrderStatus.WAITING_PICKUP,
        OrderStatus.COMPLETED,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.PAID_PROCESSING: frozenset({
        OrderStatus.DELIVERING,
        OrderStatus.WAITING_PICKUP,
        OrderStatus.COMPLETED,
        OrderStatus.REFUNDING,
    }),
    OrderStatus.WAITING_DEPOSIT: frozenset({
        OrderStatus.DEPOSIT_PAID,
        OrderStatus.CANCELLED,
    }),
    OrderStatus.DEPOSIT_PAID: frozenset({
        OrderStatus.DELIVERING,
        OrderStatus.WAITING_PICKUP,
        OrderStatus.COMPLETED,
        OrderStatus.REFUNDING,
    }),
    OrderStatus.DELIVERING: frozenset({
        OrderStatus.COMPLETED,
        OrderStatus.REFUNDING,
    }),
    OrderStatus.WAITING_PICKUP: frozenset({
        OrderStatus.COMPLETED,
        OrderStatus.REFUNDING,
    }),
    OrderStatus.CANCELLED: frozenset({
        OrderStatus.PENDING,
    }),
    OrderStatus.REFUNDING: frozenset({
        OrderStatus.REFUNDED,
        OrderStatus.PENDING,
    }),
    OrderStatus.REFUNDED: frozenset({
        OrderStatus.PENDING,
    }),
    OrderStatus.COMPLETED: frozenset(),
}


# ============================================================
# DOMAIN RULES
# ============================================================


def _normalize(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_valid_status(value) -> bool:
    s = _normalize(value).lower()
    return bool(s) and s in ALL_STATUSES


def is_booking_status(value) -> bool:
    s = _normalize(value).lower()
    return bool(s) and s in BOOKING_PHASES


def allowed_transitions(current) -> frozenset:
    s = _normalize(current)
    if not s:
        return frozenset()
    return ALLOWED_TRANSITIONS.get(s, frozenset())


def is_transition_allowed(current, target) -> bool:
    c = _normalize(current)
    t = _normalize(target)
    if not c or not t:
        return False

    if c in TERMINAL_STATES:
        return False

    return t in allowed_transitions(c)


def validate_transition(*, order, target_status: str):
    current = order.status
    if not is_transition_allowed(current, target_status):
        allowed = allowed_transitions(current)
        allowed_label = ", ".join(sorted(allowed)) or "none"
        raise InvalidTransition(
            f"Order {order.pk} cannot transition from "
            f"'{current}' to '{target_status}'. Allowed: {allowed_label}",
            current=current,
            target=target_status,
            allowed=allowed,
        )
