from .order import OrderLineSerializer, OrderSerializer, TransitionCheckQuerySerializer

__all__ = [
    "OrderLineSerializer",
    "OrderSerializer",
    "TransitionCheckQuerySerializer",
]
