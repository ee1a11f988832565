# sales/api/urls.py

"""
SALES API URLS (CANONICAL)

Provides:
- Order completion (staff):
    POST /api/sales/orders/<uuid>/complete/

- Status-change validation:
    GET /api/sales/orders/<uuid>/allowed-transitions/
    GET /api/sales/order-statuses/transition-check/?current=<status>&next=<status>
"""

from django.urls import path

from sales.views.order import (
    CompleteOrderView,
    OrderAllowedTransitionsView,
    TransitionCheckView,
)

urlpatterns = [
    path(
        "orders/<uuid:pk>/complete/",
        CompleteOrderView.as_view(),
        name="sales-order-complete",
    ),
    path(
        "orders/<uuid:pk>/allowed-transitions/",
        OrderAllowedTransitionsView.as_view(),
        name="sales-order-allowed-transitions",
    ),
    path(
        "order-statuses/transition-check/",
        TransitionCheckView.as_view(),
        name="sales-order-transition-check",
    ),
]
