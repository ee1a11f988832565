# products/urls.py

"""
PRODUCTS URLS

Purpose:
- Register product domain routes under /api/products/
    GET /api/products/variants/<uuid>/availability/
"""

from django.urls import path

from products.views.availability import VariantAvailabilityView

urlpatterns = [
    path(
        "variants/<uuid:pk>/availability/",
        VariantAvailabilityView.as_view(),
        name="product-variant-availability",
    ),
]
