# products/models/product.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models


class ProductVariant(models.Model):
    """
    Represents one sellable variant of a catalog product.

    STOCK MODEL (IMPORTANT):
    - ProductVariant itself does NOT store stock
    - Stock lives in StockBatch (one row per purchase receipt line)
    - Total stock = sum of remaining quantity over FINALIZED batches
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["sku"]
        indexes = [
            models.Index(fields=["is_active"], name="products_variant_active_idx"),
        ]

    def clean(self):
        if not (self.sku or "").strip():
            raise ValidationError({"sku": "sku is required"})

    def __str__(self):
        return f"{self.name} ({self.sku})"
