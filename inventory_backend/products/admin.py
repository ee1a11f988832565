# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Admin rules (audit-safe inventory):

- ProductVariant is created once.
- Stock comes in ONLY through purchase receipts (purchases app), never here.
- StockBatch rows are visible for audit; they cannot be edited or deleted.
- BatchAllocation rows (FIFO cost trail) are read-only.
"""

from __future__ import annotations

from django.contrib import admin

from products.models import BatchAllocation, ProductVariant, StockBatch
from products.services.availability import (
    compute_availability,
    compute_availability_many,
)


# =====================================================
# STOCK BATCH INLINE (READ-ONLY)
# =====================================================

class StockBatchInline(admin.TabularInline):
    model = StockBatch
    extra = 0
    can_delete = False
    show_change_link = False

    fields = (
        "receipt",
        "received_at",
        "quantity_received",
        "quantity_remaining",
        "unit_cost",
    )
    readonly_fields = fields
    ordering = ("received_at", "id")

    def has_add_permission(self, request, obj=None):
        return False


# =====================================================
# PRODUCT VARIANT
# =====================================================

@admin.register(ProductVariant)
class ProductVariantAdmin(admin.ModelAdmin):
    list_display = (
        "sku",
        "name",
        "available_stock",
        "is_active",
        "created_at",
    )
    list_filter = ("is_active", "created_at")
    search_fields = ("sku", "name")
    ordering = ("sku",)
    readonly_fields = ("created_at",)

    inlines = [StockBatchInline]

    def get_changelist_instance(self, request):
        # one grouped availability lookup for the whole page
        changelist = super().get_changelist_instance(request)
        page = list(changelist.result_list)
        snapshots = compute_availability_many(obj.pk for obj in page)
        for obj in page:
            obj._available_stock = snapshots[obj.pk].available
        changelist.result_list = page
        return changelist

    def available_stock(self, obj):
        cached = getattr(obj, "_available_stock", None)
        if cached is not None:
            return cached
        return compute_availability(obj).available

    available_stock.short_description = "Available"


# =====================================================
# STOCK BATCH (VIEW-ONLY LIST)
# =====================================================

@admin.register(StockBatch)
class StockBatchAdmin(admin.ModelAdmin):
    """
    View-only stock batch list for audit visibility.
    Intake happens via purchase receipts.
    """

    list_display = (
        "product_variant",
        "receipt",
        "received_at",
        "quantity_received",
        "quantity_remaining",
        "unit_cost",
        "is_finalized",
    )
    list_filter = ("receipt__status", "received_at")
    search_fields = ("product_variant__sku", "product_variant__name", "receipt__reference")
    ordering = ("received_at", "id")
    list_select_related = ("product_variant", "receipt")

    readonly_fields = (
        "receipt",
        "product_variant",
        "quantity_received",
        "quantity_remaining",
        "unit_cost",
        "received_at",
        "created_at",
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False if obj else True

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(boolean=True, description="Finalized")
    def is_finalized(self, obj):
        return obj.is_finalized


# =====================================================
# BATCH ALLOCATION (COGS TRAIL, READ-ONLY)
# =====================================================

@admin.register(BatchAllocation)
class BatchAllocationAdmin(admin.ModelAdmin):
    list_display = ("order_line", "batch", "quantity", "unit_cost_snapshot", "created_at")
    search_fields = ("order_line__order__order_no", "batch__product_variant__sku")
    ordering = ("-created_at",)
    list_select_related = ("batch", "order_line")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False if obj else True

    def has_delete_permission(self, request, obj=None):
        return False
