# sales/admin.py

from django.contrib import admin, messages

from products.services.batch_ledger import ConcurrencyConflict
from products.services.stock_fifo import StockAllocationError
from sales.models import Order, OrderLine
from sales.services.fulfillment_orchestrator import FulfillmentError, complete_order
from sales.services.order_lifecycle import OrderLifecycleError


# ======================================================
# ORDER LINES (READ-ONLY)
# ======================================================


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    can_delete = False
    fields = ("product_variant", "quantity", "sale_price", "cost_price", "created_at")
    readonly_fields = ("cost_price", "created_at")


# ======================================================
# ORDER ADMIN
# ======================================================


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_no",
        "status",
        "created_at",
        "last_status_changed_at",
        "completed_at",
        "completed_by",
    )
    readonly_fields = (
        "order_no",
        "status",
        "created_at",
        "last_status_changed_at",
        "completed_at",
        "completed_by",
    )
    search_fields = ("order_no",)
    list_filter = ("status", "created_at")
    inlines = [OrderLineInline]
    actions = ["complete_selected"]

    @admin.action(description="Complete selected orders (FIFO costing)")
    def complete_selected(self, request, queryset):
        done = 0
        for order in queryset:
            try:
                complete_order(order_id=order.pk, user=request.user)
                done += 1
            except (
                FulfillmentError,
                OrderLifecycleError,
                StockAllocationError,
                ConcurrencyConflict,
            ) as exc:
                self.message_user(request, f"{order.order_no}: {exc}", messages.ERROR)

        if done:
            self.message_user(request, f"{done} order(s) completed.", messages.SUCCESS)
