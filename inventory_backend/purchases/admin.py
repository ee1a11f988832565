# purchases/admin.py

"""
PURCHASE RECEIPT ADMIN

Receipt state changes go through purchases.services.receiving_service so the
same rules apply as for API callers (WORKING -> FINISHED | CANCELLED only).
"""

from django.contrib import admin, messages

from products.models import StockBatch
from purchases.models import PurchaseReceipt
from purchases.services.receiving_service import (
    PurchaseReceivingError,
    cancel_receipt,
    finish_receipt,
)


class ReceiptLineInline(admin.TabularInline):
    model = StockBatch
    extra = 0
    can_delete = False
    fields = ("product_variant", "quantity_received", "quantity_remaining", "unit_cost", "received_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(PurchaseReceipt)
class PurchaseReceiptAdmin(admin.ModelAdmin):
    list_display = ("reference", "status", "created_by", "created_at", "finished_at")
    list_filter = ("status", "created_at")
    search_fields = ("reference",)
    readonly_fields = ("status", "finished_at", "finished_by", "created_by", "created_at")
    inlines = [ReceiptLineInline]
    actions = ["finish_selected", "cancel_selected"]

    def save_model(self, request, obj, form, change):
        if not change and obj.created_by_id is None:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)

    @admin.action(description="Finish selected receipts")
    def finish_selected(self, request, queryset):
        for receipt in queryset:
            try:
                finish_receipt(receipt_id=receipt.pk, user=request.user)
            except PurchaseReceivingError as exc:
                self.message_user(request, f"{receipt.reference}: {exc}", messages.ERROR)

    @admin.action(description="Cancel selected receipts")
    def cancel_selected(self, request, queryset):
        for receipt in queryset:
            try:
                cancel_receipt(receipt_id=receipt.pk)
            except PurchaseReceivingError as exc:
                self.message_user(request, f"{receipt.reference}: {exc}", messages.ERROR)
