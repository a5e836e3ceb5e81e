# sales/admin.py

from django.contrib import admin

from sales.models import Sale, SaleItem


# ======================================================
# SALE ITEM INLINE (READ-ONLY)
# ======================================================


class SaleItemInline(admin.TabularInline):
    model = SaleItem
    extra = 0
    can_delete = False
    fields = (
        "product_name",
        "quantity",
        "unit_type",
        "unit_price",
        "total_price",
        "batch",
        "expiry_date",
    )
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


# ======================================================
# SALE ADMIN
# ======================================================


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    """
    Read-only: every state change goes through the transaction
    orchestrator so stock and ledger stay consistent.
    """

    list_display = (
        "invoice_no",
        "status",
        "total_amount",
        "discount_type",
        "is_edited",
        "created_at",
        "completed_at",
    )
    readonly_fields = (
        "invoice_no",
        "status",
        "subtotal_amount",
        "discount_type",
        "discount_percentage",
        "discount_amount",
        "total_amount",
        "original_total_amount",
        "payment_method",
        "created_by",
        "created_at",
        "completed_at",
        "is_edited",
        "edit_reason",
        "edited_at",
        "edited_by",
    )
    search_fields = ("invoice_no", "customer_name")
    list_filter = ("status", "discount_type", "created_at")
    inlines = [SaleItemInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
