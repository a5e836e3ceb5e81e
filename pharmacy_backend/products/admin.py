# products/admin.py
"""
=====================================================
PATH: products/admin.py
=====================================================

Admin rules (audit-safe stock intake):

- Product is created once; stock_on_hand is read-only (projection).
- Stock comes in as StockBatch rows. NEW inline rows are not saved
  directly; they are routed through receive_stock() so the RECEIPT
  movement is always written.
- Existing StockBatch rows are immutable and cannot be edited or deleted.
- StockMovement is view-only.

Important:
- Validation happens inside InlineFormSet.clean() so Django admin renders
  inline errors on the page.
- StockBatch.id is a UUID with default=uuid4: unsaved inline instances
  already have a pk, so persisted rows are detected via _state.adding.
"""

from __future__ import annotations

from datetime import timedelta

from django.contrib import admin
from django.core.exceptions import ValidationError
from django.forms.models import BaseInlineFormSet
from django.utils import timezone

from products.models import Product, StockBatch, StockMovement
from products.services.inventory import receive_stock


# =====================================================
# HELPERS
# =====================================================

def _is_persisted_stockbatch(inst: StockBatch | None) -> bool:
    if inst is None:
        return False
    return getattr(inst._state, "adding", True) is False


def _is_blank_new_row(cd: dict) -> bool:
    return (
        not (cd.get("batch_number") or "").strip()
        and not cd.get("expiry_date")
        and cd.get("quantity_received") in (None, "", 0)
        and cd.get("unit_cost") in (None, "")
    )


# =====================================================
# INLINE FORMSET (VALIDATION LIVES HERE)
# =====================================================

class StockBatchInlineFormSet(BaseInlineFormSet):
    def clean(self):
        super().clean()

        today = timezone.localdate()
        any_errors = False

        for form in self.forms:
            cd = getattr(form, "cleaned_data", None)
            if cd is None:
                continue

            if cd.get("DELETE"):
                form.add_error(None, "Stock batches are audit artifacts and cannot be deleted.")
                any_errors = True
                continue

            if _is_persisted_stockbatch(getattr(form, "instance", None)):
                if form.has_changed():
                    form.add_error(
                        None,
                        "Existing StockBatch rows are immutable. "
                        "Create a new batch for a new delivery instead.",
                    )
                    any_errors = True
                continue

            if _is_blank_new_row(cd):
                continue

            qty = cd.get("quantity_received")
            if not qty or int(qty) <= 0:
                form.add_error("quantity_received", "quantity_received must be > 0.")
                any_errors = True

            expiry_date = cd.get("expiry_date")
            if expiry_date and expiry_date < today:
                form.add_error("expiry_date", "Cannot receive stock that is already expired.")
                any_errors = True

        if any_errors:
            raise ValidationError("Please correct the stock intake errors below.")


# =====================================================
# STOCK BATCH INLINE
# =====================================================

class StockBatchInline(admin.TabularInline):
    model = StockBatch
    formset = StockBatchInlineFormSet

    extra = 1
    can_delete = False
    show_change_link = False

    fields = (
        "batch_number",
        "expiry_date",
        "quantity_received",
        "unit_cost",
        "quantity_remaining",
        "status",
        "created_at",
    )
    readonly_fields = ("quantity_remaining", "status", "created_at")

    def get_formset(self, request, obj=None, **kwargs):
        # batch_number is optional; receive_stock() generates one if blank.
        formset = super().get_formset(request, obj, **kwargs)
        base_fields = getattr(formset.form, "base_fields", {})
        if "batch_number" in base_fields:
            base_fields["batch_number"].required = False
        return formset


# =====================================================
# PRODUCT
# =====================================================

@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "sku",
        "name",
        "unit_price",
        "stock_on_hand",
        "is_low_stock",
        "is_active",
        "created_at",
    )
    list_filter = ("is_active", "created_at")
    search_fields = ("sku", "name")
    ordering = ("-created_at",)
    readonly_fields = ("stock_on_hand", "created_at", "updated_at")

    inlines = [StockBatchInline]

    def save_formset(self, request, form, formset, change):
        """
        Route NEW StockBatch rows through receive_stock().
        """
        if formset.model is not StockBatch:
            return super().save_formset(request, form, formset, change)

        created_batches = []
        for f in getattr(formset, "forms", []):
            cd = getattr(f, "cleaned_data", None)
            if not cd or cd.get("DELETE"):
                continue
            if _is_persisted_stockbatch(getattr(f, "instance", None)) or _is_blank_new_row(cd):
                continue

            created_batches.append(
                receive_stock(
                    product=form.instance,
                    quantity=int(cd["quantity_received"]),
                    actor_id=str(request.user.pk),
                    expiry_date=cd.get("expiry_date"),
                    unit_cost=cd.get("unit_cost"),
                    batch_number=(cd.get("batch_number") or "").strip() or None,
                )
            )

        # Django admin builds its change message from these
        formset.new_objects = created_batches
        formset.changed_objects = []
        formset.deleted_objects = []


# =====================================================
# STOCK BATCH (VIEW-ONLY LIST)
# =====================================================

@admin.register(StockBatch)
class StockBatchAdmin(admin.ModelAdmin):
    list_display = (
        "product",
        "batch_number",
        "expiry_date",
        "quantity_received",
        "quantity_remaining",
        "status",
        "expiry_status",
        "created_at",
    )
    list_filter = ("status", "expiry_date", "created_at")
    search_fields = ("batch_number", "product__name", "product__sku")
    ordering = ("expiry_date", "created_at")

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description="Expiry Status")
    def expiry_status(self, obj):
        if obj.expiry_date is None:
            return "NO EXPIRY"

        today = timezone.localdate()
        if obj.expiry_date < today:
            return "EXPIRED"
        if obj.expiry_date <= today + timedelta(days=30):
            return "SOON"
        return "OK"


# =====================================================
# STOCK MOVEMENT (LEDGER, VIEW-ONLY)
# =====================================================

@admin.register(StockMovement)
class StockMovementAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "product_id",
        "batch_id",
        "direction",
        "reason",
        "quantity",
        "stock_before",
        "stock_after",
        "reference_type",
        "reference_id",
        "actor_id",
    )
    list_filter = ("direction", "reason", "reference_type")
    search_fields = ("reference_id", "actor_id")
    ordering = ("-created_at",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
