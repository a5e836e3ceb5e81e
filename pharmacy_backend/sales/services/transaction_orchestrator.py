"""
======================================================
PATH: sales/services/transaction_orchestrator.py
======================================================
SALE TRANSACTION ORCHESTRATOR (APPLICATION SERVICE)

Purpose:
- The only entry point that moves stock for sales.
- Coordinates Sale aggregate + FEFO allocator + batch store + stock ledger.

Operations:
1) create_pending_sale
   - Advisory availability check (read-only, no reservation)
   - Persists Sale(PENDING) + items. No stock is touched.
2) complete_sale
   - ONE atomic unit for every item: allocate -> deduct -> ledger
   - Any failure (insufficient, conflict, validation) rolls back all items
3) undo_sale
   - COMPLETED -> CANCELLED (or REFUNDED)
   - Restores what the ledger says is still deducted for the sale
   - Missing products / batches are warnings, never a failed undo
4) edit_sale
   - COMPLETED: same restoration primitive as undo, then back to PENDING
   - Items replaced wholesale, totals recomputed; caller completes again
5) cancel_pending_sale
   - PENDING -> CANCELLED (abandoned cart, nothing to restore)

Rules:
- Every mutating operation requires an explicit actor_id.
- Caller totals are validated against server-side pricing, never stored as-is.
"""

from __future__ import annotations

import dataclasses
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import timedelta

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import transaction
from django.utils import timezone

from products.models import Product, StockMovement
from products.services.batch_store import (
    PartialRestoreWarning,
    available_quantity,
    deduct_legacy,
    eligible_batches,
    has_batch_history,
    reserve_and_deduct,
    restore,
)
from products.services.exceptions import (
    NoBatchesTrackedError,
    ProductNotFoundError,
    StockError,
    InsufficientStockError,
)
from products.services.fefo_allocator import AllocationPlan, plan_allocation
from products.services.stock_ledger import outstanding_sale_draws
from products.services.validation import field_error, require_actor
from sales.models import Sale, SaleItem
from sales.services.exceptions import SaleError, SaleNotFoundError
from sales.services.pricing import (
    compute_totals,
    line_total,
    validate_claimed_totals,
    verify_sale_totals,
    within_tolerance,
)
from sales.services.sale_input import SaleHeaderInput, parse_header, parse_items
from sales.services.sale_lifecycle import (
    InvalidSaleTransitionError,
    is_terminal,
    validate_transition,
)

logger = logging.getLogger(__name__)

DEFAULT_UNDO_WINDOW_HOURS = 24


# ============================================================
# RESULTS
# ============================================================

@dataclass
class UndoResult:
    sale: Sale
    products_restored: int = 0
    products_not_found: int = 0
    missing_product_ids: list = field(default_factory=list)
    warnings: list = field(default_factory=list)
    success: bool = True

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "sale_id": str(self.sale.pk),
            "status": self.sale.status,
            "products_restored": self.products_restored,
            "products_not_found": self.products_not_found,
            "missing_product_ids": [str(pid) for pid in self.missing_product_ids],
            "warnings": [w.to_dict() for w in self.warnings],
        }


@dataclass
class EditResult:
    sale: Sale
    restoration: UndoResult | None = None

    def to_dict(self) -> dict:
        return {
            "sale_id": str(self.sale.pk),
            "status": self.sale.status,
            "stock_restored": self.restoration is not None,
            "restoration": self.restoration.to_dict() if self.restoration else None,
        }


# ============================================================
# HELPERS
# ============================================================

def _lock_sale(sale_id) -> Sale:
    try:
        pk = uuid.UUID(str(sale_id))
    except (TypeError, ValueError):
        raise SaleNotFoundError(sale_id=sale_id)

    sale = Sale.objects.select_for_update().filter(pk=pk).first()
    if sale is None:
        raise SaleNotFoundError(sale_id=sale_id)
    return sale


def get_sale(sale_id) -> Sale:
    try:
        pk = uuid.UUID(str(sale_id))
    except (TypeError, ValueError):
        raise SaleNotFoundError(sale_id=sale_id)

    sale = Sale.objects.prefetch_related("items").filter(pk=pk).first()
    if sale is None:
        raise SaleNotFoundError(sale_id=sale_id)
    return sale


def _load_products(lines) -> "dict[str, Product]":
    wanted = OrderedDict((line.product_id, None) for line in lines)

    valid_ids = []
    for product_id in wanted:
        try:
            valid_ids.append(uuid.UUID(str(product_id)))
        except (TypeError, ValueError):
            raise ProductNotFoundError(product_id=product_id)

    found = {str(p.pk): p for p in Product.objects.filter(pk__in=valid_ids)}

    products = {}
    for product_id in wanted:
        product = found.get(str(uuid.UUID(str(product_id))))
        if product is None:
            raise ProductNotFoundError(product_id=product_id)
        if not product.is_active:
            raise field_error(
                "items",
                f"Product {product.name} is not available for sale",
                code="product_inactive",
            )
        products[product_id] = product
    return products


def _advisory_check(lines, products) -> None:
    """
    Read-only availability check, aggregated per product across lines.
    Not a reservation: completion re-checks authoritatively.
    """
    requested = OrderedDict()
    for line in lines:
        requested[line.product_id] = requested.get(line.product_id, 0) + int(line.quantity)

    for product_id, qty in requested.items():
        product = products[product_id]
        available = available_quantity(product)
        if available < qty:
            raise InsufficientStockError(
                product_id=product.pk, available=available, requested=qty
            )


def _price_lines(lines, products) -> list:
    """
    Fill in unit prices from the product directory and check any
    caller-supplied line totals.
    """
    priced = []
    for index, line in enumerate(lines):
        product = products[line.product_id]
        unit_price = line.unit_price if line.unit_price is not None else product.unit_price
        priced_line = dataclasses.replace(line, unit_price=unit_price)

        expected = line_total(quantity=line.quantity, unit_price=unit_price)
        if line.total_price is not None and not within_tolerance(line.total_price, expected):
            raise field_error(
                "items",
                f"Item #{index + 1} total {line.total_price} does not match "
                f"{line.quantity} x {unit_price}",
                code="line_total_mismatch",
                params={"index": index, "expected": str(expected)},
            )
        priced.append(priced_line)
    return priced


def _write_items(sale: Sale, lines, products) -> list:
    items = []
    for line in lines:
        product = products[line.product_id]
        items.append(
            SaleItem.objects.create(
                sale=sale,
                product=product,
                product_name=product.name,
                quantity=line.quantity,
                unit_type=line.unit_type,
                unit_price=line.unit_price,
            )
        )
    return items


def _apply_header(sale: Sale, header: SaleHeaderInput, totals) -> None:
    sale.payment_method = header.payment_method
    sale.discount_type = totals.discount_type
    sale.discount_percentage = totals.discount_percentage
    sale.discount_amount = totals.discount_amount
    sale.pwd_senior_id = header.pwd_senior_id
    sale.pwd_senior_holder_name = header.pwd_senior_holder_name
    sale.customer_id = header.customer_id
    sale.customer_name = header.customer_name
    sale.notes = header.notes
    sale.subtotal_amount = totals.subtotal_amount
    sale.total_amount = totals.total_amount


def _header_from_sale(sale: Sale) -> SaleHeaderInput:
    return SaleHeaderInput(
        payment_method=sale.payment_method,
        discount_type=sale.discount_type,
        discount_percentage=sale.discount_percentage,
        pwd_senior_id=sale.pwd_senior_id,
        pwd_senior_holder_name=sale.pwd_senior_holder_name,
        customer_id=sale.customer_id,
        customer_name=sale.customer_name,
        notes=sale.notes,
    )


def _merge_header(sale: Sale, sale_data) -> SaleHeaderInput:
    """
    Overlay the header fields a caller sent on the sale's current header.
    Fields not sent keep their stored value; holder details are dropped
    when the discount moves away from PWD/senior without new ones.
    """
    if sale_data is None:
        return _header_from_sale(sale)
    if isinstance(sale_data, SaleHeaderInput):
        return parse_header(sale_data)

    sent = dict(sale_data)
    merged = dataclasses.asdict(_header_from_sale(sale))
    merged.update(sent)

    if "discount_type" in sent and "discount_percentage" not in sent:
        merged["discount_percentage"] = None
    if merged.get("discount_type") not in (Sale.DISCOUNT_PWD, Sale.DISCOUNT_SENIOR):
        for key in ("pwd_senior_id", "pwd_senior_holder_name"):
            if key not in sent:
                merged[key] = ""

    return parse_header(merged)


def _price_sale(header: SaleHeaderInput, priced_lines):
    totals = compute_totals(
        lines=priced_lines,
        discount_type=header.discount_type,
        discount_percentage=header.discount_percentage,
    )
    validate_claimed_totals(
        totals,
        subtotal_amount=header.subtotal_amount,
        discount_amount=header.discount_amount,
        total_amount=header.total_amount,
    )
    return totals


def _undo_window_hours() -> int:
    return int(getattr(settings, "SALES_UNDO_WINDOW_HOURS", DEFAULT_UNDO_WINDOW_HOURS) or 0)


def _check_undo_window(sale: Sale) -> None:
    hours = _undo_window_hours()
    if hours <= 0 or sale.completed_at is None:
        return
    if timezone.now() - sale.completed_at > timedelta(hours=hours):
        raise field_error(
            "sale",
            f"Sales can only be undone or edited within {hours} hours of completion",
            code="undo_window_expired",
            params={"hours": hours},
        )


def _restore_sale_stock(sale: Sale, *, actor_id: str, reference_type: str) -> UndoResult:
    """
    Put back everything the ledger still shows as deducted for this sale.

    Shared by undo and edit. Products deleted since the sale are reported,
    not fatal: the sale must always be able to leave COMPLETED.
    """
    result = UndoResult(sale=sale)

    outstanding = outstanding_sale_draws(sale.pk)
    if not outstanding:
        return result

    existing = {
        str(pk)
        for pk in Product.objects.filter(pk__in=list(outstanding.keys())).values_list("pk", flat=True)
    }

    for product_id in sorted(outstanding, key=str):
        draws = outstanding[product_id]
        quantity = sum(d.quantity for d in draws)

        if str(product_id) not in existing:
            result.products_not_found += 1
            result.missing_product_ids.append(product_id)
            result.warnings.append(
                PartialRestoreWarning(
                    product_id=product_id,
                    quantity=quantity,
                    reason="product_not_found",
                    message="Product no longer exists; stock not restored.",
                )
            )
            continue

        outcome = restore(
            AllocationPlan(product_id=product_id, requested=quantity, draws=tuple(draws)),
            actor_id=actor_id,
            reference_type=reference_type,
            reference_id=sale.pk,
        )
        result.warnings.extend(outcome.warnings)
        if outcome.movements:
            result.products_restored += 1

    if result.warnings:
        logger.warning(
            "Partial stock restore",
            extra={
                "sale_id": str(sale.pk),
                "warnings": [w.to_dict() for w in result.warnings],
            },
        )
    return result


def _deduct_item(item: SaleItem, *, sale: Sale, actor_id: str) -> None:
    if item.product_id is None:
        raise ProductNotFoundError(product_id=item.product_name or str(item.pk))

    product_id = item.product_id

    # Product row first, then its batches: same order as restore().
    product = Product.objects.select_for_update().filter(pk=product_id).first()
    if product is None:
        raise ProductNotFoundError(product_id=product_id)

    batches = list(eligible_batches(product_id, for_update=True))
    legacy_stock = 0
    if not has_batch_history(product_id):
        legacy_stock = int(product.stock_on_hand or 0)

    try:
        plan = plan_allocation(
            product_id=product_id,
            quantity=int(item.quantity),
            batches=batches,
            legacy_stock=legacy_stock,
        )
    except NoBatchesTrackedError:
        deduct_legacy(
            product_id,
            int(item.quantity),
            actor_id=actor_id,
            reference_type=StockMovement.ReferenceType.SALE,
            reference_id=sale.pk,
        )
        return

    reserve_and_deduct(
        plan,
        actor_id=actor_id,
        reference_type=StockMovement.ReferenceType.SALE,
        reference_id=sale.pk,
    )

    primary = plan.primary_draw
    item.batch_id = primary.batch_id
    item.expiry_date = primary.expiry_date
    item.save(update_fields=["batch", "expiry_date"])


# ============================================================
# OPERATIONS
# ============================================================

def create_pending_sale(*, sale_data, items, actor_id) -> Sale:
    actor = require_actor(actor_id)
    header = parse_header(sale_data)
    lines = parse_items(items)

    with transaction.atomic():
        products = _load_products(lines)
        _advisory_check(lines, products)
        priced = _price_lines(lines, products)
        totals = _price_sale(header, priced)

        sale = Sale(status=Sale.STATUS_PENDING, created_by=actor)
        _apply_header(sale, header, totals)
        sale.save()

        _write_items(sale, priced, products)

    logger.info(
        "Pending sale created",
        extra={
            "sale_id": str(sale.pk),
            "invoice_no": sale.invoice_no,
            "items": len(priced),
            "total_amount": str(sale.total_amount),
            "actor_id": actor,
        },
    )
    return sale


def complete_sale(*, sale_id, actor_id) -> Sale:
    actor = require_actor(actor_id)

    try:
        with transaction.atomic():
            sale = _lock_sale(sale_id)
            validate_transition(sale=sale, target_status=Sale.STATUS_COMPLETED)

            # Lock order by product id keeps concurrent completions from deadlocking.
            items = sorted(
                sale.items.all(),
                key=lambda i: (str(i.product_id or ""), i.created_at, str(i.pk)),
            )
            if not items:
                raise field_error("items", "A sale requires at least one item", code="empty_sale")

            verify_sale_totals(sale)

            for item in items:
                _deduct_item(item, sale=sale, actor_id=actor)

            sale.status = Sale.STATUS_COMPLETED
            sale.completed_at = timezone.now()
            sale.save()
    except (StockError, SaleError, ValidationError) as exc:
        logger.warning(
            "Sale completion aborted",
            extra={
                "sale_id": str(sale_id),
                "error_code": getattr(exc, "code", None) or exc.__class__.__name__,
                "actor_id": actor,
            },
        )
        raise

    logger.info(
        "Sale completed",
        extra={
            "sale_id": str(sale.pk),
            "invoice_no": sale.invoice_no,
            "total_amount": str(sale.total_amount),
            "actor_id": actor,
        },
    )
    return sale


def undo_sale(*, sale_id, actor_id, reason: str = "", refund: bool = False) -> UndoResult:
    actor = require_actor(actor_id)
    target = Sale.STATUS_REFUNDED if refund else Sale.STATUS_CANCELLED

    with transaction.atomic():
        sale = _lock_sale(sale_id)
        validate_transition(sale=sale, target_status=target)
        if sale.status != Sale.STATUS_COMPLETED:
            # pending -> cancelled is an abandoned cart, not an undo
            raise InvalidSaleTransitionError(
                sale_id=sale.pk, from_status=sale.status, to_status=target
            )
        _check_undo_window(sale)

        result = _restore_sale_stock(
            sale, actor_id=actor, reference_type=StockMovement.ReferenceType.SALE_UNDO
        )

        sale.status = target
        sale.edit_reason = (reason or "").strip() or (
            "Sale refunded" if refund else "Sale cancelled"
        )
        sale.edited_at = timezone.now()
        sale.edited_by = actor
        sale.save()

    logger.info(
        "Sale undone",
        extra={
            "sale_id": str(sale.pk),
            "status": sale.status,
            "products_restored": result.products_restored,
            "products_not_found": result.products_not_found,
            "actor_id": actor,
        },
    )
    return result


def edit_sale(*, sale_id, new_items, edit_reason, actor_id, sale_data=None) -> EditResult:
    actor = require_actor(actor_id)
    reason = str(edit_reason or "").strip()
    if not reason:
        raise field_error("edit_reason", "An edit reason is required", code="edit_reason_required")
    lines = parse_items(new_items)

    with transaction.atomic():
        sale = _lock_sale(sale_id)

        if is_terminal(sale.status):
            raise InvalidSaleTransitionError(
                sale_id=sale.pk, from_status=sale.status, to_status=Sale.STATUS_PENDING
            )

        restoration = None
        if sale.status == Sale.STATUS_COMPLETED:
            validate_transition(sale=sale, target_status=Sale.STATUS_PENDING)
            _check_undo_window(sale)

            restoration = _restore_sale_stock(
                sale, actor_id=actor, reference_type=StockMovement.ReferenceType.SALE_EDIT
            )

            if sale.original_total_amount is None:
                sale.original_total_amount = sale.total_amount
            sale.status = Sale.STATUS_PENDING
            sale.completed_at = None
            sale.save()

        header = _merge_header(sale, sale_data)

        products = _load_products(lines)
        _advisory_check(lines, products)
        priced = _price_lines(lines, products)
        totals = _price_sale(header, priced)

        sale.items.all().delete()
        _write_items(sale, priced, products)

        _apply_header(sale, header, totals)
        sale.is_edited = True
        sale.edit_reason = reason
        sale.edited_at = timezone.now()
        sale.edited_by = actor
        sale.save()

    logger.info(
        "Sale edited",
        extra={
            "sale_id": str(sale.pk),
            "reopened": restoration is not None,
            "total_amount": str(sale.total_amount),
            "actor_id": actor,
        },
    )
    return EditResult(sale=sale, restoration=restoration)


def cancel_pending_sale(*, sale_id, actor_id, reason: str = "") -> Sale:
    actor = require_actor(actor_id)

    with transaction.atomic():
        sale = _lock_sale(sale_id)
        if sale.status != Sale.STATUS_PENDING:
            raise InvalidSaleTransitionError(
                sale_id=sale.pk, from_status=sale.status, to_status=Sale.STATUS_CANCELLED
            )
        validate_transition(sale=sale, target_status=Sale.STATUS_CANCELLED)

        sale.status = Sale.STATUS_CANCELLED
        sale.edit_reason = (reason or "").strip() or "Pending sale abandoned"
        sale.edited_at = timezone.now()
        sale.edited_by = actor
        sale.save()

    logger.info("Pending sale cancelled", extra={"sale_id": str(sale.pk), "actor_id": actor})
    return sale
