"""
SALE LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed lifecycle transitions
for Sale entities.

    pending   -> completed   (complete: stock is deducted here)
    pending   -> cancelled   (abandoned cart: nothing to restore)
    completed -> cancelled   (undo: stock restored)
    completed -> refunded    (undo labelled as refund)
    completed -> pending     (edit: undo stock, replace items, re-complete)

DESIGN PRINCIPLES:
- No database writes
- No stock mutation
- No side effects
- Single source of truth
"""

from sales.models import Sale
from sales.services.exceptions import SaleError

# ============================================================
# DOMAIN ERRORS
# ============================================================


class SaleLifecycleError(SaleError):
    code = "sale_lifecycle_error"


class InvalidSaleTransitionError(SaleLifecycleError):
    code = "invalid_state_transition"

    def __init__(self, *, sale_id, from_status: str, to_status: str):
        self.sale_id = sale_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Sale {sale_id} cannot transition from "
            f"'{from_status}' to '{to_status}'",
            sale_id=sale_id,
            from_status=from_status,
            to_status=to_status,
        )


# ============================================================
# STATE DEFINITIONS
# ============================================================

TERMINAL_STATES = {
    Sale.STATUS_CANCELLED,
    Sale.STATUS_REFUNDED,
}

ALLOWED_TRANSITIONS = {
    Sale.STATUS_PENDING: {
        Sale.STATUS_COMPLETED,
        Sale.STATUS_CANCELLED,
    },
    Sale.STATUS_COMPLETED: {
        Sale.STATUS_CANCELLED,
        Sale.STATUS_REFUNDED,
        Sale.STATUS_PENDING,
    },
}

REVENUE_STATES = set(Sale.REVENUE_STATUSES)


# ============================================================
# DOMAIN RULES
# ============================================================


def can_transition(*, from_status: str, to_status: str) -> bool:
    if from_status in TERMINAL_STATES:
        return False

    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def validate_transition(*, sale: Sale, target_status: str):
    if not can_transition(
        from_status=sale.status,
        to_status=target_status,
    ):
        raise InvalidSaleTransitionError(
            sale_id=sale.id,
            from_status=sale.status,
            to_status=target_status,
        )


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATES
