from .batch_store import (
    PartialRestoreWarning,
    available_quantity,
    deduct_legacy,
    eligible_batches,
    reserve_and_deduct,
    restore,
)
from .fefo_allocator import AllocationPlan, Draw, plan_allocation
from .inventory import mark_expired_batches, quarantine_batch, receive_stock

__all__ = [
    "AllocationPlan",
    "Draw",
    "PartialRestoreWarning",
    "available_quantity",
    "deduct_legacy",
    "eligible_batches",
    "mark_expired_batches",
    "plan_allocation",
    "quarantine_batch",
    "receive_stock",
    "reserve_and_deduct",
    "restore",
]
