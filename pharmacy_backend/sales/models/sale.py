# sales/models/sale.py

import uuid
from decimal import Decimal

from django.db import models
from django.utils import timezone


class SaleQuerySet(models.QuerySet):
    def revenue_eligible(self):
        """Only COMPLETED sales count toward revenue."""
        return self.filter(status__in=self.model.REVENUE_STATUSES)

    def voided(self):
        return self.filter(status__in=(self.model.STATUS_CANCELLED, self.model.STATUS_REFUNDED))


class Sale(models.Model):
    """
    Sale aggregate root (header). Line items live in SaleItem.

    GUARANTEES:
    - Stock is mutated ONLY via sales.services.transaction_orchestrator
    - Money fields are locked once completed; the only way back is the
      edit flow (completed -> pending), which re-opens the sale
    - Only COMPLETED sales contribute to revenue
    """

    STATUS_PENDING = "pending"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"
    STATUS_REFUNDED = "refunded"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
        (STATUS_REFUNDED, "Refunded"),
    ]

    STATUS_ENUM = {
        STATUS_PENDING: {"label": "Pending", "terminal": False, "revenue": False},
        STATUS_COMPLETED: {"label": "Completed", "terminal": False, "revenue": True},
        STATUS_CANCELLED: {"label": "Cancelled", "terminal": True, "revenue": False},
        STATUS_REFUNDED: {"label": "Refunded", "terminal": True, "revenue": False},
    }

    REVENUE_STATUSES = (STATUS_COMPLETED,)

    DISCOUNT_NONE = "none"
    DISCOUNT_PWD = "pwd"
    DISCOUNT_SENIOR = "senior"
    DISCOUNT_CUSTOM = "custom"

    DISCOUNT_CHOICES = [
        (DISCOUNT_NONE, "No Discount"),
        (DISCOUNT_PWD, "PWD"),
        (DISCOUNT_SENIOR, "Senior Citizen"),
        (DISCOUNT_CUSTOM, "Custom"),
    ]

    @classmethod
    def get_status_enum(cls):
        return cls.STATUS_ENUM

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    invoice_no = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated invoice / receipt number",
    )

    status = models.CharField(
        max_length=32,
        choices=STATUS_CHOICES,
        default=STATUS_PENDING,
    )

    subtotal_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    discount_type = models.CharField(
        max_length=16, choices=DISCOUNT_CHOICES, default=DISCOUNT_NONE
    )
    discount_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("0.00")
    )
    discount_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )
    pwd_senior_id = models.CharField(max_length=64, blank=True, default="")
    pwd_senior_holder_name = models.CharField(max_length=255, blank=True, default="")

    total_amount = models.DecimalField(
        max_digits=12, decimal_places=2, default=Decimal("0.00")
    )

    payment_method = models.CharField(
        max_length=32,
        default="cash",
        help_text="cash/card/gcash/bank/transfer",
    )

    # Opaque references (never validated against a directory)
    customer_id = models.CharField(max_length=64, blank=True, default="")
    customer_name = models.CharField(max_length=255, blank=True, default="")
    notes = models.TextField(blank=True, default="")

    created_by = models.CharField(max_length=64, help_text="Actor who created the sale")
    created_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)

    # Edit / undo metadata
    is_edited = models.BooleanField(default=False)
    edit_reason = models.TextField(blank=True, default="")
    edited_at = models.DateTimeField(null=True, blank=True)
    edited_by = models.CharField(max_length=64, blank=True, default="")
    original_total_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )

    objects = SaleQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "created_at"], name="sale_status_created_idx"),
            models.Index(fields=["completed_at"], name="sale_completed_at_idx"),
        ]

    _IMMUTABLE_FIELDS_AFTER_COMPLETION = (
        "subtotal_amount",
        "discount_type",
        "discount_percentage",
        "discount_amount",
        "total_amount",
        "payment_method",
        "created_at",
        "created_by",
    )

    def _validate_immutable(self, previous: "Sale"):
        if previous.status != self.STATUS_COMPLETED:
            return

        # Leaving COMPLETED through a lifecycle transition: status + edit
        # metadata may change, money may not (the edit flow re-prices only
        # after the sale is back in PENDING).
        for field in self._IMMUTABLE_FIELDS_AFTER_COMPLETION:
            if getattr(self, field) != getattr(previous, field):
                raise ValueError(
                    f"Sale is immutable once {previous.status}. "
                    f"Field '{field}' cannot be changed."
                )

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            previous = Sale.objects.filter(pk=self.pk).first()
            if previous is not None:
                if previous.status in (self.STATUS_CANCELLED, self.STATUS_REFUNDED) and (
                    self.status != previous.status
                ):
                    raise ValueError(
                        f"Sale is {previous.status}; status cannot change to {self.status}."
                    )
                self._validate_immutable(previous)

        if not self.invoice_no:
            prefix = timezone.now().strftime("INV%Y%m%d")
            self.invoice_no = f"{prefix}-{uuid.uuid4().hex[:8].upper()}"

        super().save(*args, **kwargs)

    @property
    def counts_as_revenue(self) -> bool:
        return self.status in self.REVENUE_STATUSES

    def __str__(self):
        return f"{self.invoice_no} | {self.status} | {self.total_amount}"
