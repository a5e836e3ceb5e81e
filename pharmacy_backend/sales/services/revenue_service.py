# sales/services/revenue_service.py

"""
REVENUE AGGREGATION

Rules:
- Revenue = COMPLETED sales only.
- CANCELLED / REFUNDED are excluded from revenue and reported separately
  as voided amounts. PENDING sales are reported as a count only.
"""

from __future__ import annotations

from django.db.models import Count, Sum

from sales.models import Sale
from sales.services.pricing import money


def _window(qs, *, date_from=None, date_to=None):
    if date_from:
        qs = qs.filter(created_at__date__gte=date_from)
    if date_to:
        qs = qs.filter(created_at__date__lte=date_to)
    return qs


def revenue_summary(*, date_from=None, date_to=None) -> dict:
    base = _window(Sale.objects.all(), date_from=date_from, date_to=date_to)

    counts = {status: 0 for status, _ in Sale.STATUS_CHOICES}
    for row in base.values("status").annotate(n=Count("id")):
        counts[row["status"]] = row["n"]

    revenue = base.revenue_eligible().aggregate(
        total=Sum("total_amount"),
        discounts=Sum("discount_amount"),
    )
    voided = base.voided().aggregate(total=Sum("total_amount"))

    completed = counts[Sale.STATUS_COMPLETED]
    # SQLite sums drop the column scale
    total_revenue = money(revenue["total"] or 0)

    return {
        "date_from": date_from.isoformat() if date_from else None,
        "date_to": date_to.isoformat() if date_to else None,
        "total_revenue": total_revenue,
        "total_discounts": money(revenue["discounts"] or 0),
        "average_sale": (
            money(total_revenue / completed) if completed else money(0)
        ),
        "voided_amount": money(voided["total"] or 0),
        "counts": counts,
    }
