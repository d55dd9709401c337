from __future__ import annotations

import calendar
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from payne.models.invoice import Invoice, InvoiceStatus, display_status

PRESETS = ("last7days", "last30days", "thisMonth", "custom")
TOP_CUSTOMERS = 5
COMPARISON_WINDOW = timedelta(days=30)


@dataclass(frozen=True)
class CustomerTotal:
    name: str
    total: float


@dataclass(frozen=True)
class PeriodComparison:
    percent_change: int
    is_positive: bool
    previous_revenue: float


@dataclass
class AnalyticsReport:
    start: datetime
    end: datetime
    total_revenue: float = 0.0
    paid_count: int = 0
    pending_revenue: float = 0.0
    average_invoice_value: float = 0.0
    status_distribution: dict[str, int] = field(default_factory=dict)
    top_customers: list[CustomerTotal] = field(default_factory=list)
    period_comparison: PeriodComparison | None = None


def date_range_for_preset(
    preset: str,
    now: datetime,
    custom_start: date | None = None,
    custom_end: date | None = None,
) -> tuple[datetime, datetime]:
    """Resolve a preset name to an inclusive ``[start, end]`` window.

    A custom range missing either date collapses to ``[now, now]``.
    """
    if preset == "last7days":
        return now - timedelta(days=7), now
    if preset == "last30days":
        return now - timedelta(days=30), now
    if preset == "thisMonth":
        last_day = calendar.monthrange(now.year, now.month)[1]
        start = datetime.combine(now.date().replace(day=1), time.min, tzinfo=now.tzinfo)
        end = datetime.combine(now.date().replace(day=last_day), time.max, tzinfo=now.tzinfo)
        return start, end
    if preset == "custom":
        if custom_start and custom_end:
            return (
                datetime.combine(custom_start, time.min, tzinfo=now.tzinfo),
                datetime.combine(custom_end, time.max, tzinfo=now.tzinfo),
            )
        return now, now
    raise ValueError(f"Unknown date range preset: {preset!r}")


def _paid_between(invoices: list[Invoice], start: datetime, end: datetime) -> list[Invoice]:
    return [
        i for i in invoices
        if i.status is InvoiceStatus.PAID and i.paid_at is not None and start <= i.paid_at <= end
    ]


def _comparison(revenue: float, previous: float) -> PeriodComparison:
    if previous > 0:
        change = (revenue - previous) / previous * 100
        # Halves round up, toward positive infinity
        return PeriodComparison(abs(math.floor(change + 0.5)), change >= 0, previous)
    if revenue > 0:
        return PeriodComparison(100, True, previous)
    return PeriodComparison(0, True, previous)


def top_customers(paid: list[Invoice], limit: int = TOP_CUSTOMERS) -> list[CustomerTotal]:
    """Revenue per customer, highest first; ties keep first-seen order."""
    totals: dict[str, float] = {}
    for inv in paid:
        totals[inv.customer_name] = totals.get(inv.customer_name, 0.0) + inv.amount
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)
    return [CustomerTotal(name, total) for name, total in ranked[:limit]]


def compute_analytics(
    invoices: list[Invoice],
    start: datetime,
    end: datetime,
    *,
    preset: str,
    today: date,
) -> AnalyticsReport:
    """Revenue, status and customer figures for the window ``[start, end]``.

    Only paid revenue is range-filtered. Pending revenue and the status
    distribution cover all invoices, so the paid count in the distribution
    can exceed ``paid_count``.
    """
    paid_in_range = _paid_between(invoices, start, end)
    revenue = sum(i.amount for i in paid_in_range)
    statuses = [display_status(i, today) for i in invoices]

    report = AnalyticsReport(
        start=start,
        end=end,
        total_revenue=revenue,
        paid_count=len(paid_in_range),
        pending_revenue=sum(i.amount for i in invoices if i.status is InvoiceStatus.PENDING),
        average_invoice_value=revenue / len(paid_in_range) if paid_in_range else 0.0,
        status_distribution={
            s.value: statuses.count(s)
            for s in (InvoiceStatus.PAID, InvoiceStatus.PENDING, InvoiceStatus.OVERDUE)
        },
        top_customers=top_customers(paid_in_range),
    )

    if preset == "last30days":
        previous = _paid_between(
            invoices, start - COMPARISON_WINDOW, end - COMPARISON_WINDOW
        )
        report.period_comparison = _comparison(revenue, sum(i.amount for i in previous))
    return report
