from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import UTC, date, datetime

from payne.models.invoice import Invoice, InvoiceStatus, display_status
from payne.models.merchant import Merchant
from payne.services.conversion import CurrencyConverter
from payne.services.exceptions import InvoiceNotFoundError, RatesUnavailableError
from payne.utils.registry import (
    add_invoice,
    find_by_number,
    list_invoices,
    recent_paid,
    upcoming_pending,
)
from payne.utils.sequence import next_invoice_number
from payne.utils.validators import (
    validate_amount,
    validate_currency_code,
    validate_customer_name,
    validate_date,
)

logger = logging.getLogger(__name__)

USDC = "USDC"
STATUS_FILTERS = ("all", "paid", "pending", "overdue")


def _now_utc() -> datetime:
    return datetime.now(UTC)


def to_usdc_amount(amount: float, currency: str, converter: CurrencyConverter) -> float:
    """Convert a typed amount to USDC. USDC amounts pass through unchanged."""
    if currency == USDC:
        return amount
    usdc = converter.to_usdc(amount, currency)
    if usdc is None:
        raise RatesUnavailableError(f"No exchange rate available for {currency}")
    return usdc


def create_invoice(
    merchant: Merchant,
    customer_name: str,
    amount: str,
    currency: str,
    due_date: str,
    converter: CurrencyConverter,
) -> Invoice:
    """Validate the form values, convert to USDC and persist a pending invoice.

    Raises ValueError for invalid input and RatesUnavailableError when the
    amount cannot be converted.
    """
    name = validate_customer_name(customer_name)
    typed_amount = validate_amount(amount)
    code = validate_currency_code(currency)
    due = validate_date(due_date)

    usdc_amount = to_usdc_amount(typed_amount, code, converter)

    invoice = Invoice(
        id=uuid.uuid4().hex,
        invoice_number=next_invoice_number(),
        customer_name=name,
        amount=usdc_amount,
        due_date=due,
        merchant_id=merchant.merchant_id,
        merchant_name=merchant.name,
        merchant_address=merchant.address,
        created_at=_now_utc(),
    )
    add_invoice(invoice)
    logger.info(
        "Invoice %s created: %s %s -> %.6f USDC for %s",
        invoice.invoice_number,
        typed_amount,
        code,
        usdc_amount,
        name,
    )
    return invoice


def filter_invoices(
    invoices: list[Invoice],
    *,
    today: date,
    search: str = "",
    due_on: date | None = None,
    status: str = "all",
) -> list[Invoice]:
    """Apply the invoice list filters: text search, exact due date and status."""
    if status not in STATUS_FILTERS:
        raise ValueError(f"Unknown status filter: {status!r}")

    needle = search.strip().lower()
    result = []
    for inv in invoices:
        if needle and needle not in inv.invoice_number.lower() and (
            needle not in inv.customer_name.lower()
        ):
            continue
        if due_on is not None and inv.due_date != due_on:
            continue
        if status != "all" and display_status(inv, today).value != status:
            continue
        result.append(inv)
    return result


def list_merchant_invoices(
    merchant_id: str,
    *,
    today: date,
    search: str = "",
    due_on: date | None = None,
    status: str = "all",
) -> list[Invoice]:
    return filter_invoices(
        list_invoices(merchant_id),
        today=today,
        search=search,
        due_on=due_on,
        status=status,
    )


def get_invoice_by_number(invoice_number: str) -> Invoice:
    """Read-only fetch used by the payment page."""
    invoice = find_by_number(invoice_number)
    if invoice is None:
        raise InvoiceNotFoundError(invoice_number)
    return invoice


@dataclass
class DashboardSummary:
    recent_paid: list[Invoice]
    upcoming: list[Invoice]
    total_paid: float
    total_outstanding: float
    overdue_count: int


def dashboard_summary(merchant_id: str, today: date) -> DashboardSummary:
    invoices = list_invoices(merchant_id)
    pending = [i for i in invoices if i.status is InvoiceStatus.PENDING]
    return DashboardSummary(
        recent_paid=recent_paid(merchant_id),
        upcoming=upcoming_pending(merchant_id),
        total_paid=sum(i.amount for i in invoices if i.is_paid),
        total_outstanding=sum(i.amount for i in pending),
        overdue_count=sum(
            1 for i in pending if display_status(i, today) is InvoiceStatus.OVERDUE
        ),
    )
