from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import UTC, date, datetime
from enum import Enum


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    # Derived for display only, never stored
    OVERDUE = "overdue"


def _parse_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value)
    # Stored documents may carry a full ISO timestamp (e.g. "2025-06-01T00:00:00.000Z")
    return date.fromisoformat(text[:10])


def _parse_timestamp(value: object) -> datetime | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def _parse_amount(value: object) -> float:
    try:
        amount = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
    return amount if amount == amount else 0.0


@dataclass(frozen=True)
class Invoice:
    """A request for payment of a fixed USDC amount."""

    id: str
    invoice_number: str
    customer_name: str
    amount: float  # USDC
    due_date: date
    merchant_id: str
    merchant_name: str
    merchant_address: str
    created_at: datetime
    status: InvoiceStatus = InvoiceStatus.PENDING
    paid_at: datetime | None = None
    transaction_hash: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.status is InvoiceStatus.PAID

    def payment_link(self, origin: str) -> str:
        """Public payment URL, keyed by invoice number rather than storage id."""
        return f"{origin.rstrip('/')}/pay/{self.invoice_number}"

    def mark_paid(self, paid_at: datetime, transaction_hash: str) -> Invoice:
        """Return a copy in the paid state. Only pending invoices can be paid."""
        if self.is_paid:
            raise ValueError(f"{self.invoice_number} is already paid")
        return replace(
            self,
            status=InvoiceStatus.PAID,
            paid_at=paid_at,
            transaction_hash=transaction_hash,
        )

    @classmethod
    def from_dict(cls, d: dict) -> Invoice:
        """Create an Invoice from a stored document."""
        status = InvoiceStatus(d.get("status") or "pending")
        if status is InvoiceStatus.OVERDUE:
            status = InvoiceStatus.PENDING
        return cls(
            id=d["id"],
            invoice_number=d["invoice_number"],
            customer_name=d.get("customer_name", ""),
            amount=_parse_amount(d.get("amount")),
            due_date=_parse_date(d["due_date"]),
            merchant_id=d.get("merchant_id", ""),
            merchant_name=d.get("merchant_name", ""),
            merchant_address=d.get("merchant_address", ""),
            created_at=_parse_timestamp(d.get("created_at")) or datetime.now(UTC),
            status=status,
            paid_at=_parse_timestamp(d.get("paid_at")) if status is InvoiceStatus.PAID else None,
            transaction_hash=d.get("transaction_hash"),
        )

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["due_date"] = self.due_date.isoformat()
        data["created_at"] = self.created_at.isoformat()
        data["paid_at"] = self.paid_at.isoformat() if self.paid_at else None
        return data


def display_status(invoice: Invoice, today: date | datetime) -> InvoiceStatus:
    """Status shown to users: paid, or pending/overdue by due date.

    Compared at day granularity; an invoice due today is still pending.
    """
    if invoice.status is InvoiceStatus.PAID:
        return InvoiceStatus.PAID
    if isinstance(today, datetime):
        today = today.date()
    if invoice.due_date < today:
        return InvoiceStatus.OVERDUE
    return InvoiceStatus.PENDING
