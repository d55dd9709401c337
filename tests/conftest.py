from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import patch

import pytest

from payne.models.invoice import Invoice, InvoiceStatus
from payne.models.merchant import Merchant
from payne.services.conversion import CurrencyConverter, RateTable

MERCHANT_ADDRESS = "0x1111111111111111111111111111111111111111"


def _make_invoice(
    number: str = "INV-0001",
    *,
    customer: str = "Acme Corp",
    amount: float = 100.0,
    due: date = date(2025, 6, 30),
    created_at: datetime | None = None,
    status: InvoiceStatus = InvoiceStatus.PENDING,
    paid_at: datetime | None = None,
    merchant_id: str = "acme-software",
    invoice_id: str | None = None,
) -> Invoice:
    return Invoice(
        id=invoice_id or f"id-{number}",
        invoice_number=number,
        customer_name=customer,
        amount=amount,
        due_date=due,
        merchant_id=merchant_id,
        merchant_name="Acme Software LLC",
        merchant_address=MERCHANT_ADDRESS,
        created_at=created_at or datetime(2025, 6, 1, 12, 0, tzinfo=UTC),
        status=status,
        paid_at=paid_at,
        transaction_hash="0xabc" if status is InvoiceStatus.PAID else None,
    )


@pytest.fixture
def make_invoice():
    """Factory for stored-invoice values with sensible defaults."""
    return _make_invoice


# --- Merchant fixtures ---


@pytest.fixture
def merchant_dict() -> dict:
    return {
        "merchant_id": "acme-software",
        "name": "Acme Software LLC",
        "address": MERCHANT_ADDRESS,
        "origin": "https://pay.acme.test",
        "default_currency": "eur",
    }


@pytest.fixture
def merchant(merchant_dict: dict) -> Merchant:
    return Merchant.from_dict(merchant_dict)


# --- Rate fixtures ---


@pytest.fixture
def rate_table() -> RateTable:
    return RateTable(
        rates={"USD": 1.0, "EUR": 0.9, "BRL": 5.0, "JPY": 150.0},
        usdc_rate=1.0,
        fetched_at=datetime(2025, 6, 1, 12, 0, tzinfo=UTC),
    )


@pytest.fixture
def converter(rate_table: RateTable) -> CurrencyConverter:
    return CurrencyConverter(rate_table)


# --- Storage fixtures ---


@pytest.fixture
def registry_path(tmp_path):
    """Point the invoice store at a temp file; lock files go there too."""
    rp = tmp_path / "invoices.json"
    with patch("payne.utils.registry._registry_path", return_value=rp):
        yield rp


@pytest.fixture
def data_dir(tmp_path):
    with patch("payne.config.get_data_dir", return_value=tmp_path):
        yield tmp_path


@pytest.fixture(autouse=True)
def _no_listeners():
    """Registry subscriptions are module-global; isolate them per test."""
    from payne.utils import registry

    registry._listeners.clear()
    yield
    registry._listeners.clear()
