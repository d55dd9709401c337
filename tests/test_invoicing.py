from __future__ import annotations

from datetime import UTC, date, datetime
from unittest.mock import patch

import pytest

from payne.models.invoice import InvoiceStatus
from payne.services.conversion import CurrencyConverter
from payne.services.exceptions import InvoiceNotFoundError, RatesUnavailableError
from payne.services.invoicing import (
    create_invoice,
    dashboard_summary,
    filter_invoices,
    get_invoice_by_number,
    list_merchant_invoices,
    to_usdc_amount,
)
from payne.utils.registry import add_invoice, find_by_number, list_invoices, mark_paid

TODAY = date(2025, 7, 1)


class TestToUsdcAmount:
    def test_usdc_passes_through(self):
        assert to_usdc_amount(42.5, "USDC", CurrencyConverter(None)) == 42.5

    def test_converts_fiat(self, converter):
        assert to_usdc_amount(90, "EUR", converter) == pytest.approx(100)

    def test_missing_rate_raises(self, converter):
        with pytest.raises(RatesUnavailableError, match="GBP"):
            to_usdc_amount(10, "GBP", converter)


class TestCreateInvoice:
    def test_persists_pending_usdc_invoice(self, registry_path, merchant, converter):
        inv = create_invoice(merchant, "  Globex  ", "90", "eur", "2025-07-15", converter)
        assert inv.invoice_number == "INV-0001"
        assert inv.customer_name == "Globex"
        assert inv.amount == pytest.approx(100)
        assert inv.status is InvoiceStatus.PENDING
        assert inv.merchant_address == merchant.address
        assert inv.due_date == date(2025, 7, 15)
        assert find_by_number("INV-0001") == inv

    def test_numbers_are_sequential(self, registry_path, merchant, converter):
        create_invoice(merchant, "A", "10", "USDC", "2025-07-15", converter)
        second = create_invoice(merchant, "B", "10", "USDC", "2025-07-15", converter)
        assert second.invoice_number == "INV-0002"

    def test_usdc_works_without_rates(self, registry_path, merchant):
        inv = create_invoice(merchant, "A", "1,250.5", "USDC", "2025-07-15", CurrencyConverter(None))
        assert inv.amount == 1250.5

    def test_no_rates_for_fiat_stores_nothing(self, registry_path, merchant):
        with pytest.raises(RatesUnavailableError):
            create_invoice(merchant, "A", "10", "EUR", "2025-07-15", CurrencyConverter(None))
        assert list_invoices() == []

    @pytest.mark.parametrize(
        "name,amount,due,match",
        [
            ("", "10", "2025-07-15", "Customer name"),
            ("A", "-5", "2025-07-15", "positive"),
            ("A", "abc", "2025-07-15", "valid number"),
            ("A", "10", "15/07/2025", "Invalid date"),
        ],
    )
    def test_validation_errors(self, registry_path, merchant, converter, name, amount, due, match):
        with pytest.raises(ValueError, match=match):
            create_invoice(merchant, name, amount, "USDC", due, converter)
        assert list_invoices() == []


class TestFilterInvoices:
    @pytest.fixture
    def invoices(self, make_invoice):
        return [
            make_invoice("INV-0001", customer="Acme Corp", due=date(2025, 6, 15)),
            make_invoice("INV-0002", customer="Globex", due=date(2025, 7, 10)),
            make_invoice(
                "INV-0003",
                customer="Initech",
                due=date(2025, 6, 1),
                status=InvoiceStatus.PAID,
                paid_at=datetime(2025, 5, 30, tzinfo=UTC),
            ),
        ]

    def test_all(self, invoices):
        assert filter_invoices(invoices, today=TODAY) == invoices

    def test_search_number_or_customer(self, invoices):
        assert [i.invoice_number for i in filter_invoices(invoices, today=TODAY, search="glob")] == [
            "INV-0002"
        ]
        assert [i.invoice_number for i in filter_invoices(invoices, today=TODAY, search="0003")] == [
            "INV-0003"
        ]

    def test_due_date(self, invoices):
        result = filter_invoices(invoices, today=TODAY, due_on=date(2025, 7, 10))
        assert [i.invoice_number for i in result] == ["INV-0002"]

    @pytest.mark.parametrize(
        "status,expected",
        [("paid", ["INV-0003"]), ("pending", ["INV-0002"]), ("overdue", ["INV-0001"])],
    )
    def test_status_uses_display_status(self, invoices, status, expected):
        result = filter_invoices(invoices, today=TODAY, status=status)
        assert [i.invoice_number for i in result] == expected

    def test_unknown_status(self, invoices):
        with pytest.raises(ValueError, match="Unknown status"):
            filter_invoices(invoices, today=TODAY, status="cancelled")


def test_list_merchant_invoices(registry_path, make_invoice):
    add_invoice(make_invoice("INV-0001"))
    add_invoice(make_invoice("INV-0002", merchant_id="other"))
    result = list_merchant_invoices("acme-software", today=TODAY)
    assert [i.invoice_number for i in result] == ["INV-0001"]


def test_get_invoice_by_number(registry_path, make_invoice):
    add_invoice(make_invoice("INV-0007"))
    assert get_invoice_by_number("INV-0007").invoice_number == "INV-0007"
    with pytest.raises(InvoiceNotFoundError) as exc_info:
        get_invoice_by_number("INV-9999")
    assert exc_info.value.invoice_number == "INV-9999"


def test_dashboard_summary(registry_path, make_invoice):
    add_invoice(make_invoice("INV-0001", amount=30, due=date(2025, 6, 1)))
    add_invoice(make_invoice("INV-0002", amount=20, due=date(2025, 8, 1)))
    paid = add_invoice(make_invoice("INV-0003", amount=100))
    mark_paid(paid.id, paid_at=datetime(2025, 6, 20, tzinfo=UTC), transaction_hash="0x1")

    summary = dashboard_summary("acme-software", TODAY)
    assert summary.total_paid == 100
    assert summary.total_outstanding == 50
    assert summary.overdue_count == 1
    assert [i.invoice_number for i in summary.recent_paid] == ["INV-0003"]
    assert [i.invoice_number for i in summary.upcoming] == ["INV-0001", "INV-0002"]


def test_create_invoice_uses_fallback_number_on_lookup_failure(registry_path, merchant, converter):
    with patch("payne.utils.registry.latest_invoice", side_effect=OSError("disk")):
        inv = create_invoice(merchant, "A", "10", "USDC", "2025-07-15", converter)
    assert inv.invoice_number.startswith("INV-")
    assert len(inv.invoice_number) == len("INV-") + 8
