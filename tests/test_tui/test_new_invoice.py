from __future__ import annotations

import pytest
from textual.widgets import Button, DataTable, Input, Select

from payne.tui.app import PayneApp
from payne.tui.screens.new_invoice import NewInvoiceScreen


async def _open_form(app, pilot, settle):
    await settle(app, pilot)
    await pilot.press("n")
    await settle(app, pilot)
    assert isinstance(app.screen, NewInvoiceScreen)
    return app.screen


def _fill(screen, name: str, amount: str, currency: str, due: str = "2030-01-31") -> None:
    screen.query_one("#customer-name", Input).value = name
    screen.query_one("#amount", Input).value = amount
    screen.query_one("#currency", Select).value = currency
    screen.query_one("#due-date", Input).value = due


@pytest.mark.asyncio
async def test_new_invoice_starts_with_form(mock_config, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open_form(app, pilot, settle)
        assert screen.query_one("#form-container").display is True
        assert screen.query_one("#result-container").display is False


@pytest.mark.asyncio
async def test_new_invoice_lists_currencies(mock_config, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open_form(app, pilot, settle)
        sel = screen.query_one("#currency", Select)
        values = [value for _, value in sel._options if value is not Select.BLANK]
        assert values[:3] == ["USDC", "EUR", "USD"]
        assert "BRL" in values
        assert sel.value == "EUR"


@pytest.mark.asyncio
async def test_new_invoice_preview_converts_to_usdc(mock_config, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open_form(app, pilot, settle)
        _fill(screen, "Globex", "90", "EUR")
        await pilot.pause()
        assert "100.000 USDC" in screen.query_one("#usdc-preview").render().plain


@pytest.mark.asyncio
async def test_new_invoice_creates_and_shows_link(mock_config, settle):
    from payne.utils.registry import find_by_number

    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open_form(app, pilot, settle)
        _fill(screen, "Globex", "90", "EUR")
        screen.query_one("#btn-create", Button).press()
        await settle(app, pilot)

        assert screen.query_one("#result-container").display is True
        table = screen.query_one("#result-table", DataTable)
        cells = [str(table.get_row_at(i)[1]) for i in range(table.row_count)]
        assert "INV-0001" in cells
        assert "https://pay.acme.test/pay/INV-0001" in cells

    stored = find_by_number("INV-0001")
    assert stored.customer_name == "Globex"
    assert stored.amount == pytest.approx(100)


@pytest.mark.asyncio
async def test_new_invoice_validation_error(mock_config, settle):
    from payne.utils.registry import list_invoices

    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open_form(app, pilot, settle)
        _fill(screen, "", "10", "USDC")
        screen.query_one("#btn-create", Button).press()
        await settle(app, pilot)
        assert "Customer name is required" in screen.query_one("#error-label").render().plain
        assert screen.query_one("#btn-create", Button).disabled is False
        assert screen.query_one("#form-container").display is True
    assert list_invoices() == []


@pytest.mark.asyncio
async def test_new_invoice_another_resets_form(mock_config, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open_form(app, pilot, settle)
        _fill(screen, "Globex", "10", "USDC")
        screen.query_one("#btn-create", Button).press()
        await settle(app, pilot)
        screen.query_one("#btn-result-another", Button).press()
        await pilot.pause()
        assert screen.query_one("#form-container").display is True
        assert screen.query_one("#customer-name", Input).value == ""


@pytest.mark.asyncio
async def test_new_invoice_result_opens_payment_page(mock_config, settle):
    from payne.tui.screens.pay import PayScreen

    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open_form(app, pilot, settle)
        _fill(screen, "Globex", "10", "USDC")
        screen.query_one("#btn-create", Button).press()
        await settle(app, pilot)
        screen.query_one("#btn-result-pay", Button).press()
        await pilot.pause()
        assert isinstance(app.screen, PayScreen)
        assert app.screen.query_one("#number-input", Input).value == "INV-0001"


@pytest.mark.asyncio
async def test_new_invoice_escape_goes_back(mock_config):
    from payne.tui.screens.dashboard import DashboardScreen

    app = PayneApp()
    async with app.run_test() as pilot:
        await pilot.press("n")
        assert isinstance(app.screen, NewInvoiceScreen)
        await pilot.press("escape")
        assert isinstance(app.screen, DashboardScreen)
