from __future__ import annotations

import pytest
from textual.widgets import Button, DataTable, MaskedInput, Select

from payne.tui.app import PayneApp
from payne.tui.screens.analytics import AnalyticsScreen


def _plain(screen, widget_id: str) -> str:
    return screen.query_one(widget_id).render().plain


async def _open(app, pilot, settle):
    await settle(app, pilot)
    await pilot.press("a")
    await settle(app, pilot)
    assert isinstance(app.screen, AnalyticsScreen)
    return app.screen


@pytest.mark.asyncio
async def test_analytics_default_last30days(stored_invoices, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot, settle)
        assert screen.query_one("#preset", Select).value == "last30days"
        assert screen.query_one("#custom-start").display is False
        assert _plain(screen, "#count-info") == "1"
        revenue = _plain(screen, "#revenue-info")
        assert "25.000 USDC" in revenue
        # No revenue in the previous window
        assert "↑ 100%" in revenue
        assert "150.000 USDC" in _plain(screen, "#pending-info")
        assert "25.000 USDC" in _plain(screen, "#average-info")


@pytest.mark.asyncio
async def test_analytics_tables(stored_invoices, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot, settle)
        status = screen.query_one("#status-table", DataTable)
        rows = {str(status.get_row_at(i)[0]): str(status.get_row_at(i)[1]) for i in range(3)}
        assert rows == {"paid": "1", "pending": "1", "overdue": "1"}
        customers = screen.query_one("#customers-table", DataTable)
        assert customers.row_count == 1
        assert str(customers.get_row_at(0)[0]) == "Initech"


@pytest.mark.asyncio
async def test_analytics_empty(mock_config, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot, settle)
        assert _plain(screen, "#count-info") == "0"
        assert "0.000 USDC" in _plain(screen, "#average-info")
        customers = screen.query_one("#customers-table", DataTable)
        assert "No paid invoices" in str(customers.get_row_at(0)[0])


@pytest.mark.asyncio
async def test_analytics_custom_range(stored_invoices, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot, settle)
        screen.query_one("#preset", Select).value = "custom"
        await pilot.pause()
        assert screen.query_one("#custom-start").display is True
        assert screen.query_one("#btn-apply").display is True

        screen.query_one("#custom-start", MaskedInput).value = "2001-01-01"
        screen.query_one("#custom-end", MaskedInput).value = "2001-12-31"
        screen.query_one("#btn-apply", Button).press()
        await settle(app, pilot)
        assert _plain(screen, "#count-info") == "0"
        # Comparison is only shown for the last 30 days
        assert "%" not in _plain(screen, "#revenue-info")


@pytest.mark.asyncio
async def test_analytics_custom_range_invalid_date(stored_invoices, settle):
    app = PayneApp()
    async with app.run_test() as pilot:
        screen = await _open(app, pilot, settle)
        screen.query_one("#preset", Select).value = "custom"
        await pilot.pause()
        screen.query_one("#custom-start", MaskedInput).value = "2001-13-45"
        screen.query_one("#btn-apply", Button).press()
        await pilot.pause()
        assert "Invalid date" in _plain(screen, "#error-label")


@pytest.mark.asyncio
async def test_analytics_escape_goes_back(mock_config):
    from payne.tui.screens.dashboard import DashboardScreen

    app = PayneApp()
    async with app.run_test() as pilot:
        await pilot.press("a")
        await pilot.press("escape")
        assert isinstance(app.screen, DashboardScreen)
