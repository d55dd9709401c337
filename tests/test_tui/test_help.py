from __future__ import annotations

import pytest
from textual.widgets import Button

from payne.tui.app import PayneApp
from payne.tui.screens.dashboard import DashboardScreen
from payne.tui.screens.help import HelpScreen


@pytest.mark.asyncio
async def test_help_screen_opens(mock_config):
    app = PayneApp()
    async with app.run_test() as pilot:
        await pilot.press("h")
        assert isinstance(app.screen, HelpScreen)


@pytest.mark.asyncio
async def test_help_screen_closes_on_escape(mock_config):
    app = PayneApp()
    async with app.run_test() as pilot:
        await pilot.press("h")
        await pilot.press("escape")
        assert isinstance(app.screen, DashboardScreen)


@pytest.mark.asyncio
async def test_help_screen_closes_on_button(mock_config):
    app = PayneApp()
    async with app.run_test() as pilot:
        await pilot.press("h")
        app.screen.query_one("#btn-back", Button).press()
        await pilot.pause()
        assert isinstance(app.screen, DashboardScreen)
