from __future__ import annotations

from textual.app import App
from textual.binding import Binding

from payne.config import DEFAULT_CURRENCY
from payne.models.currency import CurrencyData
from payne.models.merchant import Merchant
from payne.services.rate_cache import RateCache
from payne.utils.session import SessionCache


class PayneApp(App):
    """Payne USDC invoicing TUI."""

    CSS_PATH = "app.tcss"
    TITLE = "Payne"
    ENABLE_COMMAND_PALETTE = False

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", show=False, priority=True),
    ]

    def __init__(self, pay_invoice: str | None = None, session: SessionCache | None = None):
        super().__init__()
        self.pay_invoice = pay_invoice
        self.session = session or SessionCache()
        self.rates = RateCache(self.session)
        self.currency = CurrencyData(DEFAULT_CURRENCY)
        self.merchant: Merchant | None = None

    def load_merchant(self) -> Merchant:
        """Load and cache the merchant profile. Call from a worker thread."""
        if self.merchant is None:
            from payne.config import load_merchant

            self.merchant = Merchant.from_dict(load_merchant())
        return self.merchant

    def on_mount(self) -> None:
        if self.pay_invoice:
            from payne.tui.screens.pay import PayScreen

            self.push_screen(PayScreen(invoice_number=self.pay_invoice, standalone=True))
            return

        from payne.tui.screens.dashboard import DashboardScreen

        self.push_screen(DashboardScreen())
