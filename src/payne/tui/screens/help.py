from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, RichLog, Static


class HelpScreen(ModalScreen):
    """Keyboard shortcuts and a short note on how payments work."""

    BINDINGS = [
        Binding("escape", "go_back", "Back"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Help", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield RichLog(id="help-content", wrap=True, markup=True)
            with Horizontal(classes="button-bar"):
                yield Button("✕ Close", id="btn-back")

    def on_mount(self) -> None:
        log = self.query_one("#help-content", RichLog)

        log.write("[bold]Payne[/bold]")
        log.write("")
        log.write(
            "Create invoices priced in your local currency, settle them in USDC "
            "and track revenue from the terminal."
        )
        log.write("")

        log.write("[bold]Keyboard shortcuts[/bold]")
        log.write("")
        log.write("  [bold cyan]n[/bold cyan]  New invoice        Create an invoice")
        log.write("  [bold cyan]p[/bold cyan]  Pay                Open the payment page")
        log.write("  [bold cyan]y[/bold cyan]  Copy link          Copy the payment link")
        log.write("  [bold cyan]a[/bold cyan]  Analytics          Revenue and customers")
        log.write("  [bold cyan]c[/bold cyan]  Currency           Toggle local currency / USD")
        log.write("  [bold cyan]r[/bold cyan]  Rates              Refetch exchange rates")
        log.write("  [bold cyan]f[/bold cyan]  Filter             Focus the search field")
        log.write("  [bold cyan]h[/bold cyan]  Help               This screen")
        log.write("  [bold cyan]q[/bold cyan]  Quit               Exit the application")
        log.write("")
        log.write("[bold]Table navigation[/bold]")
        log.write("")
        log.write("  [bold cyan]j / ↓[/bold cyan]  Next row")
        log.write("  [bold cyan]k / ↑[/bold cyan]  Previous row")
        log.write("  [bold cyan]enter[/bold cyan]   Pay selected invoice")
        log.write("")

        log.write("[bold]Amounts[/bold]")
        log.write("")
        log.write(
            "Invoices are stored in USDC. Amounts typed in another currency are "
            "converted with exchange rates cached for one hour; local-currency "
            "figures elsewhere are estimates."
        )
        log.write("")

        log.write("[bold yellow]Payments[/bold yellow]")
        log.write("")
        log.write(
            "Paying sends an on-chain USDC transfer from the configured payer wallet "
            "to the merchant's address. Transfers cannot be reversed. If confirmation "
            "fails, check the transaction in your wallet before trying again."
        )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id in ("btn-back", "btn-modal-close"):
            self.app.pop_screen()

    def action_go_back(self) -> None:
        self.app.pop_screen()
