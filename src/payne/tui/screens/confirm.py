from __future__ import annotations

from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label, Static

from payne.models.invoice import Invoice
from payne.utils.formatters import format_usdc


class ConfirmScreen(ModalScreen[bool]):
    """Last check before a USDC transfer is signed and broadcast.

    Shows the exact amount, recipient and invoice the transfer is for.
    Dismisses with ``True`` only on an explicit confirm.
    """

    DEFAULT_CSS = """
    ConfirmScreen {
        align: center middle;
        background: $surface 80%;
    }
    #confirm-dialog {
        width: 72;
        height: auto;
        max-height: 20;
        background: $surface;
        border: thick $warning;
        padding: 1 2;
    }
    #confirm-title {
        text-style: bold;
        margin-bottom: 1;
    }
    #confirm-warning {
        color: $warning;
        margin-top: 1;
    }
    #confirm-dialog .button-bar {
        height: 3;
        margin-top: 1;
        layout: horizontal;
        align-horizontal: right;
    }
    #confirm-dialog .button-bar Button {
        margin-left: 1;
    }
    """

    BINDINGS = [
        ("escape", "cancel", "Cancel"),
        Binding("n", "cancel", show=False),
        Binding("y", "confirm", show=False),
    ]

    def __init__(self, invoice: Invoice, local_amount: str | None = None) -> None:
        super().__init__()
        self._invoice = invoice
        self._local_amount = local_amount

    def compose(self) -> ComposeResult:
        inv = self._invoice
        amount = format_usdc(inv.amount, places=6)
        if self._local_amount:
            amount += f"  (≈ {self._local_amount})"
        with Vertical(id="confirm-dialog"):
            yield Label(f"Pay {inv.invoice_number}", id="confirm-title")
            yield Static(
                f"Amount    {amount}\n"
                f"Merchant  {inv.merchant_name}\n"
                f"To        {inv.merchant_address}\n"
                f"Customer  {inv.customer_name}",
                id="confirm-message",
            )
            yield Label(
                "Blockchain transfers cannot be undone. Gas is paid in ETH.",
                id="confirm-warning",
            )
            with Horizontal(classes="button-bar"):
                yield Button("✕ Cancel (n)", id="btn-cancel")
                yield Button(
                    f"▶ Send {format_usdc(inv.amount)} (y)",
                    id="btn-confirm",
                    variant="warning",
                )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "btn-confirm")

    def action_confirm(self) -> None:
        self.dismiss(True)

    def action_cancel(self) -> None:
        self.dismiss(False)
