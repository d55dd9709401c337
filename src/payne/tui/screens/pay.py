from __future__ import annotations

import logging
from datetime import date

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Input, Label, Static

from payne.models.invoice import Invoice, InvoiceStatus, display_status
from payne.services.payment import PaymentFlow, PaymentResult, PaymentState
from payne.utils.formatters import format_fiat, format_usdc

logger = logging.getLogger(__name__)

STATE_TEXT = {
    PaymentState.IDLE: "",
    PaymentState.PROCESSING: "[yellow]Processing… submitting the transfer[/yellow]",
    PaymentState.CONFIRMING: "[yellow]Confirming… waiting for the receipt[/yellow]",
    PaymentState.SUCCEEDED: "[green]Payment successful[/green]",
    PaymentState.FAILED: "[red]Payment failed[/red]",
}


class PayScreen(ModalScreen):
    """Public payment page: load an invoice by number and pay it in USDC."""

    BINDINGS = [
        Binding("escape", "go_back", "Back"),
    ]

    def __init__(self, invoice_number: str = "", standalone: bool = False) -> None:
        super().__init__()
        self._initial_number = invoice_number
        self._standalone = standalone
        self._invoice: Invoice | None = None
        self._flow: PaymentFlow | None = None
        self._currency_ready = False
        # Invoice number -> hash of a transfer whose receipt never arrived
        self._unconfirmed: dict[str, str] = {}

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Pay invoice", id="header-bar")
                yield Button("✕", id="btn-modal-close")
            yield Label("Invoice number", classes="form-label")
            yield Input(
                value=self._initial_number,
                placeholder="INV-0001",
                id="number-input",
                tooltip="Invoice number from the payment link",
            )
            yield Label("", id="error-label")
            yield DataTable(id="invoice-details", show_header=False)
            yield Label("", id="wallet-info")
            yield Label("", id="payment-status")
            with Horizontal(classes="button-bar"):
                yield Button("✕ Close", id="btn-close")
                yield Button("▷ Load", id="btn-load")
                yield Button("▶ Pay", id="btn-pay", variant="success", disabled=True)

    def on_mount(self) -> None:
        self.query_one("#invoice-details", DataTable).display = False
        if self._initial_number:
            self._do_load()
        else:
            self.query_one("#number-input", Input).focus()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._do_load()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-load":
                self._do_load()
            case "btn-pay":
                self._confirm_payment()
            case "btn-close" | "btn-modal-close":
                self.action_go_back()

    # --- Loading ---

    def _do_load(self) -> None:
        from payne.utils.validators import validate_invoice_number

        error_label = self.query_one("#error-label", Label)
        try:
            number = validate_invoice_number(self.query_one("#number-input", Input).value)
        except ValueError as e:
            error_label.update(str(e))
            return
        error_label.update("")
        self.query_one("#payment-status", Label).update("")
        self.query_one("#btn-pay", Button).disabled = True
        self._flow = None
        self._run_load(number)

    @work(thread=True, exclusive=True, group="load")
    def _run_load(self, number: str, after_payment: bool = False) -> None:
        from payne.services.exceptions import InvoiceNotFoundError
        from payne.services.invoicing import get_invoice_by_number

        if self._standalone and not self._currency_ready:
            self._prepare_currency()
        try:
            invoice = get_invoice_by_number(number)
        except InvoiceNotFoundError:
            self.app.call_from_thread(self._show_not_found, number)
            return
        except Exception as e:
            self.app.call_from_thread(self._show_error, f"Could not load invoice: {e}")
            return
        self.app.call_from_thread(self._show_invoice, invoice, after_payment)

    def _prepare_currency(self) -> None:
        """Resolve display currency and rates; the dashboard does this otherwise."""
        from payne.services.exceptions import RatesUnavailableError
        from payne.services.preferences import resolve_currency

        app = self.app
        app.currency = resolve_currency(app.session)  # type: ignore[attr-defined]
        try:
            app.rates.ensure_fresh()  # type: ignore[attr-defined]
        except RatesUnavailableError:
            logger.warning("Rates unavailable, showing USDC amounts only", exc_info=True)
        self._currency_ready = True

    def _show_not_found(self, number: str) -> None:
        self._invoice = None
        self.query_one("#invoice-details", DataTable).display = False
        self.query_one("#error-label", Label).update(
            f"Invoice {number} not found. Check the payment link and try again."
        )

    def _show_invoice(self, invoice: Invoice, after_payment: bool = False) -> None:
        self._invoice = invoice
        app = self.app
        code = app.currency.code  # type: ignore[attr-defined]
        local = app.rates.converter().from_usdc(invoice.amount, code)  # type: ignore[attr-defined]
        status = display_status(invoice, date.today())

        table = self.query_one("#invoice-details", DataTable)
        table.clear(columns=True)
        table.add_columns("Field", "Value")
        table.add_row("Invoice", invoice.invoice_number)
        table.add_row("Merchant", invoice.merchant_name)
        table.add_row("Pay to", invoice.merchant_address)
        table.add_row("Customer", invoice.customer_name)
        table.add_row("Amount", format_usdc(invoice.amount))
        if code != "USD":
            table.add_row(f"≈ {code}", format_fiat(local, code))
        table.add_row("Due date", invoice.due_date.isoformat())
        table.add_row("Status", status.value)
        if invoice.is_paid:
            table.add_row("Paid at", invoice.paid_at.isoformat() if invoice.paid_at else "")
            table.add_row("Transaction", invoice.transaction_hash or "")
        table.display = True

        if invoice.is_paid:
            self._unconfirmed.pop(invoice.invoice_number, None)
        pending_tx = self._unconfirmed.get(invoice.invoice_number)
        self.query_one("#btn-pay", Button).disabled = invoice.is_paid or pending_tx is not None
        # After a payment the status label holds the transaction result
        if not after_payment:
            status_label = self.query_one("#payment-status", Label)
            if invoice.is_paid:
                status_label.update("[green]This invoice is paid[/green]")
            elif pending_tx is not None:
                status_label.update(
                    f"[yellow]Transfer {pending_tx} was sent but never confirmed. "
                    "Check it on a block explorer before paying again.[/yellow]"
                )
            elif status is InvoiceStatus.OVERDUE:
                status_label.update("[red]This invoice is overdue[/red]")
        self._load_wallet()

    @work(thread=True, exclusive=True, group="wallet")
    def _load_wallet(self) -> None:
        from payne.services.chain import Web3ChainClient

        try:
            chain = Web3ChainClient.from_config()
            text = (
                f"Wallet {chain.account_address}\n"
                f"Balance {format_usdc(chain.usdc_balance())}, {chain.native_balance():.5f} ETH"
            )
        except KeyError as e:
            text = f"[yellow]Wallet not configured ({e.args[0]})[/yellow]"
        except Exception as e:
            text = f"[red]Wallet unavailable - {e}[/red]"
        self.app.call_from_thread(self._update_label, "wallet-info", text)

    # --- Paying ---

    def _confirm_payment(self) -> None:
        invoice = self._invoice
        if invoice is None or invoice.is_paid or invoice.invoice_number in self._unconfirmed:
            return
        from payne.tui.screens.confirm import ConfirmScreen

        code = self.app.currency.code  # type: ignore[attr-defined]
        local = None
        if code != "USD":
            converter = self.app.rates.converter()  # type: ignore[attr-defined]
            value = converter.from_usdc(invoice.amount, code)
            local = format_fiat(value, code) if value is not None else None
        self.app.push_screen(
            ConfirmScreen(invoice, local_amount=local),
            callback=self._on_payment_confirmed,
        )

    def _on_payment_confirmed(self, confirmed: bool | None) -> None:
        if confirmed and self._invoice is not None:
            self.query_one("#btn-pay", Button).disabled = True
            self.query_one("#btn-load", Button).disabled = True
            self._run_payment(self._invoice)

    @work(thread=True, exclusive=True, group="payment")
    def _run_payment(self, invoice: Invoice) -> None:
        try:
            if self._flow is None:
                from payne.services.chain import Web3ChainClient

                self._flow = PaymentFlow(
                    Web3ChainClient.from_config(),
                    on_state=lambda s: self.app.call_from_thread(self._show_state, s),
                )
            else:
                self._flow.reset()
            result = self._flow.pay(invoice)
        except KeyError as e:
            self.app.call_from_thread(
                self._show_error, f"Wallet not configured: set {e.args[0]}"
            )
            return
        except Exception as e:
            self.app.call_from_thread(self._show_error, f"Payment could not start: {e}")
            return
        self.app.call_from_thread(self._show_result, result)

    def _show_state(self, state: PaymentState) -> None:
        self._update_label("payment-status", STATE_TEXT[state])

    def _show_result(self, result: PaymentResult) -> None:
        self.query_one("#btn-load", Button).disabled = False
        status = self.query_one("#payment-status", Label)
        if result.succeeded:
            text = f"[green]Payment successful[/green]\nTransaction {result.transaction_hash}"
            if not result.record_updated:
                text += (
                    "\n[yellow]The invoice could not be marked paid: "
                    f"{result.update_error}[/yellow]"
                )
            status.update(text)
            self.notify(f"{result.invoice_number} paid", timeout=5)
            if self._invoice is not None and result.record_updated:
                self._run_load(self._invoice.invoice_number, after_payment=True)
            return

        text = f"[red]{result.message}[/red]"
        if result.transaction_hash:
            text += f"\nTransaction {result.transaction_hash}"
        status.update(text)
        # Receipt unknown: the transfer may already have gone through.
        if result.stage == "confirmation":
            self._unconfirmed[result.invoice_number] = result.transaction_hash or "unknown"
        self.query_one("#btn-pay", Button).disabled = result.stage == "confirmation"
        self.notify(result.message, severity="error", timeout=5)

    # --- Helpers ---

    def _show_error(self, msg: str) -> None:
        self.query_one("#btn-load", Button).disabled = False
        invoice = self._invoice
        self.query_one("#btn-pay", Button).disabled = (
            invoice is None or invoice.invoice_number in self._unconfirmed
        )
        self.query_one("#error-label", Label).update(msg)
        self.notify(msg, severity="error", timeout=5)

    def _update_label(self, label_id: str, text: str) -> None:
        try:
            self.query_one(f"#{label_id}", Label).update(text)
        except Exception:
            pass

    def action_go_back(self) -> None:
        if self._standalone:
            self.app.exit()
        else:
            self.app.pop_screen()
