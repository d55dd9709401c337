from __future__ import annotations

from datetime import date

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Container, Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Input, Label, Select, Static

from payne.models.invoice import Invoice
from payne.services.invoicing import USDC
from payne.utils.formatters import format_usdc


class NewInvoiceScreen(ModalScreen):
    """Two-phase screen: form -> result."""

    BINDINGS = [
        Binding("escape", "go_back", "Back"),
    ]

    def __init__(self) -> None:
        super().__init__()
        self._phase = "form"
        self._created: Invoice | None = None

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("New invoice", id="header-bar")
                yield Button("✕", id="btn-modal-close")

            # Phase 1: Form
            with Container(id="form-container"):
                yield Label("Customer name", classes="form-label")
                yield Input(placeholder="Acme Corp", id="customer-name")
                yield Label("Amount", classes="form-label")
                with Horizontal(id="amount-row"):
                    yield Input(placeholder="100.00", id="amount")
                    yield Select([(USDC, USDC)], value=USDC, allow_blank=False, id="currency")
                yield Label("", id="usdc-preview")
                yield Label("Due date (YYYY-MM-DD)", classes="form-label")
                yield Input(value=date.today().isoformat(), id="due-date")
                with Horizontal(classes="button-bar"):
                    yield Button("✕ Close", id="btn-form-close")
                    yield Button("▶ Create", id="btn-create", variant="primary")
                yield Label("", id="error-label")

            # Phase 2: Result
            with Container(id="result-container"):
                yield DataTable(id="result-table", show_header=False)
                with Horizontal(classes="button-bar"):
                    yield Button("✕ Close", id="btn-result-close")
                    yield Button("+ Another", id="btn-result-another")
                    yield Button("▶ Payment page", id="btn-result-pay", variant="primary")

    def on_mount(self) -> None:
        self._show_phase("form")
        self._load_currencies()
        self.query_one("#customer-name", Input).focus()

    def _show_phase(self, phase: str) -> None:
        self._phase = phase
        self.query_one("#form-container").display = phase == "form"
        self.query_one("#result-container").display = phase == "result"
        if phase == "form":
            self.query_one("#btn-create", Button).disabled = False

    @work(thread=True)
    def _load_currencies(self) -> None:
        app = self.app
        converter = app.rates.converter()  # type: ignore[attr-defined]
        local = app.currency.code  # type: ignore[attr-defined]
        codes = [USDC]
        if converter.available:
            for code in (local, "USD"):
                if code not in codes and converter.to_usdc(1.0, code) is not None:
                    codes.append(code)
            codes.extend(sorted(c for c in converter.table.currencies if c not in codes))
        self.app.call_from_thread(self._populate_currencies, codes, local)

    def _populate_currencies(self, codes: list[str], local: str) -> None:
        select = self.query_one("#currency", Select)
        select.set_options([(c, c) for c in codes])
        select.value = local if local in codes else USDC
        if len(codes) == 1:
            self.query_one("#usdc-preview", Label).update(
                "[yellow]Exchange rates unavailable, amounts are entered in USDC[/yellow]"
            )

    # --- Live conversion preview ---

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "amount":
            self._update_preview()

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "currency":
            self._update_preview()

    def _update_preview(self) -> None:
        from payne.utils.validators import validate_amount

        label = self.query_one("#usdc-preview", Label)
        currency = self.query_one("#currency", Select).value
        if currency is Select.BLANK or currency == USDC:
            label.update("")
            return
        try:
            amount = validate_amount(self.query_one("#amount", Input).value)
        except ValueError:
            label.update("")
            return
        converter = self.app.rates.converter()  # type: ignore[attr-defined]
        label.update(f"≈ {format_usdc(converter.to_usdc(amount, str(currency)))}")

    # --- Create ---

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-create":
                self._do_create()
            case "btn-form-close" | "btn-result-close" | "btn-modal-close":
                self.app.pop_screen()
            case "btn-result-another":
                self._reset_form()
            case "btn-result-pay":
                self._open_payment()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if self._phase == "form":
            self._do_create()

    def _do_create(self) -> None:
        error_label = self.query_one("#error-label", Label)
        error_label.update("")
        currency = self.query_one("#currency", Select).value
        if currency is Select.BLANK:
            error_label.update("Select a currency")
            return
        self.query_one("#btn-create", Button).disabled = True
        self._run_create(
            self.query_one("#customer-name", Input).value,
            self.query_one("#amount", Input).value,
            str(currency),
            self.query_one("#due-date", Input).value,
        )

    @work(thread=True)
    def _run_create(self, customer_name: str, amount: str, currency: str, due_date: str) -> None:
        from payne.services.exceptions import PayneError
        from payne.services.invoicing import create_invoice

        try:
            merchant = self.app.load_merchant()  # type: ignore[attr-defined]
            invoice = create_invoice(
                merchant,
                customer_name=customer_name,
                amount=amount,
                currency=currency,
                due_date=due_date,
                converter=self.app.rates.converter(),  # type: ignore[attr-defined]
            )
        except (ValueError, PayneError) as e:
            self.app.call_from_thread(self._set_error, str(e))
            return
        except Exception as e:
            self.app.call_from_thread(self._set_error, f"Failed to create invoice: {e}")
            return
        self._created = invoice
        self.app.call_from_thread(self._show_result, invoice, amount, currency)

    def _show_result(self, invoice: Invoice, typed_amount: str, currency: str) -> None:
        merchant = self.app.merchant  # type: ignore[attr-defined]
        table = self.query_one("#result-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Field", "Value")
        table.add_row("Invoice", invoice.invoice_number)
        table.add_row("Customer", invoice.customer_name)
        if currency != USDC:
            table.add_row("Entered", f"{typed_amount.strip()} {currency}")
        table.add_row("Amount", format_usdc(invoice.amount))
        table.add_row("Due date", invoice.due_date.isoformat())
        table.add_row("Payment link", invoice.payment_link(merchant.origin))
        self._show_phase("result")
        self.notify(f"Invoice {invoice.invoice_number} created", timeout=3)

    def _set_error(self, msg: str) -> None:
        self.query_one("#error-label", Label).update(msg)
        self.query_one("#btn-create", Button).disabled = False

    def _reset_form(self) -> None:
        self._created = None
        self.query_one("#customer-name", Input).value = ""
        self.query_one("#amount", Input).value = ""
        self.query_one("#due-date", Input).value = date.today().isoformat()
        self.query_one("#error-label", Label).update("")
        self._show_phase("form")
        self.query_one("#customer-name", Input).focus()

    def _open_payment(self) -> None:
        if self._created is None:
            return
        from payne.tui.screens.pay import PayScreen

        number = self._created.invoice_number
        self.app.pop_screen()
        self.app.push_screen(PayScreen(invoice_number=number))

    def action_go_back(self) -> None:
        self.app.pop_screen()
