from __future__ import annotations

import platform
import shutil
import subprocess
from datetime import date

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.events import Key
from textual.message import Message
from textual.screen import Screen
from textual.widgets import Button, DataTable, Footer, Input, Label, MaskedInput, Select, Static

from payne.models.invoice import Invoice, InvoiceStatus, display_status
from payne.utils.formatters import format_fiat, format_usdc


class DashboardScreen(Screen):
    """Merchant dashboard: summary cards and the live invoice list."""

    BINDINGS = [
        # List actions, hidden from footer (they have buttons above the table)
        Binding("n", "new_invoice", "New invoice", show=False),
        Binding("p", "pay", "Pay", show=False),
        Binding("y", "copy_link", "Copy link", show=False),
        # Generic actions, shown in footer
        Binding("a", "analytics", "Analytics"),
        Binding("c", "toggle_currency", "Currency"),
        Binding("r", "refresh_rates", "Rates"),
        Binding("f", "focus_filter", "Filter"),
        Binding("h", "help", "Help"),
        Binding("q", "quit", "Quit"),
    ]

    class InvoicesChanged(Message):
        """Posted from the registry subscription, possibly off the UI thread."""

        def __init__(self, invoices: list[Invoice]) -> None:
            super().__init__()
            self.invoices = invoices

    class InvoicesFailed(Message):
        """Posted when the registry subscription cannot read the invoices."""

        def __init__(self, error: Exception) -> None:
            super().__init__()
            self.error = error

    def __init__(self) -> None:
        super().__init__()
        self._all_invoices: list[Invoice] = []
        self._subscription = None
        self._show_usd = False

    def compose(self) -> ComposeResult:
        with Horizontal(id="top-bar"):
            yield Static("Payne", id="app-title")
            yield Button(
                "…",
                id="currency-badge",
                tooltip="Toggle amounts between local currency and USD (c)",
            )

        with Horizontal(id="info-bar"):
            with Vertical(id="card-merchant", classes="info-card"):
                yield Label("Merchant", classes="card-title")
                yield Label("…", id="merchant-info", classes="card-value")
            with Vertical(id="card-rates", classes="info-card"):
                yield Label("Rates", classes="card-title")
                yield Label("…", id="rates-info", classes="card-value")
            with Vertical(id="card-totals", classes="info-card"):
                yield Label("Totals", classes="card-title")
                yield Label("…", id="totals-info", classes="card-value")
            with Vertical(id="card-seq", classes="info-card"):
                yield Label("Next invoice", classes="card-title")
                yield Label("…", id="seq-info", classes="card-value")

        with Horizontal(id="filter-bar"):
            yield Static("Invoices", id="section-title")
            yield Input(
                placeholder="Search number or customer",
                id="filter-search",
                tooltip="Match invoice number or customer name",
            )
            yield Select(
                [("All", "all"), ("Paid", "paid"), ("Pending", "pending"), ("Overdue", "overdue")],
                value="all",
                allow_blank=False,
                id="filter-status",
                tooltip="Filter by status",
            )
            yield Static("Due:", id="label-due")
            yield MaskedInput(
                template="0000-00-00",
                id="filter-due",
                tooltip="Exact due date (YYYY-MM-DD)",
            )

        with Horizontal(id="action-bar"):
            yield Button("+ New invoice", id="btn-new", variant="primary", tooltip="(n)")
            yield Button("▶ Pay", id="btn-pay", tooltip="Open the payment page (p)")
            yield Button("⎘ Copy link", id="btn-copy", tooltip="Copy payment link (y)")
            yield Button("∑ Analytics", id="btn-analytics", tooltip="(a)")
            yield Button("↻ Rates", id="btn-rates", variant="success", tooltip="(r)")

        yield Static("", id="load-error")

        yield DataTable(id="invoice-table", cursor_type="row")

        yield Static(
            "No invoices found.\nPress [bold]n[/bold] to create your first invoice.",
            id="empty-state",
        )

        yield Footer()

    def on_mount(self) -> None:
        self._load_merchant()
        self._load_rates()
        self.query_one("#load-error", Static).display = False
        self.query_one("#invoice-table", DataTable).focus()

    def on_unmount(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None

    def on_key(self, event: Key) -> None:
        if isinstance(self.focused, (Input, Button, Select)):
            return
        table = self.query_one("#invoice-table", DataTable)
        match event.key:
            case "j":
                table.action_cursor_down()
            case "k":
                table.action_cursor_up()
            case "enter":
                self.action_pay()
            case _:
                return
        event.prevent_default()
        event.stop()

    # --- Data loading (threaded) ---

    @work(thread=True)
    def _load_merchant(self) -> None:
        try:
            merchant = self.app.load_merchant()  # type: ignore[attr-defined]
        except KeyError as e:
            self.app.call_from_thread(self._update_label, "merchant-info", f"missing field {e}")
            return
        except Exception as e:
            self.app.call_from_thread(
                self._update_label, "merchant-info", f"not configured - {e}"
            )
            return

        address = f"{merchant.address[:6]}…{merchant.address[-4:]}"
        self.app.call_from_thread(
            self._update_label, "merchant-info", f"{merchant.name}\n{address}"
        )

        from payne.utils.registry import subscribe

        self._subscription = subscribe(
            self._on_registry_change,
            merchant.merchant_id,
            on_error=self._on_registry_error,
        )

    def _on_registry_change(self, invoices: list[Invoice]) -> None:
        # post_message is safe from any thread
        self.post_message(self.InvoicesChanged(invoices))

    def _on_registry_error(self, error: Exception) -> None:
        self.post_message(self.InvoicesFailed(error))

    @work(thread=True, exclusive=True, group="rates")
    def _load_rates(self, force: bool = False) -> None:
        from payne.services.exceptions import RatesUnavailableError
        from payne.services.preferences import resolve_currency

        app = self.app
        app.currency = resolve_currency(app.session)  # type: ignore[attr-defined]
        try:
            rates = app.rates  # type: ignore[attr-defined]
            table = rates.refresh() if force else rates.ensure_fresh()
            text = f"1 USDC = {table.usdc_rate:.4f} USD\n{len(table.currencies)} currencies"
        except RatesUnavailableError as e:
            text = f"[red]unavailable[/red]\n{e}"
        self.app.call_from_thread(self._on_rates_loaded, text)

    def _on_rates_loaded(self, text: str) -> None:
        self._update_label("rates-info", text)
        self._update_currency_badge()
        self._apply_filter(show_toast=False)

    @work(thread=True, exclusive=True, group="sequence")
    def _load_sequence(self) -> None:
        try:
            from payne.utils.sequence import next_invoice_number

            text = next_invoice_number()
        except Exception as e:
            text = f"error - {e}"
        self.app.call_from_thread(self._update_label, "seq-info", text)

    def on_dashboard_screen_invoices_changed(self, message: InvoicesChanged) -> None:
        self.query_one("#load-error", Static).display = False
        self._all_invoices = message.invoices
        self._update_totals()
        self._apply_filter(show_toast=False)
        self._load_sequence()

    def on_dashboard_screen_invoices_failed(self, message: InvoicesFailed) -> None:
        banner = self.query_one("#load-error", Static)
        banner.update(f"Could not load invoices: {message.error}")
        banner.display = True
        self.query_one("#empty-state", Static).display = False

    # --- Filtering ---

    def _display_code(self) -> str:
        if self._show_usd:
            return "USD"
        return self.app.currency.code  # type: ignore[attr-defined]

    def _apply_filter(self, *, show_toast: bool = True) -> None:
        from payne.services.invoicing import filter_invoices

        search = self.query_one("#filter-search", Input).value
        status = str(self.query_one("#filter-status", Select).value)
        due_val = self.query_one("#filter-due", MaskedInput).value.strip()
        due_on = None
        if due_val:
            try:
                due_on = date.fromisoformat(due_val)
            except ValueError:
                if show_toast:
                    self.notify("Due date must be YYYY-MM-DD", severity="warning", timeout=3)
                return

        filtered = filter_invoices(
            self._all_invoices,
            today=date.today(),
            search=search,
            due_on=due_on,
            status=status,
        )
        self._populate_table(filtered)
        if show_toast and not filtered:
            self.notify("No invoices match the current filter", severity="warning", timeout=3)

    def _populate_table(self, invoices: list[Invoice]) -> None:
        code = self._display_code()
        converter = self.app.rates.converter()  # type: ignore[attr-defined]

        table = self.query_one("#invoice-table", DataTable)
        table.clear(columns=True)
        table.add_columns("Number", "Customer", "Amount", f"≈ {code}", "Due", "Status")

        status_styles = {
            InvoiceStatus.PAID: "[green]paid[/green]",
            InvoiceStatus.PENDING: "[yellow]pending[/yellow]",
            InvoiceStatus.OVERDUE: "[red]overdue[/red]",
        }
        today = date.today()
        for inv in invoices:
            table.add_row(
                inv.invoice_number,
                inv.customer_name,
                format_usdc(inv.amount),
                format_fiat(converter.from_usdc(inv.amount, code), code),
                inv.due_date.isoformat(),
                status_styles[display_status(inv, today)],
                key=inv.invoice_number,
            )

        has_rows = table.row_count > 0
        table.display = has_rows
        failed = self.query_one("#load-error", Static).display
        self.query_one("#empty-state", Static).display = not has_rows and not failed

    def _update_totals(self) -> None:
        today = date.today()
        paid = sum(i.amount for i in self._all_invoices if i.is_paid)
        pending = [i for i in self._all_invoices if not i.is_paid]
        overdue = sum(1 for i in pending if display_status(i, today) is InvoiceStatus.OVERDUE)
        text = f"Paid {format_usdc(paid)}\nOutstanding {format_usdc(sum(i.amount for i in pending))}"
        if overdue:
            text += f"\n[red]{overdue} overdue[/red]"
        self._update_label("totals-info", text)

    # --- Event handlers ---

    def on_input_changed(self, event: Input.Changed) -> None:
        if event.input.id == "filter-search":
            self._apply_filter(show_toast=False)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        self._apply_filter()

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "filter-status":
            self._apply_filter()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "currency-badge":
                self.action_toggle_currency()
            case "btn-new":
                self.action_new_invoice()
            case "btn-pay":
                self.action_pay()
            case "btn-copy":
                self.action_copy_link()
            case "btn-analytics":
                self.action_analytics()
            case "btn-rates":
                self.action_refresh_rates()

    def _selected_number(self) -> str | None:
        table = self.query_one("#invoice-table", DataTable)
        if table.row_count == 0:
            return None
        row_key, _ = table.coordinate_to_cell_key(table.cursor_coordinate)
        return str(row_key.value)

    # --- Helpers ---

    def _update_label(self, label_id: str, text: str) -> None:
        try:
            label = self.query_one(f"#{label_id}", Label)
            label.update(text)
        except Exception:
            pass

    def _update_currency_badge(self) -> None:
        badge = self.query_one("#currency-badge", Button)
        if self._show_usd:
            badge.label = "⇄ USD"
        else:
            badge.label = f"⇄ {self.app.currency.label}"  # type: ignore[attr-defined]

    # --- Actions ---

    def action_new_invoice(self) -> None:
        from payne.tui.screens.new_invoice import NewInvoiceScreen

        self.app.push_screen(NewInvoiceScreen())

    def action_pay(self) -> None:
        from payne.tui.screens.pay import PayScreen

        self.app.push_screen(PayScreen(invoice_number=self._selected_number() or ""))

    def action_analytics(self) -> None:
        from payne.tui.screens.analytics import AnalyticsScreen

        self.app.push_screen(AnalyticsScreen())

    def action_help(self) -> None:
        from payne.tui.screens.help import HelpScreen

        self.app.push_screen(HelpScreen())

    def action_toggle_currency(self) -> None:
        self._show_usd = not self._show_usd
        self._update_currency_badge()
        self._apply_filter(show_toast=False)

    def action_refresh_rates(self) -> None:
        self.notify("Refreshing exchange rates…", timeout=3)
        self._load_rates(force=True)

    def action_focus_filter(self) -> None:
        self.query_one("#filter-search", Input).focus()

    def action_copy_link(self) -> None:
        number = self._selected_number()
        invoice = next((i for i in self._all_invoices if i.invoice_number == number), None)
        merchant = self.app.merchant  # type: ignore[attr-defined]
        if invoice is None or merchant is None:
            self.notify("No invoice selected", severity="warning", timeout=3)
            return
        link = invoice.payment_link(merchant.origin)
        cmd = self._clipboard_cmd()
        if not cmd:
            self.notify(f"Payment link: {link}", severity="warning")
            return
        try:
            subprocess.run(cmd, input=link.encode(), check=True, timeout=5)
            self.notify(f"Link copied: {link}")
        except (OSError, subprocess.SubprocessError):
            self.notify(f"Clipboard unavailable. Link: {link}", severity="warning")

    @staticmethod
    def _clipboard_cmd() -> list[str] | None:
        """Return the clipboard copy command for the current platform."""
        system = platform.system()
        if system == "Darwin":
            return ["pbcopy"]
        if system == "Linux":
            if shutil.which("xclip"):
                return ["xclip", "-selection", "clipboard"]
            if shutil.which("xsel"):
                return ["xsel", "--clipboard", "--input"]
            if shutil.which("wl-copy"):
                return ["wl-copy"]
            return None
        if system == "Windows":
            return ["clip"]
        return None

    def action_quit(self) -> None:
        self.app.exit()
