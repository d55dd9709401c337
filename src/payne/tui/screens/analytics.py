from __future__ import annotations

from datetime import UTC, date, datetime

from textual import work
from textual.app import ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, DataTable, Label, MaskedInput, Select, Static

from payne.services.analytics import AnalyticsReport
from payne.utils.formatters import format_fiat, format_percent_change, format_usdc

PRESET_OPTIONS: tuple[tuple[str, str], ...] = (
    ("Last 7 days", "last7days"),
    ("Last 30 days", "last30days"),
    ("This month", "thisMonth"),
    ("Custom range", "custom"),
)


class AnalyticsScreen(ModalScreen):
    """Revenue, status distribution and top customers for a date range."""

    BINDINGS = [
        Binding("escape", "go_back", "Back"),
    ]

    def compose(self) -> ComposeResult:
        with Vertical(id="modal-dialog"):
            with Horizontal(id="modal-title-bar"):
                yield Static("Analytics", id="header-bar")
                yield Button("✕", id="btn-modal-close")

            with Horizontal(id="range-bar"):
                yield Select(
                    PRESET_OPTIONS,
                    value="last30days",
                    allow_blank=False,
                    id="preset",
                )
                yield Static("From:", classes="range-label")
                yield MaskedInput(template="0000-00-00", id="custom-start")
                yield Static("To:", classes="range-label")
                yield MaskedInput(template="0000-00-00", id="custom-end")
                yield Button("▷ Apply", id="btn-apply", variant="primary")
            yield Label("", id="error-label")

            with Horizontal(id="stats-bar"):
                with Vertical(classes="info-card"):
                    yield Label("Revenue", classes="card-title")
                    yield Label("…", id="revenue-info", classes="card-value")
                with Vertical(classes="info-card"):
                    yield Label("Paid invoices", classes="card-title")
                    yield Label("…", id="count-info", classes="card-value")
                with Vertical(classes="info-card"):
                    yield Label("Pending", classes="card-title")
                    yield Label("…", id="pending-info", classes="card-value")
                with Vertical(classes="info-card"):
                    yield Label("Average", classes="card-title")
                    yield Label("…", id="average-info", classes="card-value")

            with Horizontal(id="tables-bar"):
                yield DataTable(id="status-table")
                yield DataTable(id="customers-table")

            with Horizontal(classes="button-bar"):
                yield Button("✕ Close", id="btn-close")

    def on_mount(self) -> None:
        self._toggle_custom(False)
        self._refresh()

    def _toggle_custom(self, show: bool) -> None:
        for widget_id in ("#custom-start", "#custom-end", "#btn-apply"):
            self.query_one(widget_id).display = show
        for label in self.query(".range-label"):
            label.display = show

    def on_select_changed(self, event: Select.Changed) -> None:
        if event.select.id == "preset":
            custom = event.value == "custom"
            self._toggle_custom(custom)
            if not custom:
                self._refresh()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        match event.button.id:
            case "btn-apply":
                self._refresh()
            case "btn-close" | "btn-modal-close":
                self.app.pop_screen()

    def on_input_submitted(self, event: MaskedInput.Submitted) -> None:
        self._refresh()

    def _refresh(self) -> None:
        error_label = self.query_one("#error-label", Label)
        error_label.update("")
        preset = str(self.query_one("#preset", Select).value)
        start = end = None
        if preset == "custom":
            try:
                start = self._parse_date("#custom-start")
                end = self._parse_date("#custom-end")
            except ValueError as e:
                error_label.update(str(e))
                return
        self._run_report(preset, start, end)

    def _parse_date(self, widget_id: str) -> date | None:
        value = self.query_one(widget_id, MaskedInput).value.strip()
        if not value:
            return None
        from payne.utils.validators import validate_date

        return validate_date(value)

    @work(thread=True, exclusive=True)
    def _run_report(self, preset: str, start: date | None, end: date | None) -> None:
        from payne.services.analytics import compute_analytics, date_range_for_preset
        from payne.utils.registry import list_invoices

        try:
            merchant = self.app.load_merchant()  # type: ignore[attr-defined]
            window = date_range_for_preset(preset, datetime.now(UTC), start, end)
            report = compute_analytics(
                list_invoices(merchant.merchant_id),
                *window,
                preset=preset,
                today=date.today(),
            )
        except Exception as e:
            self.app.call_from_thread(self._show_error, f"Could not compute analytics: {e}")
            return
        self.app.call_from_thread(self._show_report, report)

    def _show_report(self, report: AnalyticsReport) -> None:
        code = self.app.currency.code  # type: ignore[attr-defined]
        converter = self.app.rates.converter()  # type: ignore[attr-defined]

        revenue = format_usdc(report.total_revenue)
        if code != "USD":
            revenue += f"\n≈ {format_fiat(converter.from_usdc(report.total_revenue, code), code)}"
        comparison = report.period_comparison
        if comparison is not None:
            color = "green" if comparison.is_positive else "red"
            change = format_percent_change(comparison.percent_change, comparison.is_positive)
            revenue += f"\n[{color}]{change}[/{color}] vs previous 30 days"

        self._update_label("revenue-info", revenue)
        self._update_label("count-info", str(report.paid_count))
        self._update_label("pending-info", format_usdc(report.pending_revenue))
        self._update_label("average-info", format_usdc(report.average_invoice_value))

        status_table = self.query_one("#status-table", DataTable)
        status_table.clear(columns=True)
        status_table.add_columns("Status", "Invoices")
        for status, count in report.status_distribution.items():
            status_table.add_row(status, str(count))

        customers = self.query_one("#customers-table", DataTable)
        customers.clear(columns=True)
        customers.add_columns("Top customer", "Revenue")
        for customer in report.top_customers:
            customers.add_row(customer.name, format_usdc(customer.total))
        if not report.top_customers:
            customers.add_row("No paid invoices in range", "")

    def _show_error(self, msg: str) -> None:
        self.query_one("#error-label", Label).update(msg)
        self.notify(msg, severity="error", timeout=5)

    def _update_label(self, label_id: str, text: str) -> None:
        try:
            self.query_one(f"#{label_id}", Label).update(text)
        except Exception:
            pass

    def action_go_back(self) -> None:
        self.app.pop_screen()
