from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest

from payne.models.currency import GeoInfo

MERCHANT = {
    "merchant_id": "acme-software",
    "name": "Acme Software LLC",
    "address": "0x1111111111111111111111111111111111111111",
    "origin": "https://pay.acme.test",
    "default_currency": "EUR",
}


@pytest.fixture
def mock_config(tmp_path):
    """Patch config and network calls so the TUI can launch without real files."""
    with (
        patch("payne.config.load_merchant", return_value=dict(MERCHANT)),
        patch("payne.config.get_data_dir", return_value=tmp_path),
        patch(
            "payne.services.preferences.lookup_geolocation",
            return_value=GeoInfo(country="France", country_code="FR", currency="EUR"),
        ),
        patch(
            "payne.services.rate_cache.fetch_exchange_rates",
            return_value={"USD": 1.0, "EUR": 0.9, "BRL": 5.0},
        ),
        patch("payne.services.rate_cache.fetch_usdc_rate", return_value=1.0),
        patch(
            "payne.services.chain.Web3ChainClient.from_config",
            side_effect=KeyError("RPC_URL"),
        ),
    ):
        yield tmp_path


@pytest.fixture
def stored_invoices(mock_config, make_invoice):
    """Three invoices in the temp registry: pending, overdue and paid."""
    from payne.utils.registry import add_invoice, mark_paid

    today = date.today()
    add_invoice(
        make_invoice(
            "INV-0001",
            customer="Acme Corp",
            amount=100.0,
            due=today + timedelta(days=10),
            created_at=datetime(2025, 6, 1, tzinfo=UTC),
        )
    )
    add_invoice(
        make_invoice(
            "INV-0002",
            customer="Globex",
            amount=50.0,
            due=today - timedelta(days=3),
            created_at=datetime(2025, 6, 2, tzinfo=UTC),
        )
    )
    paid = add_invoice(
        make_invoice(
            "INV-0003",
            customer="Initech",
            amount=25.0,
            due=today,
            created_at=datetime(2025, 6, 3, tzinfo=UTC),
        )
    )
    mark_paid(
        paid.id,
        paid_at=datetime.now(UTC) - timedelta(days=1),
        transaction_hash="0xpaid",
    )
    return mock_config / "invoices.json"


@pytest.fixture
def fake_chain(mock_config):
    """Wallet client whose transfer succeeds and confirms."""
    from payne.services.chain import Receipt

    chain = MagicMock()
    chain.account_address = "0x3333333333333333333333333333333333333333"
    chain.usdc_balance.return_value = 500.0
    chain.native_balance.return_value = 0.05
    chain.transfer_usdc.return_value = "0xtx"
    chain.wait_for_receipt.return_value = Receipt("0xtx", succeeded=True, block_number=1)
    with patch("payne.services.chain.Web3ChainClient.from_config", return_value=chain):
        yield chain


@pytest.fixture
def settle():
    """Let thread workers finish and their UI callbacks run."""

    async def _settle(app, pilot, rounds: int = 3) -> None:
        for _ in range(rounds):
            await app.workers.wait_for_complete()
            await pilot.pause()

    return _settle
