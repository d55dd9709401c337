from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from payne.models.currency import GeoInfo
from payne.services.exceptions import GeolocationError
from payne.services.preferences import resolve_currency, set_currency
from payne.utils.session import (
    COUNTRY_CODE,
    COUNTRY_CURRENCY_CODE,
    COUNTRY_FLAG,
    SessionCache,
)

JAPAN = GeoInfo(country="Japan", country_code="JP", currency="JPY")


@pytest.fixture
def session(tmp_path):
    return SessionCache(tmp_path / "session.json")


def test_lookup_result_cached(session):
    lookup = MagicMock(return_value=JAPAN)
    first = resolve_currency(session, lookup)
    second = resolve_currency(session, lookup)
    assert first.code == second.code == "JPY"
    assert first.flag == "\U0001f1ef\U0001f1f5"
    lookup.assert_called_once()
    assert session.get(COUNTRY_CODE) == "JP"


def test_lookup_failure_defaults_to_usd_and_stores_nothing(session):
    lookup = MagicMock(side_effect=GeolocationError("fail"))
    currency = resolve_currency(session, lookup)
    assert currency.code == "USD"
    assert currency.flag is None
    assert session.snapshot() == {}


def test_failure_is_retried_next_time(session):
    lookup = MagicMock(side_effect=[GeolocationError("fail"), JAPAN])
    assert resolve_currency(session, lookup).code == "USD"
    assert resolve_currency(session, lookup).code == "JPY"


def test_set_currency_overrides_cached_geo(session):
    resolve_currency(session, MagicMock(return_value=JAPAN))
    chosen = set_currency(session, "eur")
    assert chosen.code == "EUR"
    assert chosen.flag == session.get(COUNTRY_FLAG)
    assert resolve_currency(session, MagicMock()).code == "EUR"


def test_set_currency_before_first_lookup_is_kept(session):
    set_currency(session, "BRL")
    currency = resolve_currency(session, MagicMock(return_value=JAPAN))
    assert currency.code == "BRL"
    assert session.get(COUNTRY_CURRENCY_CODE) == "BRL"


def test_set_currency_invalid(session):
    with pytest.raises(ValueError, match="Invalid currency code"):
        set_currency(session, "euro!")
