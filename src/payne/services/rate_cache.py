from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from payne.config import RATE_CACHE_TTL
from payne.services.conversion import CurrencyConverter, RateTable
from payne.services.rates_client import fetch_exchange_rates, fetch_usdc_rate
from payne.utils.session import EXCHANGE_RATES, RATES_TIMESTAMP, USDC_RATE, SessionCache

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _to_millis(dt: datetime) -> int:
    return int(dt.timestamp() * 1000)


class RateCache:
    """Fiat and USDC rates kept in the session cache for a fixed window.

    An entry written at ``t0`` is fresh while ``now - t0 < ttl``; from
    ``t0 + ttl`` on it is treated as absent and must be refetched.
    """

    def __init__(
        self,
        session: SessionCache,
        *,
        fetch_rates: Callable[[], dict[str, float]] | None = None,
        fetch_usdc: Callable[[], float] | None = None,
        ttl: timedelta = RATE_CACHE_TTL,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.session = session
        self._fetch_rates = fetch_rates
        self._fetch_usdc = fetch_usdc
        self.ttl = ttl
        self._clock = clock

    def _stored(self) -> RateTable | None:
        data = self.session.snapshot()
        rates = data.get(EXCHANGE_RATES)
        usdc_rate = data.get(USDC_RATE)
        stamp = data.get(RATES_TIMESTAMP)
        if not rates or usdc_rate is None or stamp is None:
            return None
        try:
            fetched_at = datetime.fromtimestamp(int(stamp) / 1000, tz=UTC)
            return RateTable(
                rates={str(k): float(v) for k, v in rates.items()},
                usdc_rate=float(usdc_rate),
                fetched_at=fetched_at,
            )
        except (TypeError, ValueError, AttributeError):
            logger.warning("Ignoring malformed cached rates", exc_info=True)
            return None

    def _is_table_fresh(self, table: RateTable, now: datetime) -> bool:
        return table.fetched_at is not None and now - table.fetched_at < self.ttl

    def is_fresh(self, now: datetime | None = None) -> bool:
        table = self._stored()
        return table is not None and self._is_table_fresh(table, now or self._clock())

    def current(self, now: datetime | None = None) -> RateTable | None:
        """Cached rates if still within the freshness window, else None."""
        table = self._stored()
        if table is None or not self._is_table_fresh(table, now or self._clock()):
            return None
        return table

    def refresh(self) -> RateTable:
        """Fetch both rate sources and store them. Raises RatesUnavailableError."""
        rates = (self._fetch_rates or fetch_exchange_rates)()
        usdc_rate = (self._fetch_usdc or fetch_usdc_rate)()
        now = self._clock()
        self.session.update(
            {
                EXCHANGE_RATES: rates,
                USDC_RATE: usdc_rate,
                RATES_TIMESTAMP: _to_millis(now),
            }
        )
        logger.info("Exchange rates and USDC rate fetched and stored (%d currencies)", len(rates))
        return RateTable(rates=rates, usdc_rate=usdc_rate, fetched_at=now)

    def ensure_fresh(self) -> RateTable:
        table = self.current()
        if table is not None:
            logger.debug("Using cached exchange rates and USDC rate")
            return table
        return self.refresh()

    def converter(self) -> CurrencyConverter:
        """Converter over the cached rates; unavailable when they are missing or stale."""
        return CurrencyConverter(self.current())
