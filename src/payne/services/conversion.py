"""Amount conversion between a local fiat currency, USD and USDC.

Every method returns None when a needed rate is missing; callers show a
placeholder instead of a guessed number. Values are not rounded here, only
when rendered.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class RateTable:
    rates: dict[str, float]  # units of currency per 1 USD
    usdc_rate: float | None  # USD per 1 USDC
    fetched_at: datetime | None = None
    currencies: tuple[str, ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "currencies", tuple(sorted(self.rates)))

    def rate(self, currency_code: str) -> float | None:
        rate = self.rates.get(currency_code.upper())
        return rate if rate else None


class CurrencyConverter:
    def __init__(self, table: RateTable | None) -> None:
        self.table = table

    @property
    def available(self) -> bool:
        return self.table is not None and bool(self.table.usdc_rate)

    def _rate(self, currency_code: str) -> float | None:
        if self.table is None:
            return None
        return self.table.rate(currency_code)

    def _usdc_rate(self) -> float | None:
        if self.table is None or not self.table.usdc_rate:
            return None
        return self.table.usdc_rate

    def to_usd(self, amount: float, currency_code: str) -> float | None:
        rate = self._rate(currency_code)
        if rate is None:
            return None
        return amount / rate

    def from_usd(self, amount: float, currency_code: str) -> float | None:
        rate = self._rate(currency_code)
        if rate is None:
            return None
        return amount * rate

    def to_usdc(self, amount: float, currency_code: str) -> float | None:
        usdc_rate = self._usdc_rate()
        usd = self.to_usd(amount, currency_code)
        if usd is None or usdc_rate is None:
            return None
        return usd / usdc_rate

    def from_usdc(self, amount: float, currency_code: str) -> float | None:
        usdc_rate = self._usdc_rate()
        if usdc_rate is None:
            return None
        return self.from_usd(amount * usdc_rate, currency_code)
