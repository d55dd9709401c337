from __future__ import annotations

from dataclasses import dataclass

GLOBE = "\U0001f310"
_REGIONAL_INDICATOR_A = 0x1F1E6


def flag_for(country_code: str | None) -> str:
    """Regional-indicator flag emoji for an ISO 3166-1 alpha-2 code."""
    if not country_code or len(country_code) != 2 or not country_code.isalpha():
        return GLOBE
    code = country_code.upper()
    if not code.isascii():
        return GLOBE
    return "".join(chr(_REGIONAL_INDICATOR_A + ord(c) - ord("A")) for c in code)


@dataclass(frozen=True)
class CurrencyData:
    """Display-currency preference for the session."""

    code: str
    flag: str | None = None

    @property
    def label(self) -> str:
        return f"{self.flag} {self.code}" if self.flag else self.code


@dataclass(frozen=True)
class GeoInfo:
    country: str
    country_code: str
    currency: str

    @property
    def flag(self) -> str:
        return flag_for(self.country_code)

    @classmethod
    def from_dict(cls, d: dict) -> GeoInfo:
        return cls(
            country=d.get("country", ""),
            country_code=d.get("countryCode", ""),
            currency=d.get("currency") or "USD",
        )
