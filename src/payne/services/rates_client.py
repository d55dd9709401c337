from __future__ import annotations

import logging

import requests.exceptions

from payne.config import (
    EXCHANGE_RATE_URL,
    RATES_TIMEOUT,
    USDC_PRICE_URL,
    get_exchange_rate_api_key,
)
from payne.services.exceptions import RatesUnavailableError
from payne.services.http_retry import RATES_READ, HTTPStatusError, get_json

logger = logging.getLogger(__name__)


def _get(url: str, action: str, params: dict[str, str] | None = None) -> dict:
    try:
        data = get_json(url, RATES_READ, action=action, timeout=RATES_TIMEOUT, params=params)
    except (requests.exceptions.RequestException, HTTPStatusError, ValueError) as e:
        raise RatesUnavailableError(f"{action}: {e}") from e
    if not isinstance(data, dict):
        raise RatesUnavailableError(f"{action}: unexpected response {data!r:.200}")
    return data


def fetch_exchange_rates(api_key: str | None = None) -> dict[str, float]:
    """Fetch fiat rates relative to USD: units of each currency per 1 USD."""
    if api_key is None:
        try:
            api_key = get_exchange_rate_api_key()
        except KeyError:
            raise RatesUnavailableError("Exchange rate API key is not configured") from None

    data = _get(EXCHANGE_RATE_URL.format(api_key=api_key), "exchange rates")
    if data.get("result") != "success":
        reason = data.get("error-type") or data.get("result") or "unknown"
        raise RatesUnavailableError(f"Exchange rate API returned unsuccessful response: {reason}")

    rates = data.get("conversion_rates")
    if not isinstance(rates, dict) or not rates:
        raise RatesUnavailableError("Exchange rate response has no conversion_rates")
    return {str(code): float(rate) for code, rate in rates.items()}


def fetch_usdc_rate() -> float:
    """Fetch the USD price of 1 USDC."""
    data = _get(
        USDC_PRICE_URL,
        "USDC rate",
        params={"ids": "usd-coin", "vs_currencies": "usd"},
    )
    try:
        rate = float(data["usd-coin"]["usd"])
    except (KeyError, TypeError, ValueError):
        raise RatesUnavailableError("Invalid USDC rate response format") from None
    if rate <= 0:
        raise RatesUnavailableError(f"Invalid USDC rate: {rate}")
    return rate
