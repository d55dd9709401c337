from __future__ import annotations

import logging
from collections.abc import Callable

from payne.config import DEFAULT_CURRENCY
from payne.models.currency import CurrencyData, GeoInfo
from payne.services.exceptions import GeolocationError
from payne.services.geo_client import lookup_geolocation
from payne.utils.session import (
    COUNTRY,
    COUNTRY_CODE,
    COUNTRY_CURRENCY_CODE,
    COUNTRY_FLAG,
    SessionCache,
)
from payne.utils.validators import validate_currency_code

logger = logging.getLogger(__name__)


def resolve_currency(
    session: SessionCache,
    lookup: Callable[[], GeoInfo] | None = None,
) -> CurrencyData:
    """Visitor's display currency, looked up at most once per session.

    A failed lookup falls back to USD and caches nothing, so the next
    session tries again.
    """
    cached = session.snapshot()
    if cached.get(COUNTRY_CODE) and cached.get(COUNTRY_FLAG):
        return CurrencyData(
            code=cached.get(COUNTRY_CURRENCY_CODE) or DEFAULT_CURRENCY,
            flag=cached[COUNTRY_FLAG],
        )

    # Set by set_currency before any lookup happened
    override = cached.get(COUNTRY_CURRENCY_CODE)

    try:
        geo = (lookup or lookup_geolocation)()
    except GeolocationError:
        logger.warning("Geolocation lookup failed, defaulting to %s", DEFAULT_CURRENCY, exc_info=True)
        return CurrencyData(code=override or DEFAULT_CURRENCY, flag=None)

    code = override or geo.currency
    session.update(
        {
            COUNTRY_FLAG: geo.flag,
            COUNTRY_CODE: geo.country_code,
            COUNTRY: geo.country,
            COUNTRY_CURRENCY_CODE: code,
        }
    )
    logger.info("Geo data resolved: %s (%s)", geo.country, code)
    return CurrencyData(code=code, flag=geo.flag)


def set_currency(session: SessionCache, code: str) -> CurrencyData:
    """Override the display currency for the rest of the session."""
    code = validate_currency_code(code)
    session.update({COUNTRY_CURRENCY_CODE: code})
    return CurrencyData(code=code, flag=session.get(COUNTRY_FLAG))
