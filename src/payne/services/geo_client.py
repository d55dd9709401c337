from __future__ import annotations

import requests.exceptions

from payne.config import GEO_FIELDS, GEO_TIMEOUT, GEO_URL, USER_AGENT
from payne.models.currency import GeoInfo
from payne.services.exceptions import GeolocationError
from payne.services.http_retry import GEO_READ, HTTPStatusError, get_json

_LOOPBACK = ("127.0.0.1", "::1")
_PUBLIC_FALLBACK_IP = "8.8.8.8"


def lookup_geolocation(ip: str | None = None) -> GeoInfo:
    """Resolve approximate country and currency for *ip* (or the caller's own IP).

    Loopback addresses are swapped for a public resolver address so local
    runs still get a usable answer.
    """
    if ip in _LOOPBACK:
        ip = _PUBLIC_FALLBACK_IP
    url = GEO_URL.format(ip=ip or "")

    try:
        data = get_json(
            url,
            GEO_READ,
            action="geolocation",
            timeout=GEO_TIMEOUT,
            params={"fields": GEO_FIELDS},
            headers={"User-Agent": USER_AGENT},
        )
    except (requests.exceptions.RequestException, HTTPStatusError, ValueError) as e:
        raise GeolocationError(f"Geolocation lookup failed: {e}") from e

    if not isinstance(data, dict):
        raise GeolocationError(f"Geolocation API error: unexpected response {data!r:.200}")
    if data.get("status") != "success":
        message = data.get("message", "unsuccessful response")
        raise GeolocationError(f"Geolocation API error: {message}", response=data)
    return GeoInfo.from_dict(data)
