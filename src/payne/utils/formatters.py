from __future__ import annotations

UNAVAILABLE = "—"


def format_usdc(value: float | None, places: int = 3) -> str:
    """Format a USDC amount as '1,234.500 USDC' (3 to 6 decimal places)."""
    if value is None:
        return UNAVAILABLE
    places = min(max(places, 3), 6)
    return f"{value:,.{places}f} USDC"


def format_fiat(value: float | None, code: str, places: int = 2) -> str:
    """Format a fiat amount as 'EUR 1,234.56' (2 to 3 decimal places)."""
    if value is None:
        return UNAVAILABLE
    places = min(max(places, 2), 3)
    return f"{code} {value:,.{places}f}"


def format_percent_change(percent: int, is_positive: bool) -> str:
    arrow = "↑" if is_positive else "↓"
    return f"{arrow} {percent}%"
