"""Sequential invoice numbers: INV-0001, INV-0002, ...

The next number is derived from the most recently created invoice. There is
no reservation step, so two invoices created concurrently can race to the
same number; the store rejects the second write.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Callable

from payne.models.invoice import Invoice

logger = logging.getLogger(__name__)

PREFIX = "INV-"
_NUMBER_RE = re.compile(r"INV-(\d+)")


def format_invoice_number(n: int) -> str:
    """Zero-pad to 4 digits; wider values keep all their digits."""
    return f"{PREFIX}{n:04d}"


def parse_invoice_number(value: str | None) -> int | None:
    """Numeric part of an INV-dddd number, or None when it does not match."""
    if not value:
        return None
    match = _NUMBER_RE.search(value)
    return int(match.group(1)) if match else None


def _latest() -> Invoice | None:
    from payne.utils.registry import latest_invoice

    return latest_invoice()


def fallback_invoice_number(now: Callable[[], float] = time.time) -> str:
    """Timestamp-derived number: last 8 digits of the current epoch milliseconds."""
    millis = str(int(now() * 1000))
    return f"{PREFIX}{millis[-8:]}"


def next_invoice_number(
    latest: Callable[[], Invoice | None] = _latest,
    now: Callable[[], float] = time.time,
) -> str:
    """Return the number following the latest invoice's number. Never raises."""
    try:
        last = latest()
    except Exception:
        number = fallback_invoice_number(now)
        logger.warning("Invoice lookup failed, using fallback number %s", number, exc_info=True)
        return number

    n = parse_invoice_number(last.invoice_number) if last is not None else None
    return format_invoice_number(n + 1 if n is not None else 1)
