"""Retrying HTTP reads for the rate and geolocation lookups.

Only idempotent GETs go through here. Invoice writes and on-chain payments
are never retried automatically.
"""

from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

import requests
import requests.exceptions

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryableHTTPError(requests.exceptions.HTTPError):
    """Raised for HTTP status codes that are safe to retry (429, 502, 503, 504)."""


class HTTPStatusError(RuntimeError):
    """Non-retryable HTTP error status from an upstream lookup."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class RetryPolicy:
    name: str
    max_attempts: int
    base_delay: float
    max_delay: float
    backoff_factor: float
    jitter: float
    retryable_exceptions: tuple[type[Exception], ...]
    retryable_status_codes: frozenset[int] = field(default_factory=frozenset)


RATES_READ = RetryPolicy(
    name="rates",
    max_attempts=3,
    base_delay=1.0,
    max_delay=8.0,
    backoff_factor=2.0,
    jitter=0.25,
    retryable_exceptions=(
        requests.exceptions.ConnectionError,
        requests.exceptions.Timeout,
        RetryableHTTPError,
    ),
    retryable_status_codes=frozenset({429, 502, 503, 504}),
)

# ip-api answers fast or not at all; one quick retry on a dropped connection.
GEO_READ = RetryPolicy(
    name="geo",
    max_attempts=2,
    base_delay=0.5,
    max_delay=2.0,
    backoff_factor=2.0,
    jitter=0.25,
    retryable_exceptions=(requests.exceptions.ConnectionError,),
)


def _calc_delay(attempt: int, policy: RetryPolicy) -> float:
    """Exponential backoff with jitter. *attempt* is 0-indexed."""
    delay = min(policy.base_delay * (policy.backoff_factor**attempt), policy.max_delay)
    jitter_range = delay * policy.jitter
    return max(0.0, delay + random.uniform(-jitter_range, jitter_range))


def retry_call(
    func: Callable[[], T],
    policy: RetryPolicy,
    *,
    sleep_func: Callable[[float], object] = time.sleep,
) -> T:
    """Execute *func()* with retry per *policy*, re-raising on exhaustion."""
    last_exc: Exception | None = None
    for attempt in range(policy.max_attempts):
        try:
            return func()
        except policy.retryable_exceptions as exc:
            last_exc = exc
            if attempt + 1 >= policy.max_attempts:
                break
            delay = _calc_delay(attempt, policy)
            logger.warning(
                "%s lookup: retry %d/%d after %s (%.1fs delay)",
                policy.name,
                attempt + 1,
                policy.max_attempts,
                type(exc).__name__,
                delay,
            )
            sleep_func(delay)
    raise last_exc  # type: ignore[misc]


def check_status(resp: Any, policy: RetryPolicy, action: str) -> None:
    """Raise for a non-2xx response, marking retryable status codes."""
    if resp.ok:
        return
    body = resp.text[:300] if resp.text else ""
    message = f"{action} failed ({resp.status_code}): {body}"
    if resp.status_code in policy.retryable_status_codes:
        raise RetryableHTTPError(message)
    raise HTTPStatusError(message, resp.status_code)


def get_json(
    url: str,
    policy: RetryPolicy,
    *,
    action: str,
    timeout: float,
    params: Mapping[str, str] | None = None,
    headers: Mapping[str, str] | None = None,
    sleep_func: Callable[[float], object] = time.sleep,
) -> Any:
    """GET *url* with retries and return the decoded JSON body."""

    def _do_get() -> Any:
        resp = requests.get(url, params=params, headers=headers, timeout=timeout)
        check_status(resp, policy, action)
        return resp.json()

    return retry_call(_do_get, policy, sleep_func=sleep_func)
