"""Session cache: a small key/value document for rates and geo preference.

Keys mirror what the web client kept in session storage: ``exchangeRates``,
``usdcRate``, ``exchangeRatesTimestamp``, ``countryFlag``, ``countryCode``,
``country`` and ``countryCurrencyCode``.
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from payne import config as _config

logger = logging.getLogger(__name__)

EXCHANGE_RATES = "exchangeRates"
USDC_RATE = "usdcRate"
RATES_TIMESTAMP = "exchangeRatesTimestamp"
COUNTRY_FLAG = "countryFlag"
COUNTRY_CODE = "countryCode"
COUNTRY = "country"
COUNTRY_CURRENCY_CODE = "countryCurrencyCode"


def default_session_path() -> Path:
    return _config.get_data_dir() / "session.json"


class SessionCache:
    def __init__(self, path: Path | None = None) -> None:
        self.path = path or default_session_path()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with FileLock(self.path.with_suffix(".lock")):
            yield

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except (json.JSONDecodeError, ValueError):
            ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
            backup = self.path.with_name(f"{self.path.name}.corrupt.{ts}")
            self.path.rename(backup)
            logger.warning("Corrupt session cache backed up: %s → %s", self.path, backup)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: dict[str, Any]) -> None:
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n")
        os.replace(tmp, self.path)

    def get(self, key: str, default: Any = None) -> Any:
        with self._locked():
            return self._load().get(key, default)

    def snapshot(self) -> dict[str, Any]:
        with self._locked():
            return self._load()

    def update(self, values: dict[str, Any]) -> None:
        with self._locked():
            data = self._load()
            data.update(values)
            self._save(data)

    def clear(self) -> None:
        with self._locked():
            self._save({})
