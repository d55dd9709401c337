"""Local invoice store: a JSON document collection in the data directory.

Supports point reads by id or invoice number, filtered and ordered queries,
the single pending -> paid update, and in-process live subscriptions that
views must close when they go away.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from filelock import FileLock

from payne import config as _config
from payne.models.invoice import Invoice, InvoiceStatus
from payne.services.exceptions import (
    InvalidTransitionError,
    InvoiceNotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)

Listener = Callable[[list[Invoice]], None]
ErrorListener = Callable[[Exception], None]


def _registry_path() -> Path:
    return _config.get_data_dir() / "invoices.json"


def _backup_corrupt(path: Path) -> Path:
    """Rename a corrupt file to a timestamped backup before it gets overwritten."""
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%S")
    backup = path.with_name(f"{path.name}.corrupt.{ts}")
    path.rename(backup)
    logger.warning("Corrupt file backed up: %s → %s", path, backup)
    return backup


@contextmanager
def _locked() -> Iterator[None]:
    """Hold an exclusive file lock during registry read-modify-write."""
    rp = _registry_path()
    rp.parent.mkdir(parents=True, exist_ok=True)
    lock = FileLock(rp.with_suffix(".lock"))
    with lock:
        yield


def _load() -> list[dict[str, Any]]:
    rp = _registry_path()
    if not rp.exists():
        return []
    try:
        return json.loads(rp.read_text())
    except (json.JSONDecodeError, ValueError):
        _backup_corrupt(rp)
        return []
    except OSError as e:
        raise StorageError(f"Cannot read invoice store {rp}: {e}") from e


def _save(entries: list[dict[str, Any]]) -> None:
    rp = _registry_path()
    try:
        rp.parent.mkdir(parents=True, exist_ok=True)
        tmp = rp.with_suffix(".tmp")
        tmp.write_text(json.dumps(entries, indent=2, ensure_ascii=False) + "\n")
        os.replace(tmp, rp)
    except OSError as e:
        raise StorageError(f"Cannot write invoice store {rp}: {e}") from e


def _load_invoices() -> list[Invoice]:
    with _locked():
        entries = _load()
    return [Invoice.from_dict(e) for e in entries]


# --- Queries ---


def list_invoices(
    merchant_id: str | None = None,
    status: InvoiceStatus | None = None,
) -> list[Invoice]:
    """Return stored invoices, newest first, optionally filtered by merchant and status."""
    invoices = _load_invoices()
    if merchant_id is not None:
        invoices = [i for i in invoices if i.merchant_id == merchant_id]
    if status is not None:
        invoices = [i for i in invoices if i.status is status]
    invoices.sort(key=lambda i: i.created_at, reverse=True)
    return invoices


def get_invoice(invoice_id: str) -> Invoice | None:
    return next((i for i in _load_invoices() if i.id == invoice_id), None)


def find_by_number(invoice_number: str) -> Invoice | None:
    """Look up a single invoice by its human-facing number."""
    return next((i for i in _load_invoices() if i.invoice_number == invoice_number), None)


def latest_invoice() -> Invoice | None:
    """The most recently created invoice across all merchants."""
    invoices = list_invoices()
    return invoices[0] if invoices else None


def recent_paid(merchant_id: str, limit: int = 3) -> list[Invoice]:
    """Paid invoices for a merchant, most recently paid first."""
    paid = list_invoices(merchant_id, InvoiceStatus.PAID)
    paid.sort(key=lambda i: i.paid_at or i.created_at, reverse=True)
    return paid[:limit]


def upcoming_pending(merchant_id: str, limit: int = 5) -> list[Invoice]:
    """Pending invoices for a merchant, earliest due date first."""
    pending = list_invoices(merchant_id, InvoiceStatus.PENDING)
    pending.sort(key=lambda i: i.due_date)
    return pending[:limit]


# --- Writes ---


def add_invoice(invoice: Invoice) -> Invoice:
    """Persist a new invoice. Invoice numbers and ids must be unique."""
    with _locked():
        entries = _load()
        for e in entries:
            if e.get("invoice_number") == invoice.invoice_number:
                raise StorageError(f"Invoice number already in use: {invoice.invoice_number}")
            if e.get("id") == invoice.id:
                raise StorageError(f"Invoice id already in use: {invoice.id}")
        entries.append(invoice.to_dict())
        _save(entries)
    logger.info("Stored invoice %s (%s)", invoice.invoice_number, invoice.id)
    _notify()
    return invoice


def mark_paid(invoice_id: str, *, paid_at: datetime, transaction_hash: str) -> Invoice:
    """Apply the pending -> paid transition to a stored invoice."""
    with _locked():
        entries = _load()
        index = next((n for n, e in enumerate(entries) if e.get("id") == invoice_id), None)
        if index is None:
            raise InvoiceNotFoundError(invoice_id)
        current = Invoice.from_dict(entries[index])
        if current.is_paid:
            raise InvalidTransitionError(f"{current.invoice_number} is already paid")
        updated = current.mark_paid(paid_at, transaction_hash)
        entries[index] = updated.to_dict()
        _save(entries)
    logger.info("Invoice %s marked paid (tx %s)", updated.invoice_number, transaction_hash)
    _notify()
    return updated


# --- Live subscriptions ---


@dataclass(eq=False)
class Subscription:
    """Handle for a live query; close it when the consuming view goes away."""

    callback: Listener
    merchant_id: str | None = None
    on_error: ErrorListener | None = None
    closed: bool = field(default=False, init=False)

    def close(self) -> None:
        with _listeners_lock:
            self.closed = True
            if self in _listeners:
                _listeners.remove(self)

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


_listeners: list[Subscription] = []
_listeners_lock = threading.Lock()


def subscribe(
    callback: Listener,
    merchant_id: str | None = None,
    on_error: ErrorListener | None = None,
) -> Subscription:
    """Call *callback* with the current invoice list now and after every write.

    When the registry cannot be read, *on_error* receives the exception
    instead and *callback* is skipped for that round.
    """
    sub = Subscription(callback, merchant_id, on_error)
    with _listeners_lock:
        _listeners.append(sub)
    _deliver(sub)
    return sub


def _deliver(sub: Subscription) -> None:
    if sub.closed:
        return
    try:
        invoices = list_invoices(sub.merchant_id)
    except Exception as e:
        logger.warning("Cannot load invoices for subscriber: %s", e)
        if sub.on_error is not None:
            try:
                sub.on_error(e)
            except Exception:
                logger.warning("Invoice subscriber error handler failed", exc_info=True)
        return
    try:
        sub.callback(invoices)
    except Exception:
        logger.warning("Invoice subscriber failed", exc_info=True)


def _notify() -> None:
    with _listeners_lock:
        subs = list(_listeners)
    for sub in subs:
        _deliver(sub)


# --- Health check (read-only, no locks) ---


@dataclass
class RegistryHealth:
    registry_ok: bool
    registry_count: int
    registry_corrupt_backups: list[str] = field(default_factory=list)


def check_registry_health() -> RegistryHealth:
    """Probe the registry file for corruption (read-only)."""
    rp = _registry_path()
    registry_ok = True
    registry_count = 0
    if rp.exists():
        try:
            registry_count = len(json.loads(rp.read_text()))
        except (json.JSONDecodeError, ValueError):
            registry_ok = False
    if rp.parent.exists():
        backups = sorted(str(p) for p in rp.parent.glob(f"{rp.name}.corrupt.*"))
    else:
        backups = []
    return RegistryHealth(
        registry_ok=registry_ok,
        registry_count=registry_count,
        registry_corrupt_backups=backups,
    )
