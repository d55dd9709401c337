from __future__ import annotations


class PayneError(Exception):
    """Base class for errors raised by Payne operations."""


class StorageError(PayneError):
    """The invoice store could not be read or written."""


class InvoiceNotFoundError(PayneError):
    """No invoice matches the requested number or id."""

    def __init__(self, invoice_number: str) -> None:
        super().__init__(f"Invoice not found: {invoice_number}")
        self.invoice_number = invoice_number


class InvalidTransitionError(PayneError):
    """An invoice status change other than pending -> paid was attempted."""


class RatesUnavailableError(PayneError):
    """Exchange or USDC rates could not be fetched, or a conversion had no rate."""


class GeolocationError(PayneError):
    """The geolocation lookup failed or returned an unsuccessful response."""

    def __init__(self, message: str, response: dict | None = None) -> None:
        super().__init__(message)
        self.response = response or {}


class PaymentStateError(PayneError):
    """A payment action was requested in a state that does not allow it."""
