from __future__ import annotations

from dataclasses import dataclass

from payne.config import DEFAULT_CURRENCY, DEFAULT_ORIGIN


@dataclass(frozen=True)
class Merchant:
    """The signed-in merchant: creates invoices and receives payments."""

    merchant_id: str
    name: str
    address: str  # receiving wallet, 0x-prefixed
    origin: str = DEFAULT_ORIGIN
    default_currency: str = DEFAULT_CURRENCY

    @classmethod
    def from_dict(cls, d: dict) -> Merchant:
        """Create a Merchant from a YAML-loaded dict, validating the wallet address."""
        from payne.utils.validators import validate_address

        return cls(
            merchant_id=str(d["merchant_id"]),
            name=d["name"],
            address=validate_address(str(d["address"])),
            origin=d.get("origin", DEFAULT_ORIGIN),
            default_currency=str(d.get("default_currency", DEFAULT_CURRENCY)).upper(),
        )
