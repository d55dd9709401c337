from __future__ import annotations

import math
import re
from datetime import date


def validate_amount(value: str) -> float:
    """Parse a positive, finite amount typed by the merchant.

    Raises ValueError for empty, non-numeric, non-finite or non-positive input.
    """
    text = value.strip().replace(",", "")
    if not text:
        raise ValueError("Amount is required")
    try:
        amount = float(text)
    except ValueError:
        raise ValueError(f"Amount must be a valid number: '{value}'") from None
    if not math.isfinite(amount) or amount <= 0:
        raise ValueError("Amount must be a valid positive number")
    return amount


def validate_date(value: str) -> date:
    """Parse an ISO date string (YYYY-MM-DD)."""
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise ValueError(f"Invalid date: '{value}'. Use YYYY-MM-DD.") from None


def validate_customer_name(value: str) -> str:
    name = value.strip()
    if not name:
        raise ValueError("Customer name is required")
    return name


def validate_address(value: str) -> str:
    """Validate an EVM account address: 0x followed by 40 hex digits."""
    if not re.fullmatch(r"0x[0-9a-fA-F]{40}", value.strip()):
        raise ValueError(f"Invalid wallet address: '{value}'")
    return value.strip()


def validate_currency_code(value: str) -> str:
    """Validate a currency code: 3 or 4 letters (ISO 4217 or USDC)."""
    code = value.strip().upper()
    if not re.fullmatch(r"[A-Z]{3,4}", code):
        raise ValueError(f"Invalid currency code: '{value}'")
    return code


def validate_invoice_number(value: str) -> str:
    number = value.strip().upper()
    if not re.fullmatch(r"INV-\d+", number):
        raise ValueError(f"Invalid invoice number: '{value}'. Expected INV-0001.")
    return number
