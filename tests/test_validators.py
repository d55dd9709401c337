from __future__ import annotations

from datetime import date

import pytest

from payne.utils.validators import (
    validate_address,
    validate_amount,
    validate_currency_code,
    validate_customer_name,
    validate_date,
    validate_invoice_number,
)


class TestValidateAmount:
    def test_valid(self):
        assert validate_amount("100.50") == 100.5

    def test_strips_thousands_separator(self):
        assert validate_amount(" 1,250.00 ") == 1250.0

    def test_empty_raises(self):
        with pytest.raises(ValueError, match="required"):
            validate_amount("   ")

    def test_non_numeric_raises(self):
        with pytest.raises(ValueError, match="valid number"):
            validate_amount("abc")

    @pytest.mark.parametrize("value", ["0", "-5", "NaN", "Infinity"])
    def test_non_positive_or_non_finite_raises(self, value):
        with pytest.raises(ValueError, match="positive"):
            validate_amount(value)


class TestValidateDate:
    def test_valid(self):
        assert validate_date("2025-06-30") == date(2025, 6, 30)

    def test_invalid(self):
        with pytest.raises(ValueError, match="YYYY-MM-DD"):
            validate_date("30/06/2025")


class TestValidateCustomerName:
    def test_strips(self):
        assert validate_customer_name("  Acme Corp ") == "Acme Corp"

    def test_blank_raises(self):
        with pytest.raises(ValueError, match="Customer name is required"):
            validate_customer_name(" ")


class TestValidateAddress:
    def test_valid(self):
        addr = "0xAbCdEf0123456789aBcDeF0123456789AbCdEf01"
        assert validate_address(addr) == addr

    @pytest.mark.parametrize(
        "value",
        ["", "0x123", "1111111111111111111111111111111111111111", "0x" + "g" * 40],
    )
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="wallet address"):
            validate_address(value)


class TestValidateCurrencyCode:
    def test_uppercases(self):
        assert validate_currency_code("eur") == "EUR"

    def test_accepts_usdc(self):
        assert validate_currency_code("USDC") == "USDC"

    @pytest.mark.parametrize("value", ["EU", "EURO1", "E1R", ""])
    def test_invalid(self, value):
        with pytest.raises(ValueError, match="currency code"):
            validate_currency_code(value)


class TestValidateInvoiceNumber:
    def test_normalizes_case(self):
        assert validate_invoice_number(" inv-0042 ") == "INV-0042"

    def test_invalid(self):
        with pytest.raises(ValueError, match="INV-0001"):
            validate_invoice_number("0042")
