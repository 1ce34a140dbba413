"""
Tests for currency conversion.
"""

import asyncio
from decimal import Decimal

import pytest

from group_ledger.errors import InvalidAmountError
from group_ledger.services.currency import StaticRateConverter


def convert(converter, amount, source, target):
    return asyncio.run(converter.convert(amount, source, target))


class TestStaticRateConverter:
    """Tests for StaticRateConverter."""

    def test_into_base_currency(self, converter):
        """Test 12.50 USD at 80 INR/USD."""
        assert convert(converter, "12.50", "USD", "INR") == Decimal("1000.00")

    def test_out_of_base_currency(self, converter):
        """Test the inverse direction divides by the rate."""
        assert convert(converter, "160", "INR", "USD") == Decimal("2")

    def test_cross_rate_goes_through_base(self, converter):
        """Test EUR to USD via INR."""
        assert convert(converter, "8", "EUR", "USD") == Decimal("9")

    def test_same_currency_is_identity(self, converter):
        """Test no conversion and no rounding."""
        assert convert(converter, "10.005", "usd", "USD") == Decimal("10.005")

    def test_result_is_not_rounded(self, converter):
        """Test rounding is left to the ledger."""
        result = convert(converter, "1", "INR", "USD")
        assert result == Decimal("1") / Decimal("80")
        assert result != Decimal("0.01")

    def test_unknown_currency_converts_at_one(self, converter):
        """Test a missing rate falls back to 1."""
        assert converter.get_rate("JPY") == Decimal("1")
        assert convert(converter, "500", "JPY", "INR") == Decimal("500")

    def test_rates_are_case_insensitive(self):
        """Test currency codes are normalized."""
        converter = StaticRateConverter(base_currency="inr", rates={"usd": 83})
        assert converter.base_currency == "INR"
        assert converter.get_rate("USD") == Decimal("83")

    @pytest.mark.parametrize("rate", [0, -2, "NaN"])
    def test_invalid_rate(self, converter, rate):
        """Test rates must be positive numbers."""
        with pytest.raises(ValueError):
            converter.set_rate("GBP", rate)

    def test_invalid_amount(self, converter):
        """Test NaN amounts are refused."""
        with pytest.raises(InvalidAmountError):
            convert(converter, "NaN", "USD", "INR")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
