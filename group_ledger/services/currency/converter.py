"""
Currency Conversion

Expenses are entered in whatever currency the receipt shows, but ledger
arithmetic runs in one currency per group. The converter turns an entered
amount into the group's settlement currency before it is stored as the
expense's base_amount.

Rates are expressed against a single base currency: a rate of 83.2 for
USD with base INR means 1 USD = 83.2 INR. Converting between two non-base
currencies goes through the base.

Results are NOT quantized here. Rounding to minor units is the ledger's
job, so chained conversions do not compound rounding.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Mapping, Optional

import structlog

from group_ledger.config import get_settings
from group_ledger.ledger.money import Number, to_decimal


class CurrencyConverter(ABC):
    """Converts amounts between currencies."""

    @abstractmethod
    async def convert(
        self,
        amount: Number,
        from_currency: str,
        to_currency: str,
    ) -> Decimal:
        """
        Convert an amount from one currency into another.

        Returns:
            The converted amount, unrounded
        """
        pass


class StaticRateConverter(CurrencyConverter):
    """
    Converter backed by a fixed exchange-rate table.

    Unknown currencies convert at 1.0 with a warning, so an expense in a
    currency nobody configured is still recorded rather than refused.
    """

    def __init__(
        self,
        base_currency: Optional[str] = None,
        rates: Optional[Mapping[str, Number]] = None,
    ):
        settings = get_settings()
        self._base = (base_currency or settings.ledger.default_currency).upper()
        if rates is None:
            rates = settings.app.exchange_rates_map

        self._rates: dict[str, Decimal] = {}
        for code, rate in rates.items():
            self.set_rate(code, rate)
        self._logger = structlog.get_logger(__name__)

    @property
    def base_currency(self) -> str:
        return self._base

    def set_rate(self, currency_code: str, rate: Number) -> None:
        """Set how many base-currency units one unit of currency_code buys."""
        value = Decimal(str(rate))
        if not value.is_finite() or value <= 0:
            raise ValueError(f"Exchange rate for {currency_code} must be positive, got {rate}")
        self._rates[currency_code.upper()] = value

    def get_rate(self, currency_code: str) -> Decimal:
        code = currency_code.upper()
        if code == self._base:
            return Decimal("1")
        rate = self._rates.get(code)
        if rate is None:
            self._logger.warning(
                "exchange_rate_missing",
                currency_code=code,
                base_currency=self._base,
            )
            return Decimal("1")
        return rate

    async def convert(
        self,
        amount: Number,
        from_currency: str,
        to_currency: str,
    ) -> Decimal:
        value = to_decimal(amount)

        source = from_currency.upper()
        target = to_currency.upper()
        if source == target:
            return value

        in_base = value * self.get_rate(source)
        return in_base / self.get_rate(target)
