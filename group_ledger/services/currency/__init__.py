"""Currency conversion services."""

from group_ledger.services.currency.converter import (
    CurrencyConverter,
    StaticRateConverter,
)

__all__ = ["CurrencyConverter", "StaticRateConverter"]
