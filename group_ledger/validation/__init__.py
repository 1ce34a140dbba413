"""Split and payment validation package."""

from group_ledger.validation.validator import SplitValidator

__all__ = ["SplitValidator"]
