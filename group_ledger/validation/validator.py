"""
Split Validation

DESIGN DECISION: Split inputs are validated before anything is written.
The calculator happily apportions percentages that add up to 101, so the
ledger service runs these checks first and refuses the whole operation.

Checks:
- Percentages add up to 100 (within tolerance)
- Custom amounts add up to the expense total (within tolerance)
- Payment amounts are positive and in the group currency

IMPORTANT: Validation NEVER silently fixes inputs. A failed check raises
with the exact shortfall or excess so the user can correct it.
"""

from decimal import Decimal
from typing import Optional, Sequence

from group_ledger.config import LedgerSettings, get_settings
from group_ledger.errors import InvalidAmountError, InvalidSplitError
from group_ledger.ledger.money import require_positive, to_money
from group_ledger.models.ledger import AmountShare, Group, PercentageShare


class SplitValidator:
    """Validates split and payment inputs against the ledger settings."""

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    @property
    def places(self) -> int:
        return self._settings.money_decimal_places

    @property
    def tolerance(self) -> Decimal:
        return self._settings.split_tolerance

    def validate_percentages(self, shares: Sequence[PercentageShare]) -> Decimal:
        """
        Check that the percentages are non-negative and add up to the
        configured total.

        Returns:
            The sum of the percentages

        Raises:
            InvalidAmountError: If any percentage is negative
            InvalidSplitError: If the sum is off by more than the tolerance
        """
        if not shares:
            raise InvalidSplitError("Select at least one member to split with")

        for share in shares:
            if share.percentage < 0:
                raise InvalidAmountError(
                    f"Percentage for member {share.member_id} must be zero or more, "
                    f"got {share.percentage}"
                )

        expected = self._settings.percentage_total
        actual = sum((Decimal(share.percentage) for share in shares), Decimal("0"))

        if abs(actual - expected) > self.tolerance:
            raise InvalidSplitError(
                f"Total percentage must equal {expected}% (currently {actual}%)",
                expected=expected,
                actual=actual,
            )
        return actual

    def validate_amounts(
        self,
        shares: Sequence[AmountShare],
        total_amount: Decimal,
    ) -> Decimal:
        """
        Check that custom amounts are non-negative and add up to the total.

        Returns:
            The sum of the amounts

        Raises:
            InvalidAmountError: If any amount is negative
            InvalidSplitError: If the sum is off by more than the tolerance
        """
        if not shares:
            raise InvalidSplitError("Select at least one member to split with")

        amounts = []
        for share in shares:
            amount = to_money(share.amount, self.places)
            if amount < 0:
                raise InvalidAmountError(
                    f"Amount for member {share.member_id} cannot be negative, got {amount}"
                )
            amounts.append(amount)

        expected = to_money(total_amount, self.places)
        actual = sum(amounts, Decimal("0"))

        if abs(actual - expected) > self.tolerance:
            raise InvalidSplitError(
                f"Total amount must equal expense amount ({expected}), currently {actual}",
                expected=expected,
                actual=actual,
            )
        return actual

    def validate_payment(
        self,
        group: Group,
        from_member_id: str,
        to_member_id: str,
        amount,
        currency_code: str,
    ) -> Decimal:
        """
        Check a settle-up payment before it is recorded.

        Returns:
            The quantized payment amount

        Raises:
            InvalidAmountError: Non-positive amount, payer and payee the same
                member, or a currency other than the group's
        """
        value = require_positive(amount, self.places, "Payment amount")

        if from_member_id == to_member_id:
            raise InvalidAmountError("A payment needs two different members")

        if currency_code.strip().upper() != group.currency_code:
            raise InvalidAmountError(
                f"Payments in group '{group.name}' must be in {group.currency_code}, "
                f"got {currency_code}"
            )
        return value

    def get_user_friendly_summary(self, error: InvalidSplitError) -> str:
        """Shortfall/excess message for the UI layer."""
        difference = error.difference
        if difference is None:
            return str(error)
        if difference < 0:
            return f"{str(error)}. Add {-difference} to balance the split."
        return f"{str(error)}. Remove {difference} to balance the split."
