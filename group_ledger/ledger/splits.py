"""
Split Calculator

Turns an expense total and a splitting strategy into per-member shares.

ROUNDING RULE: shares are apportioned in integer minor units with the
largest-remainder method. Each member first gets the floor of their exact
share; the leftover units go one at a time to the members with the largest
fractional remainders, ties going to whoever comes first in the input.
For an equal split every remainder is the same, so the first members in
input order get the extra unit:

    100.00 among 3 -> 33.34, 33.33, 33.33

The calculator is pure. It does not check that percentages add up to 100
or that custom amounts add up to the total - that is the validator's job,
run by the ledger service before anything is written.
"""

from decimal import Decimal
from typing import Iterable, Sequence

from group_ledger.errors import InvalidAmountError, InvalidSplitError
from group_ledger.ledger.money import (
    DEFAULT_PLACES,
    Number,
    from_minor_units,
    require_positive,
    to_minor_units,
    to_money,
)
from group_ledger.models.ledger import AmountShare, PercentageShare, SplitShare


def _require_members(member_ids: Iterable[str]) -> list[str]:
    members = list(member_ids)
    if not members:
        raise InvalidSplitError("Select at least one member to split with")
    seen = set()
    for member_id in members:
        if member_id in seen:
            raise InvalidSplitError(f"Member {member_id} appears more than once in the split")
        seen.add(member_id)
    return members


def split_equally(
    total: Number,
    member_ids: Sequence[str],
    places: int = DEFAULT_PLACES,
) -> list[SplitShare]:
    """
    Divide total evenly among member_ids.

    Raises:
        InvalidAmountError: total is not positive
        InvalidSplitError: no members, or a member listed twice
    """
    total = require_positive(total, places, "total_amount")
    members = _require_members(member_ids)

    units = to_minor_units(total, places)
    base, remainder = divmod(units, len(members))

    return [
        SplitShare(
            member_id=member_id,
            amount=from_minor_units(base + (1 if index < remainder else 0), places),
        )
        for index, member_id in enumerate(members)
    ]


def _scaled_percentages(percentages: Sequence[Decimal]) -> tuple[list[int], int]:
    """Percentages as integers over a common denominator that stands for 100%."""
    shift = max(max(-percentage.as_tuple().exponent, 0) for percentage in percentages)
    return [int(percentage.scaleb(shift)) for percentage in percentages], 100 * 10 ** shift


def split_by_percentage(
    total: Number,
    shares: Sequence[PercentageShare],
    places: int = DEFAULT_PLACES,
    fill_total: bool = False,
) -> list[SplitShare]:
    """
    Give each member total * percentage / 100.

    When the percentages add up to exactly 100 the amounts add up to
    exactly total. With fill_total, each percentage is taken relative to
    the sum of all of them instead of 100, so shares that were accepted
    within tolerance (33.333 x 3, or 100.01) still add up to exactly total.

    Raises:
        InvalidAmountError: total not positive, or a negative percentage
        InvalidSplitError: no members, a member listed twice, or
            fill_total with percentages that add up to zero
    """
    total = require_positive(total, places, "total_amount")
    _require_members(share.member_id for share in shares)

    percentages = []
    for share in shares:
        percentage = Decimal(share.percentage)
        if not percentage.is_finite() or percentage < 0:
            raise InvalidAmountError(
                f"Percentage for member {share.member_id} must be zero or more, got {share.percentage}"
            )
        percentages.append(percentage)

    units = to_minor_units(total, places)
    scaled, whole = _scaled_percentages(percentages)
    if fill_total:
        whole = sum(scaled)
        if whole == 0:
            raise InvalidSplitError("Percentages must add up to more than zero")
        target = units
    else:
        # Half-up rounding of units * sum / whole
        target = (2 * units * sum(scaled) + whole) // (2 * whole)

    allocated = [units * value // whole for value in scaled]
    remainders = [units * value % whole for value in scaled]
    leftover = target - sum(allocated)

    by_remainder = sorted(range(len(scaled)), key=lambda i: (-remainders[i], i))
    for i in by_remainder[:leftover]:
        allocated[i] += 1

    return [
        SplitShare(
            member_id=share.member_id,
            amount=from_minor_units(allocated[i], places),
            percentage=percentages[i],
        )
        for i, share in enumerate(shares)
    ]


def split_by_amount(
    total: Number,
    shares: Sequence[AmountShare],
    places: int = DEFAULT_PLACES,
) -> list[SplitShare]:
    """
    Take each member's amount as given.

    Raises:
        InvalidAmountError: total not positive, or a negative share
        InvalidSplitError: no members, or a member listed twice
    """
    require_positive(total, places, "total_amount")
    _require_members(share.member_id for share in shares)

    result = []
    for share in shares:
        amount = to_money(share.amount, places)
        if amount < 0:
            raise InvalidAmountError(
                f"Amount for member {share.member_id} cannot be negative, got {amount}"
            )
        result.append(SplitShare(member_id=share.member_id, amount=amount))
    return result
