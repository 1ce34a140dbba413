"""Tests for money helpers, the split calculator and the split validator."""

import pytest
from decimal import Decimal

from group_ledger.config import LedgerSettings
from group_ledger.errors import ErrorKind, InvalidAmountError, InvalidSplitError
from group_ledger.ledger import split_by_amount, split_by_percentage, split_equally
from group_ledger.ledger.money import from_minor_units, to_minor_units, to_money
from group_ledger.models.ledger import AmountShare, Group, PercentageShare
from group_ledger.validation import SplitValidator


def amounts(shares):
    return [share.amount for share in shares]


class TestMoney:
    """Tests for Decimal quantization helpers."""

    def test_float_goes_through_str(self):
        """Test that 0.1 is not turned into its binary expansion."""
        assert to_money(0.1) == Decimal("0.10")

    def test_rounds_half_up(self):
        """Test the rounding mode."""
        assert to_money("2.345") == Decimal("2.35")
        assert to_money("2.344") == Decimal("2.34")

    def test_rejects_nan(self):
        """Test that NaN is an invalid amount."""
        with pytest.raises(InvalidAmountError):
            to_money(float("nan"))

    def test_rejects_garbage(self):
        """Test that non-numeric input is an invalid amount."""
        with pytest.raises(InvalidAmountError):
            to_money("ten rupees")

    def test_minor_units(self):
        """Test conversion to and from integer minor units."""
        assert to_minor_units(Decimal("33.34")) == 3334
        assert from_minor_units(3333) == Decimal("33.33")


class TestEqualSplit:
    """Tests for equal splits."""

    def test_scenario_a_three_way_split_of_100(self):
        """Test 100 among 3 gives the extra cent to the first member."""
        shares = split_equally(Decimal("100"), ["a", "b", "c"])
        assert amounts(shares) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]
        assert sum(amounts(shares)) == Decimal("100.00")

    def test_even_split(self):
        """Test a total that divides evenly."""
        shares = split_equally(Decimal("90"), ["x", "y", "z"])
        assert amounts(shares) == [Decimal("30.00")] * 3

    def test_remainder_goes_to_first_members_in_order(self):
        """Test that leftover units follow input order."""
        shares = split_equally(Decimal("100.02"), ["c", "b", "a", "d"])
        assert [s.member_id for s in shares] == ["c", "b", "a", "d"]
        assert amounts(shares) == [
            Decimal("25.01"), Decimal("25.01"), Decimal("25.00"), Decimal("25.00"),
        ]

    def test_one_cent_among_three(self):
        """Test that tiny totals still sum exactly."""
        shares = split_equally(Decimal("0.01"), ["a", "b", "c"])
        assert amounts(shares) == [Decimal("0.01"), Decimal("0.00"), Decimal("0.00")]

    def test_sum_invariant(self):
        """Test that shares always add up to the total."""
        for total in ["1", "7.77", "1000.01", "99.99", "0.05"]:
            for n in range(1, 8):
                members = [f"m{i}" for i in range(n)]
                shares = split_equally(Decimal(total), members)
                assert sum(amounts(shares)) == Decimal(total)

    def test_no_members(self):
        """Test that selecting nobody is an invalid split."""
        with pytest.raises(InvalidSplitError) as exc:
            split_equally(Decimal("10"), [])
        assert exc.value.kind == ErrorKind.INVALID_SPLIT

    def test_duplicate_member(self):
        """Test that a member can't be listed twice."""
        with pytest.raises(InvalidSplitError):
            split_equally(Decimal("10"), ["a", "a"])

    @pytest.mark.parametrize("total", ["0", "-5", "NaN"])
    def test_invalid_total(self, total):
        """Test non-positive and NaN totals."""
        with pytest.raises(InvalidAmountError) as exc:
            split_equally(Decimal(total), ["a"])
        assert exc.value.kind == ErrorKind.INVALID_AMOUNT


class TestPercentageSplit:
    """Tests for percentage splits."""

    def test_simple_percentages(self):
        """Test round percentages."""
        shares = split_by_percentage(Decimal("100"), [
            PercentageShare(member_id="a", percentage=Decimal("50")),
            PercentageShare(member_id="b", percentage=Decimal("30")),
            PercentageShare(member_id="c", percentage=Decimal("20")),
        ])
        assert amounts(shares) == [Decimal("50.00"), Decimal("30.00"), Decimal("20.00")]
        assert shares[0].percentage == Decimal("50")

    def test_largest_remainder_gets_leftover(self):
        """Test that the leftover cent goes to the largest fractional share."""
        shares = split_by_percentage(Decimal("10"), [
            PercentageShare(member_id="a", percentage=Decimal("33.33")),
            PercentageShare(member_id="b", percentage=Decimal("33.33")),
            PercentageShare(member_id="c", percentage=Decimal("33.34")),
        ])
        assert amounts(shares) == [Decimal("3.33"), Decimal("3.33"), Decimal("3.34")]

    def test_ties_broken_by_input_order(self):
        """Test equal remainders favour the earlier member."""
        third = Decimal("33.333333")
        shares = split_by_percentage(Decimal("100"), [
            PercentageShare(member_id="a", percentage=third),
            PercentageShare(member_id="b", percentage=third),
            PercentageShare(member_id="c", percentage=third),
        ])
        assert amounts(shares) == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]

    def test_does_not_enforce_sum(self):
        """Test that the calculator itself accepts 101%."""
        shares = split_by_percentage(Decimal("100"), [
            PercentageShare(member_id="a", percentage=Decimal("50")),
            PercentageShare(member_id="b", percentage=Decimal("30")),
            PercentageShare(member_id="c", percentage=Decimal("21")),
        ])
        assert sum(amounts(shares)) == Decimal("101.00")

    def test_negative_percentage(self):
        """Test that negative percentages are invalid amounts."""
        with pytest.raises(InvalidAmountError):
            split_by_percentage(Decimal("100"), [
                PercentageShare(member_id="a", percentage=Decimal("110")),
                PercentageShare(member_id="b", percentage=Decimal("-10")),
            ])

    def test_fill_total_with_thirds(self):
        """Test 33.333 x 3 of a large total still adds up exactly."""
        shares = split_by_percentage(
            Decimal("10000"),
            [PercentageShare(member_id=m, percentage=Decimal("33.333")) for m in "abc"],
            fill_total=True,
        )
        assert amounts(shares) == [Decimal("3333.34"), Decimal("3333.33"), Decimal("3333.33")]
        assert shares[0].percentage == Decimal("33.333")

    def test_fill_total_over_100(self):
        """Test 100.01% is scaled back onto the total."""
        shares = split_by_percentage(Decimal("5000"), [
            PercentageShare(member_id="a", percentage=Decimal("50")),
            PercentageShare(member_id="b", percentage=Decimal("30")),
            PercentageShare(member_id="c", percentage=Decimal("20.01")),
        ], fill_total=True)
        assert amounts(shares) == [Decimal("2499.75"), Decimal("1499.85"), Decimal("1000.40")]
        assert sum(amounts(shares)) == Decimal("5000.00")

    def test_fill_total_needs_nonzero_percentages(self):
        """Test all-zero percentages can't be scaled."""
        with pytest.raises(InvalidSplitError):
            split_by_percentage(Decimal("100"), [
                PercentageShare(member_id="a", percentage=Decimal("0")),
            ], fill_total=True)


class TestAmountSplit:
    """Tests for custom-amount splits."""

    def test_amounts_taken_as_given(self):
        """Test that amounts are only quantized."""
        shares = split_by_amount(Decimal("50"), [
            AmountShare(member_id="a", amount=Decimal("20")),
            AmountShare(member_id="b", amount=Decimal("20")),
            AmountShare(member_id="c", amount=Decimal("10")),
        ])
        assert amounts(shares) == [Decimal("20.00"), Decimal("20.00"), Decimal("10.00")]

    def test_negative_amount(self):
        """Test that negative shares are rejected."""
        with pytest.raises(InvalidAmountError):
            split_by_amount(Decimal("50"), [
                AmountShare(member_id="a", amount=Decimal("60")),
                AmountShare(member_id="b", amount=Decimal("-10")),
            ])


class TestSplitValidator:
    """Tests for pre-write split validation."""

    @pytest.fixture
    def validator(self):
        return SplitValidator(LedgerSettings())

    def test_scenario_c_percentages_over_100(self, validator):
        """Test that 50 + 30 + 21 is rejected with a 1% excess."""
        shares = [
            PercentageShare(member_id="a", percentage=Decimal("50")),
            PercentageShare(member_id="b", percentage=Decimal("30")),
            PercentageShare(member_id="c", percentage=Decimal("21")),
        ]
        with pytest.raises(InvalidSplitError) as exc:
            validator.validate_percentages(shares)
        assert exc.value.difference == Decimal("1")
        assert "Remove 1" in validator.get_user_friendly_summary(exc.value)

    def test_percentages_within_tolerance(self, validator):
        """Test that rounding noise within 0.01 is accepted."""
        third = Decimal("33.333")
        shares = [PercentageShare(member_id=m, percentage=third) for m in "abc"]
        assert validator.validate_percentages(shares) == Decimal("99.999")

    def test_negative_percentage(self, validator):
        """Test a negative share is refused even when the total is 100."""
        shares = [
            PercentageShare(member_id="a", percentage=Decimal("110")),
            PercentageShare(member_id="b", percentage=Decimal("-10")),
        ]
        with pytest.raises(InvalidAmountError):
            validator.validate_percentages(shares)

    def test_scenario_e_amounts(self, validator):
        """Test 20 + 20 + 10 of 50 passes and 20 + 25 + 10 fails by 5."""
        good = [
            AmountShare(member_id="a", amount=Decimal("20")),
            AmountShare(member_id="b", amount=Decimal("20")),
            AmountShare(member_id="c", amount=Decimal("10")),
        ]
        assert validator.validate_amounts(good, Decimal("50")) == Decimal("50.00")

        bad = [
            AmountShare(member_id="a", amount=Decimal("20")),
            AmountShare(member_id="b", amount=Decimal("25")),
            AmountShare(member_id="c", amount=Decimal("10")),
        ]
        with pytest.raises(InvalidSplitError) as exc:
            validator.validate_amounts(bad, Decimal("50"))
        assert exc.value.expected == Decimal("50.00")
        assert exc.value.actual == Decimal("55.00")
        assert exc.value.difference == Decimal("5.00")

    def test_shortfall_message(self, validator):
        """Test the message for amounts that fall short."""
        short = [AmountShare(member_id="a", amount=Decimal("40"))]
        with pytest.raises(InvalidSplitError) as exc:
            validator.validate_amounts(short, Decimal("50"))
        assert "Add 10.00" in validator.get_user_friendly_summary(exc.value)

    def test_empty_selection(self, validator):
        """Test that no members is an invalid split."""
        with pytest.raises(InvalidSplitError):
            validator.validate_amounts([], Decimal("50"))

    def test_payment_checks(self, validator):
        """Test payment amount, members and currency checks."""
        group = Group(name="Trip", currency_code="INR")
        assert validator.validate_payment(group, "a", "b", "30", "inr") == Decimal("30.00")

        with pytest.raises(InvalidAmountError):
            validator.validate_payment(group, "a", "b", "0", "INR")
        with pytest.raises(InvalidAmountError):
            validator.validate_payment(group, "a", "a", "30", "INR")
        with pytest.raises(InvalidAmountError):
            validator.validate_payment(group, "a", "b", "30", "USD")
