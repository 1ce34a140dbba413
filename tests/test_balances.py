"""Tests for the balance engine."""

import pytest
from datetime import date
from decimal import Decimal

from group_ledger.ledger import compute_balances, ledger_balances, member_totals
from group_ledger.models.ledger import (
    Expense,
    Group,
    GroupLedger,
    Member,
    Payment,
    Split,
)


def make_expense(expense_id, amount, paid_by="x", group_id="g1"):
    return Expense(
        id=expense_id,
        amount=Decimal(amount),
        currency_code="INR",
        base_amount=Decimal(amount),
        date=date(2024, 1, 1),
        group_id=group_id,
        paid_by_member_id=paid_by,
    )


def make_split(expense_id, member_id, amount):
    return Split(expense_id=expense_id, member_id=member_id, amount=Decimal(amount))


def make_payment(from_id, to_id, amount):
    return Payment(
        group_id="g1",
        from_member_id=from_id,
        to_member_id=to_id,
        amount=Decimal(amount),
        currency_code="INR",
        date=date(2024, 1, 2),
    )


@pytest.fixture
def scenario_b():
    """X paid 90 for X, Y and Z, split equally."""
    expenses = [make_expense("e1", "90")]
    splits = [make_split("e1", m, "30") for m in ("x", "y", "z")]
    return expenses, splits


class TestComputeBalances:
    """Tests for compute_balances."""

    def test_scenario_b(self, scenario_b):
        """Test payer credited, members debited."""
        expenses, splits = scenario_b
        balances = compute_balances(["x", "y", "z"], expenses, splits, [])
        assert balances == {"x": Decimal("60"), "y": Decimal("-30"), "z": Decimal("-30")}

    def test_scenario_d_payments_settle(self, scenario_b):
        """Test that recorded payments bring balances to zero."""
        expenses, splits = scenario_b
        payments = [make_payment("y", "x", "30"), make_payment("z", "x", "30")]
        balances = compute_balances(["x", "y", "z"], expenses, splits, payments)
        assert all(value == 0 for value in balances.values())

    def test_members_without_activity_are_zero(self):
        """Test that every member gets an entry."""
        assert compute_balances(["a", "b"], [], [], []) == {"a": 0, "b": 0}

    def test_order_independent(self, scenario_b):
        """Test that input order does not change the result."""
        expenses, splits = scenario_b
        expenses = expenses + [make_expense("e2", "33.33", paid_by="y")]
        splits = splits + [make_split("e2", "x", "11.11"), make_split("e2", "z", "22.22")]
        payments = [make_payment("z", "x", "5.55")]

        forward = compute_balances(["x", "y", "z"], expenses, splits, payments)
        backward = compute_balances(
            ["x", "y", "z"], expenses[::-1], splits[::-1], payments[::-1],
        )
        assert forward == backward
        assert sum(forward.values()) == 0

    def test_expense_without_payer(self):
        """Test that an expense with no payer only debits the splits."""
        expense = Expense(
            id="e1",
            amount=Decimal("10"),
            currency_code="INR",
            base_amount=Decimal("10"),
            date=date(2024, 1, 1),
            group_id="g1",
        )
        balances = compute_balances(["a"], [expense], [make_split("e1", "a", "10")], [])
        assert balances == {"a": Decimal("-10")}

    def test_ignores_splits_of_other_expenses(self, scenario_b):
        """Test that only splits of the given expenses count."""
        expenses, splits = scenario_b
        splits = splits + [make_split("elsewhere", "x", "1000")]
        balances = compute_balances(["x", "y", "z"], expenses, splits, [])
        assert balances["x"] == Decimal("60")

    def test_unknown_member_surfaces(self, scenario_b):
        """Test that ids outside the member list still get an entry."""
        expenses, splits = scenario_b
        balances = compute_balances(["x", "y"], expenses, splits, [])
        assert balances["z"] == Decimal("-30")


class TestLedgerViews:
    """Tests for snapshot-based helpers."""

    @pytest.fixture
    def ledger(self, scenario_b):
        expenses, splits = scenario_b
        group = Group(id="g1", name="Trip", currency_code="INR")
        members = [
            Member(id=m, group_id="g1", user_id=f"user-{m}", name=m.upper())
            for m in ("x", "y", "z")
        ]
        return GroupLedger(
            group=group,
            members=members,
            expenses=expenses,
            splits=splits,
            payments=[make_payment("y", "x", "10")],
        )

    def test_ledger_balances(self, ledger):
        """Test balances from a snapshot."""
        assert ledger_balances(ledger) == {
            "x": Decimal("50"), "y": Decimal("-20"), "z": Decimal("-30"),
        }

    def test_member_totals(self, ledger):
        """Test the per-member breakdown adds up to the balance."""
        totals = {summary.member_id: summary for summary in member_totals(ledger)}
        assert totals["x"].paid == Decimal("90")
        assert totals["x"].share == Decimal("30")
        assert totals["x"].payments_in == Decimal("10")
        assert totals["x"].balance == Decimal("50")
        assert totals["y"].payments_out == Decimal("10")
        assert totals["y"].balance == Decimal("-20")
        assert sum(s.balance for s in totals.values()) == 0
