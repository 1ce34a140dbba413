"""
Tests for Group Ledger

Test strategy:
1. Unit tests for individual components (models, calculators, validators)
2. Integration tests for the ledger service (with in-memory storage)
3. No real API calls in tests (fake worksheets instead of Google Sheets)
"""

import json

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from group_ledger.models.ledger import (
    Expense,
    ExpenseCategory,
    Group,
    GroupSummary,
    Member,
    Payment,
    Split,
    SplitType,
    Transfer,
    new_id,
)
from group_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for persisted ledger records."""

    def test_group_creation(self):
        """Test Group model creation with generated ID."""
        group = Group(name="Flatmates", currency_code="INR")
        assert group.name == "Flatmates"
        assert group.currency_code == "INR"
        assert group.id

    def test_group_currency_is_normalized(self):
        """Test that currency codes are stripped and upper-cased."""
        group = Group(name="Trip", currency_code=" usd ")
        assert group.currency_code == "USD"

    def test_group_rejects_invalid_currency(self):
        """Test that a currency code must be three letters."""
        with pytest.raises(ValueError):
            Group(name="Trip", currency_code="RUPEES")

    def test_group_requires_name(self):
        """Test that an empty name is rejected."""
        with pytest.raises(ValueError):
            Group(name="   ", currency_code="INR")

    def test_member_creation(self):
        """Test Member model creation."""
        member = Member(group_id="g1", user_id="u1", name="  Asha ")
        assert member.name == "Asha"
        assert member.email is None

    def test_expense_amount_must_be_positive(self):
        """Test that zero amounts are rejected."""
        with pytest.raises(ValueError):
            Expense(
                amount=Decimal("0"),
                currency_code="INR",
                base_amount=Decimal("0"),
                date=date(2024, 1, 1),
            )

    def test_personal_expense(self):
        """Test an expense without group or payer."""
        expense = Expense(
            amount=Decimal("250.00"),
            currency_code="INR",
            base_amount=Decimal("250.00"),
            category=ExpenseCategory.FOOD_DINING,
            date=date(2024, 1, 1),
        )
        assert expense.is_group_expense is False
        assert expense.category == ExpenseCategory.FOOD_DINING

    def test_payer_requires_group(self):
        """Test that only group expenses can have a payer."""
        with pytest.raises(ValidationError, match="Only group expenses can have a payer"):
            Expense(
                amount=Decimal("10"),
                currency_code="INR",
                base_amount=Decimal("10"),
                date=date(2024, 1, 1),
                paid_by_member_id="m1",
            )

    def test_split_allows_zero_share(self):
        """Test that a member can owe nothing (e.g. 0.01 split three ways)."""
        split = Split(expense_id="e1", member_id="m1", amount=Decimal("0.00"))
        assert split.amount == Decimal("0.00")
        assert split.percentage is None

    def test_split_rejects_negative_share(self):
        """Test that negative split amounts are rejected."""
        with pytest.raises(ValueError):
            Split(expense_id="e1", member_id="m1", amount=Decimal("-1"))

    def test_payment_creation(self):
        """Test Payment model creation."""
        payment = Payment(
            group_id="g1",
            from_member_id="m1",
            to_member_id="m2",
            amount=Decimal("30"),
            currency_code="inr",
            date=date(2024, 1, 2),
        )
        assert payment.currency_code == "INR"

    def test_transfer_is_frozen(self):
        """Test that settlement suggestions are immutable."""
        transfer = Transfer(from_member_id="a", to_member_id="b", amount=Decimal("5"))
        with pytest.raises(ValidationError):
            transfer.amount = Decimal("6")

    def test_group_summary_is_settled(self):
        """Test is_settled property."""
        summary = GroupSummary(
            group_id="g1",
            currency_code="INR",
            expense_count=0,
            total_spent=Decimal("0"),
        )
        assert summary.is_settled is True

    def test_new_id_is_unique(self):
        """Test default identifier generator."""
        assert new_id() != new_id()


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.GROUP_CREATED,
            description="Group created",
        )
        assert event.event_id is not None
        assert event.timestamp is not None
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_sheets_row(self):
        """Test conversion to the 12-column sheets row."""
        correlation_id = uuid4()
        event = AuditEventBuilder.payment_recorded(
            payment_id="p1",
            group_id="g1",
            from_member_id="m1",
            to_member_id="m2",
            amount="30.00",
            correlation_id=correlation_id,
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "payment_recorded"
        assert row[5] == "p1"
        assert row[6] == "g1"
        assert row[7] == str(correlation_id)
        assert json.loads(row[9])["amount"] == "30.00"

    def test_audit_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        event = AuditEventBuilder.group_deleted(group_id="g1")
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "group_deleted"
        assert log_dict["severity"] == "warning"
        assert log_dict["correlation_id"] is None

    def test_split_validation_failed_event(self):
        """Test that rejected splits carry the difference."""
        event = AuditEventBuilder.split_validation_failed(
            expense_id="e1",
            split_type=SplitType.PERCENTAGE.value,
            message="Total percentage must equal 100%",
            difference="1",
        )
        assert event.severity == AuditSeverity.WARNING
        assert event.details["difference"] == "1"
        assert event.error_message == "Total percentage must equal 100%"

    def test_storage_failed_event(self):
        """Test storage failure events."""
        event = AuditEventBuilder.storage_failed(
            operation="save_member",
            error_code="storage_failure",
            error_message="duplicate",
        )
        assert event.event_type == AuditEventType.STORAGE_FAILED
        assert event.severity == AuditSeverity.ERROR


class TestExpenseCategories:
    """Tests for expense category enum."""

    def test_all_categories_exist(self):
        """Test that expected categories exist."""
        expected = [
            "food_dining", "transportation", "shopping", "bills_utilities",
            "entertainment", "healthcare", "education", "travel",
            "personal_care", "subscriptions", "rent", "emi", "other",
        ]
        for cat in expected:
            assert ExpenseCategory(cat) is not None

    def test_split_types(self):
        """Test split strategy values."""
        assert {t.value for t in SplitType} == {"equal", "percentage", "custom"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
