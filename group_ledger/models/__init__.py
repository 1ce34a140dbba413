"""
Data Models Package

This package contains all Pydantic models used in the Group Ledger system.
All data flowing through the system must conform to these schemas.
"""

from group_ledger.models.ledger import (
    AmountShare,
    Expense,
    ExpenseCategory,
    Group,
    GroupLedger,
    GroupSummary,
    Member,
    MemberSummary,
    Payment,
    PercentageShare,
    Split,
    SplitShare,
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

__all__ = [
    # Ledger models
    "AmountShare",
    "Expense",
    "ExpenseCategory",
    "Group",
    "GroupLedger",
    "GroupSummary",
    "Member",
    "MemberSummary",
    "Payment",
    "PercentageShare",
    "Split",
    "SplitShare",
    "SplitType",
    "Transfer",
    "new_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
