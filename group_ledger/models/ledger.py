"""
Core Data Models for Group Ledger

These models define the strict schemas for every record the ledger
reads from or writes to storage. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging

DESIGN DECISION: Storage hands back these typed records, never loose
dicts. Money is Decimal; identifiers are opaque strings.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def new_id() -> str:
    """Default identifier generator: opaque UUID4 strings."""
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class SplitType(str, Enum):
    """How an expense is divided among members."""
    EQUAL = "equal"
    PERCENTAGE = "percentage"
    CUSTOM = "custom"


class ExpenseCategory(str, Enum):
    """Supported expense categories."""
    FOOD_DINING = "food_dining"
    TRANSPORTATION = "transportation"
    SHOPPING = "shopping"
    BILLS_UTILITIES = "bills_utilities"
    ENTERTAINMENT = "entertainment"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    TRAVEL = "travel"
    PERSONAL_CARE = "personal_care"
    SUBSCRIPTIONS = "subscriptions"
    RENT = "rent"
    EMI = "emi"
    OTHER = "other"


def _normalize_currency(v: str) -> str:
    v = v.strip().upper()
    if len(v) != 3 or not v.isalpha():
        raise ValueError(f"Invalid currency code: {v!r}")
    return v


CurrencyCode = Annotated[str, AfterValidator(_normalize_currency)]


# =============================================================================
# PERSISTED RECORDS
# =============================================================================

class Group(BaseModel):
    """
    An expense group with a single settlement currency.

    Owns its members and payments. Expenses link to it optionally.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )
    description: Optional[str] = Field(default=None, max_length=500)
    currency_code: CurrencyCode = Field(
        ...,
        description="Settlement currency for all ledger arithmetic"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Member(BaseModel):
    """
    A member of exactly one group.

    Unique per (group_id, user_id).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    group_id: str
    user_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=254)
    created_at: datetime = Field(default_factory=utcnow)


class Expense(BaseModel):
    """
    A single expense, personal or shared.

    amount/currency_code are what the user entered. base_amount is the
    same value in the group's settlement currency (or the default
    currency for personal expenses) and is what the ledger uses.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    amount: Decimal = Field(..., gt=0, description="Entered amount")
    currency_code: CurrencyCode
    base_amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the settlement currency"
    )
    category: ExpenseCategory = ExpenseCategory.OTHER
    description: Optional[str] = Field(default=None, max_length=200)
    notes: Optional[str] = Field(default=None, max_length=1000)
    date: date
    group_id: Optional[str] = None
    paid_by_member_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_group_expense(self) -> bool:
        return self.group_id is not None

    @model_validator(mode='after')
    def validate_payer(self) -> 'Expense':
        if self.paid_by_member_id and not self.group_id:
            raise ValueError("Only group expenses can have a payer")
        return self


class Split(BaseModel):
    """One member's owed share of one expense."""

    id: str = Field(default_factory=new_id)
    expense_id: str
    member_id: str
    amount: Decimal = Field(..., ge=0)
    percentage: Optional[Decimal] = Field(
        default=None,
        description="Percentage that produced the amount, for percentage splits"
    )
    created_at: datetime = Field(default_factory=utcnow)


class Payment(BaseModel):
    """
    Money that changed hands between two members outside the ledger.

    Applied against computed balances, never against a specific expense.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    group_id: str
    from_member_id: str
    to_member_id: str
    amount: Decimal = Field(..., gt=0)
    currency_code: CurrencyCode
    date: date
    notes: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)


# =============================================================================
# SPLIT INPUTS / OUTPUTS
# =============================================================================

class PercentageShare(BaseModel):
    """Caller input for a percentage split."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    percentage: Decimal


class AmountShare(BaseModel):
    """Caller input for a custom-amount split."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    amount: Decimal


class SplitShare(BaseModel):
    """Calculator output: what one member owes, before it becomes a Split row."""
    model_config = ConfigDict(frozen=True)

    member_id: str
    amount: Decimal
    percentage: Optional[Decimal] = None


# =============================================================================
# DERIVED VIEWS (never persisted)
# =============================================================================

class Transfer(BaseModel):
    """A suggested settlement: from_member_id pays to_member_id."""
    model_config = ConfigDict(frozen=True)

    from_member_id: str
    to_member_id: str
    amount: Decimal = Field(..., gt=0)


class GroupLedger(BaseModel):
    """
    Everything the balance engine needs for one group, read in one
    consistent snapshot.
    """

    group: Group
    members: list[Member] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)
    splits: list[Split] = Field(default_factory=list)
    payments: list[Payment] = Field(default_factory=list)

    @property
    def member_ids(self) -> list[str]:
        return [member.id for member in self.members]


class MemberSummary(BaseModel):
    """Per-member totals for the group detail view."""

    member_id: str
    name: str
    paid: Decimal = Decimal("0")
    share: Decimal = Decimal("0")
    payments_out: Decimal = Decimal("0")
    payments_in: Decimal = Decimal("0")
    balance: Decimal = Decimal("0")


class GroupSummary(BaseModel):
    """Read model combining totals, balances and settlement suggestions."""

    group_id: str
    currency_code: CurrencyCode
    expense_count: int = Field(ge=0)
    total_spent: Decimal
    members: list[MemberSummary] = Field(default_factory=list)
    settlements: list[Transfer] = Field(default_factory=list)

    @property
    def is_settled(self) -> bool:
        return not self.settlements
