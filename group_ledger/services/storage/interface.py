"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Inject the storage handle into the ledger service (no global connection)
2. Use in-memory storage for testing
3. Swap Google Sheets for a real database later
4. Keep ledger logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Every method returns typed records, never raw rows.

CONSISTENCY CONTRACT:
- replace_splits is atomic: old splits are gone and new ones present in
  one step, never half of it
- load_group_ledger reads one consistent snapshot, so a balance
  computation can never see a split set mid-replacement
- Deletes cascade the way foreign keys would (see each method)
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from group_ledger.errors import (
    ConnectionError,
    DuplicateError,
    NotFoundError,
    StorageError,
)
from group_ledger.models.audit import AuditEvent
from group_ledger.models.ledger import (
    Expense,
    Group,
    GroupLedger,
    Member,
    Payment,
    Split,
)


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (in-memory, Google Sheets, SQLite, etc.)
    must implement these methods.
    """

    # -------------------------------------------------------------------------
    # Groups
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_group(self, group: Group) -> Group:
        """
        Insert a new group.

        Raises:
            DuplicateError: If a group with this ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_group(self, group_id: str) -> Optional[Group]:
        """Retrieve a group by ID, or None."""
        pass

    @abstractmethod
    async def list_groups(self) -> list[Group]:
        """All groups, newest first."""
        pass

    @abstractmethod
    async def update_group(self, group: Group) -> Group:
        """
        Overwrite an existing group.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass

    @abstractmethod
    async def delete_group(self, group_id: str) -> bool:
        """
        Delete a group.

        Cascades: members, payments, and splits of the group's expenses are
        deleted; the group's expenses keep existing with group_id and
        paid_by_member_id cleared.

        Returns:
            True if something was deleted
        """
        pass

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_member(self, member: Member) -> Member:
        """
        Insert a member.

        Raises:
            NotFoundError: If the member's group doesn't exist
            DuplicateError: If (group_id, user_id) is already a member
        """
        pass

    @abstractmethod
    async def get_member(self, member_id: str) -> Optional[Member]:
        pass

    @abstractmethod
    async def get_members_by_group(self, group_id: str) -> list[Member]:
        """Members of a group, oldest first."""
        pass

    @abstractmethod
    async def delete_member(self, member_id: str) -> bool:
        """
        Hard-delete a member.

        Cascades: the member's splits and any payment from or to them are
        deleted; expenses they paid keep existing with paid_by_member_id
        cleared.
        """
        pass

    # -------------------------------------------------------------------------
    # Expenses and splits
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_expense(self, expense: Expense) -> Expense:
        """
        Insert an expense.

        Raises:
            NotFoundError: If group_id or paid_by_member_id is set but missing
        """
        pass

    @abstractmethod
    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> Expense:
        """
        Overwrite an existing expense. Splits are untouched.

        Raises:
            NotFoundError: If the expense doesn't exist
        """
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: str) -> bool:
        """Delete an expense and all of its splits."""
        pass

    @abstractmethod
    async def get_expenses_by_group(self, group_id: str) -> list[Expense]:
        """A group's expenses, newest date first."""
        pass

    @abstractmethod
    async def get_splits_by_expense(self, expense_id: str) -> list[Split]:
        pass

    @abstractmethod
    async def replace_splits(self, expense_id: str, splits: list[Split]) -> list[Split]:
        """
        Atomically delete all splits of an expense and insert new ones.

        Raises:
            NotFoundError: If the expense or any split member doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Payments
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_payment(self, payment: Payment) -> Payment:
        """
        Insert a payment.

        Raises:
            NotFoundError: If the group or either member doesn't exist
        """
        pass

    @abstractmethod
    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        pass

    @abstractmethod
    async def get_payments_by_group(self, group_id: str) -> list[Payment]:
        """A group's payments, newest first."""
        pass

    @abstractmethod
    async def delete_payment(self, payment_id: str) -> bool:
        pass

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    @abstractmethod
    async def load_group_ledger(self, group_id: str) -> GroupLedger:
        """
        Read a group with its members, expenses, their splits and payments
        in one consistent snapshot.

        Raises:
            NotFoundError: If the group doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """All events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """All events for a specific entity, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """The most recent audit events, newest first."""
        pass


__all__ = [
    "AuditStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "LedgerStorageInterface",
    "NotFoundError",
    "StorageError",
]
