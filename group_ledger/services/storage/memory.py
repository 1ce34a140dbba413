"""
In-Memory Storage Implementation

The default storage collaborator for local use and tests. Records live
in dicts keyed by ID; every read hands back a copy so callers can never
mutate stored state behind the lock.

An asyncio.Lock serialises every mutation and every snapshot read, which
is what makes replace_splits atomic with respect to load_group_ledger.
"""

import asyncio
from typing import Optional
from uuid import UUID

from group_ledger.models.audit import AuditEvent
from group_ledger.models.ledger import (
    Expense,
    Group,
    GroupLedger,
    Member,
    Payment,
    Split,
)
from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage with foreign-key style cascades."""

    def __init__(self):
        self._groups: dict[str, Group] = {}
        self._members: dict[str, Member] = {}
        self._expenses: dict[str, Expense] = {}
        self._splits: dict[str, Split] = {}
        self._payments: dict[str, Payment] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _copy(record):
        return record.model_copy(deep=True)

    def _require_group(self, group_id: str) -> None:
        if group_id not in self._groups:
            raise NotFoundError(f"Group not found: {group_id}")

    def _require_member(self, member_id: str) -> None:
        if member_id not in self._members:
            raise NotFoundError(f"Member not found: {member_id}")

    # Groups

    async def save_group(self, group: Group) -> Group:
        async with self._lock:
            if group.id in self._groups:
                raise DuplicateError(f"Group already exists: {group.id}")
            self._groups[group.id] = self._copy(group)
            return self._copy(group)

    async def get_group(self, group_id: str) -> Optional[Group]:
        group = self._groups.get(group_id)
        return self._copy(group) if group else None

    async def list_groups(self) -> list[Group]:
        groups = sorted(self._groups.values(), key=lambda g: g.created_at, reverse=True)
        return [self._copy(group) for group in groups]

    async def update_group(self, group: Group) -> Group:
        async with self._lock:
            self._require_group(group.id)
            self._groups[group.id] = self._copy(group)
            return self._copy(group)

    async def delete_group(self, group_id: str) -> bool:
        async with self._lock:
            if self._groups.pop(group_id, None) is None:
                return False

            member_ids = {m.id for m in self._members.values() if m.group_id == group_id}
            for member_id in member_ids:
                del self._members[member_id]

            for payment_id in [p.id for p in self._payments.values() if p.group_id == group_id]:
                del self._payments[payment_id]

            for expense in self._expenses.values():
                if expense.group_id == group_id:
                    self._delete_splits(expense.id)
                    expense.group_id = None
                    expense.paid_by_member_id = None

            for split_id in [s.id for s in self._splits.values() if s.member_id in member_ids]:
                del self._splits[split_id]
            return True

    # Members

    async def save_member(self, member: Member) -> Member:
        async with self._lock:
            self._require_group(member.group_id)
            if member.id in self._members:
                raise DuplicateError(f"Member already exists: {member.id}")
            for existing in self._members.values():
                if existing.group_id == member.group_id and existing.user_id == member.user_id:
                    raise DuplicateError(
                        f"User {member.user_id} is already a member of group {member.group_id}"
                    )
            self._members[member.id] = self._copy(member)
            return self._copy(member)

    async def get_member(self, member_id: str) -> Optional[Member]:
        member = self._members.get(member_id)
        return self._copy(member) if member else None

    async def get_members_by_group(self, group_id: str) -> list[Member]:
        return [self._copy(m) for m in self._group_members(group_id)]

    def _group_members(self, group_id: str) -> list[Member]:
        members = [m for m in self._members.values() if m.group_id == group_id]
        return sorted(members, key=lambda m: m.created_at)

    async def delete_member(self, member_id: str) -> bool:
        async with self._lock:
            if self._members.pop(member_id, None) is None:
                return False

            for split_id in [s.id for s in self._splits.values() if s.member_id == member_id]:
                del self._splits[split_id]

            for payment_id in [
                p.id for p in self._payments.values()
                if member_id in (p.from_member_id, p.to_member_id)
            ]:
                del self._payments[payment_id]

            for expense in self._expenses.values():
                if expense.paid_by_member_id == member_id:
                    expense.paid_by_member_id = None
            return True

    # Expenses and splits

    def _check_expense_links(self, expense: Expense) -> None:
        if expense.group_id:
            self._require_group(expense.group_id)
        if expense.paid_by_member_id:
            self._require_member(expense.paid_by_member_id)

    async def save_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            self._check_expense_links(expense)
            if expense.id in self._expenses:
                raise DuplicateError(f"Expense already exists: {expense.id}")
            self._expenses[expense.id] = self._copy(expense)
            return self._copy(expense)

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        expense = self._expenses.get(expense_id)
        return self._copy(expense) if expense else None

    async def update_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            if expense.id not in self._expenses:
                raise NotFoundError(f"Expense not found: {expense.id}")
            self._check_expense_links(expense)
            self._expenses[expense.id] = self._copy(expense)
            return self._copy(expense)

    async def delete_expense(self, expense_id: str) -> bool:
        async with self._lock:
            if self._expenses.pop(expense_id, None) is None:
                return False
            self._delete_splits(expense_id)
            return True

    def _group_expenses(self, group_id: str) -> list[Expense]:
        expenses = [e for e in self._expenses.values() if e.group_id == group_id]
        return sorted(expenses, key=lambda e: (e.date, e.created_at), reverse=True)

    async def get_expenses_by_group(self, group_id: str) -> list[Expense]:
        return [self._copy(e) for e in self._group_expenses(group_id)]

    def _expense_splits(self, expense_id: str) -> list[Split]:
        return [s for s in self._splits.values() if s.expense_id == expense_id]

    async def get_splits_by_expense(self, expense_id: str) -> list[Split]:
        return [self._copy(s) for s in self._expense_splits(expense_id)]

    def _delete_splits(self, expense_id: str) -> None:
        for split in self._expense_splits(expense_id):
            del self._splits[split.id]

    async def replace_splits(self, expense_id: str, splits: list[Split]) -> list[Split]:
        async with self._lock:
            if expense_id not in self._expenses:
                raise NotFoundError(f"Expense not found: {expense_id}")
            for split in splits:
                self._require_member(split.member_id)

            self._delete_splits(expense_id)
            for split in splits:
                stored = self._copy(split)
                stored.expense_id = expense_id
                self._splits[stored.id] = stored
            return [self._copy(s) for s in self._expense_splits(expense_id)]

    # Payments

    async def save_payment(self, payment: Payment) -> Payment:
        async with self._lock:
            self._require_group(payment.group_id)
            self._require_member(payment.from_member_id)
            self._require_member(payment.to_member_id)
            if payment.id in self._payments:
                raise DuplicateError(f"Payment already exists: {payment.id}")
            self._payments[payment.id] = self._copy(payment)
            return self._copy(payment)

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        payment = self._payments.get(payment_id)
        return self._copy(payment) if payment else None

    def _group_payments(self, group_id: str) -> list[Payment]:
        payments = [p for p in self._payments.values() if p.group_id == group_id]
        return sorted(payments, key=lambda p: (p.date, p.created_at), reverse=True)

    async def get_payments_by_group(self, group_id: str) -> list[Payment]:
        return [self._copy(p) for p in self._group_payments(group_id)]

    async def delete_payment(self, payment_id: str) -> bool:
        async with self._lock:
            return self._payments.pop(payment_id, None) is not None

    # Snapshot

    async def load_group_ledger(self, group_id: str) -> GroupLedger:
        async with self._lock:
            self._require_group(group_id)
            expenses = self._group_expenses(group_id)
            splits = [s for e in expenses for s in self._expense_splits(e.id)]
            return GroupLedger(
                group=self._copy(self._groups[group_id]),
                members=[self._copy(m) for m in self._group_members(group_id)],
                expenses=[self._copy(e) for e in expenses],
                splits=[self._copy(s) for s in splits],
                payments=[self._copy(p) for p in self._group_payments(group_id)],
            )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events. List order is chronological order."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event.model_copy(deep=True))
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return self._events[::-1][:limit]
