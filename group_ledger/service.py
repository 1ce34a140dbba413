"""
Ledger Service

This module ties together the split calculator, the balance engine and
the settlement planner with the storage collaborator, and defines the
operations the UI layer and the expense-creation workflow call:

1. Splitting (equal / percentage / custom amount, always a full replace)
2. Balances and settlement suggestions (recomputed on every call)
3. Payments, groups, members and expenses (plain CRUD)

DESIGN DECISION: The service enforces the boundaries:
- Every input is validated before the first write, so a rejected split
  or payment leaves storage exactly as it was
- Storage errors propagate unchanged; nothing is retried here
- Every mutation and every rejection is audited

Storage is injected at construction. There is no module-level connection.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional, Sequence, Union
from uuid import UUID

import structlog

from group_ledger.audit import AuditLogger, create_correlation_id
from group_ledger.config import LedgerSettings, get_settings
from group_ledger.errors import (
    InvalidAmountError,
    InvalidSplitError,
    NotFoundError,
    StorageError,
)
from group_ledger.ledger import (
    ledger_balances,
    member_totals,
    split_by_amount,
    split_by_percentage,
    split_equally,
    suggest_settlements,
)
from group_ledger.ledger.money import Number, require_positive, to_decimal
from group_ledger.models.ledger import (
    AmountShare,
    Expense,
    ExpenseCategory,
    Group,
    GroupSummary,
    Member,
    Payment,
    PercentageShare,
    Split,
    SplitShare,
    SplitType,
    Transfer,
    new_id,
    utcnow,
)
from group_ledger.services.currency import CurrencyConverter, StaticRateConverter
from group_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from group_ledger.validation import SplitValidator


PercentageInput = Union[PercentageShare, Mapping[str, Any], tuple]
AmountInput = Union[AmountShare, Mapping[str, Any], tuple]


def _share_parts(share, value_key: str) -> tuple[str, Decimal]:
    """(member_id, value) from a {"member_id", value_key} mapping or a pair."""
    if isinstance(share, Mapping):
        member_id, value = share.get("member_id"), share.get(value_key)
    else:
        try:
            member_id, value = share
        except (TypeError, ValueError):
            raise InvalidSplitError(f"A share must be a (member_id, value) pair, got {share!r}")
    if not member_id:
        raise InvalidSplitError("Every share needs a member_id")
    return member_id, to_decimal(value)


def _percentage_shares(shares: Sequence[PercentageInput]) -> list[PercentageShare]:
    """Accept PercentageShare, {"member_id", "percentage"} or (member_id, percentage)."""
    result = []
    for share in shares:
        if isinstance(share, PercentageShare):
            result.append(share)
        else:
            member_id, percentage = _share_parts(share, "percentage")
            result.append(PercentageShare(member_id=member_id, percentage=percentage))
    return result


def _amount_shares(shares: Sequence[AmountInput]) -> list[AmountShare]:
    """Accept AmountShare, {"member_id", "amount"} or (member_id, amount)."""
    result = []
    for share in shares:
        if isinstance(share, AmountShare):
            result.append(share)
        else:
            member_id, amount = _share_parts(share, "amount")
            result.append(AmountShare(member_id=member_id, amount=amount))
    return result


class LedgerService:
    """
    Facade over the group ledger.

    All operations are coroutines; each awaits the storage collaborator
    and nothing else. Balances and settlements are never cached.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        currency_converter: Optional[CurrencyConverter] = None,
        id_generator: Optional[Callable[[], str]] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().ledger
        self._converter = currency_converter or StaticRateConverter(
            base_currency=self._settings.default_currency,
        )
        self._new_id = id_generator or new_id
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = SplitValidator(self._settings)
        self._logger = structlog.get_logger(__name__)

    @property
    def places(self) -> int:
        return self._settings.money_decimal_places

    # =========================================================================
    # Internal helpers
    # =========================================================================

    async def _stored(self, operation: str, awaitable, correlation_id: Optional[UUID] = None):
        """Await a storage call, auditing failures before re-raising them."""
        try:
            return await awaitable
        except StorageError as e:
            await self._audit_logger.log_storage_failed(
                operation=operation,
                error=e,
                correlation_id=correlation_id,
            )
            raise

    async def _require_group(self, group_id: str) -> Group:
        group = await self._stored("get_group", self._storage.get_group(group_id))
        if group is None:
            raise NotFoundError(f"Group not found: {group_id}")
        return group

    async def _require_expense(self, expense_id: str) -> Expense:
        expense = await self._stored("get_expense", self._storage.get_expense(expense_id))
        if expense is None:
            raise NotFoundError(f"Expense not found: {expense_id}")
        return expense

    async def _require_group_members(self, group_id: str, member_ids: Sequence[str]) -> None:
        """Every id must be a member of the group."""
        members = await self._stored(
            "get_members_by_group",
            self._storage.get_members_by_group(group_id),
        )
        known = {member.id for member in members}
        for member_id in member_ids:
            if member_id not in known:
                raise NotFoundError(f"Member {member_id} is not in group {group_id}")

    def _check_total(self, expense: Expense, total_amount: Optional[Number]) -> Decimal:
        """The split total must be the expense's base amount."""
        if total_amount is None:
            return expense.base_amount
        total = require_positive(total_amount, self.places, "total_amount")
        if abs(total - expense.base_amount) > self._validator.tolerance:
            raise InvalidSplitError(
                f"Split total {total} does not match expense amount {expense.base_amount}",
                expected=expense.base_amount,
                actual=total,
            )
        return expense.base_amount

    async def _split_rejected(
        self,
        expense_id: Optional[str],
        split_type: SplitType,
        error: Exception,
        correlation_id: Optional[UUID],
    ) -> None:
        difference = getattr(error, "difference", None)
        await self._audit_logger.log_split_validation_failed(
            expense_id=expense_id,
            split_type=split_type.value,
            message=str(error),
            difference=str(difference) if difference is not None else None,
            correlation_id=correlation_id,
        )

    def _build_shares(
        self,
        split_type: SplitType,
        total: Decimal,
        member_ids: Optional[Sequence[str]],
        percentages: Optional[Sequence[PercentageInput]],
        amounts: Optional[Sequence[AmountInput]],
    ) -> list[SplitShare]:
        """Validate the split inputs and run the calculator. Never writes."""
        if split_type == SplitType.EQUAL:
            return split_equally(total, member_ids or [], self.places)

        if split_type == SplitType.PERCENTAGE:
            shares = _percentage_shares(percentages or [])
            self._validator.validate_percentages(shares)
            return split_by_percentage(total, shares, self.places, fill_total=True)

        shares = _amount_shares(amounts or [])
        result = split_by_amount(total, shares, self.places)
        self._validator.validate_amounts(shares, total)
        return result

    async def _replace_splits(
        self,
        expense: Expense,
        split_type: SplitType,
        shares: list[SplitShare],
        correlation_id: Optional[UUID],
    ) -> list[Split]:
        splits = [
            Split(
                id=self._new_id(),
                expense_id=expense.id,
                member_id=share.member_id,
                amount=share.amount,
                percentage=share.percentage,
            )
            for share in shares
        ]
        stored = await self._stored(
            "replace_splits",
            self._storage.replace_splits(expense.id, splits),
            correlation_id,
        )
        await self._audit_logger.log_splits_replaced(
            expense_id=expense.id,
            split_type=split_type.value,
            shares={split.member_id: str(split.amount) for split in stored},
            correlation_id=correlation_id,
        )
        return stored

    async def _split(
        self,
        expense_id: str,
        split_type: SplitType,
        total_amount: Optional[Number] = None,
        member_ids: Optional[Sequence[str]] = None,
        percentages: Optional[Sequence[PercentageInput]] = None,
        amounts: Optional[Sequence[AmountInput]] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Split]:
        correlation_id = correlation_id or create_correlation_id()
        expense = await self._require_expense(expense_id)

        try:
            total = self._check_total(expense, total_amount)
            shares = self._build_shares(split_type, total, member_ids, percentages, amounts)
        except (InvalidSplitError, InvalidAmountError) as e:
            await self._split_rejected(expense_id, split_type, e, correlation_id)
            raise

        if expense.group_id:
            await self._require_group_members(
                expense.group_id,
                [share.member_id for share in shares],
            )
        return await self._replace_splits(expense, split_type, shares, correlation_id)

    # =========================================================================
    # Splitting
    # =========================================================================

    async def split_equally(
        self,
        expense_id: str,
        member_ids: Sequence[str],
        total_amount: Optional[Number] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Split]:
        """
        Replace the expense's splits with an equal share for each member.

        total_amount defaults to the expense's base amount; when given it
        must match it.

        Raises:
            NotFoundError: Expense or a member doesn't exist
            InvalidSplitError: No members, a duplicate member, or a total
                that doesn't match the expense
            InvalidAmountError: Non-positive total
        """
        return await self._split(
            expense_id,
            SplitType.EQUAL,
            total_amount=total_amount,
            member_ids=member_ids,
            correlation_id=correlation_id,
        )

    async def split_by_percentage(
        self,
        expense_id: str,
        shares: Sequence[PercentageInput],
        total_amount: Optional[Number] = None,
        correlation_id: Optional[UUID] = None,
    ) -> list[Split]:
        """
        Replace the expense's splits with percentage shares.

        Raises:
            InvalidSplitError: Percentages don't add up to 100 (within
                tolerance); the error carries the difference
            InvalidAmountError: A negative percentage
        """
        return await self._split(
            expense_id,
            SplitType.PERCENTAGE,
            total_amount=total_amount,
            percentages=shares,
            correlation_id=correlation_id,
        )

    async def split_by_amount(
        self,
        expense_id: str,
        shares: Sequence[AmountInput],
        correlation_id: Optional[UUID] = None,
    ) -> list[Split]:
        """
        Replace the expense's splits with custom amounts.

        Raises:
            InvalidSplitError: Amounts don't add up to the expense amount
            InvalidAmountError: A negative amount
        """
        return await self._split(
            expense_id,
            SplitType.CUSTOM,
            amounts=shares,
            correlation_id=correlation_id,
        )

    async def get_expense_splits(self, expense_id: str) -> list[Split]:
        return await self._stored(
            "get_splits_by_expense",
            self._storage.get_splits_by_expense(expense_id),
        )

    # =========================================================================
    # Balances and settlement
    # =========================================================================

    async def calculate_group_balances(self, group_id: str) -> dict[str, Decimal]:
        """
        Net balance per member, replayed from one storage snapshot.

        Positive means the group owes the member.
        """
        ledger = await self._stored(
            "load_group_ledger",
            self._storage.load_group_ledger(group_id),
        )
        return ledger_balances(ledger)

    async def get_settlement_suggestions(self, group_id: str) -> list[Transfer]:
        """Who should pay whom to bring every balance in the group to zero."""
        balances = await self.calculate_group_balances(group_id)
        return suggest_settlements(balances, self.places)

    async def suggest_settlements(self, group_id: str) -> list[Transfer]:
        return await self.get_settlement_suggestions(group_id)

    async def get_group_summary(self, group_id: str) -> GroupSummary:
        """Totals, per-member breakdown and settlements for the group view."""
        ledger = await self._stored(
            "load_group_ledger",
            self._storage.load_group_ledger(group_id),
        )
        balances = ledger_balances(ledger)
        return GroupSummary(
            group_id=ledger.group.id,
            currency_code=ledger.group.currency_code,
            expense_count=len(ledger.expenses),
            total_spent=sum((e.base_amount for e in ledger.expenses), Decimal("0")),
            members=member_totals(ledger),
            settlements=suggest_settlements(balances, self.places),
        )

    # =========================================================================
    # Payments
    # =========================================================================

    async def record_payment(
        self,
        group_id: str,
        from_member_id: str,
        to_member_id: str,
        amount: Number,
        currency_code: str,
        payment_date: date,
        notes: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Payment:
        """
        Record money that changed hands between two members.

        Raises:
            NotFoundError: Group missing, or either member not in it
            InvalidAmountError: Non-positive amount, same member on both
                sides, or a currency other than the group's
        """
        correlation_id = correlation_id or create_correlation_id()
        group = await self._require_group(group_id)
        value = self._validator.validate_payment(
            group, from_member_id, to_member_id, amount, currency_code,
        )
        await self._require_group_members(group_id, [from_member_id, to_member_id])

        payment = Payment(
            id=self._new_id(),
            group_id=group_id,
            from_member_id=from_member_id,
            to_member_id=to_member_id,
            amount=value,
            currency_code=group.currency_code,
            date=payment_date,
            notes=notes,
        )
        saved = await self._stored(
            "save_payment",
            self._storage.save_payment(payment),
            correlation_id,
        )
        await self._audit_logger.log_payment_recorded(
            payment_id=saved.id,
            group_id=group_id,
            from_member_id=from_member_id,
            to_member_id=to_member_id,
            amount=str(saved.amount),
            correlation_id=correlation_id,
        )
        return saved

    async def delete_payment(self, payment_id: str) -> None:
        """
        Raises:
            NotFoundError: No payment with this ID
        """
        deleted = await self._stored(
            "delete_payment",
            self._storage.delete_payment(payment_id),
        )
        if not deleted:
            raise NotFoundError(f"Payment not found: {payment_id}")
        await self._audit_logger.log_payment_deleted(payment_id=payment_id)

    async def get_payments(self, group_id: str) -> list[Payment]:
        return await self._stored(
            "get_payments_by_group",
            self._storage.get_payments_by_group(group_id),
        )

    # =========================================================================
    # Groups and members
    # =========================================================================

    async def create_group(
        self,
        name: str,
        currency_code: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Group:
        group = Group(
            id=self._new_id(),
            name=name,
            description=description,
            currency_code=currency_code or self._settings.default_currency,
        )
        saved = await self._stored("save_group", self._storage.save_group(group))
        await self._audit_logger.log_group_created(
            group_id=saved.id,
            name=saved.name,
            currency_code=saved.currency_code,
        )
        return saved

    async def get_group(self, group_id: str) -> Optional[Group]:
        return await self._stored("get_group", self._storage.get_group(group_id))

    async def list_groups(self) -> list[Group]:
        return await self._stored("list_groups", self._storage.list_groups())

    async def update_group(
        self,
        group_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
        currency_code: Optional[str] = None,
    ) -> Group:
        """
        Change a group's name, description or currency.

        Raises:
            NotFoundError: No group with this ID
        """
        group = await self._require_group(group_id)
        changes = {
            key: value
            for key, value in (
                ("name", name),
                ("description", description),
                ("currency_code", currency_code),
            )
            if value is not None
        }
        updated = Group.model_validate({
            **group.model_dump(),
            **changes,
            "updated_at": utcnow(),
        })
        saved = await self._stored("update_group", self._storage.update_group(updated))
        await self._audit_logger.log_group_updated(group_id=group_id, changes=changes)
        return saved

    async def delete_group(self, group_id: str) -> bool:
        """Delete a group with its members and payments. Its expenses become personal."""
        deleted = await self._stored("delete_group", self._storage.delete_group(group_id))
        if deleted:
            await self._audit_logger.log_group_deleted(group_id=group_id)
        return deleted

    async def get_group_members(self, group_id: str) -> list[Member]:
        return await self._stored(
            "get_members_by_group",
            self._storage.get_members_by_group(group_id),
        )

    async def add_member(
        self,
        group_id: str,
        user_id: str,
        name: str,
        email: Optional[str] = None,
    ) -> Member:
        """
        Add a user to a group.

        Raises:
            NotFoundError: No group with this ID
            DuplicateError: The user is already a member
        """
        member = Member(
            id=self._new_id(),
            group_id=group_id,
            user_id=user_id,
            name=name,
            email=email,
        )
        saved = await self._stored("save_member", self._storage.save_member(member))
        await self._audit_logger.log_member_added(
            member_id=saved.id,
            group_id=group_id,
            user_id=user_id,
        )
        return saved

    async def accept_invite(
        self,
        group_id: str,
        user_id: str,
        name: str,
        email: Optional[str] = None,
    ) -> Member:
        """Join a group from an invite. Accepting twice returns the existing member."""
        await self._require_group(group_id)
        for member in await self.get_group_members(group_id):
            if member.user_id == user_id:
                return member
        return await self.add_member(group_id, user_id, name, email)

    async def remove_member(self, member_id: str) -> bool:
        """
        Hard-delete a member with their splits and payments.

        Expenses they paid stay in the group without a payer, so the
        group's balances no longer add up to zero until those expenses
        are re-split or reassigned.
        """
        member = await self._stored("get_member", self._storage.get_member(member_id))
        deleted = await self._stored("delete_member", self._storage.delete_member(member_id))
        if deleted:
            await self._audit_logger.log_member_removed(
                member_id=member_id,
                group_id=member.group_id if member else None,
            )
        return deleted

    # =========================================================================
    # Expenses
    # =========================================================================

    async def _base_amount(self, amount: Decimal, currency_code: str, group: Optional[Group]) -> Decimal:
        """Entered amount converted into the group (or default) currency."""
        target = group.currency_code if group else self._settings.default_currency
        converted = await self._converter.convert(amount, currency_code, target)
        return require_positive(converted, self.places, "base_amount")

    async def create_expense(
        self,
        amount: Number,
        currency_code: str,
        expense_date: date,
        category: ExpenseCategory = ExpenseCategory.OTHER,
        description: Optional[str] = None,
        notes: Optional[str] = None,
        group_id: Optional[str] = None,
        paid_by_member_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Expense:
        """
        Record an expense, personal or in a group.

        The entered amount is converted into the group's currency (the
        default currency for personal expenses) and stored as base_amount.
        No splits are created.
        """
        correlation_id = correlation_id or create_correlation_id()
        value = require_positive(amount, self.places)
        group = await self._require_group(group_id) if group_id else None
        if group and paid_by_member_id:
            await self._require_group_members(group.id, [paid_by_member_id])

        expense = Expense(
            id=self._new_id(),
            amount=value,
            currency_code=currency_code,
            base_amount=await self._base_amount(value, currency_code, group),
            category=category,
            description=description,
            notes=notes,
            date=expense_date,
            group_id=group_id,
            paid_by_member_id=paid_by_member_id,
        )
        saved = await self._stored(
            "save_expense",
            self._storage.save_expense(expense),
            correlation_id,
        )
        await self._audit_logger.log_expense_created(
            expense_id=saved.id,
            group_id=saved.group_id,
            base_amount=str(saved.base_amount),
            correlation_id=correlation_id,
        )
        return saved

    async def add_group_expense(
        self,
        group_id: str,
        paid_by_member_id: str,
        amount: Number,
        currency_code: str,
        expense_date: date,
        split_type: SplitType = SplitType.EQUAL,
        member_ids: Optional[Sequence[str]] = None,
        percentages: Optional[Sequence[PercentageInput]] = None,
        amounts: Optional[Sequence[AmountInput]] = None,
        category: ExpenseCategory = ExpenseCategory.OTHER,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> tuple[Expense, list[Split]]:
        """
        Create a group expense and split it in one step.

        Flow:
        1. Check the group, the payer and every split member exist
        2. Convert the amount into the group currency
        3. Compute and validate the split
        4. Save the expense, then its splits

        Steps 1-3 run before anything is written. If saving the splits
        fails, the expense just saved is deleted again and the splits error
        is re-raised. A failed delete is audited as a system error and
        does not replace the splits error.

        member_ids defaults to every member of the group for an equal split.
        """
        correlation_id = create_correlation_id()
        group = await self._require_group(group_id)
        members = await self.get_group_members(group_id)
        await self._require_group_members(group_id, [paid_by_member_id])

        value = require_positive(amount, self.places)
        base_amount = await self._base_amount(value, currency_code, group)

        if split_type == SplitType.EQUAL and member_ids is None:
            member_ids = [member.id for member in members]

        try:
            shares = self._build_shares(split_type, base_amount, member_ids, percentages, amounts)
        except (InvalidSplitError, InvalidAmountError) as e:
            await self._split_rejected(None, split_type, e, correlation_id)
            raise
        await self._require_group_members(group_id, [share.member_id for share in shares])

        expense = await self.create_expense(
            amount=value,
            currency_code=currency_code,
            expense_date=expense_date,
            category=category,
            description=description,
            notes=notes,
            group_id=group_id,
            paid_by_member_id=paid_by_member_id,
            correlation_id=correlation_id,
        )
        try:
            splits = await self._replace_splits(expense, split_type, shares, correlation_id)
        except StorageError:
            self._logger.warning("expense_rolled_back", expense_id=expense.id)
            try:
                await self._stored(
                    "delete_expense",
                    self._storage.delete_expense(expense.id),
                    correlation_id,
                )
            except StorageError as rollback_error:
                # The expense is left behind without splits
                await self._audit_logger.log_error(
                    error_type="expense_rollback_failed",
                    error_message=str(rollback_error),
                    details={"expense_id": expense.id, "group_id": group_id},
                    correlation_id=correlation_id,
                )
            raise
        return expense, splits

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        return await self._stored("get_expense", self._storage.get_expense(expense_id))

    async def get_group_expenses(self, group_id: str) -> list[Expense]:
        return await self._stored(
            "get_expenses_by_group",
            self._storage.get_expenses_by_group(group_id),
        )

    async def update_expense(
        self,
        expense_id: str,
        amount: Optional[Number] = None,
        currency_code: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
        expense_date: Optional[date] = None,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Expense:
        """
        Change an expense. base_amount is recomputed when the amount or
        currency changes; existing splits are left as they are.

        Raises:
            NotFoundError: No expense with this ID
        """
        expense = await self._require_expense(expense_id)

        changes: dict[str, Any] = {}
        if amount is not None:
            changes["amount"] = require_positive(amount, self.places)
        if currency_code is not None:
            changes["currency_code"] = currency_code
        if category is not None:
            changes["category"] = ExpenseCategory(category).value
        if expense_date is not None:
            changes["date"] = expense_date
        if description is not None:
            changes["description"] = description
        if notes is not None:
            changes["notes"] = notes

        data = {**expense.model_dump(), **changes, "updated_at": utcnow()}
        if "amount" in changes or "currency_code" in changes:
            group = await self._require_group(expense.group_id) if expense.group_id else None
            data["base_amount"] = await self._base_amount(
                Decimal(data["amount"]), data["currency_code"], group,
            )
            if data["base_amount"] != expense.base_amount:
                self._logger.warning(
                    "expense_splits_stale",
                    expense_id=expense_id,
                    base_amount=str(data["base_amount"]),
                )

        updated = Expense.model_validate(data)
        saved = await self._stored("update_expense", self._storage.update_expense(updated))
        await self._audit_logger.log_expense_updated(
            expense_id=expense_id,
            group_id=saved.group_id,
            changes={key: str(value) for key, value in changes.items()},
        )
        return saved

    async def delete_expense(self, expense_id: str) -> bool:
        """Delete an expense and its splits."""
        expense = await self._stored("get_expense", self._storage.get_expense(expense_id))
        deleted = await self._stored("delete_expense", self._storage.delete_expense(expense_id))
        if deleted:
            await self._audit_logger.log_expense_deleted(
                expense_id=expense_id,
                group_id=expense.group_id if expense else None,
            )
        return deleted


def create_ledger_service(
    use_storage: bool = True,
) -> tuple[LedgerService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create a wired LedgerService.

    Args:
        use_storage: Whether to honour the configured storage backend.
                    Set to False for in-memory storage (tests, local use).

    Returns:
        (ledger_service, sheets_client)
    """
    settings = get_settings()
    logger = structlog.get_logger(__name__)
    sheets_client = None

    if use_storage and settings.app.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Sheets not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            storage = InMemoryLedgerStorage()
            audit_logger = AuditLogger(InMemoryAuditStorage())
    else:
        storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    service = LedgerService(
        storage=storage,
        currency_converter=StaticRateConverter(
            base_currency=settings.ledger.default_currency,
            rates=settings.app.exchange_rates_map,
        ),
        audit_logger=audit_logger,
        settings=settings.ledger,
    )
    return service, sheets_client
