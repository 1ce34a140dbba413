"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Group members can view the shared ledger directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

One worksheet per record type (Groups, Members, Expenses, Splits,
Payments) plus an append-only AuditLog sheet.

TRADEOFFS:
- Not suitable for high-volume data (fine for a household or a trip)
- No transactions. replace_splits rewrites the Splits sheet with a single
  batched update, so readers see either the old or the new split set.
  Cascading deletes touch several sheets and are serialised by an
  in-process lock, which is enough for the single-writer model.
- Limited query capabilities (we filter in Python)
"""

import asyncio
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from gspread.utils import rowcol_to_a1
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from group_ledger.config import GoogleSheetsSettings, get_settings
from group_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from group_ledger.models.ledger import (
    Expense,
    ExpenseCategory,
    Group,
    GroupLedger,
    Member,
    Payment,
    Split,
)
from group_ledger.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)


GROUP_COLUMNS = [
    "id",
    "name",
    "description",
    "currency_code",
    "created_at",
    "updated_at",
]

MEMBER_COLUMNS = [
    "id",
    "group_id",
    "user_id",
    "name",
    "email",
    "created_at",
]

EXPENSE_COLUMNS = [
    "id",
    "amount",
    "currency_code",
    "base_amount",
    "category",
    "description",
    "notes",
    "date",
    "group_id",
    "paid_by_member_id",
    "created_at",
    "updated_at",
]

SPLIT_COLUMNS = [
    "id",
    "expense_id",
    "member_id",
    "amount",
    "percentage",
    "created_at",
]

PAYMENT_COLUMNS = [
    "id",
    "group_id",
    "from_member_id",
    "to_member_id",
    "amount",
    "currency_code",
    "date",
    "notes",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "entity_type",
    "entity_id",
    "group_id",
    "correlation_id",
    "description",
    "details_json",
    "error_code",
    "error_message",
]

# Transport hiccups are retried; constraint violations are not.
sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type((NotFoundError, DuplicateError)),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def _get_or_create(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_groups_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.groups_sheet_name, GROUP_COLUMNS)

    def get_members_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.members_sheet_name, MEMBER_COLUMNS)

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_splits_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.splits_sheet_name, SPLIT_COLUMNS)

    def get_payments_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(self._settings.payments_sheet_name, PAYMENT_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        return self._get_or_create(
            self._settings.audit_sheet_name,
            AUDIT_COLUMNS,
            rows=5000,  # More rows for audit log
        )


# =============================================================================
# ROW CONVERSION
# =============================================================================

def _safe_get(row: list, index: int, default: str = "") -> str:
    """Handle missing trailing columns gracefully."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


def _opt(value) -> str:
    if value is None:
        return ""
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _opt_decimal(raw: str) -> Optional[Decimal]:
    return Decimal(raw) if raw else None


def group_to_row(group: Group) -> list:
    return [
        group.id,
        group.name,
        _opt(group.description),
        group.currency_code,
        group.created_at.isoformat(),
        group.updated_at.isoformat(),
    ]


def row_to_group(row: list) -> Group:
    return Group(
        id=_safe_get(row, 0),
        name=_safe_get(row, 1),
        description=_safe_get(row, 2) or None,
        currency_code=_safe_get(row, 3),
        created_at=datetime.fromisoformat(_safe_get(row, 4)),
        updated_at=datetime.fromisoformat(_safe_get(row, 5)),
    )


def member_to_row(member: Member) -> list:
    return [
        member.id,
        member.group_id,
        member.user_id,
        member.name,
        _opt(member.email),
        member.created_at.isoformat(),
    ]


def row_to_member(row: list) -> Member:
    return Member(
        id=_safe_get(row, 0),
        group_id=_safe_get(row, 1),
        user_id=_safe_get(row, 2),
        name=_safe_get(row, 3),
        email=_safe_get(row, 4) or None,
        created_at=datetime.fromisoformat(_safe_get(row, 5)),
    )


def expense_to_row(expense: Expense) -> list:
    return [
        expense.id,
        str(expense.amount),
        expense.currency_code,
        str(expense.base_amount),
        expense.category.value,
        _opt(expense.description),
        _opt(expense.notes),
        expense.date.isoformat(),
        _opt(expense.group_id),
        _opt(expense.paid_by_member_id),
        expense.created_at.isoformat(),
        expense.updated_at.isoformat(),
    ]


def row_to_expense(row: list) -> Expense:
    return Expense(
        id=_safe_get(row, 0),
        amount=Decimal(_safe_get(row, 1)),
        currency_code=_safe_get(row, 2),
        base_amount=Decimal(_safe_get(row, 3)),
        category=ExpenseCategory(_safe_get(row, 4, ExpenseCategory.OTHER.value)),
        description=_safe_get(row, 5) or None,
        notes=_safe_get(row, 6) or None,
        date=date.fromisoformat(_safe_get(row, 7)),
        group_id=_safe_get(row, 8) or None,
        paid_by_member_id=_safe_get(row, 9) or None,
        created_at=datetime.fromisoformat(_safe_get(row, 10)),
        updated_at=datetime.fromisoformat(_safe_get(row, 11)),
    )


def split_to_row(split: Split) -> list:
    return [
        split.id,
        split.expense_id,
        split.member_id,
        str(split.amount),
        _opt(split.percentage),
        split.created_at.isoformat(),
    ]


def row_to_split(row: list) -> Split:
    return Split(
        id=_safe_get(row, 0),
        expense_id=_safe_get(row, 1),
        member_id=_safe_get(row, 2),
        amount=Decimal(_safe_get(row, 3)),
        percentage=_opt_decimal(_safe_get(row, 4)),
        created_at=datetime.fromisoformat(_safe_get(row, 5)),
    )


def payment_to_row(payment: Payment) -> list:
    return [
        payment.id,
        payment.group_id,
        payment.from_member_id,
        payment.to_member_id,
        str(payment.amount),
        payment.currency_code,
        payment.date.isoformat(),
        _opt(payment.notes),
        payment.created_at.isoformat(),
    ]


def row_to_payment(row: list) -> Payment:
    return Payment(
        id=_safe_get(row, 0),
        group_id=_safe_get(row, 1),
        from_member_id=_safe_get(row, 2),
        to_member_id=_safe_get(row, 3),
        amount=Decimal(_safe_get(row, 4)),
        currency_code=_safe_get(row, 5),
        date=date.fromisoformat(_safe_get(row, 6)),
        notes=_safe_get(row, 7) or None,
        created_at=datetime.fromisoformat(_safe_get(row, 8)),
    )


# =============================================================================
# LEDGER STORAGE
# =============================================================================

class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Records are stored as rows, one record per row, column 0 is the ID.
    Rows are parsed into typed records on every read.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._lock = asyncio.Lock()
        self._logger = structlog.get_logger(__name__)

    # -- sheet helpers --------------------------------------------------------

    def _read(self, sheet: gspread.Worksheet, parse: Callable[[list], object]) -> list:
        """Parse every non-empty data row, skipping malformed ones."""
        records = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                records.append(parse(row))
            except (ValueError, ArithmeticError) as e:
                self._logger.warning(
                    "sheets_row_skipped",
                    sheet=sheet.title,
                    row_id=row[0],
                    error=str(e),
                )
        return records

    def _find_row(self, sheet: gspread.Worksheet, record_id: str) -> Optional[int]:
        """1-based sheet row index of a record, header included."""
        for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
            if row and row[0] == record_id:
                return idx
        return None

    def _rewrite(
        self,
        sheet: gspread.Worksheet,
        columns: list[str],
        rows: list[list],
    ) -> None:
        """
        Replace the whole data area of a sheet in one update call.

        Rows left over from the previous contents are blanked so the sheet
        never holds stale records.
        """
        previous = len(sheet.get_all_values())
        values = [columns] + rows
        blank = [""] * len(columns)
        values.extend([blank] * max(0, previous - len(values)))

        if len(values) > sheet.row_count:
            sheet.add_rows(len(values) - sheet.row_count)
        sheet.update(range_name="A1", values=values)

    def _write_row(self, sheet: gspread.Worksheet, idx: int, row: list) -> None:
        end = rowcol_to_a1(idx, len(row))
        sheet.update(range_name=f"A{idx}:{end}", values=[row])

    def _members(self) -> list[Member]:
        return self._read(self._client.get_members_sheet(), row_to_member)

    def _expenses(self) -> list[Expense]:
        return self._read(self._client.get_expenses_sheet(), row_to_expense)

    def _splits(self) -> list[Split]:
        return self._read(self._client.get_splits_sheet(), row_to_split)

    def _payments(self) -> list[Payment]:
        return self._read(self._client.get_payments_sheet(), row_to_payment)

    def _require(self, sheet: gspread.Worksheet, record_id: str, what: str) -> None:
        if self._find_row(sheet, record_id) is None:
            raise NotFoundError(f"{what} not found: {record_id}")

    # -- groups ---------------------------------------------------------------

    @sheets_retry
    async def save_group(self, group: Group) -> Group:
        async with self._lock:
            try:
                sheet = self._client.get_groups_sheet()
                if self._find_row(sheet, group.id) is not None:
                    raise DuplicateError(f"Group already exists: {group.id}")
                sheet.append_row(group_to_row(group), value_input_option="RAW")
                return group
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save group: {e}")

    async def get_group(self, group_id: str) -> Optional[Group]:
        try:
            for group in self._read(self._client.get_groups_sheet(), row_to_group):
                if group.id == group_id:
                    return group
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get group: {e}")

    async def list_groups(self) -> list[Group]:
        try:
            groups = self._read(self._client.get_groups_sheet(), row_to_group)
            groups.sort(key=lambda g: g.created_at, reverse=True)
            return groups
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list groups: {e}")

    @sheets_retry
    async def update_group(self, group: Group) -> Group:
        async with self._lock:
            try:
                sheet = self._client.get_groups_sheet()
                idx = self._find_row(sheet, group.id)
                if idx is None:
                    raise NotFoundError(f"Group not found: {group.id}")
                self._write_row(sheet, idx, group_to_row(group))
                return group
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to update group: {e}")

    @sheets_retry
    async def delete_group(self, group_id: str) -> bool:
        async with self._lock:
            try:
                groups_sheet = self._client.get_groups_sheet()
                groups = self._read(groups_sheet, row_to_group)
                if not any(g.id == group_id for g in groups):
                    return False

                members = self._members()
                member_ids = {m.id for m in members if m.group_id == group_id}
                expenses = self._expenses()
                group_expense_ids = {e.id for e in expenses if e.group_id == group_id}

                self._rewrite(
                    self._client.get_splits_sheet(),
                    SPLIT_COLUMNS,
                    [
                        split_to_row(s) for s in self._splits()
                        if s.expense_id not in group_expense_ids and s.member_id not in member_ids
                    ],
                )
                self._rewrite(
                    self._client.get_payments_sheet(),
                    PAYMENT_COLUMNS,
                    [payment_to_row(p) for p in self._payments() if p.group_id != group_id],
                )
                for expense in expenses:
                    if expense.id in group_expense_ids:
                        expense.group_id = None
                        expense.paid_by_member_id = None
                self._rewrite(
                    self._client.get_expenses_sheet(),
                    EXPENSE_COLUMNS,
                    [expense_to_row(e) for e in expenses],
                )
                self._rewrite(
                    self._client.get_members_sheet(),
                    MEMBER_COLUMNS,
                    [member_to_row(m) for m in members if m.id not in member_ids],
                )
                self._rewrite(
                    groups_sheet,
                    GROUP_COLUMNS,
                    [group_to_row(g) for g in groups if g.id != group_id],
                )
                return True
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete group: {e}")

    # -- members --------------------------------------------------------------

    @sheets_retry
    async def save_member(self, member: Member) -> Member:
        async with self._lock:
            try:
                self._require(self._client.get_groups_sheet(), member.group_id, "Group")
                for existing in self._members():
                    if existing.id == member.id:
                        raise DuplicateError(f"Member already exists: {member.id}")
                    if existing.group_id == member.group_id and existing.user_id == member.user_id:
                        raise DuplicateError(
                            f"User {member.user_id} is already a member of group {member.group_id}"
                        )
                self._client.get_members_sheet().append_row(
                    member_to_row(member), value_input_option="RAW"
                )
                return member
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save member: {e}")

    async def get_member(self, member_id: str) -> Optional[Member]:
        try:
            for member in self._members():
                if member.id == member_id:
                    return member
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get member: {e}")

    async def get_members_by_group(self, group_id: str) -> list[Member]:
        try:
            members = [m for m in self._members() if m.group_id == group_id]
            members.sort(key=lambda m: m.created_at)
            return members
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list members: {e}")

    @sheets_retry
    async def delete_member(self, member_id: str) -> bool:
        async with self._lock:
            try:
                members = self._members()
                if not any(m.id == member_id for m in members):
                    return False

                self._rewrite(
                    self._client.get_splits_sheet(),
                    SPLIT_COLUMNS,
                    [split_to_row(s) for s in self._splits() if s.member_id != member_id],
                )
                self._rewrite(
                    self._client.get_payments_sheet(),
                    PAYMENT_COLUMNS,
                    [
                        payment_to_row(p) for p in self._payments()
                        if member_id not in (p.from_member_id, p.to_member_id)
                    ],
                )
                expenses = self._expenses()
                if any(e.paid_by_member_id == member_id for e in expenses):
                    for expense in expenses:
                        if expense.paid_by_member_id == member_id:
                            expense.paid_by_member_id = None
                    self._rewrite(
                        self._client.get_expenses_sheet(),
                        EXPENSE_COLUMNS,
                        [expense_to_row(e) for e in expenses],
                    )
                self._rewrite(
                    self._client.get_members_sheet(),
                    MEMBER_COLUMNS,
                    [member_to_row(m) for m in members if m.id != member_id],
                )
                return True
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete member: {e}")

    # -- expenses and splits --------------------------------------------------

    def _check_expense_links(self, expense: Expense) -> None:
        if expense.group_id:
            self._require(self._client.get_groups_sheet(), expense.group_id, "Group")
        if expense.paid_by_member_id:
            self._require(self._client.get_members_sheet(), expense.paid_by_member_id, "Member")

    @sheets_retry
    async def save_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            try:
                self._check_expense_links(expense)
                sheet = self._client.get_expenses_sheet()
                if self._find_row(sheet, expense.id) is not None:
                    raise DuplicateError(f"Expense already exists: {expense.id}")
                sheet.append_row(expense_to_row(expense), value_input_option="RAW")
                return expense
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save expense: {e}")

    async def get_expense(self, expense_id: str) -> Optional[Expense]:
        try:
            for expense in self._expenses():
                if expense.id == expense_id:
                    return expense
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get expense: {e}")

    @sheets_retry
    async def update_expense(self, expense: Expense) -> Expense:
        async with self._lock:
            try:
                sheet = self._client.get_expenses_sheet()
                idx = self._find_row(sheet, expense.id)
                if idx is None:
                    raise NotFoundError(f"Expense not found: {expense.id}")
                self._check_expense_links(expense)
                self._write_row(sheet, idx, expense_to_row(expense))
                return expense
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to update expense: {e}")

    @sheets_retry
    async def delete_expense(self, expense_id: str) -> bool:
        async with self._lock:
            try:
                sheet = self._client.get_expenses_sheet()
                idx = self._find_row(sheet, expense_id)
                if idx is None:
                    return False
                self._rewrite(
                    self._client.get_splits_sheet(),
                    SPLIT_COLUMNS,
                    [split_to_row(s) for s in self._splits() if s.expense_id != expense_id],
                )
                sheet.delete_rows(idx)
                return True
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete expense: {e}")

    async def get_expenses_by_group(self, group_id: str) -> list[Expense]:
        try:
            expenses = [e for e in self._expenses() if e.group_id == group_id]
            expenses.sort(key=lambda e: (e.date, e.created_at), reverse=True)
            return expenses
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")

    async def get_splits_by_expense(self, expense_id: str) -> list[Split]:
        try:
            return [s for s in self._splits() if s.expense_id == expense_id]
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get splits: {e}")

    @sheets_retry
    async def replace_splits(self, expense_id: str, splits: list[Split]) -> list[Split]:
        async with self._lock:
            try:
                self._require(self._client.get_expenses_sheet(), expense_id, "Expense")
                member_ids = {m.id for m in self._members()}
                for split in splits:
                    if split.member_id not in member_ids:
                        raise NotFoundError(f"Member not found: {split.member_id}")

                new_splits = [s.model_copy(update={"expense_id": expense_id}) for s in splits]
                kept = [s for s in self._splits() if s.expense_id != expense_id]
                # One update call: readers see the old set or the new one
                self._rewrite(
                    self._client.get_splits_sheet(),
                    SPLIT_COLUMNS,
                    [split_to_row(s) for s in kept + new_splits],
                )
                return new_splits
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to replace splits: {e}")

    # -- payments -------------------------------------------------------------

    @sheets_retry
    async def save_payment(self, payment: Payment) -> Payment:
        async with self._lock:
            try:
                self._require(self._client.get_groups_sheet(), payment.group_id, "Group")
                members_sheet = self._client.get_members_sheet()
                self._require(members_sheet, payment.from_member_id, "Member")
                self._require(members_sheet, payment.to_member_id, "Member")
                sheet = self._client.get_payments_sheet()
                if self._find_row(sheet, payment.id) is not None:
                    raise DuplicateError(f"Payment already exists: {payment.id}")
                sheet.append_row(payment_to_row(payment), value_input_option="RAW")
                return payment
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to save payment: {e}")

    async def get_payment(self, payment_id: str) -> Optional[Payment]:
        try:
            for payment in self._payments():
                if payment.id == payment_id:
                    return payment
            return None
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to get payment: {e}")

    async def get_payments_by_group(self, group_id: str) -> list[Payment]:
        try:
            payments = [p for p in self._payments() if p.group_id == group_id]
            payments.sort(key=lambda p: (p.date, p.created_at), reverse=True)
            return payments
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to list payments: {e}")

    @sheets_retry
    async def delete_payment(self, payment_id: str) -> bool:
        async with self._lock:
            try:
                sheet = self._client.get_payments_sheet()
                idx = self._find_row(sheet, payment_id)
                if idx is None:
                    return False
                sheet.delete_rows(idx)
                return True
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to delete payment: {e}")

    # -- snapshot -------------------------------------------------------------

    async def load_group_ledger(self, group_id: str) -> GroupLedger:
        async with self._lock:
            try:
                group = None
                for candidate in self._read(self._client.get_groups_sheet(), row_to_group):
                    if candidate.id == group_id:
                        group = candidate
                if group is None:
                    raise NotFoundError(f"Group not found: {group_id}")

                expenses = [e for e in self._expenses() if e.group_id == group_id]
                expenses.sort(key=lambda e: (e.date, e.created_at), reverse=True)
                expense_ids = {e.id for e in expenses}
                members = [m for m in self._members() if m.group_id == group_id]
                members.sort(key=lambda m: m.created_at)
                payments = [p for p in self._payments() if p.group_id == group_id]
                payments.sort(key=lambda p: (p.date, p.created_at), reverse=True)

                return GroupLedger(
                    group=group,
                    members=members,
                    expenses=expenses,
                    splits=[s for s in self._splits() if s.expense_id in expense_ids],
                    payments=payments,
                )
            except StorageError:
                raise
            except Exception as e:
                raise StorageError(f"Failed to load group ledger: {e}")


# =============================================================================
# AUDIT STORAGE
# =============================================================================

class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._logger = structlog.get_logger(__name__)

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            entity_type=_safe_get(row, 4) or None,
            entity_id=_safe_get(row, 5) or None,
            group_id=_safe_get(row, 6) or None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_code=_safe_get(row, 10) or None,
            error_message=_safe_get(row, 11) or None,
        )

    def _all_events(self) -> list[AuditEvent]:
        events = []
        for row in self._client.get_audit_sheet().get_all_values()[1:]:
            if not row or not row[0]:
                continue
            try:
                events.append(self._row_to_event(row))
            except ValueError:
                continue
        return events

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            # Audit logging should not break the main flow
            self._logger.warning(
                "audit_write_failed",
                event_id=str(event.event_id),
                error=str(e),
            )
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = [e for e in self._all_events() if e.correlation_id == correlation_id]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        try:
            events = [
                e for e in self._all_events()
                if e.entity_type == entity_type and e.entity_id == entity_id
            ]
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._all_events()
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
