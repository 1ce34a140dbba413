"""
Ledger Error Taxonomy

Every failure the ledger reports carries an ErrorKind so callers (the UI
layer) can decide on user-facing messaging without parsing messages.

POLICY:
- INVALID_AMOUNT / INVALID_SPLIT are raised before any write is attempted
- NOT_FOUND / STORAGE_FAILURE come from the storage collaborator unchanged
- Nothing here is retried or silently recovered
"""

from decimal import Decimal
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Finite set of failure categories."""
    INVALID_AMOUNT = "invalid_amount"
    INVALID_SPLIT = "invalid_split"
    NOT_FOUND = "not_found"
    STORAGE_FAILURE = "storage_failure"


class LedgerError(Exception):
    """Base exception for all ledger failures."""

    kind: ErrorKind = ErrorKind.STORAGE_FAILURE


class InvalidAmountError(LedgerError):
    """A supplied amount is non-positive, negative or NaN where it must not be."""

    kind = ErrorKind.INVALID_AMOUNT


class InvalidSplitError(LedgerError):
    """
    Split inputs don't add up, or no members were selected.

    When the failure is a sum mismatch, expected/actual/difference are set
    so the caller can show the exact shortfall (negative difference) or
    excess (positive difference).
    """

    kind = ErrorKind.INVALID_SPLIT

    def __init__(
        self,
        message: str,
        expected: Optional[Decimal] = None,
        actual: Optional[Decimal] = None,
    ):
        super().__init__(message)
        self.expected = expected
        self.actual = actual

    @property
    def difference(self) -> Optional[Decimal]:
        if self.expected is None or self.actual is None:
            return None
        return self.actual - self.expected


class StorageError(LedgerError):
    """Base exception for storage operations."""

    kind = ErrorKind.STORAGE_FAILURE


class NotFoundError(StorageError):
    """Entity not found in storage."""

    kind = ErrorKind.NOT_FOUND


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity (unique constraint)."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
