"""
Tests for audit logging.
"""

import asyncio

import pytest

from group_ledger.audit import AuditLogger, create_correlation_id
from group_ledger.errors import NotFoundError, StorageError
from group_ledger.models.audit import AuditEventBuilder, AuditEventType
from group_ledger.service import LedgerService
from group_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


class FailingAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("sheet unavailable")


class BrokenLedgerStorage(InMemoryLedgerStorage):
    async def save_group(self, group):
        raise StorageError("quota exceeded")


def run(coro):
    return asyncio.run(coro)


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_log_without_storage(self):
        """Test local-only logging reports success."""
        logger = AuditLogger()
        assert run(logger.log(AuditEventBuilder.group_deleted("g1"))) is True

    def test_storage_failure_does_not_raise(self):
        """Test a failing audit store never breaks the caller."""
        logger = AuditLogger(FailingAuditStorage())
        assert run(logger.log(AuditEventBuilder.group_deleted("g1"))) is False

    def test_storage_failed_uses_error_kind(self, audit_storage):
        """Test storage failures are coded by their ErrorKind."""
        logger = AuditLogger(audit_storage)
        correlation_id = create_correlation_id()
        run(logger.log_storage_failed(
            operation="get_expense",
            error=NotFoundError("Expense not found: e1"),
            correlation_id=correlation_id,
        ))

        events = run(audit_storage.get_events_by_correlation_id(correlation_id))
        assert len(events) == 1
        assert events[0].event_type == AuditEventType.STORAGE_FAILED
        assert events[0].error_code == "not_found"
        assert events[0].details == {"operation": "get_expense"}

    def test_plain_exception_code(self, audit_storage):
        """Test non-ledger errors fall back to the exception class name."""
        logger = AuditLogger(audit_storage)
        run(logger.log_error("startup", "boom"))
        run(logger.log_storage_failed("connect", RuntimeError("boom")))

        recent = run(audit_storage.get_recent_events())
        assert recent[0].error_code == "RuntimeError"
        assert recent[1].event_type == AuditEventType.SYSTEM_ERROR


class TestServiceAuditTrail:
    """Tests for what the ledger service records."""

    def test_mutations_are_audited(self, service, audit_storage, trio):
        """Test group and member events land in audit storage."""
        group, x, _, _ = trio
        events = run(audit_storage.get_events_by_entity("group", group.id))
        assert [e.event_type for e in events] == [AuditEventType.GROUP_CREATED]

        member_events = run(audit_storage.get_events_by_entity("member", x.id))
        assert member_events[0].event_type == AuditEventType.MEMBER_ADDED

    def test_storage_failure_is_audited_and_raised(self, audit_storage, ledger_settings, converter):
        """Test storage errors surface unchanged after being recorded."""
        service = LedgerService(
            storage=BrokenLedgerStorage(),
            currency_converter=converter,
            audit_logger=AuditLogger(audit_storage),
            settings=ledger_settings,
        )

        with pytest.raises(StorageError, match="quota exceeded"):
            run(service.create_group("Flat"))

        recent = run(audit_storage.get_recent_events(limit=1))
        assert recent[0].event_type == AuditEventType.STORAGE_FAILED
        assert recent[0].error_code == "storage_failure"
        assert recent[0].details == {"operation": "save_group"}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
