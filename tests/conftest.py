"""Shared fixtures: in-memory storage, a wired service and a three-person group."""

import asyncio

import pytest

from group_ledger.audit import AuditLogger
from group_ledger.config import LedgerSettings
from group_ledger.service import LedgerService
from group_ledger.services.currency import StaticRateConverter
from group_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


@pytest.fixture
def ledger_settings():
    return LedgerSettings(default_currency="INR")


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def converter():
    return StaticRateConverter(
        base_currency="INR",
        rates={"USD": "80", "EUR": "90"},
    )


@pytest.fixture
def service(storage, audit_storage, converter, ledger_settings):
    return LedgerService(
        storage=storage,
        currency_converter=converter,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
    )


@pytest.fixture
def trio(service):
    """A group with members X, Y and Z, added in that order."""
    async def setup():
        group = await service.create_group("Goa Trip", currency_code="INR")
        x = await service.add_member(group.id, "user-x", "X")
        y = await service.add_member(group.id, "user-y", "Y")
        z = await service.add_member(group.id, "user-z", "Z")
        return group, x, y, z

    return asyncio.run(setup())
