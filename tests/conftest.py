"""
Test fixtures for the wallet ledger test suite.

Shared fixtures:
  - storage / audit_storage: fresh in-memory backends for each test
  - service: LedgerService wired to both backends
  - funded_service: service with a Checking account holding 1000.00,
    a Salary income wallet and a Groceries expense wallet

All dates are timezone-aware UTC; use `utc()` to build them.
"""

from datetime import datetime, timezone

import pytest
import pytest_asyncio

from ledger.audit import AuditLogger
from ledger.models import WalletType
from ledger.orchestrator import LedgerService
from ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


def utc(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=timezone.utc)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def service(storage, audit_storage):
    return LedgerService(storage=storage, audit_logger=AuditLogger(audit_storage))


@pytest_asyncio.fixture
async def funded_service(service):
    """Checking (asset) funded with 1000.00 from Salary (income)."""
    await service.create_wallet("Checking", WalletType.ASSET)
    await service.create_wallet("Salary", WalletType.INCOME)
    await service.create_wallet("Groceries", WalletType.EXPENSE)
    await service.record_transfer(
        "Salary", "Checking", 100000, timestamp=utc(2024, 1, 1), description="Opening pay"
    )
    return service
