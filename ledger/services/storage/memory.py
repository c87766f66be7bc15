"""
In-Memory Storage Implementation

DESIGN DECISION: An in-process backend is enough for a single-writer local
ledger and for tests:
1. No database setup required
2. Transactions are a lock plus a snapshot restored on failure
3. Entities are replaced, never mutated in place, so shallow snapshots
   are safe

TRADEOFFS:
- Nothing survives the process (persistence is a separate backend)
- One transaction at a time (fine for a single writer)
"""

import asyncio
import itertools
import threading
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Optional
from uuid import UUID

import structlog

from ledger.models.audit import AuditEvent
from ledger.models.budget import Budget
from ledger.models.schedule import ScheduledTransfer
from ledger.models.transfer import Transfer
from ledger.models.wallet import Wallet
from ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
)
from ledger.validation.integrity import IntegrityStats


logger = structlog.get_logger(__name__)


class SequenceAllocator:
    """
    Process-wide transfer sequence counter.

    Allocation is guarded by a mutex so concurrent writers never receive
    the same number and never skip one.
    """

    def __init__(self, start: int = 0):
        self._lock = threading.Lock()
        self._counter = itertools.count(start + 1)
        self._current = start

    def allocate(self) -> int:
        with self._lock:
            self._current = next(self._counter)
            return self._current

    @property
    def current(self) -> int:
        """Last allocated value (0 if nothing was allocated)."""
        with self._lock:
            return self._current

    def reset(self, value: int) -> None:
        """Rewind to `value`; used when a transaction rolls back."""
        with self._lock:
            self._counter = itertools.count(value + 1)
            self._current = value


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(self):
        self._wallets: dict[UUID, Wallet] = {}
        self._transfers: dict[UUID, Transfer] = {}
        self._budgets: dict[UUID, Budget] = {}
        self._schedules: dict[UUID, ScheduledTransfer] = {}
        self._sequence = SequenceAllocator()
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _snapshot(self) -> tuple:
        return (
            dict(self._wallets),
            dict(self._transfers),
            dict(self._budgets),
            dict(self._schedules),
            self._sequence.current,
        )

    def _restore(self, snapshot: tuple) -> None:
        wallets, transfers, budgets, schedules, sequence = snapshot
        self._wallets = wallets
        self._transfers = transfers
        self._budgets = budgets
        self._schedules = schedules
        self._sequence.reset(sequence)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        async with self._lock:
            snapshot = self._snapshot()
            try:
                yield
            except BaseException:
                self._restore(snapshot)
                logger.debug("transaction_rolled_back")
                raise

    # -------------------------------------------------------------------------
    # Wallets
    # -------------------------------------------------------------------------

    async def save_wallet(self, wallet: Wallet) -> None:
        if any(w.name == wallet.name for w in self._wallets.values()):
            raise DuplicateError("wallet", wallet.name)
        self._wallets[wallet.id] = wallet

    async def update_wallet(self, wallet: Wallet) -> None:
        if wallet.id not in self._wallets:
            raise NotFoundError("wallet", wallet.id)
        self._wallets[wallet.id] = wallet

    async def get_wallet(self, wallet_id: UUID) -> Optional[Wallet]:
        return self._wallets.get(wallet_id)

    async def get_wallet_by_name(self, name: str) -> Optional[Wallet]:
        return next((w for w in self._wallets.values() if w.name == name), None)

    async def list_wallets(self, include_archived: bool = False) -> list[Wallet]:
        wallets = [
            w for w in self._wallets.values()
            if include_archived or not w.is_archived
        ]
        return sorted(wallets, key=lambda w: w.name)

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    def _ordered(self, transfers) -> list[Transfer]:
        return sorted(transfers, key=lambda t: t.sequence)

    async def save_transfer(self, transfer: Transfer) -> Transfer:
        if transfer.id in self._transfers:
            raise DuplicateError("transfer", transfer.id)
        stored = transfer.with_sequence(self._sequence.allocate())
        self._transfers[stored.id] = stored
        return stored

    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]:
        return self._transfers.get(transfer_id)

    async def get_transfer_by_external_ref(self, external_ref: str) -> Optional[Transfer]:
        return next(
            (t for t in self._transfers.values() if t.external_ref == external_ref),
            None,
        )

    async def list_transfers(self) -> list[Transfer]:
        return self._ordered(self._transfers.values())

    async def list_transfers_for_wallet(self, wallet_id: UUID) -> list[Transfer]:
        return self._ordered(t for t in self._transfers.values() if t.touches(wallet_id))

    async def get_reversals(self, original_id: UUID) -> list[Transfer]:
        return self._ordered(
            t for t in self._transfers.values() if t.reverses == original_id
        )

    async def list_transfers_in_range(
        self,
        start: datetime,
        end: datetime,
        category: Optional[str] = None,
    ) -> list[Transfer]:
        return self._ordered(
            t for t in self._transfers.values()
            if start <= t.timestamp < end
            and (category is None or t.category == category)
        )

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def save_budget(self, budget: Budget) -> None:
        if any(b.name == budget.name for b in self._budgets.values()):
            raise DuplicateError("budget", budget.name)
        self._budgets[budget.id] = budget

    async def get_budget_by_name(self, name: str) -> Optional[Budget]:
        return next((b for b in self._budgets.values() if b.name == name), None)

    async def list_budgets(self) -> list[Budget]:
        return sorted(self._budgets.values(), key=lambda b: b.name)

    async def delete_budget(self, budget_id: UUID) -> None:
        if self._budgets.pop(budget_id, None) is None:
            raise NotFoundError("budget", budget_id)

    # -------------------------------------------------------------------------
    # Scheduled transfers
    # -------------------------------------------------------------------------

    async def save_scheduled_transfer(self, schedule: ScheduledTransfer) -> None:
        if any(s.name == schedule.name for s in self._schedules.values()):
            raise DuplicateError("scheduled transfer", schedule.name)
        self._schedules[schedule.id] = schedule

    async def update_scheduled_transfer(self, schedule: ScheduledTransfer) -> None:
        if schedule.id not in self._schedules:
            raise NotFoundError("scheduled transfer", schedule.id)
        self._schedules[schedule.id] = schedule

    async def get_scheduled_transfer_by_name(self, name: str) -> Optional[ScheduledTransfer]:
        return next((s for s in self._schedules.values() if s.name == name), None)

    async def list_scheduled_transfers(
        self,
        include_inactive: bool = False,
    ) -> list[ScheduledTransfer]:
        schedules = [
            s for s in self._schedules.values()
            if include_inactive or s.is_active
        ]
        return sorted(schedules, key=lambda s: s.name)

    async def delete_scheduled_transfer(self, schedule_id: UUID) -> None:
        if self._schedules.pop(schedule_id, None) is None:
            raise NotFoundError("scheduled transfer", schedule_id)

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    async def get_integrity_stats(self) -> IntegrityStats:
        transfers = self._ordered(self._transfers.values())
        sequences = [t.sequence for t in transfers]
        has_gaps = sequences != list(range(1, len(sequences) + 1))

        invalid_refs = sum(
            1 for t in transfers
            if t.from_wallet not in self._wallets or t.to_wallet not in self._wallets
        )
        invalid_amounts = sum(1 for t in transfers if t.amount_cents <= 0)

        return IntegrityStats(
            wallet_count=len(self._wallets),
            transfer_count=len(transfers),
            has_sequence_gaps=has_gaps,
            invalid_wallet_refs=invalid_refs,
            invalid_amounts=invalid_amounts,
        )


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log kept in a list."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        return [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
