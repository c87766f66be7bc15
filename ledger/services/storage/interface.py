"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the ledger core free of any I/O
2. Use in-memory storage for testing and single-process use
3. Swap in a SQL backend later without touching business logic

The storage layer owns three guarantees the core depends on:
- Sequence numbers are allocated atomically and strictly increase
- transaction() makes "validate against fresh state, then write" one unit
- Structural integrity statistics are computed where the data lives
"""

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import datetime
from typing import Optional
from uuid import UUID

from ledger.models.audit import AuditEvent
from ledger.models.budget import Budget
from ledger.models.errors import LedgerError
from ledger.models.schedule import ScheduledTransfer
from ledger.models.transfer import Transfer
from ledger.models.wallet import Wallet
from ledger.validation.integrity import IntegrityStats


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (in-memory, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    def transaction(self) -> AbstractAsyncContextManager[None]:
        """
        Open an atomic unit of work.

        Usage:
            async with storage.transaction():
                ...read fresh state, validate, write...

        Everything written inside the block is discarded if the block raises.
        Only one transaction runs at a time.
        """
        pass

    # -------------------------------------------------------------------------
    # Wallets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_wallet(self, wallet: Wallet) -> None:
        """
        Save a new wallet.

        Raises:
            DuplicateError: If a wallet with the same name exists
        """
        pass

    @abstractmethod
    async def update_wallet(self, wallet: Wallet) -> None:
        """
        Replace a stored wallet (used for archiving).

        Raises:
            NotFoundError: If the wallet doesn't exist
        """
        pass

    @abstractmethod
    async def get_wallet(self, wallet_id: UUID) -> Optional[Wallet]:
        pass

    @abstractmethod
    async def get_wallet_by_name(self, name: str) -> Optional[Wallet]:
        pass

    @abstractmethod
    async def list_wallets(self, include_archived: bool = False) -> list[Wallet]:
        """List wallets ordered by name."""
        pass

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_transfer(self, transfer: Transfer) -> Transfer:
        """
        Persist a new transfer.

        Returns:
            The stored transfer, carrying its newly allocated sequence number
        """
        pass

    @abstractmethod
    async def get_transfer(self, transfer_id: UUID) -> Optional[Transfer]:
        pass

    @abstractmethod
    async def get_transfer_by_external_ref(self, external_ref: str) -> Optional[Transfer]:
        pass

    @abstractmethod
    async def list_transfers(self) -> list[Transfer]:
        """All transfers, ordered by sequence."""
        pass

    @abstractmethod
    async def list_transfers_for_wallet(self, wallet_id: UUID) -> list[Transfer]:
        """Transfers where the wallet is source or destination, by sequence."""
        pass

    @abstractmethod
    async def get_reversals(self, original_id: UUID) -> list[Transfer]:
        """Transfers whose `reverses` points at `original_id`, by sequence."""
        pass

    @abstractmethod
    async def list_transfers_in_range(
        self,
        start: datetime,
        end: datetime,
        category: Optional[str] = None,
    ) -> list[Transfer]:
        """Transfers with timestamp in [start, end), optionally one category."""
        pass

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_budget(self, budget: Budget) -> None:
        """
        Raises:
            DuplicateError: If a budget with the same name exists
        """
        pass

    @abstractmethod
    async def get_budget_by_name(self, name: str) -> Optional[Budget]:
        pass

    @abstractmethod
    async def list_budgets(self) -> list[Budget]:
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> None:
        pass

    # -------------------------------------------------------------------------
    # Scheduled transfers
    # -------------------------------------------------------------------------

    @abstractmethod
    async def save_scheduled_transfer(self, schedule: ScheduledTransfer) -> None:
        """
        Raises:
            DuplicateError: If a schedule with the same name exists
        """
        pass

    @abstractmethod
    async def update_scheduled_transfer(self, schedule: ScheduledTransfer) -> None:
        """
        Raises:
            NotFoundError: If the schedule doesn't exist
        """
        pass

    @abstractmethod
    async def get_scheduled_transfer_by_name(self, name: str) -> Optional[ScheduledTransfer]:
        pass

    @abstractmethod
    async def list_scheduled_transfers(
        self,
        include_inactive: bool = False,
    ) -> list[ScheduledTransfer]:
        pass

    @abstractmethod
    async def delete_scheduled_transfer(self, schedule_id: UUID) -> None:
        pass

    # -------------------------------------------------------------------------
    # Diagnostics
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_integrity_stats(self) -> IntegrityStats:
        """Counts, sequence gaps, dangling wallet refs and invalid amounts."""
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
        """Related events in chronological order."""
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """Events for one entity in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Most recent events, newest first."""
        pass


class StorageError(LedgerError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""

    def __init__(self, entity_type: str, key: object):
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"{entity_type.capitalize()} not found: {key}")


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""

    def __init__(self, entity_type: str, key: object):
        self.entity_type = entity_type
        self.key = key
        super().__init__(f"{entity_type.capitalize()} already exists: {key}")
