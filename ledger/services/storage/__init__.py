"""
Storage Services Package

Provides the abstract storage interfaces and the in-memory implementation.
Designed so a persistent backend can be dropped in behind the same interface.
"""

from ledger.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    SequenceAllocator,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "SequenceAllocator",
]
