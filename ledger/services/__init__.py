"""Services package."""

from ledger.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    SequenceAllocator,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "DuplicateError",
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    "NotFoundError",
    "SequenceAllocator",
    "StorageError",
]
