"""
Data Models Package

This package contains the ledger's entities and the pure rules attached to
them. Nothing in here performs I/O.
"""

from ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from ledger.models.budget import (
    Budget,
    BudgetStatus,
    PeriodType,
    compute_budget_status,
    compute_spent,
    current_period,
)
from ledger.models.errors import (
    CurrencyMismatchError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    LedgerError,
    LedgerValidationError,
    MoneyFormatError,
    ReversalExceedsOriginalError,
    SameWalletError,
    ScheduleCompletedError,
    ScheduleNotDueError,
    WalletArchivedError,
)
from ledger.models.money import (
    CENTS_MAX,
    CENTS_MIN,
    MONEY_PATTERN,
    Cents,
    format_cents,
    parse_cents,
)
from ledger.models.schedule import (
    RecurrencePattern,
    ScheduledTransfer,
    ScheduleStatus,
    advance,
)
from ledger.models.transfer import Transfer
from ledger.models.wallet import Wallet, WalletType

__all__ = [
    # Money
    "Cents",
    "CENTS_MAX",
    "CENTS_MIN",
    "MONEY_PATTERN",
    "format_cents",
    "parse_cents",
    # Entities
    "Budget",
    "BudgetStatus",
    "PeriodType",
    "RecurrencePattern",
    "ScheduleStatus",
    "ScheduledTransfer",
    "Transfer",
    "Wallet",
    "WalletType",
    # Pure rules
    "advance",
    "compute_budget_status",
    "compute_spent",
    "current_period",
    # Errors
    "CurrencyMismatchError",
    "InsufficientFundsError",
    "InvalidAmountError",
    "InvalidStatusTransitionError",
    "LedgerError",
    "LedgerValidationError",
    "MoneyFormatError",
    "ReversalExceedsOriginalError",
    "SameWalletError",
    "ScheduleCompletedError",
    "ScheduleNotDueError",
    "WalletArchivedError",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
