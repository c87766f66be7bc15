"""
Ledger Error Taxonomy

Every failure the ledger can report is a distinct exception class that
carries its structured fields as attributes, so callers can render precise
messages (amounts, ids, already-reversed totals) without parsing strings.

DESIGN DECISION: Parse errors and domain validation errors are separate
branches. A malformed money string is fixed by correcting the input format;
a reversal that exceeds the original is fixed by looking at ledger state.

Not-found and duplicate errors belong to the persistence boundary and live
in ledger.services.storage.interface.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID


class LedgerError(Exception):
    """Base exception for every ledger failure."""
    pass


# =============================================================================
# PARSE ERRORS
# =============================================================================

class MoneyFormatError(LedgerError, ValueError):
    """A money string could not be parsed into cents."""

    def __init__(self, value: str, reason: str = "invalid money format"):
        self.value = value
        self.reason = reason
        super().__init__(f"{reason}: {value!r}")


# =============================================================================
# VALIDATION ERRORS
# =============================================================================

class LedgerValidationError(LedgerError, ValueError):
    """A business rule rejected the requested operation."""
    pass


class InvalidAmountError(LedgerValidationError):
    """Amount is outside the range allowed for the operation."""

    def __init__(self, amount: int, reason: str = "Amount must be positive"):
        self.amount = amount
        self.reason = reason
        super().__init__(f"Invalid amount {amount}: {reason}")


class ReversalExceedsOriginalError(LedgerValidationError):
    """A (partial) reversal would reverse more than the original moved."""

    def __init__(
        self,
        original_amount: int,
        already_reversed: int,
        requested: int,
        original_id: Optional[UUID] = None,
    ):
        self.original_id = original_id
        self.original_amount = original_amount
        self.already_reversed = already_reversed
        self.requested = requested
        super().__init__(
            f"Reversal of {requested} cents would exceed original amount "
            f"({original_amount} cents, {already_reversed} already reversed)"
        )

    @property
    def remaining(self) -> int:
        return self.original_amount - self.already_reversed


class InsufficientFundsError(LedgerValidationError):
    """Source wallet does not allow negative balances and lacks funds."""

    def __init__(self, wallet_name: str, balance: int, required: int):
        self.wallet_name = wallet_name
        self.balance = balance
        self.required = required
        super().__init__(
            f"Insufficient funds in wallet {wallet_name}: "
            f"balance {balance}, required {required}"
        )


class CurrencyMismatchError(LedgerValidationError):
    """Transfers may only move money between wallets of one currency."""

    def __init__(self, from_currency: str, to_currency: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        super().__init__(
            f"Currency mismatch between wallets: {from_currency} vs {to_currency}"
        )


class SameWalletError(LedgerValidationError):
    """Source and destination are the same wallet."""

    def __init__(self, wallet_name: str):
        self.wallet_name = wallet_name
        super().__init__(f"Cannot transfer from wallet {wallet_name} to itself")


class WalletArchivedError(LedgerValidationError):
    """Archived wallets can no longer originate or receive transfers."""

    def __init__(self, wallet_name: str):
        self.wallet_name = wallet_name
        super().__init__(f"Wallet is archived: {wallet_name}")


class ScheduleNotDueError(LedgerValidationError):
    """A scheduled transfer was executed before its next due date."""

    def __init__(self, name: str, next_due: Optional[datetime]):
        self.name = name
        self.next_due = next_due
        when = next_due.isoformat() if next_due else "never"
        super().__init__(f"Schedule '{name}' is not due yet (next execution: {when})")


class ScheduleCompletedError(LedgerValidationError):
    """A completed schedule produces no further executions."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Schedule '{name}' has completed (end date reached)")


class InvalidStatusTransitionError(LedgerValidationError):
    """Requested lifecycle transition is not allowed from the current status."""

    def __init__(self, name: str, current: str, requested: str):
        self.name = name
        self.current = current
        self.requested = requested
        super().__init__(
            f"Schedule '{name}' cannot move from {current} to {requested}"
        )
