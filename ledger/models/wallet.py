"""
Wallet Models

A wallet is a named bucket money moves in and out of. Its type decides the
default negative-balance policy:

- ASSET wallets (bank accounts, cash) must stay non-negative by default
- LIABILITY wallets (cards, loans) and the external wallets
  (INCOME, EXPENSE, EQUITY) may go negative

DESIGN DECISION: Wallets are never hard-deleted. Archiving sets archived_at;
the wallet stays referenced by historical transfers but can no longer
originate or receive new ones.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ledger.models.common import UtcDatetime, ensure_utc, utc_now
from ledger.models.errors import WalletArchivedError


class WalletType(str, Enum):
    """Accounting classification of a wallet."""
    ASSET = "asset"          # Bank accounts, cash, investments
    LIABILITY = "liability"  # Credit cards, loans
    INCOME = "income"        # Employers, interest: money entering the system
    EXPENSE = "expense"      # Merchants, bills: money leaving the system
    EQUITY = "equity"        # Opening balances, adjustments

    @property
    def is_external(self) -> bool:
        """True for wallets standing for the world outside the ledger."""
        return _EXTERNAL[self]

    @property
    def allows_negative_by_default(self) -> bool:
        return self is not WalletType.ASSET


_EXTERNAL = {
    WalletType.ASSET: False,
    WalletType.LIABILITY: False,
    WalletType.INCOME: True,
    WalletType.EXPENSE: True,
    WalletType.EQUITY: True,
}


class Wallet(BaseModel):
    """
    An account in the ledger.

    allow_negative is resolved from wallet_type when not given explicitly,
    so Wallet(name="Checking", wallet_type=WalletType.ASSET) cannot overdraw
    while Wallet(..., allow_negative=True) opts out.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique wallet ID"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique wallet name"
    )
    wallet_type: WalletType
    currency: str = Field(
        default="EUR",
        description="ISO 4217 currency code"
    )
    allow_negative: Optional[bool] = Field(
        default=None,
        description="Whether the balance may drop below zero"
    )
    description: Optional[str] = Field(
        default=None,
        max_length=500
    )
    created_at: UtcDatetime = Field(default_factory=utc_now)
    archived_at: Optional[UtcDatetime] = None

    @field_validator('currency')
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        code = v.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code: {v}")
        return code

    @model_validator(mode='after')
    def resolve_negative_policy(self) -> 'Wallet':
        if self.allow_negative is None:
            self.allow_negative = self.wallet_type.allows_negative_by_default
        return self

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None

    @property
    def is_external(self) -> bool:
        return self.wallet_type.is_external

    def archived(self, now: Optional[datetime] = None) -> 'Wallet':
        """Return an archived copy. Archiving an archived wallet keeps the first date."""
        if self.is_archived:
            return self
        archived_at = ensure_utc(now) if now else utc_now()
        return self.model_copy(update={"archived_at": archived_at})

    def ensure_active(self) -> None:
        """Raise WalletArchivedError if this wallet can no longer move money."""
        if self.is_archived:
            raise WalletArchivedError(self.name)
