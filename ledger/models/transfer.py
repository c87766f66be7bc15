"""
Transfer Model

A transfer is an atomic movement of money from one wallet to another.

CRITICAL: Transfers are immutable. Corrections are made by recording a
compensating reversal (a new transfer with the wallets swapped that points
back at the original through `reverses`). History is never rewritten.

The sequence number is NOT chosen here. The storage layer assigns it exactly
once when the transfer is saved; it is the sole total-order key because
`timestamp` may be backdated.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from ledger.models.common import UtcDatetime, utc_now
from ledger.models.errors import InvalidAmountError
from ledger.models.money import CENTS_MAX, Cents


class Transfer(BaseModel):
    """An immutable, positive-amount movement between two wallets."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    sequence: int = Field(
        default=0,
        ge=0,
        description="Assigned by storage on save; 0 means not yet persisted"
    )
    from_wallet: UUID = Field(
        ...,
        description="Source wallet (balance decreases)"
    )
    to_wallet: UUID = Field(
        ...,
        description="Destination wallet (balance increases)"
    )
    amount_cents: Cents = Field(
        ...,
        gt=0,
        le=CENTS_MAX,
        strict=True,
        description="Amount in cents (always positive)"
    )
    timestamp: UtcDatetime = Field(
        ...,
        description="When the transaction happened in the real world"
    )
    recorded_at: UtcDatetime = Field(
        default_factory=utc_now,
        description="When the transfer was entered into the ledger"
    )
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(
        default=None,
        max_length=100,
        description="Category for budgeting (e.g. 'groceries')"
    )
    tags: tuple[str, ...] = ()
    reverses: Optional[UUID] = Field(
        default=None,
        description="If this is a reversal, the id of the original transfer"
    )
    external_ref: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Bank transaction id, receipt number, schedule key..."
    )

    @classmethod
    def new(
        cls,
        from_wallet: UUID,
        to_wallet: UUID,
        amount_cents: Cents,
        timestamp: datetime,
        **fields,
    ) -> 'Transfer':
        """
        Build a new, unsequenced transfer.

        Raises:
            InvalidAmountError: if amount_cents is not strictly positive.
                Amounts usually come from user input, so this is a regular
                validation failure rather than a programming error.
        """
        if amount_cents <= 0:
            raise InvalidAmountError(amount_cents, "Transfer amount must be positive")
        if amount_cents > CENTS_MAX:
            raise InvalidAmountError(amount_cents, "Transfer amount out of range")
        return cls(
            from_wallet=from_wallet,
            to_wallet=to_wallet,
            amount_cents=amount_cents,
            timestamp=timestamp,
            **fields,
        )

    @property
    def is_reversal(self) -> bool:
        return self.reverses is not None

    def touches(self, wallet_id: UUID) -> bool:
        return wallet_id in (self.from_wallet, self.to_wallet)

    def with_sequence(self, sequence: int) -> 'Transfer':
        """Copy carrying the storage-assigned sequence number."""
        return self.model_copy(update={"sequence": sequence})

    def _reversal(self, amount_cents: Cents, label: str, now: Optional[datetime]) -> 'Transfer':
        timestamp = now or utc_now()
        return Transfer.new(
            self.to_wallet,
            self.from_wallet,
            amount_cents,
            timestamp,
            recorded_at=timestamp,
            reverses=self.id,
            description=f"{label}: {self.description or '(no description)'}",
            category=self.category,
        )

    def create_reversal(self, now: Optional[datetime] = None) -> 'Transfer':
        """Full reversal: wallets swapped, same amount, back-reference to self."""
        return self._reversal(self.amount_cents, "Reversal of", now)

    def create_partial_reversal(
        self,
        amount_cents: Cents,
        now: Optional[datetime] = None,
    ) -> 'Transfer':
        """
        Partial reversal of `amount_cents`.

        Only checks 0 < amount <= original amount. Whether earlier reversals
        leave room for this one is decided by validate_reversal against the
        current ledger state.
        """
        if amount_cents <= 0 or amount_cents > self.amount_cents:
            raise InvalidAmountError(
                amount_cents,
                f"Partial reversal amount must be between 1 and {self.amount_cents}",
            )
        return self._reversal(amount_cents, "Partial reversal of", now)
