"""
Transfer Rules

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - INPUT VALIDATION:
- Amount strictly positive and within the 64-bit cents range
- This catches malformed user input

STAGE 2 - LEDGER VALIDATION:
- Source and destination differ
- Neither wallet archived
- Both wallets share a currency
- Non-negative wallets keep enough funds
- Reversals never exceed what is left of the original
- This catches requests that are well-formed but impossible right now

Stage 2 needs current balances and reversal totals. The caller must pass
state read inside the same storage transaction that will commit the
transfer, otherwise two concurrent requests could both pass against a
stale figure.

IMPORTANT: Validation NEVER adjusts amounts. It raises a typed error.
"""

from collections.abc import Iterable

from ledger.models.errors import (
    CurrencyMismatchError,
    InsufficientFundsError,
    InvalidAmountError,
    ReversalExceedsOriginalError,
    SameWalletError,
)
from ledger.models.money import CENTS_MAX, Cents
from ledger.models.transfer import Transfer
from ledger.models.wallet import Wallet
from ledger.queries.balances import total_reversed_amount


def validate_reversal(
    original: Transfer,
    proposed_amount: Cents,
    all_transfers: Iterable[Transfer],
) -> None:
    """
    Check that reversing `proposed_amount` more of `original` is allowed.

    Raises:
        ReversalExceedsOriginalError: if already reversed + proposed would
            exceed the original amount
    """
    already_reversed = total_reversed_amount(original.id, all_transfers)
    if already_reversed + proposed_amount > original.amount_cents:
        raise ReversalExceedsOriginalError(
            original_amount=original.amount_cents,
            already_reversed=already_reversed,
            requested=proposed_amount,
            original_id=original.id,
        )


class TransferRules:
    """
    Business rules every new transfer must satisfy.

    Pure: all ledger state is passed in by the caller.
    """

    def __init__(self, enforce_non_negative: bool = True):
        """
        Args:
            enforce_non_negative: Whether wallets with allow_negative=False
                are protected from overdrawing. Disable only for imports of
                historical data.
        """
        self._enforce_non_negative = enforce_non_negative

    def check_amount(self, amount_cents: Cents) -> None:
        """Stage 1: amount must be strictly positive and fit in 64 bits."""
        if amount_cents <= 0:
            raise InvalidAmountError(amount_cents, "Amount must be positive")
        if amount_cents > CENTS_MAX:
            raise InvalidAmountError(amount_cents, "Amount out of range")

    def check_wallets(self, from_wallet: Wallet, to_wallet: Wallet) -> None:
        """Stage 2: two distinct active wallets in the same currency."""
        if from_wallet.id == to_wallet.id:
            raise SameWalletError(from_wallet.name)

        from_wallet.ensure_active()
        to_wallet.ensure_active()

        if from_wallet.currency != to_wallet.currency:
            raise CurrencyMismatchError(from_wallet.currency, to_wallet.currency)

    def check_funds(
        self,
        from_wallet: Wallet,
        current_balance: Cents,
        amount_cents: Cents,
        force: bool = False,
    ) -> None:
        """Stage 2: a non-negative wallet must cover the amount."""
        if force or not self._enforce_non_negative or from_wallet.allow_negative:
            return
        if current_balance < amount_cents:
            raise InsufficientFundsError(
                wallet_name=from_wallet.name,
                balance=current_balance,
                required=amount_cents,
            )

    def validate_transfer(
        self,
        from_wallet: Wallet,
        to_wallet: Wallet,
        amount_cents: Cents,
        from_balance: Cents,
        force: bool = False,
    ) -> None:
        """Run both stages. The first failing rule raises."""
        self.check_amount(amount_cents)
        self.check_wallets(from_wallet, to_wallet)
        self.check_funds(from_wallet, from_balance, amount_cents, force=force)
