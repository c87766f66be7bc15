"""
Balance Computation

DESIGN DECISION: Balances are never stored. They are always derived from the
transfer set: every transfer contributes -amount to its source wallet and
+amount to its destination. Because each transfer cancels itself out, the
balances of all wallets touched always sum to zero (closed system).
"""

from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from ledger.models.money import Cents
from ledger.models.transfer import Transfer


def compute_balance(wallet_id: UUID, transfers: Iterable[Transfer]) -> Cents:
    """Incoming minus outgoing amounts for a single wallet."""
    balance = 0
    for transfer in transfers:
        if transfer.from_wallet == wallet_id:
            balance -= transfer.amount_cents
        if transfer.to_wallet == wallet_id:
            balance += transfer.amount_cents
    return balance


def compute_all_balances(transfers: Iterable[Transfer]) -> dict[UUID, Cents]:
    """
    Balances for every wallet touched by `transfers`, in a single pass.

    Equivalent to calling compute_balance for each wallet, but O(n).
    """
    balances: dict[UUID, Cents] = defaultdict(int)
    for transfer in transfers:
        balances[transfer.from_wallet] -= transfer.amount_cents
        balances[transfer.to_wallet] += transfer.amount_cents
    return dict(balances)


def total_reversed_amount(original_id: UUID, transfers: Iterable[Transfer]) -> Cents:
    """Sum of all transfers that reverse `original_id`."""
    return sum(t.amount_cents for t in transfers if t.reverses == original_id)
