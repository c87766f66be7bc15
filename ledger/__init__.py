"""
Wallet Ledger - Source Package

A local, single-writer personal finance ledger. Money only ever moves as
transfers between wallets, so every balance is derived and the sum of all
balances is always zero.

DESIGN PRINCIPLES:
1. Transfers are immutable; corrections are reversals
2. Balances are computed, never stored
3. Fail early, fail visibly (typed errors, no silent corrections)
4. Every mutation must be auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Wallet Ledger Team"
