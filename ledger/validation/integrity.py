"""
Ledger Integrity Report

Read-only diagnostics over the whole ledger. The report combines:
1. Balances computed from the transfer set (must sum to zero)
2. Structural statistics computed by the storage engine (sequence gaps,
   transfers pointing at unknown wallets, non-positive amounts)

IMPORTANT: The report NEVER repairs data. It only describes what it found.
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ledger.models.money import Cents, format_cents
from ledger.models.wallet import Wallet, WalletType


class IntegrityIssueKind(str, Enum):
    SEQUENCE_GAPS = "sequence_gaps"
    INVALID_WALLET_REFERENCES = "invalid_wallet_references"
    INVALID_AMOUNTS = "invalid_amounts"
    UNBALANCED_LEDGER = "unbalanced_ledger"


class IntegrityIssue(BaseModel):
    """
    One problem found by the integrity check.

    `value` carries the count (for wallet references / amounts) or the
    imbalance in cents (for an unbalanced ledger).
    """
    kind: IntegrityIssueKind
    value: Optional[int] = None

    @property
    def message(self) -> str:
        if self.kind is IntegrityIssueKind.SEQUENCE_GAPS:
            return "Sequence numbers have gaps"
        if self.kind is IntegrityIssueKind.INVALID_WALLET_REFERENCES:
            return f"{self.value} transfers reference non-existent wallets"
        if self.kind is IntegrityIssueKind.INVALID_AMOUNTS:
            return f"{self.value} transfers have invalid amounts (<= 0)"
        return f"Ledger is unbalanced by {format_cents(self.value or 0)}"

    def __str__(self) -> str:
        return self.message


class IntegrityStats(BaseModel):
    """Structural statistics supplied by the storage engine."""
    wallet_count: int = Field(ge=0)
    transfer_count: int = Field(ge=0)
    has_sequence_gaps: bool = False
    invalid_wallet_refs: int = Field(default=0, ge=0)
    invalid_amounts: int = Field(default=0, ge=0)


class IntegrityReport(BaseModel):
    """Result of a ledger integrity check."""
    wallet_count: int
    transfer_count: int
    balance_by_type: dict[WalletType, Cents] = Field(default_factory=dict)
    total_balance: Cents
    is_balanced: bool
    issues: list[IntegrityIssue] = Field(default_factory=list)

    @property
    def is_healthy(self) -> bool:
        return self.is_balanced and not self.issues


def build_integrity_report(
    wallets: Iterable[Wallet],
    balances: Mapping[UUID, Cents],
    stats: IntegrityStats,
) -> IntegrityReport:
    """
    Assemble the integrity report.

    Issues are listed in a fixed order: sequence gaps, invalid wallet
    references, invalid amounts, imbalance.
    """
    balance_by_type: dict[WalletType, Cents] = defaultdict(int)
    for wallet in wallets:
        balance_by_type[wallet.wallet_type] += balances.get(wallet.id, 0)

    # Sum over every balance, including wallets the ledger no longer knows
    total_balance = sum(balances.values())
    is_balanced = total_balance == 0

    issues = []
    if stats.has_sequence_gaps:
        issues.append(IntegrityIssue(kind=IntegrityIssueKind.SEQUENCE_GAPS))
    if stats.invalid_wallet_refs > 0:
        issues.append(IntegrityIssue(
            kind=IntegrityIssueKind.INVALID_WALLET_REFERENCES,
            value=stats.invalid_wallet_refs,
        ))
    if stats.invalid_amounts > 0:
        issues.append(IntegrityIssue(
            kind=IntegrityIssueKind.INVALID_AMOUNTS,
            value=stats.invalid_amounts,
        ))
    if not is_balanced:
        issues.append(IntegrityIssue(
            kind=IntegrityIssueKind.UNBALANCED_LEDGER,
            value=total_balance,
        ))

    return IntegrityReport(
        wallet_count=stats.wallet_count,
        transfer_count=stats.transfer_count,
        balance_by_type=dict(balance_by_type),
        total_balance=total_balance,
        is_balanced=is_balanced,
        issues=issues,
    )
