"""Validation package: transfer rules and ledger integrity."""

from ledger.validation.integrity import (
    IntegrityIssue,
    IntegrityIssueKind,
    IntegrityReport,
    IntegrityStats,
    build_integrity_report,
)
from ledger.validation.rules import TransferRules, validate_reversal

__all__ = [
    "IntegrityIssue",
    "IntegrityIssueKind",
    "IntegrityReport",
    "IntegrityStats",
    "TransferRules",
    "build_integrity_report",
    "validate_reversal",
]
