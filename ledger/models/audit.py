"""
Audit Models for the Wallet Ledger

Every ledger mutation is recorded as an audit event. This provides:
1. Complete traceability of money movements
2. Debugging information when a transfer is rejected
3. A history of schedule executions, useful after a crash/retry

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from ledger.models.common import utc_now
from ledger.models.money import format_cents


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Wallets
    WALLET_CREATED = "wallet_created"
    WALLET_ARCHIVED = "wallet_archived"

    # Transfers
    TRANSFER_RECORDED = "transfer_recorded"
    TRANSFER_REJECTED = "transfer_rejected"
    REVERSAL_RECORDED = "reversal_recorded"

    # Budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_DELETED = "budget_deleted"

    # Scheduled transfers
    SCHEDULE_CREATED = "schedule_created"
    SCHEDULE_PAUSED = "schedule_paused"
    SCHEDULE_RESUMED = "schedule_resumed"
    SCHEDULE_DELETED = "schedule_deleted"
    SCHEDULE_EXECUTED = "schedule_executed"
    SCHEDULE_EXECUTION_SKIPPED = "schedule_execution_skipped"
    SCHEDULE_COMPLETED = "schedule_completed"

    # Diagnostics
    INTEGRITY_CHECKED = "integrity_checked"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'wallet', 'transfer', 'schedule')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one catch-up run)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.wallet_created(wallet_id, "Checking", "asset")
        event = AuditEventBuilder.transfer_recorded(transfer_id, 1, "Salary", "Checking", 500000)
    """

    @staticmethod
    def wallet_created(
        wallet_id: UUID,
        name: str,
        wallet_type: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_CREATED,
            entity_type="wallet",
            entity_id=wallet_id,
            correlation_id=correlation_id,
            description=f"Wallet created: {name} ({wallet_type})",
            details={
                "name": name,
                "wallet_type": wallet_type,
            },
        )

    @staticmethod
    def wallet_archived(
        wallet_id: UUID,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_ARCHIVED,
            entity_type="wallet",
            entity_id=wallet_id,
            correlation_id=correlation_id,
            description=f"Wallet archived: {name}",
            details={"name": name},
        )

    @staticmethod
    def transfer_recorded(
        transfer_id: UUID,
        sequence: int,
        from_wallet: str,
        to_wallet: str,
        amount_cents: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_RECORDED,
            entity_type="transfer",
            entity_id=transfer_id,
            correlation_id=correlation_id,
            description=(
                f"Transfer #{sequence}: {from_wallet} -> {to_wallet} "
                f"{format_cents(amount_cents)}"
            ),
            details={
                "sequence": sequence,
                "from_wallet": from_wallet,
                "to_wallet": to_wallet,
                "amount_cents": amount_cents,
            },
        )

    @staticmethod
    def transfer_rejected(
        from_wallet: str,
        to_wallet: str,
        amount_cents: int,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="transfer",
            correlation_id=correlation_id,
            description=f"Transfer rejected: {from_wallet} -> {to_wallet}",
            details={
                "from_wallet": from_wallet,
                "to_wallet": to_wallet,
                "amount_cents": amount_cents,
            },
            error_code=type(error).__name__,
            error_message=str(error),
        )

    @staticmethod
    def reversal_recorded(
        reversal_id: UUID,
        original_id: UUID,
        amount_cents: int,
        is_partial: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        kind = "Partial reversal" if is_partial else "Reversal"
        return AuditEvent(
            event_type=AuditEventType.REVERSAL_RECORDED,
            entity_type="transfer",
            entity_id=reversal_id,
            correlation_id=correlation_id,
            description=f"{kind} of {original_id}: {format_cents(amount_cents)}",
            details={
                "original_id": str(original_id),
                "amount_cents": amount_cents,
                "is_partial": is_partial,
            },
        )

    @staticmethod
    def budget_created(
        budget_id: UUID,
        name: str,
        category: str,
        amount_cents: int,
        period_type: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget created: {name} ({category}, {period_type})",
            details={
                "name": name,
                "category": category,
                "amount_cents": amount_cents,
                "period_type": period_type,
            },
        )

    @staticmethod
    def budget_deleted(budget_id: UUID, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            entity_type="budget",
            entity_id=budget_id,
            description=f"Budget deleted: {name}",
            details={"name": name},
        )

    @staticmethod
    def schedule_status_changed(
        schedule_id: UUID,
        name: str,
        event_type: AuditEventType,
    ) -> AuditEvent:
        """Created / paused / resumed / deleted / completed."""
        action = event_type.value.removeprefix("schedule_")
        return AuditEvent(
            event_type=event_type,
            entity_type="schedule",
            entity_id=schedule_id,
            description=f"Scheduled transfer {action}: {name}",
            details={"name": name},
        )

    @staticmethod
    def schedule_executed(
        schedule_id: UUID,
        name: str,
        execution_date: datetime,
        transfer_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULE_EXECUTED,
            entity_type="schedule",
            entity_id=schedule_id,
            correlation_id=correlation_id,
            description=f"Scheduled transfer executed: {name} for {execution_date.isoformat()}",
            details={
                "name": name,
                "execution_date": execution_date.isoformat(),
                "transfer_id": str(transfer_id),
            },
        )

    @staticmethod
    def schedule_execution_skipped(
        schedule_id: UUID,
        name: str,
        execution_date: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEDULE_EXECUTION_SKIPPED,
            severity=AuditSeverity.WARNING,
            entity_type="schedule",
            entity_id=schedule_id,
            correlation_id=correlation_id,
            description=(
                f"Scheduled transfer {name} already applied for "
                f"{execution_date.isoformat()}"
            ),
            details={
                "name": name,
                "execution_date": execution_date.isoformat(),
            },
        )

    @staticmethod
    def integrity_checked(
        is_healthy: bool,
        issues: list[str],
        total_balance: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTEGRITY_CHECKED,
            severity=AuditSeverity.INFO if is_healthy else AuditSeverity.ERROR,
            entity_type="ledger",
            description=(
                "Ledger integrity check passed"
                if is_healthy
                else f"Ledger integrity check found {len(issues)} issues"
            ),
            details={
                "issues": issues,
                "total_balance": total_balance,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
