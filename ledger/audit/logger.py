"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged.
This provides:
1. Complete traceability of money movements
2. Debugging capability when transfers are rejected
3. A record of which schedule dates were applied

The audit logger:
- Is async so it can sit next to async storage backends
- Gracefully handles storage failures (a failed audit write never undoes
  a committed transfer)
- Supports correlation IDs to trace related events
"""

import logging
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from ledger.config import get_settings
from ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from ledger.models.budget import Budget
from ledger.models.schedule import ScheduledTransfer
from ledger.models.transfer import Transfer
from ledger.models.wallet import Wallet
from ledger.services.storage import AuditStorageInterface
from ledger.validation.integrity import IntegrityReport


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: Optional[str] = None) -> None:
    """
    Route ledger logs to stderr at the configured level.

    Not called on import: the stdlib root logger belongs to the application.
    Call this from a script or CLI entry point that wants ledger output.

    Args:
        level: stdlib level name; defaults to the configured LEDGER_LOG_LEVEL
    """
    level = level or get_settings().app.effective_log_level
    logging.basicConfig(format="%(message)s")
    logging.getLogger("ledger").setLevel(getattr(logging, level))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and history queries)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_wallet_created(self, wallet: Wallet) -> None:
        await self.log(AuditEventBuilder.wallet_created(
            wallet_id=wallet.id,
            name=wallet.name,
            wallet_type=wallet.wallet_type.value,
        ))

    async def log_wallet_archived(self, wallet: Wallet) -> None:
        await self.log(AuditEventBuilder.wallet_archived(
            wallet_id=wallet.id,
            name=wallet.name,
        ))

    async def log_transfer_recorded(
        self,
        transfer: Transfer,
        from_name: str,
        to_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed transfer (reversals included)."""
        await self.log(AuditEventBuilder.transfer_recorded(
            transfer_id=transfer.id,
            sequence=transfer.sequence,
            from_wallet=from_name,
            to_wallet=to_name,
            amount_cents=transfer.amount_cents,
            correlation_id=correlation_id,
        ))

    async def log_transfer_rejected(
        self,
        from_name: str,
        to_name: str,
        amount_cents: int,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.transfer_rejected(
            from_wallet=from_name,
            to_wallet=to_name,
            amount_cents=amount_cents,
            error=error,
            correlation_id=correlation_id,
        ))

    async def log_reversal_recorded(
        self,
        reversal: Transfer,
        is_partial: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.reversal_recorded(
            reversal_id=reversal.id,
            original_id=reversal.reverses,
            amount_cents=reversal.amount_cents,
            is_partial=is_partial,
            correlation_id=correlation_id,
        ))

    async def log_budget_created(self, budget: Budget) -> None:
        await self.log(AuditEventBuilder.budget_created(
            budget_id=budget.id,
            name=budget.name,
            category=budget.category,
            amount_cents=budget.amount_cents,
            period_type=budget.period_type.value,
        ))

    async def log_budget_deleted(self, budget: Budget) -> None:
        await self.log(AuditEventBuilder.budget_deleted(budget.id, budget.name))

    async def log_schedule_status(
        self,
        schedule: ScheduledTransfer,
        event_type: AuditEventType,
    ) -> None:
        await self.log(AuditEventBuilder.schedule_status_changed(
            schedule_id=schedule.id,
            name=schedule.name,
            event_type=event_type,
        ))

    async def log_schedule_executed(
        self,
        schedule: ScheduledTransfer,
        execution_date: datetime,
        transfer: Transfer,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.schedule_executed(
            schedule_id=schedule.id,
            name=schedule.name,
            execution_date=execution_date,
            transfer_id=transfer.id,
            correlation_id=correlation_id,
        ))

    async def log_schedule_skipped(
        self,
        schedule: ScheduledTransfer,
        execution_date: datetime,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.schedule_execution_skipped(
            schedule_id=schedule.id,
            name=schedule.name,
            execution_date=execution_date,
            correlation_id=correlation_id,
        ))

    async def log_integrity_checked(self, report: IntegrityReport) -> None:
        await self.log(AuditEventBuilder.integrity_checked(
            is_healthy=report.is_healthy,
            issues=[issue.message for issue in report.issues],
            total_balance=report.total_balance,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a multi-step action (e.g. a catch-up run of
    scheduled transfers). Pass it through all subsequent operations.
    """
    return uuid4()
