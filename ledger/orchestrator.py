"""
Ledger Service (Orchestrator)

This module ties together the pure ledger core, the storage boundary and
the audit log. It defines the end-to-end flows for:
1. Wallets (create → archive)
2. Transfers (validate against fresh state → record → audit)
3. Reversals (re-read reversals → validate → record compensating transfer)
4. Scheduled transfers (due date → transfer + last_executed_at, atomically)
5. Read models (balances, budget status, integrity report, forecast)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every check that depends on ledger state runs INSIDE the storage
  transaction that commits the result, never against a stale read
- Replaying an already-applied schedule date is skipped, never double-booked
- Every mutation is audited, and every rejected transfer too

The ledger core stays pure; this is the only place where state is read,
validated and written as one unit.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from ledger.audit import AuditLogger, create_correlation_id
from ledger.config import get_settings
from ledger.models.audit import AuditEventType
from ledger.models.budget import Budget, BudgetStatus, PeriodType, compute_budget_status
from ledger.models.common import ensure_utc, utc_now
from ledger.models.errors import (
    LedgerValidationError,
    ScheduleCompletedError,
    ScheduleNotDueError,
)
from ledger.models.money import Cents
from ledger.models.schedule import RecurrencePattern, ScheduledTransfer, ScheduleStatus
from ledger.models.transfer import Transfer
from ledger.models.wallet import Wallet, WalletType
from ledger.queries import build_forecast, compute_all_balances, compute_balance
from ledger.queries.forecast import ForecastResult
from ledger.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
)
from ledger.validation import (
    IntegrityReport,
    TransferRules,
    build_integrity_report,
    validate_reversal,
)


# =============================================================================
# RESULT MODELS
# =============================================================================

class BalanceEntry(BaseModel):
    """Current balance of one wallet."""
    wallet_id: UUID
    wallet_name: str
    wallet_type: WalletType
    currency: str
    balance_cents: Cents


class WalletInfo(BaseModel):
    """A wallet together with its derived activity figures."""
    wallet: Wallet
    balance_cents: Cents
    incoming_count: int = 0
    outgoing_count: int = 0
    last_activity: Optional[datetime] = None


class TransferResult(BaseModel):
    """Outcome of recording a transfer."""
    transfer: Transfer
    from_wallet_name: str
    to_wallet_name: str
    from_balance_cents: Cents
    to_balance_cents: Cents


class ReversalResult(BaseModel):
    """Outcome of reversing (part of) a transfer."""
    original: Transfer
    reversal: Transfer
    is_partial: bool
    total_reversed_cents: Cents
    remaining_cents: Cents


class TransferInfo(BaseModel):
    """A transfer with its wallet names and the reversals pointing at it."""
    transfer: Transfer
    from_wallet_name: str
    to_wallet_name: str
    reversals: list[Transfer] = Field(default_factory=list)
    total_reversed_cents: Cents = 0

    @property
    def remaining_cents(self) -> Cents:
        return self.transfer.amount_cents - self.total_reversed_cents

    @property
    def is_fully_reversed(self) -> bool:
        return self.remaining_cents == 0


class ScheduleExecutionResult(BaseModel):
    """
    Outcome of executing one due date of a scheduled transfer.

    already_applied is True when the date had been materialised before; the
    call was then a no-op and `transfer` is the earlier transfer (if the
    ledger still knows it).
    """
    schedule: ScheduledTransfer
    execution_date: datetime
    transfer: Optional[Transfer] = None
    already_applied: bool = False


def _moment(value: Optional[datetime]) -> datetime:
    """Caller-supplied moment as aware UTC, or the current time."""
    return ensure_utc(value) if value is not None else utc_now()


def schedule_execution_ref(schedule: ScheduledTransfer, execution_date: datetime) -> str:
    """Idempotency key stored as external_ref on scheduled transfers."""
    return f"schedule:{schedule.id}:{execution_date.isoformat()}"


# =============================================================================
# LEDGER SERVICE
# =============================================================================

class LedgerService:
    """
    Orchestrates every ledger operation on top of a storage backend.

    Flow for any write:
    1. Open a storage transaction
    2. Read the state the decision depends on (balances, reversals, schedule)
    3. Validate with the pure rules
    4. Write
    5. Audit (after commit, so a failed audit never undoes a transfer)
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        rules: Optional[TransferRules] = None,
    ):
        settings = get_settings()
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._rules = rules or TransferRules(
            enforce_non_negative=settings.app.enforce_non_negative,
        )
        self._default_currency = settings.app.default_currency
        self._forecast_months = settings.app.forecast_months
        self._max_catch_up = settings.schedule.max_catch_up_executions

    # -------------------------------------------------------------------------
    # Internal lookups (callers hold the transaction when it matters)
    # -------------------------------------------------------------------------

    async def _wallet_by_name(self, name: str) -> Wallet:
        wallet = await self._storage.get_wallet_by_name(name)
        if wallet is None:
            raise NotFoundError("wallet", name)
        return wallet

    async def _wallet_by_id(self, wallet_id: UUID) -> Wallet:
        wallet = await self._storage.get_wallet(wallet_id)
        if wallet is None:
            raise NotFoundError("wallet", wallet_id)
        return wallet

    async def _wallet_name(self, wallet_id: UUID) -> str:
        wallet = await self._storage.get_wallet(wallet_id)
        return wallet.name if wallet else str(wallet_id)

    async def _balance_of(self, wallet: Wallet) -> Cents:
        transfers = await self._storage.list_transfers_for_wallet(wallet.id)
        return compute_balance(wallet.id, transfers)

    async def _schedule_by_name(self, name: str) -> ScheduledTransfer:
        schedule = await self._storage.get_scheduled_transfer_by_name(name)
        if schedule is None:
            raise NotFoundError("scheduled transfer", name)
        return schedule

    async def _budget_by_name(self, name: str) -> Budget:
        budget = await self._storage.get_budget_by_name(name)
        if budget is None:
            raise NotFoundError("budget", name)
        return budget

    # -------------------------------------------------------------------------
    # Wallets
    # -------------------------------------------------------------------------

    async def create_wallet(
        self,
        name: str,
        wallet_type: WalletType,
        currency: Optional[str] = None,
        allow_negative: Optional[bool] = None,
        description: Optional[str] = None,
    ) -> Wallet:
        """
        Create a wallet.

        Raises:
            DuplicateError: If the name is taken
        """
        wallet = Wallet(
            name=name,
            wallet_type=wallet_type,
            currency=currency or self._default_currency,
            allow_negative=allow_negative,
            description=description,
        )
        async with self._storage.transaction():
            await self._storage.save_wallet(wallet)

        await self._audit_logger.log_wallet_created(wallet)
        return wallet

    async def get_wallet(self, name: str) -> Wallet:
        return await self._wallet_by_name(name)

    async def list_wallets(self, include_archived: bool = False) -> list[Wallet]:
        return await self._storage.list_wallets(include_archived=include_archived)

    async def get_wallet_info(self, name: str) -> WalletInfo:
        wallet = await self._wallet_by_name(name)
        transfers = await self._storage.list_transfers_for_wallet(wallet.id)
        return WalletInfo(
            wallet=wallet,
            balance_cents=compute_balance(wallet.id, transfers),
            incoming_count=sum(1 for t in transfers if t.to_wallet == wallet.id),
            outgoing_count=sum(1 for t in transfers if t.from_wallet == wallet.id),
            last_activity=max((t.timestamp for t in transfers), default=None),
        )

    async def archive_wallet(self, name: str, now: Optional[datetime] = None) -> Wallet:
        """
        Archive a wallet. Its history and balance stay; new transfers are refused.
        """
        async with self._storage.transaction():
            wallet = await self._wallet_by_name(name)
            if wallet.is_archived:
                return wallet
            archived = wallet.archived(now)
            await self._storage.update_wallet(archived)

        await self._audit_logger.log_wallet_archived(archived)
        return archived

    async def get_balance(self, name: str) -> BalanceEntry:
        wallet = await self._wallet_by_name(name)
        return BalanceEntry(
            wallet_id=wallet.id,
            wallet_name=wallet.name,
            wallet_type=wallet.wallet_type,
            currency=wallet.currency,
            balance_cents=await self._balance_of(wallet),
        )

    async def get_all_balances(self, include_archived: bool = False) -> list[BalanceEntry]:
        """Balances of all wallets, ordered by wallet name."""
        wallets = await self._storage.list_wallets(include_archived=include_archived)
        balances = compute_all_balances(await self._storage.list_transfers())
        return [
            BalanceEntry(
                wallet_id=wallet.id,
                wallet_name=wallet.name,
                wallet_type=wallet.wallet_type,
                currency=wallet.currency,
                balance_cents=balances.get(wallet.id, 0),
            )
            for wallet in wallets
        ]

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def _record(
        self,
        from_wallet: Wallet,
        to_wallet: Wallet,
        amount_cents: Cents,
        timestamp: datetime,
        force: bool = False,
        **fields,
    ) -> Transfer:
        """Validate against current balances and save. Caller holds the transaction."""
        from_balance = await self._balance_of(from_wallet)
        self._rules.validate_transfer(
            from_wallet, to_wallet, amount_cents, from_balance, force=force
        )
        transfer = Transfer.new(
            from_wallet.id, to_wallet.id, amount_cents, timestamp, **fields
        )
        return await self._storage.save_transfer(transfer)

    async def record_transfer(
        self,
        from_name: str,
        to_name: str,
        amount_cents: Cents,
        timestamp: Optional[datetime] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        tags: tuple[str, ...] = (),
        external_ref: Optional[str] = None,
        force: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> TransferResult:
        """
        Record a transfer between two wallets.

        Args:
            force: Skip the non-negative balance check (amount, archive and
                currency rules still apply)

        Raises:
            NotFoundError: If a wallet doesn't exist
            InvalidAmountError, SameWalletError, WalletArchivedError,
            CurrencyMismatchError, InsufficientFundsError: If the transfer is
            not allowed
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            async with self._storage.transaction():
                from_wallet = await self._wallet_by_name(from_name)
                to_wallet = await self._wallet_by_name(to_name)
                transfer = await self._record(
                    from_wallet,
                    to_wallet,
                    amount_cents,
                    _moment(timestamp),
                    force=force,
                    description=description,
                    category=category,
                    tags=tuple(tags),
                    external_ref=external_ref,
                )
                from_balance = await self._balance_of(from_wallet)
                to_balance = await self._balance_of(to_wallet)
        except LedgerValidationError as e:
            await self._audit_logger.log_transfer_rejected(
                from_name, to_name, amount_cents, e, correlation_id=correlation_id
            )
            raise

        await self._audit_logger.log_transfer_recorded(
            transfer, from_wallet.name, to_wallet.name, correlation_id=correlation_id
        )
        return TransferResult(
            transfer=transfer,
            from_wallet_name=from_wallet.name,
            to_wallet_name=to_wallet.name,
            from_balance_cents=from_balance,
            to_balance_cents=to_balance,
        )

    async def get_transfer_info(self, transfer_id: UUID) -> TransferInfo:
        transfer = await self._storage.get_transfer(transfer_id)
        if transfer is None:
            raise NotFoundError("transfer", transfer_id)

        reversals = await self._storage.get_reversals(transfer_id)
        return TransferInfo(
            transfer=transfer,
            from_wallet_name=await self._wallet_name(transfer.from_wallet),
            to_wallet_name=await self._wallet_name(transfer.to_wallet),
            reversals=reversals,
            total_reversed_cents=sum(r.amount_cents for r in reversals),
        )

    async def list_transfers(self, wallet_name: Optional[str] = None) -> list[Transfer]:
        """All transfers (or one wallet's), ordered by sequence."""
        if wallet_name is None:
            return await self._storage.list_transfers()
        wallet = await self._wallet_by_name(wallet_name)
        return await self._storage.list_transfers_for_wallet(wallet.id)

    async def reverse_transfer(
        self,
        transfer_id: UUID,
        amount_cents: Optional[Cents] = None,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReversalResult:
        """
        Reverse a transfer fully (amount_cents=None) or partially.

        The reversal swaps the wallets, inherits the category and points back
        at the original. Earlier reversals are re-read inside the same
        transaction that commits this one.

        Raises:
            NotFoundError: If the transfer doesn't exist
            InvalidAmountError: If amount_cents is not in 1..original amount
            ReversalExceedsOriginalError: If earlier reversals leave too little
            WalletArchivedError: If either wallet has been archived since
        """
        correlation_id = correlation_id or create_correlation_id()

        async with self._storage.transaction():
            original = await self._storage.get_transfer(transfer_id)
            if original is None:
                raise NotFoundError("transfer", transfer_id)

            is_partial = amount_cents is not None and amount_cents != original.amount_cents
            if is_partial:
                reversal = original.create_partial_reversal(amount_cents, now)
            else:
                reversal = original.create_reversal(now)

            existing = await self._storage.get_reversals(original.id)
            validate_reversal(original, reversal.amount_cents, existing)

            # Wallets must still be live; funds are not checked for corrections
            from_wallet = await self._wallet_by_id(reversal.from_wallet)
            to_wallet = await self._wallet_by_id(reversal.to_wallet)
            self._rules.check_wallets(from_wallet, to_wallet)

            reversal = await self._storage.save_transfer(reversal)

        total_reversed = sum(r.amount_cents for r in existing) + reversal.amount_cents

        await self._audit_logger.log_reversal_recorded(
            reversal, is_partial, correlation_id=correlation_id
        )
        return ReversalResult(
            original=original,
            reversal=reversal,
            is_partial=is_partial,
            total_reversed_cents=total_reversed,
            remaining_cents=original.amount_cents - total_reversed,
        )

    # -------------------------------------------------------------------------
    # Integrity
    # -------------------------------------------------------------------------

    async def check_integrity(self) -> IntegrityReport:
        """Read-only consistency check of the whole ledger."""
        async with self._storage.transaction():
            stats = await self._storage.get_integrity_stats()
            wallets = await self._storage.list_wallets(include_archived=True)
            balances = compute_all_balances(await self._storage.list_transfers())

        report = build_integrity_report(wallets, balances, stats)
        await self._audit_logger.log_integrity_checked(report)
        return report

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def create_budget(
        self,
        name: str,
        category: str,
        amount_cents: Cents,
        period_type: PeriodType,
    ) -> Budget:
        self._rules.check_amount(amount_cents)
        budget = Budget(
            name=name,
            category=category,
            amount_cents=amount_cents,
            period_type=period_type,
        )
        async with self._storage.transaction():
            await self._storage.save_budget(budget)

        await self._audit_logger.log_budget_created(budget)
        return budget

    async def get_budget(self, name: str) -> Budget:
        return await self._budget_by_name(name)

    async def list_budgets(self) -> list[Budget]:
        return await self._storage.list_budgets()

    async def delete_budget(self, name: str) -> None:
        async with self._storage.transaction():
            budget = await self._budget_by_name(name)
            await self._storage.delete_budget(budget.id)

        await self._audit_logger.log_budget_deleted(budget)

    async def _status_of(self, budget: Budget, now: datetime) -> BudgetStatus:
        start, end = budget.current_period(now)
        transfers = await self._storage.list_transfers_in_range(
            start, end, category=budget.category
        )
        return compute_budget_status(budget, transfers, now)

    async def get_budget_status(
        self,
        name: str,
        now: Optional[datetime] = None,
    ) -> BudgetStatus:
        """Spend for the period containing `now` (defaults to the current time)."""
        budget = await self._budget_by_name(name)
        return await self._status_of(budget, _moment(now))

    async def get_all_budget_statuses(
        self,
        now: Optional[datetime] = None,
    ) -> list[BudgetStatus]:
        now = _moment(now)
        return [
            await self._status_of(budget, now)
            for budget in await self._storage.list_budgets()
        ]

    # -------------------------------------------------------------------------
    # Scheduled transfers
    # -------------------------------------------------------------------------

    async def create_scheduled_transfer(
        self,
        name: str,
        from_name: str,
        to_name: str,
        amount_cents: Cents,
        pattern: RecurrencePattern,
        start_date: datetime,
        end_date: Optional[datetime] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
    ) -> ScheduledTransfer:
        """
        Create a recurring transfer. The start date is its first execution.

        Raises:
            NotFoundError: If a wallet doesn't exist
            InvalidAmountError, SameWalletError, WalletArchivedError,
            CurrencyMismatchError
            DuplicateError: If the name is taken
        """
        self._rules.check_amount(amount_cents)

        async with self._storage.transaction():
            from_wallet = await self._wallet_by_name(from_name)
            to_wallet = await self._wallet_by_name(to_name)
            self._rules.check_wallets(from_wallet, to_wallet)

            schedule = ScheduledTransfer(
                name=name,
                from_wallet=from_wallet.id,
                to_wallet=to_wallet.id,
                amount_cents=amount_cents,
                pattern=pattern,
                start_date=start_date,
                end_date=end_date,
                description=description,
                category=category,
            )
            await self._storage.save_scheduled_transfer(schedule)

        await self._audit_logger.log_schedule_status(
            schedule, AuditEventType.SCHEDULE_CREATED
        )
        return schedule

    async def get_scheduled_transfer(self, name: str) -> ScheduledTransfer:
        return await self._schedule_by_name(name)

    async def list_scheduled_transfers(
        self,
        include_inactive: bool = False,
    ) -> list[ScheduledTransfer]:
        return await self._storage.list_scheduled_transfers(
            include_inactive=include_inactive
        )

    async def pause_scheduled_transfer(self, name: str) -> ScheduledTransfer:
        """
        Raises:
            InvalidStatusTransitionError: If the schedule has completed
        """
        async with self._storage.transaction():
            schedule = (await self._schedule_by_name(name)).paused()
            await self._storage.update_scheduled_transfer(schedule)

        await self._audit_logger.log_schedule_status(
            schedule, AuditEventType.SCHEDULE_PAUSED
        )
        return schedule

    async def resume_scheduled_transfer(self, name: str) -> ScheduledTransfer:
        """
        Raises:
            InvalidStatusTransitionError: If the schedule has completed
        """
        async with self._storage.transaction():
            schedule = (await self._schedule_by_name(name)).resumed()
            await self._storage.update_scheduled_transfer(schedule)

        await self._audit_logger.log_schedule_status(
            schedule, AuditEventType.SCHEDULE_RESUMED
        )
        return schedule

    async def delete_scheduled_transfer(self, name: str) -> None:
        """Delete a schedule. Transfers it already created stay in the ledger."""
        async with self._storage.transaction():
            schedule = await self._schedule_by_name(name)
            await self._storage.delete_scheduled_transfer(schedule.id)

        await self._audit_logger.log_schedule_status(
            schedule, AuditEventType.SCHEDULE_DELETED
        )

    def _execution_date(
        self,
        schedule: ScheduledTransfer,
        execution_date: Optional[datetime],
        force: bool,
        now: datetime,
    ) -> datetime:
        if schedule.status is ScheduleStatus.COMPLETED:
            raise ScheduleCompletedError(schedule.name)
        if schedule.status is ScheduleStatus.PAUSED and not force:
            raise ScheduleNotDueError(schedule.name, None)

        if execution_date is not None:
            return ensure_utc(execution_date)

        pending = schedule.pending_executions(now)
        if pending:
            return pending[0]
        if force:
            return now
        raise ScheduleNotDueError(schedule.name, schedule.next_execution_date(now))

    async def execute_scheduled_transfer(
        self,
        name: str,
        execution_date: Optional[datetime] = None,
        force: bool = False,
        now: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ScheduleExecutionResult:
        """
        Materialise one execution of a scheduled transfer.

        Without execution_date the earliest pending date is used. The transfer
        and the schedule update commit together, and a date that was already
        applied is reported with already_applied=True instead of booking it
        twice.

        Args:
            force: Run even if paused or not due (uses `now` as the date when
                nothing is pending) and skip the non-negative balance check

        Raises:
            ScheduleCompletedError: If the schedule has completed
            ScheduleNotDueError: If nothing is due (or paused without force)
            InsufficientFundsError, WalletArchivedError, CurrencyMismatchError
        """
        now = _moment(now)
        correlation_id = correlation_id or create_correlation_id()

        async with self._storage.transaction():
            schedule = await self._schedule_by_name(name)
            date = self._execution_date(schedule, execution_date, force, now)

            ref = schedule_execution_ref(schedule, date)
            existing = await self._storage.get_transfer_by_external_ref(ref)
            if existing is not None or schedule.is_applied(date):
                result = ScheduleExecutionResult(
                    schedule=schedule,
                    execution_date=date,
                    transfer=existing,
                    already_applied=True,
                )
            else:
                from_wallet = await self._wallet_by_id(schedule.from_wallet)
                to_wallet = await self._wallet_by_id(schedule.to_wallet)

                transfer = await self._record(
                    from_wallet,
                    to_wallet,
                    schedule.amount_cents,
                    date,
                    force=force,
                    description=schedule.description or f"Scheduled: {schedule.name}",
                    category=schedule.category,
                    external_ref=ref,
                )
                updated = schedule.executed(date)
                await self._storage.update_scheduled_transfer(updated)
                result = ScheduleExecutionResult(
                    schedule=updated,
                    execution_date=date,
                    transfer=transfer,
                )

        if result.already_applied:
            await self._audit_logger.log_schedule_skipped(
                schedule, date, correlation_id=correlation_id
            )
            return result

        await self._audit_logger.log_transfer_recorded(
            transfer, from_wallet.name, to_wallet.name, correlation_id=correlation_id
        )
        await self._audit_logger.log_schedule_executed(
            updated, date, transfer, correlation_id=correlation_id
        )
        if updated.status is ScheduleStatus.COMPLETED:
            await self._audit_logger.log_schedule_status(
                updated, AuditEventType.SCHEDULE_COMPLETED
            )
        return result

    async def execute_due_scheduled_transfers(
        self,
        up_to: Optional[datetime] = None,
    ) -> list[ScheduleExecutionResult]:
        """
        Catch up every active schedule to `up_to` (defaults to now).

        Each pending date commits on its own, so a failure (for example
        insufficient funds) leaves earlier dates applied and the run can be
        repeated safely. At most max_catch_up_executions dates are applied
        per schedule in one call.
        """
        up_to = _moment(up_to)
        correlation_id = create_correlation_id()
        results = []

        for schedule in await self._storage.list_scheduled_transfers():
            pending = schedule.pending_executions(up_to)[:self._max_catch_up]
            for date in pending:
                results.append(await self.execute_scheduled_transfer(
                    schedule.name,
                    execution_date=date,
                    now=up_to,
                    correlation_id=correlation_id,
                ))

        return results

    # -------------------------------------------------------------------------
    # Forecast
    # -------------------------------------------------------------------------

    async def forecast_balances(
        self,
        months: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ForecastResult:
        """Project balances forward through the active schedules."""
        wallets = await self._storage.list_wallets(include_archived=True)
        balances = compute_all_balances(await self._storage.list_transfers())
        schedules = await self._storage.list_scheduled_transfers()
        return build_forecast(
            {wallet.id: wallet for wallet in wallets},
            balances,
            schedules,
            _moment(now),
            months or self._forecast_months,
        )


def create_ledger_service(
    storage: Optional[LedgerStorageInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
) -> LedgerService:
    """
    Factory function to create a ready-to-use ledger service.

    Args:
        storage: Ledger backend. Defaults to in-memory storage.
        audit_storage: Audit backend. Defaults to an in-memory audit log.
    """
    return LedgerService(
        storage=storage or InMemoryLedgerStorage(),
        audit_logger=AuditLogger(audit_storage or InMemoryAuditStorage()),
    )
