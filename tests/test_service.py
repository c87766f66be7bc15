"""
Integration tests for LedgerService on the in-memory backends.

These exercise the full flows: validation against fresh state inside the
storage transaction, reversals, scheduled execution and the audit trail.
"""

from datetime import datetime
from uuid import uuid4

import pytest

from ledger.models import (
    AuditEventType,
    CurrencyMismatchError,
    InsufficientFundsError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    PeriodType,
    RecurrencePattern,
    ReversalExceedsOriginalError,
    SameWalletError,
    ScheduleCompletedError,
    ScheduleNotDueError,
    ScheduleStatus,
    WalletArchivedError,
    WalletType,
)
from ledger.services.storage import DuplicateError, NotFoundError
from tests.conftest import utc


async def event_types(audit_storage):
    return [e.event_type for e in reversed(await audit_storage.get_recent_events())]


class TestWallets:
    """Wallet creation, archiving and balances."""

    async def test_create_wallet_uses_default_currency(self, service):
        wallet = await service.create_wallet("Checking", WalletType.ASSET)
        assert wallet.currency == "EUR"
        assert wallet.allow_negative is False
        assert (await service.get_wallet("Checking")).id == wallet.id

    async def test_duplicate_name_rejected(self, service):
        await service.create_wallet("Checking", WalletType.ASSET)
        with pytest.raises(DuplicateError):
            await service.create_wallet("Checking", WalletType.LIABILITY)

    async def test_unknown_wallet(self, service):
        with pytest.raises(NotFoundError, match="Nowhere"):
            await service.get_wallet("Nowhere")

    async def test_archive_keeps_balance_and_history(self, funded_service):
        archived = await funded_service.archive_wallet("Checking", now=utc(2024, 2, 1))
        assert archived.archived_at == utc(2024, 2, 1)

        assert [w.name for w in await funded_service.list_wallets()] == ["Groceries", "Salary"]
        assert (await funded_service.get_balance("Checking")).balance_cents == 100000
        assert len(await funded_service.list_transfers("Checking")) == 1

    async def test_get_all_balances(self, funded_service):
        balances = {
            entry.wallet_name: entry.balance_cents
            for entry in await funded_service.get_all_balances()
        }
        assert balances == {"Checking": 100000, "Groceries": 0, "Salary": -100000}

    async def test_wallet_info(self, funded_service):
        await funded_service.record_transfer(
            "Checking", "Groceries", 1500, timestamp=utc(2024, 1, 9)
        )
        info = await funded_service.get_wallet_info("Checking")
        assert info.balance_cents == 98500
        assert info.incoming_count == 1
        assert info.outgoing_count == 1
        assert info.last_activity == utc(2024, 1, 9)


class TestRecordTransfer:
    """Transfers are validated against fresh balances before commit."""

    async def test_record_transfer(self, funded_service):
        result = await funded_service.record_transfer(
            "Checking",
            "Groceries",
            2500,
            timestamp=utc(2024, 1, 10),
            category="groceries",
            tags=("weekly",),
        )
        assert result.transfer.sequence == 2
        assert result.transfer.tags == ("weekly",)
        assert result.from_balance_cents == 97500
        assert result.to_balance_cents == 2500

    async def test_insufficient_funds_rejected_and_audited(self, funded_service, audit_storage):
        with pytest.raises(InsufficientFundsError):
            await funded_service.record_transfer("Checking", "Groceries", 100001)

        assert len(await funded_service.list_transfers()) == 1
        assert (await event_types(audit_storage))[-1] == AuditEventType.TRANSFER_REJECTED

    async def test_exact_balance_allowed(self, funded_service):
        result = await funded_service.record_transfer("Checking", "Groceries", 100000)
        assert result.from_balance_cents == 0

    async def test_force_overrides_funds_check(self, funded_service):
        result = await funded_service.record_transfer(
            "Checking", "Groceries", 150000, force=True
        )
        assert result.from_balance_cents == -50000

    async def test_negative_allowed_wallet_needs_no_funds(self, funded_service):
        await funded_service.create_wallet("Card", WalletType.LIABILITY)
        result = await funded_service.record_transfer("Card", "Groceries", 5000)
        assert result.from_balance_cents == -5000

    async def test_zero_amount_rejected(self, funded_service):
        with pytest.raises(InvalidAmountError):
            await funded_service.record_transfer("Salary", "Checking", 0)

    async def test_archived_wallet_rejected(self, funded_service):
        await funded_service.archive_wallet("Groceries")
        with pytest.raises(WalletArchivedError):
            await funded_service.record_transfer("Checking", "Groceries", 100)

    async def test_currency_mismatch_rejected(self, funded_service):
        await funded_service.create_wallet("Travel", WalletType.ASSET, currency="USD")
        with pytest.raises(CurrencyMismatchError):
            await funded_service.record_transfer("Checking", "Travel", 100)

    async def test_unknown_wallet_rejected(self, funded_service):
        with pytest.raises(NotFoundError):
            await funded_service.record_transfer("Checking", "Nowhere", 100)

    async def test_self_transfer_rejected_and_audited(self, funded_service, audit_storage):
        with pytest.raises(SameWalletError):
            await funded_service.record_transfer("Checking", "Checking", 50000)
        assert (await event_types(audit_storage))[-1] == AuditEventType.TRANSFER_REJECTED

        # Balances are untouched, so the funds check still holds
        assert (await funded_service.get_balance("Checking")).balance_cents == 100000
        with pytest.raises(InsufficientFundsError):
            await funded_service.record_transfer("Checking", "Groceries", 150000)
        assert len(await funded_service.list_transfers()) == 1

    async def test_naive_timestamp_is_read_as_utc(self, funded_service):
        result = await funded_service.record_transfer(
            "Checking", "Groceries", 2500, timestamp=datetime(2024, 1, 10, 8, 0)
        )
        assert result.transfer.timestamp == utc(2024, 1, 10, 8, 0)

    async def test_ledger_stays_balanced(self, funded_service):
        await funded_service.record_transfer("Checking", "Groceries", 2500)
        await funded_service.record_transfer("Salary", "Checking", 7000)

        report = await funded_service.check_integrity()
        assert report.is_healthy
        assert report.transfer_count == 3
        assert report.total_balance == 0


class TestReversals:
    """Reversals swap wallets and never exceed the original."""

    async def test_partial_reversals_accumulate(self, funded_service):
        original = (await funded_service.record_transfer(
            "Checking", "Groceries", 10000, category="groceries"
        )).transfer

        first = await funded_service.reverse_transfer(original.id, 6000)
        assert first.is_partial
        assert first.remaining_cents == 4000
        assert first.reversal.category == "groceries"

        with pytest.raises(ReversalExceedsOriginalError) as exc_info:
            await funded_service.reverse_transfer(original.id, 6000)
        assert exc_info.value.remaining == 4000

        last = await funded_service.reverse_transfer(original.id, 4000)
        assert last.remaining_cents == 0

        info = await funded_service.get_transfer_info(original.id)
        assert info.total_reversed_cents == 10000
        assert info.is_fully_reversed
        assert len(info.reversals) == 2
        assert (await funded_service.get_balance("Checking")).balance_cents == 100000

    async def test_full_reversal(self, funded_service, audit_storage):
        original = (await funded_service.record_transfer(
            "Checking", "Groceries", 2500, description="Market"
        )).transfer

        result = await funded_service.reverse_transfer(original.id, now=utc(2024, 2, 1))
        assert result.is_partial is False
        assert result.reversal.amount_cents == 2500
        assert result.reversal.from_wallet == original.to_wallet
        assert result.reversal.description == "Reversal of: Market"
        assert result.reversal.sequence == 3
        assert (await event_types(audit_storage))[-1] == AuditEventType.REVERSAL_RECORDED

    async def test_full_reversal_after_partial_exceeds(self, funded_service):
        original = (await funded_service.record_transfer("Checking", "Groceries", 2500)).transfer
        await funded_service.reverse_transfer(original.id, 1)
        with pytest.raises(ReversalExceedsOriginalError):
            await funded_service.reverse_transfer(original.id)

    async def test_reversal_amount_bounds(self, funded_service):
        original = (await funded_service.record_transfer("Checking", "Groceries", 2500)).transfer
        with pytest.raises(InvalidAmountError):
            await funded_service.reverse_transfer(original.id, 0)
        with pytest.raises(InvalidAmountError):
            await funded_service.reverse_transfer(original.id, 2501)

    async def test_unknown_transfer(self, funded_service):
        with pytest.raises(NotFoundError):
            await funded_service.reverse_transfer(uuid4())


class TestBudgets:
    """Budget CRUD and status."""

    async def test_budget_status_counts_current_month_only(self, funded_service):
        await funded_service.create_budget("Food", "groceries", 30000, PeriodType.MONTHLY)
        await funded_service.record_transfer(
            "Checking", "Groceries", 5000, timestamp=utc(2023, 12, 20), category="groceries"
        )
        await funded_service.record_transfer(
            "Checking", "Groceries", 12000, timestamp=utc(2024, 1, 10), category="groceries"
        )
        await funded_service.record_transfer(
            "Checking", "Groceries", 800, timestamp=utc(2024, 1, 11), category="dining"
        )

        status = await funded_service.get_budget_status("Food", now=utc(2024, 1, 15))
        assert status.spent == 12000
        assert status.remaining == 18000
        assert status.period_start == utc(2024, 1, 1)

        statuses = await funded_service.get_all_budget_statuses(now=utc(2024, 1, 15))
        assert [s.budget.name for s in statuses] == ["Food"]

        naive = await funded_service.get_budget_status("Food", now=datetime(2024, 1, 15))
        assert naive.spent == 12000

    async def test_budget_amount_must_be_positive(self, service):
        with pytest.raises(InvalidAmountError):
            await service.create_budget("Food", "groceries", 0, PeriodType.MONTHLY)

    async def test_delete_budget(self, service):
        await service.create_budget("Food", "groceries", 30000, PeriodType.WEEKLY)
        await service.delete_budget("Food")
        assert await service.list_budgets() == []
        with pytest.raises(NotFoundError):
            await service.get_budget("Food")


class TestScheduledTransfers:
    """Scheduled execution is atomic and idempotent per due date."""

    async def _rent(self, service, **fields):
        await service.create_wallet("Landlord", WalletType.EXPENSE)
        return await service.create_scheduled_transfer(
            "Rent",
            "Checking",
            "Landlord",
            fields.pop("amount_cents", 30000),
            fields.pop("pattern", RecurrencePattern.MONTHLY),
            fields.pop("start_date", utc(2024, 1, 15)),
            category="housing",
            **fields,
        )

    async def test_catch_up_until_completed(self, funded_service, audit_storage):
        await self._rent(funded_service, end_date=utc(2024, 3, 15))

        results = await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 12, 31))

        assert [r.execution_date for r in results] == [
            utc(2024, 1, 15),
            utc(2024, 2, 15),
            utc(2024, 3, 15),
        ]
        schedule = await funded_service.get_scheduled_transfer("Rent")
        assert schedule.status is ScheduleStatus.COMPLETED
        assert schedule.last_executed_at == utc(2024, 3, 15)
        assert (await funded_service.get_balance("Checking")).balance_cents == 10000
        assert AuditEventType.SCHEDULE_COMPLETED in await event_types(audit_storage)

        # The executions share one correlation id
        executed = [
            e for e in await audit_storage.get_recent_events()
            if e.event_type == AuditEventType.SCHEDULE_EXECUTED
        ]
        assert len(executed) == 3
        assert len({e.correlation_id for e in executed}) == 1
        related = await audit_storage.get_events_by_correlation_id(executed[0].correlation_id)
        assert len(related) == 6  # transfer recorded + schedule executed, per date

    async def test_transfers_carry_schedule_reference(self, funded_service):
        schedule = await self._rent(funded_service)
        results = await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 1, 20))

        transfer = results[0].transfer
        assert transfer.timestamp == utc(2024, 1, 15)
        assert transfer.category == "housing"
        assert transfer.external_ref == f"schedule:{schedule.id}:2024-01-15T00:00:00+00:00"

    async def test_catch_up_is_idempotent(self, funded_service, audit_storage):
        await self._rent(funded_service, pattern=RecurrencePattern.DAILY, amount_cents=100,
                         start_date=utc(2024, 1, 1))

        first = await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 1, 3))
        second = await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 1, 3))
        assert len(first) == 3
        assert second == []

        replay = await funded_service.execute_scheduled_transfer(
            "Rent", execution_date=utc(2024, 1, 2)
        )
        assert replay.already_applied is True
        assert replay.transfer.id == first[1].transfer.id
        assert len(await funded_service.list_transfers()) == 4
        assert (await event_types(audit_storage))[-1] == AuditEventType.SCHEDULE_EXECUTION_SKIPPED

    async def test_execute_uses_earliest_pending_date(self, funded_service):
        await self._rent(funded_service)
        result = await funded_service.execute_scheduled_transfer("Rent", now=utc(2024, 3, 1))
        assert result.execution_date == utc(2024, 1, 15)
        assert result.schedule.last_executed_at == utc(2024, 1, 15)

    async def test_not_due(self, funded_service):
        await self._rent(funded_service, start_date=utc(2024, 6, 1))
        with pytest.raises(ScheduleNotDueError):
            await funded_service.execute_scheduled_transfer("Rent", now=utc(2024, 1, 20))

    async def test_failed_execution_leaves_earlier_dates_applied(self, funded_service):
        await self._rent(funded_service, pattern=RecurrencePattern.DAILY, amount_cents=40000,
                         start_date=utc(2024, 1, 1))

        with pytest.raises(InsufficientFundsError):
            await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 1, 5))

        schedule = await funded_service.get_scheduled_transfer("Rent")
        assert schedule.last_executed_at == utc(2024, 1, 2)
        assert (await funded_service.get_balance("Checking")).balance_cents == 20000

    async def test_paused_schedule_needs_force(self, funded_service):
        await self._rent(funded_service)
        await funded_service.pause_scheduled_transfer("Rent")

        assert await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 6, 1)) == []
        with pytest.raises(ScheduleNotDueError):
            await funded_service.execute_scheduled_transfer("Rent", now=utc(2024, 6, 1))

        result = await funded_service.execute_scheduled_transfer(
            "Rent", force=True, now=utc(2024, 6, 1)
        )
        assert result.execution_date == utc(2024, 6, 1)
        assert result.schedule.status is ScheduleStatus.PAUSED

    async def test_resume(self, funded_service):
        await self._rent(funded_service)
        await funded_service.pause_scheduled_transfer("Rent")
        resumed = await funded_service.resume_scheduled_transfer("Rent")
        assert resumed.status is ScheduleStatus.ACTIVE
        assert [s.name for s in await funded_service.list_scheduled_transfers()] == ["Rent"]

    async def test_completed_schedule_is_terminal(self, funded_service):
        await self._rent(funded_service, end_date=utc(2024, 1, 15))
        await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 2, 1))

        with pytest.raises(ScheduleCompletedError):
            await funded_service.execute_scheduled_transfer("Rent", force=True)
        with pytest.raises(InvalidStatusTransitionError):
            await funded_service.resume_scheduled_transfer("Rent")
        assert await funded_service.list_scheduled_transfers() == []
        assert len(await funded_service.list_scheduled_transfers(include_inactive=True)) == 1

    async def test_create_validates_wallets(self, funded_service):
        await funded_service.archive_wallet("Groceries")
        with pytest.raises(WalletArchivedError):
            await funded_service.create_scheduled_transfer(
                "Food", "Checking", "Groceries", 100, RecurrencePattern.WEEKLY, utc(2024, 1, 1)
            )
        with pytest.raises(InvalidAmountError):
            await funded_service.create_scheduled_transfer(
                "Food", "Checking", "Salary", 0, RecurrencePattern.WEEKLY, utc(2024, 1, 1)
            )

    async def test_create_rejects_same_wallet(self, funded_service):
        with pytest.raises(SameWalletError):
            await funded_service.create_scheduled_transfer(
                "Loop", "Checking", "Checking", 100, RecurrencePattern.WEEKLY, utc(2024, 1, 1)
            )

    async def test_naive_dates_are_read_as_utc(self, funded_service):
        await self._rent(funded_service, start_date=datetime(2024, 1, 15))

        results = await funded_service.execute_due_scheduled_transfers(
            up_to=datetime(2024, 3, 1)
        )
        assert [r.execution_date for r in results] == [utc(2024, 1, 15), utc(2024, 2, 15)]

    async def test_delete_keeps_executed_transfers(self, funded_service):
        await self._rent(funded_service)
        await funded_service.execute_due_scheduled_transfers(up_to=utc(2024, 1, 20))
        await funded_service.delete_scheduled_transfer("Rent")

        with pytest.raises(NotFoundError):
            await funded_service.get_scheduled_transfer("Rent")
        assert len(await funded_service.list_transfers()) == 2


class TestForecast:
    """Forecasts replay future schedule executions without writing."""

    async def test_forecast_with_schedule(self, funded_service):
        await funded_service.create_wallet("Landlord", WalletType.EXPENSE)
        await funded_service.create_scheduled_transfer(
            "Rent", "Checking", "Landlord", 30000, RecurrencePattern.MONTHLY, utc(2024, 2, 1)
        )

        forecast = await funded_service.forecast_balances(months=3, now=utc(2024, 1, 15))

        assert forecast.end_date == utc(2024, 4, 15)
        assert [s.date for s in forecast.snapshots] == [
            utc(2024, 1, 15),
            utc(2024, 2, 1),
            utc(2024, 3, 1),
            utc(2024, 4, 1),
        ]
        assert forecast.snapshots[1].event.scheduled_name == "Rent"
        assert forecast.final_balances()["Checking"] == 10000
        assert forecast.final_balances()["Landlord"] == 90000

        # Nothing was written
        assert len(await funded_service.list_transfers()) == 1

    async def test_months_without_events_get_month_end_snapshot(self, funded_service):
        forecast = await funded_service.forecast_balances(months=2, now=utc(2024, 1, 15))

        dates = [s.date for s in forecast.snapshots]
        assert utc(2024, 2, 29) in dates
        assert all(s.wallet_balances["Checking"] == 100000 for s in forecast.snapshots)

    async def test_paused_schedules_are_ignored(self, funded_service):
        await funded_service.create_wallet("Landlord", WalletType.EXPENSE)
        await funded_service.create_scheduled_transfer(
            "Rent", "Checking", "Landlord", 30000, RecurrencePattern.MONTHLY, utc(2024, 2, 1)
        )
        await funded_service.pause_scheduled_transfer("Rent")

        forecast = await funded_service.forecast_balances(months=3, now=utc(2024, 1, 15))
        assert all(s.event is None for s in forecast.snapshots)


class TestAuditTrail:
    """Every mutation leaves an audit event."""

    async def test_mutations_are_audited(self, service, audit_storage):
        await service.create_wallet("Checking", WalletType.ASSET)
        await service.create_wallet("Salary", WalletType.INCOME)
        await service.record_transfer("Salary", "Checking", 1000)
        await service.archive_wallet("Salary")
        await service.check_integrity()

        assert await event_types(audit_storage) == [
            AuditEventType.WALLET_CREATED,
            AuditEventType.WALLET_CREATED,
            AuditEventType.TRANSFER_RECORDED,
            AuditEventType.WALLET_ARCHIVED,
            AuditEventType.INTEGRITY_CHECKED,
        ]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
