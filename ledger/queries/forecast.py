"""
Balance Forecasting

Projects wallet balances forward by replaying the future executions of
active scheduled transfers on top of the current balances.

DESIGN DECISION: The forecast is DETERMINISTIC and read-only. It uses the
same recurrence engine that drives real executions, so a forecast never
predicts a payment date the ledger would not actually produce.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Optional
from uuid import UUID

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, Field

from ledger.models.budget import PeriodType, current_period
from ledger.models.money import Cents
from ledger.models.schedule import ScheduledTransfer
from ledger.models.wallet import Wallet


class ForecastEvent(BaseModel):
    """A scheduled execution that changes balances in the forecast."""
    scheduled_name: str
    from_wallet: str
    to_wallet: str
    amount_cents: Cents


class ForecastSnapshot(BaseModel):
    """Projected balances (by wallet name) at a point in time."""
    date: datetime
    wallet_balances: dict[str, Cents]
    event: Optional[ForecastEvent] = None


class ForecastResult(BaseModel):
    start_date: datetime
    end_date: datetime
    snapshots: list[ForecastSnapshot] = Field(default_factory=list)

    def final_balances(self) -> dict[str, Cents]:
        if not self.snapshots:
            return {}
        return self.snapshots[-1].wallet_balances


def build_forecast(
    wallets: Mapping[UUID, Wallet],
    balances: Mapping[UUID, Cents],
    schedules: Iterable[ScheduledTransfer],
    now: datetime,
    months: int,
) -> ForecastResult:
    """
    Forecast balances from `now` to `now + months`.

    Args:
        wallets: Every wallet a schedule may reference (archived included)
        balances: Current balances by wallet id
        schedules: Scheduled transfers; inactive ones are ignored
        now: Forecast start
        months: Horizon in calendar months

    Returns one snapshot for the current state, one per scheduled event, and
    an end-of-month snapshot for every month without events.
    """
    end_date = now + relativedelta(months=months)

    projected = {
        wallet.name: balances.get(wallet_id, 0)
        for wallet_id, wallet in wallets.items()
        if not wallet.is_archived
    }

    events: list[tuple[datetime, ScheduledTransfer]] = []
    for schedule in schedules:
        for date in schedule.pending_executions(end_date):
            if now < date <= end_date:
                events.append((date, schedule))
    events.sort(key=lambda item: item[0])

    snapshots = [ForecastSnapshot(date=now, wallet_balances=dict(projected))]

    for date, schedule in events:
        from_name = wallets[schedule.from_wallet].name
        to_name = wallets[schedule.to_wallet].name
        projected[from_name] = projected.get(from_name, 0) - schedule.amount_cents
        projected[to_name] = projected.get(to_name, 0) + schedule.amount_cents
        snapshots.append(ForecastSnapshot(
            date=date,
            wallet_balances=dict(projected),
            event=ForecastEvent(
                scheduled_name=schedule.name,
                from_wallet=from_name,
                to_wallet=to_name,
                amount_cents=schedule.amount_cents,
            ),
        ))

    # Months without any event still get an end-of-month snapshot
    month_start, month_end = current_period(PeriodType.MONTHLY, now)
    while month_start <= end_date:
        has_snapshot = any(month_start <= s.date < month_end for s in snapshots)
        if not has_snapshot:
            snapshots.append(ForecastSnapshot(
                date=month_end - relativedelta(days=1),
                wallet_balances=dict(_balances_at(snapshots, month_end)),
            ))
        month_start, month_end = month_end, month_end + relativedelta(months=1)

    snapshots.sort(key=lambda s: s.date)

    return ForecastResult(start_date=now, end_date=end_date, snapshots=snapshots)


def _balances_at(snapshots: list[ForecastSnapshot], moment: datetime) -> dict[str, Cents]:
    """Balances of the latest snapshot strictly before `moment`."""
    earlier = [s for s in snapshots if s.date < moment]
    return max(earlier, key=lambda s: s.date).wallet_balances
