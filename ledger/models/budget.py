"""
Budget Models

A budget caps spending in one category per period (week, month, year).

DESIGN DECISION: Budgets hold configuration only. Spend is recomputed from
the transfer set on every query, inside the half-open window [start, end)
containing "now". Nothing carries over between periods.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from enum import Enum
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field

from ledger.models.common import UtcDatetime, ensure_utc, utc_now
from ledger.models.money import CENTS_MAX, Cents
from ledger.models.transfer import Transfer


class PeriodType(str, Enum):
    """Budget period length."""
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


def _midnight(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _weekly(now: datetime) -> tuple[datetime, datetime]:
    # Weeks start on Monday
    start = _midnight(now) - timedelta(days=now.weekday())
    return start, start + timedelta(days=7)


def _monthly(now: datetime) -> tuple[datetime, datetime]:
    start = _midnight(now).replace(day=1)
    return start, start + relativedelta(months=1)


def _yearly(now: datetime) -> tuple[datetime, datetime]:
    start = _midnight(now).replace(month=1, day=1)
    return start, start.replace(year=start.year + 1)


_PERIODS = {
    PeriodType.WEEKLY: _weekly,
    PeriodType.MONTHLY: _monthly,
    PeriodType.YEARLY: _yearly,
}


def current_period(period_type: PeriodType, now: datetime) -> tuple[datetime, datetime]:
    """
    Half-open window [start, end) of `period_type` that contains `now`.

    The timezone of `now` is kept on both bounds; a naive `now` is read as UTC.
    """
    return _PERIODS[period_type](ensure_utc(now))


class Budget(BaseModel):
    """Spending limit for one category per period."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique budget name"
    )
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Transfer category this budget tracks"
    )
    period_type: PeriodType
    amount_cents: Cents = Field(..., gt=0, le=CENTS_MAX, strict=True)
    created_at: UtcDatetime = Field(default_factory=utc_now)

    def current_period(self, now: datetime) -> tuple[datetime, datetime]:
        return current_period(self.period_type, now)


class BudgetStatus(BaseModel):
    """Spend against a budget for the period containing a given moment."""

    budget: Budget
    spent: Cents
    remaining: Cents
    period_start: datetime
    period_end: datetime

    @property
    def is_over_budget(self) -> bool:
        return self.remaining < 0


def compute_spent(
    category: str,
    transfers: Iterable[Transfer],
    start: datetime,
    end: datetime,
) -> Cents:
    """Sum of amounts in `category` whose timestamp falls inside [start, end)."""
    return sum(
        t.amount_cents
        for t in transfers
        if t.category == category and start <= t.timestamp < end
    )


def compute_budget_status(
    budget: Budget,
    transfers: Iterable[Transfer],
    now: datetime,
) -> BudgetStatus:
    """Recompute a budget's spend from scratch for the period containing `now`."""
    start, end = budget.current_period(now)
    spent = compute_spent(budget.category, transfers, start, end)
    return BudgetStatus(
        budget=budget,
        spent=spent,
        remaining=budget.amount_cents - spent,
        period_start=start,
        period_end=end,
    )
