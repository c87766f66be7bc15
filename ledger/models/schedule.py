"""
Scheduled Transfer Model (Recurrence Engine)

A scheduled transfer is a template for a recurring transfer. It decides
WHEN a payment is due; materialising the payment into a real Transfer is the
ledger service's job.

LIFECYCLE:
    ACTIVE ⇄ PAUSED      explicit user action
    ACTIVE → COMPLETED   automatic, once an executed date reaches end_date

PAUSED and COMPLETED produce no due dates. COMPLETED is terminal.

CALENDAR RULES:
- Daily:   +1 day
- Weekly:  +7 days
- Monthly: same day next month, clamped to the last day of a shorter month
           (Jan 31 -> Feb 29 in 2024, Feb 28 in 2023)
- Yearly:  same month/day next year, Feb 29 -> Feb 28 in non-leap years

Month and year steps use dateutil's relativedelta, which clamps to the end
of the month instead of overflowing, and keeps the time of day.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from dateutil.relativedelta import relativedelta
from pydantic import BaseModel, ConfigDict, Field, model_validator

from ledger.models.common import UtcDatetime, ensure_utc, utc_now
from ledger.models.errors import InvalidStatusTransitionError
from ledger.models.money import CENTS_MAX, Cents


class RecurrencePattern(str, Enum):
    """How often a scheduled transfer repeats."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class ScheduleStatus(str, Enum):
    """Lifecycle status of a scheduled transfer."""
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


_STEPS = {
    RecurrencePattern.DAILY: relativedelta(days=1),
    RecurrencePattern.WEEKLY: relativedelta(days=7),
    RecurrencePattern.MONTHLY: relativedelta(months=1),
    RecurrencePattern.YEARLY: relativedelta(years=1),
}


def advance(date: datetime, pattern: RecurrencePattern) -> datetime:
    """Move `date` forward by one period of `pattern`."""
    return date + _STEPS[pattern]


class ScheduledTransfer(BaseModel):
    """
    A recurring transfer template.

    All query methods are pure: they only read the schedule and the `now`
    they are given. Lifecycle methods return updated copies, so a caller
    that fails half-way never sees a partially changed schedule.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Unique schedule name"
    )
    from_wallet: UUID
    to_wallet: UUID
    amount_cents: Cents = Field(..., gt=0, le=CENTS_MAX, strict=True)
    pattern: RecurrencePattern
    start_date: UtcDatetime
    end_date: Optional[UtcDatetime] = None
    last_executed_at: Optional[UtcDatetime] = None
    status: ScheduleStatus = ScheduleStatus.ACTIVE
    description: Optional[str] = Field(default=None, max_length=500)
    category: Optional[str] = Field(default=None, max_length=100)
    created_at: UtcDatetime = Field(default_factory=utc_now)

    @model_validator(mode='after')
    def validate_dates(self) -> 'ScheduledTransfer':
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self

    # -------------------------------------------------------------------------
    # Recurrence queries
    # -------------------------------------------------------------------------

    @property
    def is_active(self) -> bool:
        return self.status is ScheduleStatus.ACTIVE

    @property
    def reference_date(self) -> datetime:
        """Last execution, or the start date if never executed."""
        return self.last_executed_at or self.start_date

    def _past_end(self, candidate: datetime) -> bool:
        return self.end_date is not None and candidate > self.end_date

    def next_execution_date(self, now: datetime) -> Optional[datetime]:
        """
        Next execution date as seen from `now`.

        Returns None when the schedule is not active or the next candidate
        lies beyond end_date. While the reference date is still in the
        future it is returned unchanged (first execution not reached yet).
        """
        now = ensure_utc(now)
        if not self.is_active:
            return None

        reference = self.reference_date
        if reference > now:
            return reference

        candidate = advance(reference, self.pattern)
        if self._past_end(candidate):
            return None
        return candidate

    def is_due(self, now: datetime) -> bool:
        """True if at least one execution should happen at `now`."""
        now = ensure_utc(now)
        if not self.is_active:
            return False

        if self.last_executed_at is None and self.start_date <= now:
            return True

        next_date = self.next_execution_date(self.reference_date)
        return next_date is not None and next_date <= now

    def pending_executions(self, now: datetime) -> list[datetime]:
        """
        All execution dates not yet applied, up to and including `now`.

        The start date itself counts as the first execution of a schedule
        that never ran. The list is finite (clamped by `now` and end_date)
        and safe to recompute after a partial failure.
        """
        now = ensure_utc(now)
        if not self.is_active:
            return []

        current = self.reference_date
        if current > now:
            return []

        executions = []
        if self.last_executed_at is None:
            executions.append(self.start_date)

        while True:
            candidate = advance(current, self.pattern)
            if candidate > now or self._past_end(candidate):
                break
            executions.append(candidate)
            current = candidate

        return executions

    def is_applied(self, execution_date: datetime) -> bool:
        """True if `execution_date` was already materialised."""
        execution_date = ensure_utc(execution_date)
        return self.last_executed_at is not None and execution_date <= self.last_executed_at

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def paused(self) -> 'ScheduledTransfer':
        if self.status is ScheduleStatus.COMPLETED:
            raise InvalidStatusTransitionError(
                self.name, self.status.value, ScheduleStatus.PAUSED.value
            )
        return self.model_copy(update={"status": ScheduleStatus.PAUSED})

    def resumed(self) -> 'ScheduledTransfer':
        if self.status is ScheduleStatus.COMPLETED:
            raise InvalidStatusTransitionError(
                self.name, self.status.value, ScheduleStatus.ACTIVE.value
            )
        return self.model_copy(update={"status": ScheduleStatus.ACTIVE})

    def executed(self, execution_date: datetime) -> 'ScheduledTransfer':
        """
        Copy recording that `execution_date` was applied.

        Reaching or passing end_date completes the schedule. An execution
        older than last_executed_at (a forced back-dated run) never moves
        the reference date backwards.
        """
        execution_date = ensure_utc(execution_date)
        update = {}
        if not self.is_applied(execution_date):
            update["last_executed_at"] = execution_date
        if self.end_date is not None and execution_date >= self.end_date:
            update["status"] = ScheduleStatus.COMPLETED
        return self.model_copy(update=update)
