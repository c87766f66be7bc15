"""Shared helpers for ledger models."""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import AfterValidator


def utc_now() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Read a naive datetime as UTC. Aware values are returned unchanged."""
    if moment.tzinfo is None or moment.utcoffset() is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# Every stored datetime is aware, so comparisons never mix naive and aware
UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]
