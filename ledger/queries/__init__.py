"""Read-side ledger queries: balances and forecasts."""

from ledger.queries.balances import (
    compute_all_balances,
    compute_balance,
    total_reversed_amount,
)
from ledger.queries.forecast import (
    ForecastEvent,
    ForecastResult,
    ForecastSnapshot,
    build_forecast,
)

__all__ = [
    "ForecastEvent",
    "ForecastResult",
    "ForecastSnapshot",
    "build_forecast",
    "compute_all_balances",
    "compute_balance",
    "total_reversed_amount",
]
