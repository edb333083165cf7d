"""Forecasting package: schedule expansion, projections and aggregates."""

from household_ledger.forecast.aggregates import (
    debt_payoff_percentage,
    debt_summary,
    investment_summary,
    monthly_summary,
    percentage,
    total_balance,
)
from household_ledger.forecast.engine import HORIZON_DELTAS, ForecastEngine
from household_ledger.forecast.schedule import (
    ScheduleExpander,
    clamped_date,
    month_end,
    month_start,
)

__all__ = [
    # Engine
    "HORIZON_DELTAS",
    "ForecastEngine",
    # Schedule expansion
    "ScheduleExpander",
    "clamped_date",
    "month_end",
    "month_start",
    # Aggregates
    "debt_payoff_percentage",
    "debt_summary",
    "investment_summary",
    "monthly_summary",
    "percentage",
    "total_balance",
]
