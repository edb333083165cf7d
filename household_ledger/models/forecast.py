"""
Forecast and Aggregate Result Models

Everything the forecast engine and the aggregate helpers return.
These are computed values: nothing here is stored in a snapshot.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from household_ledger.models.entities import Transaction


# Shown when a payment points at a person or account that no longer exists
UNKNOWN_NAME = "Unknown"


class ForecastHorizon(str, Enum):
    """Forward time span of a long-horizon forecast."""
    FIVE_WEEKS = "5weeks"
    SIX_MONTHS = "6months"
    TWO_YEARS = "2years"


class ObligationKind(str, Enum):
    """Which collection an occurrence was expanded from."""
    RECURRING = "recurring"
    SUBSCRIPTION = "subscription"
    DEBT = "debt"


# =============================================================================
# LONG-HORIZON FORECAST
# =============================================================================

class ForecastDetail(BaseModel):
    """One obligation's contribution to a forecast month."""

    kind: ObligationKind
    source_id: str
    name: str
    amount: Decimal = Field(
        ...,
        description="Signed contribution; income positive, expenses negative"
    )
    occurrences: int = Field(
        default=1,
        ge=1,
        description="How many occurrences fell into the month"
    )


class ForecastPeriod(BaseModel):
    """A monthly bucket of projected cash flow."""

    month: date = Field(
        ...,
        description="First day of the bucketed month"
    )
    income: Decimal = Decimal("0")
    expenses: Decimal = Field(
        default=Decimal("0"),
        description="Projected outflow as a positive magnitude"
    )
    balance: Decimal = Field(
        ...,
        description="Running balance after this month"
    )
    details: list[ForecastDetail] = Field(default_factory=list)

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class Forecast(BaseModel):
    """Result of a long-horizon forecast."""

    horizon: ForecastHorizon
    as_of: date = Field(
        ...,
        description="The 'today' the forecast was computed for"
    )
    initial_balance: Decimal
    periods: list[ForecastPeriod] = Field(default_factory=list)

    total_income: Decimal = Decimal("0")
    total_expenses: Decimal = Decimal("0")
    net_change: Decimal = Decimal("0")
    final_balance: Decimal = Decimal("0")

    # Relative to |initial_balance|; 0 when the initial balance is 0
    income_percentage: Decimal = Decimal("0")
    expense_percentage: Decimal = Decimal("0")
    balance_percentage: Decimal = Decimal("0")


# =============================================================================
# UPCOMING PAYMENTS
# =============================================================================

class UpcomingPayment(BaseModel):
    """A withdrawal expected within the short-horizon window."""

    kind: ObligationKind
    source_id: str
    name: str
    date: date
    amount: Decimal = Field(
        ...,
        description="Negative magnitude (expense sign)"
    )
    person_id: Optional[str] = None
    account_id: Optional[str] = None
    person_name: str = UNKNOWN_NAME
    account_name: str = UNKNOWN_NAME


# =============================================================================
# POINT-IN-TIME AGGREGATES
# =============================================================================

class MonthlySummary(BaseModel):
    """Realized income and expenses of one calendar month."""

    year: int
    month: int = Field(..., ge=1, le=12)
    income: Decimal = Decimal("0")
    expenses: Decimal = Field(
        default=Decimal("0"),
        description="Sum of outflows as a positive magnitude"
    )
    transaction_count: int = 0

    @property
    def net(self) -> Decimal:
        return self.income - self.expenses


class InvestmentPerformance(BaseModel):
    """Valuation of a single position."""

    investment_id: str
    asset_name: str
    cost_basis: Decimal
    current_value: Decimal
    profit: Decimal
    profit_percentage: Decimal


class InvestmentSummary(BaseModel):
    """Valuation across all positions."""

    total_value: Decimal = Decimal("0")
    total_cost: Decimal = Decimal("0")
    total_profit: Decimal = Decimal("0")
    performance_percentage: Decimal = Decimal("0")
    positions: list[InvestmentPerformance] = Field(default_factory=list)


class DebtSummary(BaseModel):
    """Outstanding debt and the monthly load it puts on cash flow."""

    total_remaining: Decimal = Decimal("0")
    total_monthly_payments: Decimal = Decimal("0")
    remaining_by_type: dict[str, Decimal] = Field(default_factory=dict)


class DashboardSummary(BaseModel):
    """Everything the overview screen shows, computed in one pass."""

    as_of: date
    total_balance: Decimal
    monthly: MonthlySummary
    investments: InvestmentSummary
    debts: DebtSummary
    upcoming_payments: list[UpcomingPayment] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
