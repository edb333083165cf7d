"""
Point-in-Time Aggregates

Figures the overview screen shows next to the forecast: balances,
realized income and expenses of a month, investment performance and
debt payoff progress. All of them read a Snapshot and never mutate it.

Every ratio is guarded: a zero denominator yields 0, never an error.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal

from household_ledger.models.entities import Debt
from household_ledger.models.forecast import (
    DebtSummary,
    InvestmentPerformance,
    InvestmentSummary,
    MonthlySummary,
)
from household_ledger.models.snapshot import Snapshot


def percentage(part: Decimal, whole: Decimal) -> Decimal:
    """part / whole * 100, or 0 when whole is 0."""
    if whole == 0:
        return Decimal("0")
    return part / whole * 100


def total_balance(snapshot: Snapshot) -> Decimal:
    """Sum of all account balances."""
    return sum((account.balance for account in snapshot.accounts), Decimal("0"))


def monthly_summary(snapshot: Snapshot, today: date) -> MonthlySummary:
    """
    Realized income and expenses of the calendar month containing `today`.

    Expenses are reported as a positive magnitude.
    """
    income = Decimal("0")
    expenses = Decimal("0")
    count = 0
    for txn in snapshot.transactions:
        if txn.date.year != today.year or txn.date.month != today.month:
            continue
        count += 1
        if txn.amount > 0:
            income += txn.amount
        else:
            expenses += -txn.amount

    return MonthlySummary(
        year=today.year,
        month=today.month,
        income=income,
        expenses=expenses,
        transaction_count=count,
    )


def investment_summary(snapshot: Snapshot) -> InvestmentSummary:
    """Valuation, cost basis and performance across all investments."""
    positions = [
        InvestmentPerformance(
            investment_id=inv.id,
            asset_name=inv.asset_name,
            cost_basis=inv.cost_basis,
            current_value=inv.current_value,
            profit=inv.profit,
            profit_percentage=inv.profit_percentage,
        )
        for inv in snapshot.investments
    ]
    total_value = sum((p.current_value for p in positions), Decimal("0"))
    total_cost = sum((p.cost_basis for p in positions), Decimal("0"))

    return InvestmentSummary(
        total_value=total_value,
        total_cost=total_cost,
        total_profit=total_value - total_cost,
        performance_percentage=percentage(total_value - total_cost, total_cost),
        positions=positions,
    )


def debt_payoff_percentage(debt: Debt) -> Decimal:
    """Share of a debt already repaid, in [0, 100]."""
    return debt.payoff_percentage


def debt_summary(snapshot: Snapshot) -> DebtSummary:
    """Outstanding amounts and monthly payments, split by debt type."""
    by_type: dict[str, Decimal] = defaultdict(Decimal)
    total_remaining = Decimal("0")
    total_payments = Decimal("0")
    for debt in snapshot.debts:
        total_remaining += debt.remaining_amount
        by_type[debt.type.value] += debt.remaining_amount
        if not debt.is_settled:
            total_payments += debt.monthly_payment

    return DebtSummary(
        total_remaining=total_remaining,
        total_monthly_payments=total_payments,
        remaining_by_type=dict(by_type),
    )
