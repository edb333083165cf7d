"""
Forecast Engine

DESIGN DECISION: Forecasting is a PURE function of a Snapshot.
The engine never sees the live store; it receives a frozen snapshot
and returns new result models. It is safe to call from several readers
at once.

Two views are computed:
1. Long-horizon forecast: obligations bucketed by calendar month with a
   running balance, from the current month to today + horizon
2. Upcoming payments: the next dated withdrawals (subscriptions and
   debt payments) in a short window after today

`today` is always injectable so results are reproducible.
"""

from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from household_ledger.forecast.aggregates import percentage, total_balance
from household_ledger.forecast.schedule import ScheduleExpander, month_start
from household_ledger.models.entities import AmountSchedule
from household_ledger.models.forecast import (
    Forecast,
    ForecastDetail,
    ForecastHorizon,
    ForecastPeriod,
    ObligationKind,
    UNKNOWN_NAME,
    UpcomingPayment,
)
from household_ledger.models.snapshot import Snapshot


HORIZON_DELTAS: dict[ForecastHorizon, relativedelta] = {
    ForecastHorizon.FIVE_WEEKS: relativedelta(weeks=5),
    ForecastHorizon.SIX_MONTHS: relativedelta(months=6),
    ForecastHorizon.TWO_YEARS: relativedelta(years=2),
}


class ForecastEngine:
    """
    Cash-flow projections over a ledger snapshot.

    Usage:
        engine = ForecastEngine()
        forecast = engine.forecast(store.snapshot(), "6months")
        upcoming = engine.upcoming_payments(store.snapshot())
    """

    def __init__(self, expander: Optional[ScheduleExpander] = None):
        self._expander = expander or ScheduleExpander()

    def horizon_end(
        self,
        horizon: Union[ForecastHorizon, str],
        today: date,
    ) -> date:
        """Last day a forecast for `horizon` covers."""
        return today + HORIZON_DELTAS[ForecastHorizon(horizon)]

    def forecast(
        self,
        snapshot: Snapshot,
        horizon: Union[ForecastHorizon, str] = ForecastHorizon.SIX_MONTHS,
        today: Optional[date] = None,
    ) -> Forecast:
        """
        Project income, expenses and balance month by month.

        The first bucket is the current month; buckets continue while
        their first day is on or before today + horizon, so a short
        horizon still yields whole months.

        Args:
            snapshot: Ledger state to project from
            horizon: 5weeks, 6months or 2years
            today: Reference day (defaults to the current date)
        """
        horizon = ForecastHorizon(horizon)
        today = today or date.today()
        end = self.horizon_end(horizon, today)

        schedules: dict[str, list[AmountSchedule]] = defaultdict(list)
        for schedule in snapshot.amount_schedules:
            schedules[schedule.entry_id].append(schedule)

        initial_balance = total_balance(snapshot)
        running_balance = initial_balance
        periods = []

        cursor = month_start(today)
        while cursor <= end:
            period = self._project_month(snapshot, cursor, schedules, running_balance)
            running_balance = period.balance
            periods.append(period)
            cursor += relativedelta(months=1)

        total_income = sum((p.income for p in periods), Decimal("0"))
        total_expenses = sum((p.expenses for p in periods), Decimal("0"))
        net_change = total_income - total_expenses
        base = abs(initial_balance)

        return Forecast(
            horizon=horizon,
            as_of=today,
            initial_balance=initial_balance,
            periods=periods,
            total_income=total_income,
            total_expenses=total_expenses,
            net_change=net_change,
            final_balance=initial_balance + net_change,
            income_percentage=percentage(total_income, base),
            expense_percentage=percentage(total_expenses, base),
            balance_percentage=percentage(net_change, base),
        )

    def _project_month(
        self,
        snapshot: Snapshot,
        month: date,
        schedules: dict[str, list[AmountSchedule]],
        opening_balance: Decimal,
    ) -> ForecastPeriod:
        """Build one monthly bucket."""
        income = Decimal("0")
        expenses = Decimal("0")
        details = []

        # Recurring income
        for entry in snapshot.recurring_entries:
            count = self._expander.occurrences_in_month(entry, month)
            if not count:
                continue
            amount = self._expander.amount_for_month(
                entry, month, schedules.get(entry.id, ())
            ) * count
            income += amount
            details.append(ForecastDetail(
                kind=ObligationKind.RECURRING,
                source_id=entry.id,
                name=entry.name,
                amount=amount,
                occurrences=count,
            ))

        # Subscriptions
        for sub in snapshot.subscriptions:
            count = self._expander.occurrences_in_month(sub, month)
            if not count:
                continue
            amount = sub.amount * count
            expenses += amount
            details.append(ForecastDetail(
                kind=ObligationKind.SUBSCRIPTION,
                source_id=sub.id,
                name=sub.name,
                amount=-amount,
                occurrences=count,
            ))

        # Debt payments: only an end date stops them
        for debt in snapshot.debts:
            if debt.has_ended(month) or debt.monthly_payment <= 0:
                continue
            expenses += debt.monthly_payment
            details.append(ForecastDetail(
                kind=ObligationKind.DEBT,
                source_id=debt.id,
                name=debt.name,
                amount=-debt.monthly_payment,
            ))

        details.sort(key=lambda d: d.amount, reverse=True)

        return ForecastPeriod(
            month=month,
            income=income,
            expenses=expenses,
            balance=opening_balance + income - expenses,
            details=details,
        )

    def upcoming_payments(
        self,
        snapshot: Snapshot,
        today: Optional[date] = None,
        window_days: int = 30,
        limit: int = 5,
    ) -> list[UpcomingPayment]:
        """
        Withdrawals due in [today, today + window_days], earliest first.

        Only subscriptions and debts are considered; income is not a
        payment. Settled debts are skipped.
        """
        today = today or date.today()
        window_end = today + timedelta(days=window_days)
        payments = []
        person_names = {p.id: p.name for p in snapshot.persons}
        account_names = {a.id: a.name for a in snapshot.accounts}

        for sub in snapshot.subscriptions:
            due = self._expander.next_occurrence(sub, today)
            if due is None or due > window_end:
                continue
            payments.append(UpcomingPayment(
                kind=ObligationKind.SUBSCRIPTION,
                source_id=sub.id,
                name=sub.name,
                date=due,
                amount=-sub.amount,
                person_id=sub.person_id,
                account_id=sub.account_id,
                person_name=person_names.get(sub.person_id, UNKNOWN_NAME),
                account_name=account_names.get(sub.account_id, UNKNOWN_NAME),
            ))

        for debt in snapshot.debts:
            if debt.is_settled:
                continue
            due = self._expander.next_occurrence(debt, today)
            if due is None or due > window_end:
                continue
            payments.append(UpcomingPayment(
                kind=ObligationKind.DEBT,
                source_id=debt.id,
                name=debt.name,
                date=due,
                amount=-debt.monthly_payment,
                person_id=debt.person_id,
                account_id=debt.account_id,
                person_name=person_names.get(debt.person_id, UNKNOWN_NAME),
                account_name=account_names.get(debt.account_id, UNKNOWN_NAME),
            ))

        payments.sort(key=lambda p: p.date)
        return payments[:limit]
