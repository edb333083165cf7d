"""
Tests for the forecast engine

All forecasts are computed for a fixed `today` so bucket boundaries
and running balances are reproducible.
"""

import pytest
from datetime import date
from decimal import Decimal

from household_ledger.forecast import ForecastEngine
from household_ledger.models import (
    Account,
    AmountSchedule,
    Debt,
    ForecastHorizon,
    Frequency,
    ObligationKind,
    Person,
    RecurringEntry,
    Snapshot,
    Subscription,
)


TODAY = date(2024, 3, 20)


def salary(**overrides):
    data = {
        "id": "r1",
        "person_id": "p1",
        "account_id": "a1",
        "category_id": "c-salary",
        "name": "Salary",
        "amount": Decimal("2000"),
        "start_date": date(2024, 1, 20),
    }
    data.update(overrides)
    return RecurringEntry(**data)


def streaming(**overrides):
    data = {
        "id": "s1",
        "person_id": "p1",
        "account_id": "a1",
        "category_id": "c-subs",
        "name": "Streaming",
        "amount": Decimal("15"),
        "start_date": date(2023, 12, 20),
    }
    data.update(overrides)
    return Subscription(**data)


def loan(**overrides):
    data = {
        "id": "d1",
        "person_id": "p1",
        "account_id": "a1",
        "name": "Car loan",
        "total_amount": Decimal("2400"),
        "monthly_payment": Decimal("200"),
        "start_date": date(2024, 1, 1),
        "day_of_month": 25,
    }
    data.update(overrides)
    return Debt(**data)


def ledger(balance="1000", entries=(), schedules=(), subscriptions=(), debts=()):
    return Snapshot(
        persons=(Person(id="p1", name="Alex"),),
        accounts=(Account(id="a1", person_id="p1", name="Main", balance=Decimal(balance)),),
        recurring_entries=tuple(entries),
        amount_schedules=tuple(schedules),
        subscriptions=tuple(subscriptions),
        debts=tuple(debts),
    )


@pytest.fixture
def engine():
    return ForecastEngine()


class TestForecastBuckets:
    """Tests for bucket boundaries per horizon."""

    @pytest.mark.parametrize("horizon,expected", [
        ("5weeks", 2),
        ("6months", 7),
        ("2years", 25),
    ])
    def test_bucket_count(self, engine, horizon, expected):
        """Test that buckets run from the current month to today + horizon."""
        forecast = engine.forecast(ledger(), horizon, today=TODAY)
        assert len(forecast.periods) == expected
        assert forecast.periods[0].month == date(2024, 3, 1)
        assert forecast.horizon == ForecastHorizon(horizon)

    def test_buckets_are_first_of_month(self, engine):
        forecast = engine.forecast(ledger(), "6months", today=TODAY)
        assert [p.month.month for p in forecast.periods] == [3, 4, 5, 6, 7, 8, 9]
        assert all(p.month.day == 1 for p in forecast.periods)

    def test_unknown_horizon_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.forecast(ledger(), "3days", today=TODAY)

    def test_empty_ledger(self, engine):
        """Test that a ledger without obligations stays flat."""
        forecast = engine.forecast(ledger(), "6months", today=TODAY)
        assert forecast.final_balance == Decimal("1000")
        assert all(p.balance == Decimal("1000") for p in forecast.periods)
        assert all(p.details == [] for p in forecast.periods)


class TestRunningBalance:
    """Tests for the worked household example."""

    @pytest.fixture
    def forecast(self, engine):
        snapshot = ledger(
            entries=[salary()],
            subscriptions=[streaming()],
            debts=[loan()],
        )
        return engine.forecast(snapshot, "6months", today=TODAY)

    def test_monthly_totals(self, forecast):
        for period in forecast.periods:
            assert period.income == Decimal("2000")
            assert period.expenses == Decimal("215")
            assert period.net == Decimal("1785")

    def test_running_balance(self, forecast):
        """Test that each bucket carries the previous bucket's balance."""
        assert forecast.initial_balance == Decimal("1000")
        assert forecast.periods[0].balance == Decimal("2785")
        assert forecast.periods[5].balance == Decimal("11710")
        assert forecast.final_balance == Decimal("13495")
        assert forecast.periods[-1].balance == forecast.final_balance

    def test_totals_and_percentages(self, forecast):
        """Test that percentages are relative to the initial balance."""
        assert forecast.total_income == Decimal("14000")
        assert forecast.total_expenses == Decimal("1505")
        assert forecast.net_change == Decimal("12495")
        assert forecast.income_percentage == Decimal("1400")
        assert forecast.expense_percentage == Decimal("150.5")
        assert forecast.balance_percentage == Decimal("1249.5")

    def test_details_sorted_by_amount(self, forecast):
        """Test that details list income first, largest expense last."""
        details = forecast.periods[0].details
        assert [d.amount for d in details] == [Decimal("2000"), Decimal("-15"), Decimal("-200")]
        assert [d.kind for d in details] == [
            ObligationKind.RECURRING,
            ObligationKind.SUBSCRIPTION,
            ObligationKind.DEBT,
        ]

    def test_zero_initial_balance_guards_percentages(self, engine):
        """Test that a zero initial balance yields 0 percentages."""
        forecast = engine.forecast(ledger(balance="0", entries=[salary()]), "6months", today=TODAY)
        assert forecast.total_income == Decimal("14000")
        assert forecast.income_percentage == Decimal("0")
        assert forecast.balance_percentage == Decimal("0")

    def test_negative_initial_balance_uses_magnitude(self, engine):
        """Test that percentages use |initial_balance|."""
        forecast = engine.forecast(ledger(balance="-1000", entries=[salary()]), "5weeks", today=TODAY)
        assert forecast.total_income == Decimal("4000")
        assert forecast.income_percentage == Decimal("400")


class TestObligationRules:
    """Tests for what each obligation contributes to a bucket."""

    def test_future_start_excluded_until_next_month(self, engine):
        """Test that a mid-month start only counts from the following month."""
        forecast = engine.forecast(
            ledger(entries=[salary(start_date=date(2024, 4, 10))]),
            "6months",
            today=TODAY,
        )
        assert forecast.periods[0].income == Decimal("0")
        assert forecast.periods[1].income == Decimal("0")
        assert forecast.periods[2].income == Decimal("2000")

    def test_ended_subscription_stops(self, engine):
        """Test that a subscription ending mid-month still counts that month."""
        forecast = engine.forecast(
            ledger(subscriptions=[streaming(end_date=date(2024, 4, 15))]),
            "6months",
            today=TODAY,
        )
        assert [p.expenses for p in forecast.periods[:3]] == [
            Decimal("15"), Decimal("15"), Decimal("0"),
        ]

    def test_amount_schedule_override(self, engine):
        """Test that an override replaces the entry amount in its months."""
        schedules = [
            AmountSchedule(
                id="o1",
                entry_id="r1",
                amount=Decimal("2500"),
                start_date=date(2024, 5, 1),
                end_date=date(2024, 7, 1),
            ),
        ]
        forecast = engine.forecast(
            ledger(entries=[salary()], schedules=schedules),
            "6months",
            today=TODAY,
        )
        assert [p.income for p in forecast.periods] == [
            Decimal("2000"), Decimal("2000"), Decimal("2500"), Decimal("2500"),
            Decimal("2000"), Decimal("2000"), Decimal("2000"),
        ]

    def test_yearly_subscription(self, engine):
        """Test that a yearly subscription lands in its anniversary month."""
        yearly = streaming(
            amount=Decimal("120"),
            frequency=Frequency.YEARLY,
            start_date=date(2023, 6, 1),
        )
        forecast = engine.forecast(ledger(subscriptions=[yearly]), "6months", today=TODAY)
        june = next(p for p in forecast.periods if p.month == date(2024, 6, 1))
        assert june.expenses == Decimal("120")
        assert sum(p.expenses for p in forecast.periods) == Decimal("120")

    def test_weekly_subscription_counts_occurrences(self, engine):
        """Test that weekly obligations are multiplied by their occurrences."""
        weekly = streaming(
            amount=Decimal("10"),
            frequency=Frequency.WEEKLY,
            start_date=date(2024, 1, 1),
        )
        forecast = engine.forecast(ledger(subscriptions=[weekly]), "5weeks", today=TODAY)
        # Mondays in March 2024: 4, 11, 18, 25
        march = forecast.periods[0]
        assert march.expenses == Decimal("40")
        assert march.details[0].occurrences == 4

    def test_debt_has_no_start_gate(self, engine):
        """Test that a debt payment counts even before its start date."""
        forecast = engine.forecast(
            ledger(debts=[loan(start_date=date(2024, 8, 1))]),
            "6months",
            today=TODAY,
        )
        assert forecast.periods[0].expenses == Decimal("200")

    def test_debt_end_date_stops_payments(self, engine):
        forecast = engine.forecast(
            ledger(debts=[loan(end_date=date(2024, 5, 15))]),
            "6months",
            today=TODAY,
        )
        assert [p.expenses for p in forecast.periods[:4]] == [
            Decimal("200"), Decimal("200"), Decimal("200"), Decimal("0"),
        ]

    def test_debt_without_payment_is_ignored(self, engine):
        forecast = engine.forecast(
            ledger(debts=[loan(monthly_payment=Decimal("0"))]),
            "6months",
            today=TODAY,
        )
        assert forecast.total_expenses == Decimal("0")

    def test_snapshot_is_not_mutated(self, engine):
        """Test that forecasting leaves the snapshot untouched."""
        snapshot = ledger(entries=[salary()], debts=[loan()])
        before = snapshot.to_dict()
        engine.forecast(snapshot, "2years", today=TODAY)
        assert snapshot.to_dict() == before


class TestUpcomingPayments:
    """Tests for the short-horizon payment list."""

    def test_next_occurrences_sorted(self, engine):
        """Test dated withdrawals, earliest first."""
        snapshot = ledger(
            subscriptions=[
                streaming(id="s1", amount=Decimal("9.99"), day_of_month=15),
                streaming(
                    id="s2",
                    name="Cleaning",
                    frequency=Frequency.WEEKLY,
                    start_date=date(2024, 3, 1),
                ),
            ],
            debts=[loan()],
        )
        payments = engine.upcoming_payments(snapshot, today=TODAY)

        assert [p.date for p in payments] == [
            date(2024, 3, 22),
            date(2024, 3, 25),
            date(2024, 4, 15),
        ]
        assert payments[1].kind == ObligationKind.DEBT
        assert payments[1].amount == Decimal("-200")
        assert payments[2].amount == Decimal("-9.99")
        assert payments[2].account_id == "a1"

    def test_window_is_inclusive(self, engine):
        """Test that a payment exactly 30 days out is included."""
        snapshot = ledger(subscriptions=[streaming(day_of_month=19)])
        payments = engine.upcoming_payments(snapshot, today=TODAY)
        assert [p.date for p in payments] == [date(2024, 4, 19)]

    def test_outside_window_excluded(self, engine):
        """Test that a yearly payment months away is not listed."""
        snapshot = ledger(subscriptions=[
            streaming(frequency=Frequency.YEARLY, start_date=date(2023, 8, 1)),
        ])
        assert engine.upcoming_payments(snapshot, today=TODAY) == []

    def test_income_is_not_a_payment(self, engine):
        snapshot = ledger(entries=[salary(start_date=date(2024, 1, 25))])
        assert engine.upcoming_payments(snapshot, today=TODAY) == []

    def test_settled_debt_skipped(self, engine):
        snapshot = ledger(debts=[loan(remaining_amount=Decimal("0"))])
        assert engine.upcoming_payments(snapshot, today=TODAY) == []

    def test_ended_subscription_skipped(self, engine):
        snapshot = ledger(subscriptions=[
            streaming(day_of_month=25, end_date=date(2024, 3, 19)),
        ])
        assert engine.upcoming_payments(snapshot, today=TODAY) == []

    def test_billing_day_clamped(self, engine):
        """Test that day 31 falls on the last day of a short month."""
        snapshot = ledger(subscriptions=[streaming(day_of_month=31)])
        payments = engine.upcoming_payments(snapshot, today=date(2024, 2, 10))
        assert payments[0].date == date(2024, 2, 29)

    def test_limit(self, engine):
        """Test that the list is truncated to the requested size."""
        subs = [
            streaming(id=f"s{day}", name=f"Service {day}", day_of_month=day)
            for day in range(21, 29)
        ]
        payments = engine.upcoming_payments(ledger(subscriptions=subs), today=TODAY, limit=5)
        assert len(payments) == 5
        assert payments[0].date == date(2024, 3, 21)
        assert payments[-1].date == date(2024, 3, 25)

    def test_payments_carry_person_and_account_names(self, engine):
        snapshot = ledger(subscriptions=[streaming(day_of_month=25)])
        payment = engine.upcoming_payments(snapshot, today=TODAY)[0]
        assert payment.person_name == "Alex"
        assert payment.account_name == "Main"

    def test_missing_owner_shown_as_unknown(self, engine):
        """Test the fallback when ids do not resolve."""
        snapshot = ledger(debts=[loan(person_id="p-gone", account_id="a-gone")])
        payment = engine.upcoming_payments(snapshot, today=TODAY)[0]
        assert payment.person_name == "Unknown"
        assert payment.account_name == "Unknown"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
