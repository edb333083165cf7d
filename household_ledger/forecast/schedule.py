"""
Schedule Expansion

Turns a recurring obligation (recurring entry, subscription, debt) into
occurrences, either counted per calendar month (long-horizon forecast)
or as the single next dated occurrence (upcoming payments).

One expansion policy serves every frequency:

MONTH ELIGIBILITY (cursor month M = first day of the month):
- Excluded if end_date < M
- Excluded if start_date > M (a mid-month start counts from the next month)

OCCURRENCES IN AN ELIGIBLE MONTH:
- monthly: 1 (the billing day does not gate the month)
- yearly:  1 when M's month equals start_date's month, else 0
- weekly:  days start_date + 7k inside M and inside [start_date, end_date]
- daily:   calendar days of M inside [start_date, end_date]

NEXT DATED OCCURRENCE (on or after a reference day):
- monthly: on the billing day of the reference month, rolled one month
  forward when that day already passed
- yearly:  on the start_date anniversary
- weekly:  every 7 days from start_date
- daily:   every day
Days past a month's end clamp to its last day, and no occurrence falls
before start_date or after end_date.
"""

import calendar
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from dateutil.relativedelta import relativedelta

from household_ledger.models.entities import (
    AmountSchedule,
    Frequency,
    RecurringEntry,
    ScheduledModel,
)


def month_start(day: date) -> date:
    """First day of the month containing `day`."""
    return day.replace(day=1)


def month_end(day: date) -> date:
    """Last day of the month containing `day`."""
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def clamped_date(year: int, month: int, day: int) -> date:
    """date(year, month, day) with the day clamped to the month's length."""
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


class ScheduleExpander:
    """
    Occurrence expansion for recurring obligations.

    Works on any ScheduledModel. Records without a `frequency`
    attribute (debts) are treated as monthly; records without a
    `day_of_month` bill on their start date's day.
    """

    def frequency_of(self, obligation: ScheduledModel) -> Frequency:
        return getattr(obligation, "frequency", Frequency.MONTHLY)

    def billing_day(self, obligation: ScheduledModel) -> int:
        return getattr(obligation, "day_of_month", None) or obligation.start_date.day

    # =========================================================================
    # MONTH GRANULARITY
    # =========================================================================

    def is_eligible(self, obligation: ScheduledModel, month: date) -> bool:
        """Whether the obligation is active in the cursor month at all."""
        month = month_start(month)
        if obligation.end_date is not None and obligation.end_date < month:
            return False
        if obligation.start_date > month:
            return False
        return True

    def occurrences_in_month(self, obligation: ScheduledModel, month: date) -> int:
        """
        Number of occurrences the obligation contributes to `month`.

        Returns 0 for an ineligible month.
        """
        month = month_start(month)
        if not self.is_eligible(obligation, month):
            return 0

        frequency = self.frequency_of(obligation)
        if frequency == Frequency.MONTHLY:
            return 1
        if frequency == Frequency.YEARLY:
            return 1 if month.month == obligation.start_date.month else 0

        first = max(month, obligation.start_date)
        last = month_end(month)
        if obligation.end_date is not None:
            last = min(last, obligation.end_date)
        if last < first:
            return 0

        if frequency == Frequency.DAILY:
            return (last - first).days + 1

        # Weekly: first 7-day step from start_date on or after `first`
        weeks_ahead = -(-(first - obligation.start_date).days // 7)
        occurrence = obligation.start_date + timedelta(weeks=weeks_ahead)
        if occurrence > last:
            return 0
        return (last - occurrence).days // 7 + 1

    def amount_for_month(
        self,
        entry: RecurringEntry,
        month: date,
        schedules: Iterable[AmountSchedule] = (),
    ) -> Decimal:
        """
        Amount of one occurrence of a recurring entry in `month`.

        An amount schedule applies from the month it starts in and up to
        (excluding) its end date. When several apply, the one starting
        latest wins; with none, the entry's own amount is used.
        """
        month = month_start(month)
        applicable = [
            s for s in schedules
            if s.entry_id == entry.id
            and month_start(s.start_date) <= month
            and (s.end_date is None or month < s.end_date)
        ]
        if not applicable:
            return entry.amount
        return max(applicable, key=lambda s: s.start_date).amount

    # =========================================================================
    # DATE GRANULARITY
    # =========================================================================

    def next_occurrence(
        self,
        obligation: ScheduledModel,
        today: date,
    ) -> Optional[date]:
        """
        First occurrence on or after `today`.

        Returns None when the obligation has no occurrence left.
        """
        if obligation.has_ended(today):
            return None

        reference = max(today, obligation.start_date)
        frequency = self.frequency_of(obligation)

        if frequency == Frequency.DAILY:
            occurrence = reference
        elif frequency == Frequency.WEEKLY:
            weeks_ahead = -(-(reference - obligation.start_date).days // 7)
            occurrence = obligation.start_date + timedelta(weeks=weeks_ahead)
        elif frequency == Frequency.YEARLY:
            start = obligation.start_date
            occurrence = clamped_date(reference.year, start.month, start.day)
            if occurrence < reference:
                occurrence = clamped_date(reference.year + 1, start.month, start.day)
        else:
            day = self.billing_day(obligation)
            occurrence = clamped_date(reference.year, reference.month, day)
            if occurrence < reference:
                following = month_start(reference) + relativedelta(months=1)
                occurrence = clamped_date(following.year, following.month, day)

        if obligation.end_date is not None and occurrence > obligation.end_date:
            return None
        return occurrence
