"""
Recurrence rules

Validation of recurrence rules and the calendar arithmetic the expander
builds on. A rule's anchor is its event's start: occurrences share the
anchor's time of day and never start before it.
"""

from datetime import date, datetime, time
from typing import Optional

from dateutil.relativedelta import relativedelta
from dateutil.rrule import DAILY, FR, MO, MONTHLY, SA, SU, TH, TU, WE, WEEKLY, rrule

from .models import Recurrence, RecurrencePattern, Weekday
from .protocols import InvalidDateRangeError, InvalidRecurrenceRuleError

# Iteration caps bounding unterminated recurrences. Exceeding them truncates
# the expansion silently.
MAX_WEEKLY_STEPS = 104
MAX_MONTHLY_STEPS = 24

RRULE_WEEKDAYS = {
    Weekday.SUNDAY: SU,
    Weekday.MONDAY: MO,
    Weekday.TUESDAY: TU,
    Weekday.WEDNESDAY: WE,
    Weekday.THURSDAY: TH,
    Weekday.FRIDAY: FR,
    Weekday.SATURDAY: SA,
}


def validate_recurrence(recurrence: Recurrence, anchor_start: Optional[datetime] = None) -> None:
    """
    Check a rule before it is stored.

    Raises:
        InvalidRecurrenceRuleError: weekday set missing for WEEKLY, month-day
            set missing or out of range for MONTHLY, or a set given for a
            pattern that does not use it
        InvalidDateRangeError: end_at precedes the anchor start
    """
    pattern = recurrence.pattern

    if pattern == RecurrencePattern.WEEKLY:
        if not recurrence.weekdays:
            raise InvalidRecurrenceRuleError("Weekly recurrence requires at least one weekday")
    elif recurrence.weekdays:
        raise InvalidRecurrenceRuleError(f"{pattern.value} recurrence does not take weekdays")

    if pattern == RecurrencePattern.MONTHLY:
        if not recurrence.month_days:
            raise InvalidRecurrenceRuleError("Monthly recurrence requires at least one day of the month")
        out_of_range = [day for day in recurrence.month_days if not 1 <= day <= 31]
        if out_of_range:
            raise InvalidRecurrenceRuleError(f"Days of month must be between 1 and 31, got {out_of_range}")
    elif recurrence.month_days:
        raise InvalidRecurrenceRuleError(f"{pattern.value} recurrence does not take days of month")

    if anchor_start is not None and recurrence.end_at is not None and recurrence.end_at < anchor_start:
        raise InvalidDateRangeError("Recurrence end precedes the event start")


def at_anchor_time(day: date, anchor: datetime) -> datetime:
    """The instant on `day` with the anchor's time of day"""
    return datetime.combine(day, anchor.timetz())


def sunday_of_week(day: date) -> date:
    return day + relativedelta(weekday=SU(-1))


def candidate_days(
    recurrence: Recurrence,
    first_day: date,
    max_weekly_steps: int = MAX_WEEKLY_STEPS,
    max_monthly_steps: int = MAX_MONTHLY_STEPS,
) -> rrule:
    """
    Days on which the rule may fire, starting from the day holding the first
    possible occurrence.

    Weekly rules run in whole weeks from that day's Sunday and monthly rules
    in whole months from the first of its month, each limited to its step cap.
    Month days missing from a month are skipped. The result is an ascending
    dateutil rrule of midnight datetimes; bounds other than the caps are the
    caller's to apply.
    """
    if recurrence.pattern == RecurrencePattern.DAILY:
        return rrule(DAILY, dtstart=_midnight(first_day))

    if recurrence.pattern == RecurrencePattern.WEEKLY:
        week = sunday_of_week(first_day)
        return rrule(
            WEEKLY,
            dtstart=_midnight(week),
            wkst=SU,
            byweekday=[RRULE_WEEKDAYS[weekday] for weekday in recurrence.weekdays],
            until=_midnight(week + relativedelta(weeks=max_weekly_steps, days=-1)),
        )

    month = first_day.replace(day=1)
    return rrule(
        MONTHLY,
        dtstart=_midnight(month),
        bymonthday=list(recurrence.month_days),
        until=_midnight(month + relativedelta(months=max_monthly_steps, days=-1)),
    )


def _midnight(day: date) -> datetime:
    return datetime.combine(day, time())


__all__ = [
    "MAX_WEEKLY_STEPS",
    "MAX_MONTHLY_STEPS",
    "RRULE_WEEKDAYS",
    "validate_recurrence",
    "at_anchor_time",
    "sunday_of_week",
    "candidate_days",
]
