"""Recurrence Calculator for Pattern Stepping and Next Due Date Computation.

This module provides the date arithmetic behind recurring events and tasks:
advancing a date to the next candidate for a pattern, aligning a seed date
to a series, and computing the next due date when a recurring task is
completed.

Supports:
- Daily / weekdays recurrence (every N days)
- Weekly recurrence (every N weeks, or next selected weekday)
- Monthly recurrence (every N months on the anchor's day, clamped)
- Yearly recurrence (every N years on the anchor's month/day, clamped)
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Union

from dateutil.relativedelta import relativedelta

from enums import RecurrenceEndTypeEnum, RecurrencePatternEnum, sunday_based_weekday
from utils.recurrence_parser import RecurrenceRule, parse_recurrence

logger = logging.getLogger(__name__)

# Upper bound on day-by-day search for the next selected weekday
MAX_WEEKDAY_SEARCH = 14


def series_ceiling(current):
    """Last representable value of the same kind as ``current``."""
    if isinstance(current, datetime):
        return datetime.combine(date.max, current.timetz())
    return date.max


class RecurrenceCalculator:
    """Calculator for stepping through a recurrence series."""

    @staticmethod
    def advance(current: date, rule: RecurrenceRule, anchor: Optional[date] = None) -> date:
        """Calculate the next candidate date after ``current``.

        Args:
            current: Current cursor date (never modified)
            rule: Recurrence rule
            anchor: First date of the series; its day (and month, for yearly)
                    is kept when months are shorter. Defaults to ``current``.

        Returns:
            Next candidate date. Whether it is an actual occurrence is
            decided by the expander's inclusion check. Steps past the end of
            the calendar return ``series_ceiling(current)``.
        """
        if anchor is None:
            anchor = current
        try:
            return RecurrenceCalculator._step(current, rule, anchor)
        except (OverflowError, ValueError):
            logger.debug(f"{rule.pattern} step of {rule.interval} from {current} leaves the calendar")
            return series_ceiling(current)

    @staticmethod
    def _step(current: date, rule: RecurrenceRule, anchor: date) -> date:
        interval = max(rule.interval or 1, 1)

        if rule.pattern in (RecurrencePatternEnum.DAILY, RecurrencePatternEnum.WEEKDAYS):
            return current + timedelta(days=interval)
        elif rule.pattern == RecurrencePatternEnum.WEEKLY:
            if rule.days_of_week:
                # interval is not applied when specific weekdays are selected
                return RecurrenceCalculator._next_selected_weekday(current, rule.days_of_week)
            return current + timedelta(weeks=interval)
        elif rule.pattern == RecurrencePatternEnum.MONTHLY:
            # relativedelta clamps day=31 to the last day of shorter months;
            # past year 9999 it raises ValueError rather than OverflowError
            return current + relativedelta(months=interval, day=anchor.day)
        elif rule.pattern == RecurrencePatternEnum.YEARLY:
            return current + relativedelta(years=interval, month=anchor.month, day=anchor.day)
        else:
            logger.warning(f"Unknown recurrence pattern: {rule.pattern}")
            return current + timedelta(days=interval)

    @staticmethod
    def _next_selected_weekday(current: date, days_of_week) -> date:
        """Step forward day by day until a selected weekday (Sunday=0)."""
        candidate = current
        for _ in range(MAX_WEEKDAY_SEARCH):
            candidate = candidate + timedelta(days=1)
            if sunday_based_weekday(candidate) in days_of_week:
                return candidate
        return candidate

    @staticmethod
    def first_on_or_after(anchor: date, target: date, rule: RecurrenceRule) -> date:
        """Align a seed date to the series so stepping can start at ``target``.

        Args:
            anchor: First date of the series
            target: Earliest date of interest
            rule: Recurrence rule

        Returns:
            First series-aligned date on or after ``target`` (``anchor`` if
            ``target`` is not later than it)
        """
        if target <= anchor:
            return anchor

        try:
            return RecurrenceCalculator._align(anchor, target, rule)
        except (OverflowError, ValueError):
            return series_ceiling(anchor)

    @staticmethod
    def _align(anchor: date, target: date, rule: RecurrenceRule) -> date:
        interval = max(rule.interval or 1, 1)

        if rule.pattern == RecurrencePatternEnum.WEEKLY and rule.days_of_week:
            return target

        if rule.pattern in (RecurrencePatternEnum.MONTHLY, RecurrencePatternEnum.YEARLY):
            if rule.pattern == RecurrencePatternEnum.MONTHLY:
                unit = "months"
                gap = (target.year - anchor.year) * 12 + (target.month - anchor.month)
            else:
                unit = "years"
                gap = target.year - anchor.year

            # always offset from the anchor so clamped months do not drift
            steps = max(gap // interval, 0)
            candidate = anchor + relativedelta(**{unit: steps * interval})
            while candidate < target:
                steps += 1
                candidate = anchor + relativedelta(**{unit: steps * interval})
            return candidate

        step_days = interval * 7 if rule.pattern == RecurrencePatternEnum.WEEKLY else interval
        gap_days = (target - anchor).days
        steps = -(-gap_days // step_days)
        return anchor + timedelta(days=steps * step_days)

    @staticmethod
    def next_due_date(
        current_due_date: date,
        rule: RecurrenceRule,
        anchor: Optional[date] = None,
    ) -> date:
        """Calculate the next due date after completing a recurring task.

        Args:
            current_due_date: Due date of the task being completed
            rule: Recurrence rule copied from the task
            anchor: Original due date of the series, if known

        Returns:
            Due date for the next task instance
        """
        next_date = RecurrenceCalculator.advance(current_due_date, rule, anchor=anchor)
        logger.debug(f"Next {rule.pattern} due date after {current_due_date}: {next_date}")
        return next_date


def get_next_occurrence(
    current_due_date: date,
    recurrence: Union[str, Mapping[str, Any], RecurrenceRule, None],
) -> Optional[date]:
    """Convenience function to get the next due date from a stored rule.

    Args:
        current_due_date: Due date of the task being completed
        recurrence: Stored recurrence value

    Returns:
        Next due date, or None if the task has no usable recurrence or the
        series has ended
    """
    rule = parse_recurrence(recurrence)
    if rule is None:
        return None

    next_date = RecurrenceCalculator.next_due_date(current_due_date, rule)
    if next_date == series_ceiling(current_due_date):
        return None
    next_day = next_date.date() if isinstance(next_date, datetime) else next_date
    if rule.end_type == RecurrenceEndTypeEnum.UNTIL and rule.end_date and next_day > rule.end_date:
        logger.info(f"Series ended on {rule.end_date}, no occurrence after {current_due_date}")
        return None
    return next_date
