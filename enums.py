"""Enums for the recurrence engine and task/event models.

This module defines the recurrence patterns and end conditions used by
recurring tasks and calendar events, plus the weekday naming helpers.
"""

from datetime import date
from enum import Enum


class RecurrencePatternEnum(str, Enum):
    """Repetition family of a recurrence rule.

    Attributes:
        DAILY: Repeats every N days.
        WEEKLY: Repeats every N weeks, or on selected weekdays.
        MONTHLY: Repeats every N months on the anchor's day of month.
        YEARLY: Repeats every N years on the anchor's month and day.
        WEEKDAYS: Repeats Monday through Friday.
    """
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    WEEKDAYS = "weekdays"


class RecurrenceEndTypeEnum(str, Enum):
    """How a recurrence series terminates.

    Attributes:
        NEVER: Series runs indefinitely.
        UNTIL: Series stops after an end date (inclusive).
        AFTER: Series stops after a number of occurrences.
    """
    NEVER = "never"
    UNTIL = "until"
    AFTER = "after"


VALID_PATTERNS = [p.value for p in RecurrencePatternEnum]
VALID_END_TYPES = [e.value for e in RecurrenceEndTypeEnum]

# Sunday=0 numbering, as stored in daysOfWeek
DAY_NAMES = ["Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat"]


def sunday_based_weekday(value: date) -> int:
    """Return the weekday of a date with Sunday=0 ... Saturday=6."""
    return (value.weekday() + 1) % 7


def is_business_day(value: date) -> bool:
    """Check whether a date falls on Monday-Friday."""
    return 1 <= sunday_based_weekday(value) <= 5
