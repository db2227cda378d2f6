"""Human-readable descriptions of recurrence rules for task and event views."""

from datetime import date, datetime, timedelta
from typing import Any, Mapping, Optional, Union

from enums import DAY_NAMES, RecurrenceEndTypeEnum, RecurrencePatternEnum
from utils.recurrence_parser import RecurrenceRule, parse_recurrence

RuleLike = Union[str, Mapping[str, Any], RecurrenceRule, None]


def format_recurrence_pattern(recurrence: RuleLike) -> str:
    """Describe the repetition, e.g. "Weekly on Mon, Wed, Fri" or "Every 2 months".

    Args:
        recurrence: Parsed rule or stored value

    Returns:
        Display string; "No repeat" when there is no usable rule
    """
    rule = parse_recurrence(recurrence)
    if rule is None:
        return "No repeat"

    interval = rule.interval or 1
    every = interval > 1

    if rule.pattern == RecurrencePatternEnum.DAILY:
        return f"Every {interval} days" if every else "Daily"
    elif rule.pattern == RecurrencePatternEnum.WEEKLY:
        if rule.days_of_week:
            days = ", ".join(DAY_NAMES[d] for d in rule.days_of_week if 0 <= d < len(DAY_NAMES))
            return f"Weekly on {days}"
        return f"Every {interval} weeks" if every else "Weekly"
    elif rule.pattern == RecurrencePatternEnum.MONTHLY:
        return f"Every {interval} months" if every else "Monthly"
    elif rule.pattern == RecurrencePatternEnum.YEARLY:
        return f"Every {interval} years" if every else "Yearly"
    elif rule.pattern == RecurrencePatternEnum.WEEKDAYS:
        return "Weekdays (Mon-Fri)"
    return "Custom"


def format_end_condition(recurrence: RuleLike) -> str:
    """Describe when a series stops, e.g. "Until Mar 1, 2024" or "5 times"."""
    rule = parse_recurrence(recurrence)
    if rule is None:
        return ""

    if rule.end_type == RecurrenceEndTypeEnum.UNTIL and rule.end_date is not None:
        return f"Until {rule.end_date.strftime('%b')} {rule.end_date.day}, {rule.end_date.year}"
    if rule.end_type == RecurrenceEndTypeEnum.AFTER and rule.occurrences:
        return "Once" if rule.occurrences == 1 else f"{rule.occurrences} times"
    return "Never ends"


def format_next_occurrence(next_date: Optional[date], today: Optional[date] = None) -> str:
    """Format the next occurrence for display.

    Args:
        next_date: The next due date
        today: Reference day, defaults to the current date

    Returns:
        Human-readable string representation
    """
    if next_date is None:
        return "Does not repeat"

    if isinstance(next_date, datetime):
        next_date = next_date.date()
    if today is None:
        today = date.today()

    if next_date == today:
        return "Today"
    elif next_date == today + timedelta(days=1):
        return "Tomorrow"
    elif next_date == today + timedelta(days=7):
        return "In 1 week"
    else:
        # Format as "Mon, Jan 15" or similar
        return next_date.strftime("%a, %b %d")
