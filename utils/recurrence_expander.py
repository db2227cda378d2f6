"""Recurrence Expansion for Calendar Rendering.

Expands an anchor entity (event or task) and its recurrence rule into the
concrete occurrences that fall inside a visible window. Occurrences are
ephemeral: they are rebuilt on every call and never persisted.
"""

import logging
from calendar import monthrange
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from dateutil.relativedelta import relativedelta

from config.settings import settings
from enums import RecurrenceEndTypeEnum, RecurrencePatternEnum, is_business_day, sunday_based_weekday
from utils.error_handler import fail_closed
from utils.recurrence_calculator import RecurrenceCalculator
from utils.recurrence_parser import RecurrenceRule, parse_recurrence

logger = logging.getLogger(__name__)

# Hard cap on loop iterations per expansion
DEFAULT_MAX_ITERATIONS = 1000


@dataclass(frozen=True)
class RecurrenceAnchor:
    """The entity that owns a recurrence rule.

    ``start`` is a datetime for events or a date for task due dates. When
    ``end`` is given, ``end - start`` is the duration of every occurrence.
    ``payload`` carries the remaining entity fields copied onto occurrences.
    """
    id: Any
    start: Union[date, datetime]
    end: Optional[Union[date, datetime]] = None
    payload: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Occurrence:
    """One projected instance of an anchor."""
    id: str
    parent_id: Any
    start: Union[date, datetime]
    end: Optional[Union[date, datetime]] = None
    payload: Mapping[str, Any] = field(default_factory=dict)
    is_recurring_instance: bool = True

    def to_dict(self, start_key: str = "start_time", end_key: str = "end_time",
                parent_key: str = "parent_event_id") -> Dict[str, Any]:
        """Flatten into the anchor's own shape with substituted times."""
        data = dict(self.payload)
        data.update({
            "id": self.id,
            start_key: self.start,
            end_key: self.end,
            "is_recurring_instance": self.is_recurring_instance,
            parent_key: self.parent_id,
        })
        return data


def _day(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


def _materialize(day: date, base: Union[date, datetime]) -> Union[date, datetime]:
    """Put the anchor's time of day (and tzinfo) on a calendar day."""
    if isinstance(base, datetime):
        return datetime.combine(day, base.timetz())
    return day


def _coerce_bound(value: Union[date, datetime], base: Union[date, datetime], end_of_day: bool):
    """Make a window bound comparable with the anchor's start."""
    if not isinstance(base, datetime):
        return _day(value)

    if isinstance(value, datetime):
        if base.tzinfo is not None and value.tzinfo is not None:
            return value.astimezone(base.tzinfo)
        if base.tzinfo is not None and value.tzinfo is None:
            return value.replace(tzinfo=base.tzinfo)
        if base.tzinfo is None and value.tzinfo is not None:
            return value.replace(tzinfo=None)
        return value

    return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=base.tzinfo)


def window_contains(instant: Union[date, datetime], window_start, window_end) -> bool:
    """Check a single (non-recurring) start against a window, same bound rules as expansion."""
    lower = _coerce_bound(window_start, instant, end_of_day=False)
    upper = _coerce_bound(window_end, instant, end_of_day=True)
    return lower <= instant <= upper


def _matches_pattern(day: date, rule: RecurrenceRule, anchor_day: date) -> bool:
    """Inclusion check for a candidate day."""
    if rule.pattern == RecurrencePatternEnum.DAILY:
        return True
    elif rule.pattern == RecurrencePatternEnum.WEEKLY:
        return sunday_based_weekday(day) in rule.weekdays_for(anchor_day)
    elif rule.pattern == RecurrencePatternEnum.MONTHLY:
        return day.day == min(anchor_day.day, monthrange(day.year, day.month)[1])
    elif rule.pattern == RecurrencePatternEnum.YEARLY:
        return (
            day.month == anchor_day.month
            and day.day == min(anchor_day.day, monthrange(day.year, day.month)[1])
        )
    elif rule.pattern == RecurrencePatternEnum.WEEKDAYS:
        return is_business_day(day)
    return False


def _project(anchor: RecurrenceAnchor, start, duration: Optional[timedelta]) -> Occurrence:
    return Occurrence(
        id=f"{anchor.id}_{start.isoformat()}",
        parent_id=anchor.id,
        start=start,
        end=start + duration if duration is not None else None,
        payload=anchor.payload,
    )


def expand_occurrences(
    anchor: RecurrenceAnchor,
    rule: RecurrenceRule,
    window_start: Union[date, datetime],
    window_end: Union[date, datetime],
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
) -> List[Occurrence]:
    """Expand a recurring anchor into occurrences within a window.

    Args:
        anchor: Entity owning the rule; its start is the first candidate
        rule: Parsed recurrence rule
        window_start: Earliest start to return (a date means start of day)
        window_end: Latest start to return (a date means end of day)
        max_iterations: Loop cap; expansion silently stops once reached

    Returns:
        Occurrences in chronological order
    """
    base = anchor.start
    anchor_day = _day(base)
    lower = _coerce_bound(window_start, base, end_of_day=False)
    upper = _coerce_bound(window_end, base, end_of_day=True)
    duration = anchor.end - anchor.start if anchor.end is not None else None

    current = anchor_day
    # occurrences before the window still count towards an "after" limit
    if rule.end_type != RecurrenceEndTypeEnum.AFTER:
        current = RecurrenceCalculator.first_on_or_after(anchor_day, _day(lower), rule)

    excluded = set(rule.exceptions)
    occurrences: List[Occurrence] = []
    consumed = 0
    iterations = 0

    # date.max marks a series that stepped off the end of the calendar
    while current < date.max and _materialize(current, base) <= upper:
        if iterations >= max_iterations:
            logger.debug(f"Expansion of {anchor.id} truncated after {max_iterations} iterations")
            break
        iterations += 1

        if rule.end_type == RecurrenceEndTypeEnum.UNTIL and rule.end_date is not None:
            if current > rule.end_date:
                break
        elif rule.end_type == RecurrenceEndTypeEnum.AFTER and rule.occurrences is not None:
            if consumed >= rule.occurrences:
                break

        if _matches_pattern(current, rule, anchor_day):
            # excepted days still use up one of an "after" series' occurrences
            consumed += 1
            start = _materialize(current, base)
            if current not in excluded and start >= lower:
                occurrences.append(_project(anchor, start, duration))

        current = RecurrenceCalculator.advance(current, rule, anchor=anchor_day)

    return occurrences


@fail_closed(default=list)
def expand_stored_recurrence(
    anchor: RecurrenceAnchor,
    recurrence: Union[str, Mapping[str, Any], RecurrenceRule, None],
    window_start: Union[date, datetime],
    window_end: Union[date, datetime],
    max_iterations: Optional[int] = None,
) -> List[Occurrence]:
    """Expand a stored rule; absent or malformed rules yield no occurrences."""
    rule = parse_recurrence(recurrence)
    if rule is None:
        return []
    if max_iterations is None:
        max_iterations = settings.RECURRENCE_MAX_ITERATIONS
    return expand_occurrences(anchor, rule, window_start, window_end, max_iterations=max_iterations)


def default_calendar_window(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Visible calendar range around ``now`` (one month back, three ahead by default)."""
    if now is None:
        now = datetime.now()
    return (
        now - relativedelta(months=settings.CALENDAR_WINDOW_MONTHS_BEFORE),
        now + relativedelta(months=settings.CALENDAR_WINDOW_MONTHS_AFTER),
    )
