"""Recurrence Rule Model and Stored-Blob Parsing.

This module defines the RecurrenceRule value object and the boundary
functions that decode/encode the serialized rule stored in the
``recurrence`` column of tasks and events.

Stored format (JSON, camelCase keys):
    {"pattern": "weekly", "interval": 1, "daysOfWeek": [1, 3, 5],
     "endType": "until", "endDate": "2024-06-30",
     "exceptions": ["2024-01-05"]}
"""

import json
import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from dateutil.parser import isoparse

from enums import RecurrenceEndTypeEnum, sunday_based_weekday
from utils.error_handler import RecurrenceParseError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecurrenceRule:
    """Parsed recurrence rule.

    Fields that do not belong to the declared end type are dropped during
    parsing, so ``end_date`` is only set for ``until`` and ``occurrences``
    only for ``after``.
    """
    pattern: str
    end_type: str = RecurrenceEndTypeEnum.NEVER.value
    interval: int = 1
    days_of_week: Tuple[int, ...] = ()
    end_date: Optional[date] = None
    occurrences: Optional[int] = None
    exceptions: Tuple[date, ...] = ()

    def weekdays_for(self, anchor: date) -> Tuple[int, ...]:
        """Weekdays (Sunday=0) a weekly rule fires on for the given anchor."""
        if self.days_of_week:
            return self.days_of_week
        return (sunday_based_weekday(anchor),)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the stored dictionary shape."""
        data: Dict[str, Any] = {
            "pattern": self.pattern,
            "interval": self.interval,
            "endType": self.end_type,
        }
        if self.days_of_week:
            data["daysOfWeek"] = list(self.days_of_week)
        if self.end_date is not None:
            data["endDate"] = self.end_date.isoformat()
        if self.occurrences is not None:
            data["occurrences"] = self.occurrences
        if self.exceptions:
            data["exceptions"] = [d.isoformat() for d in self.exceptions]
        return data

    def to_json(self) -> str:
        """Serialize for storage on the anchor entity."""
        return json.dumps(self.to_dict())

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RecurrenceRule":
        """Build a rule from its stored dictionary shape.

        Raises:
            RecurrenceParseError: if the data cannot be interpreted as a rule
        """
        if not isinstance(data, Mapping):
            raise RecurrenceParseError(f"Recurrence must be an object, got {type(data).__name__}")

        pattern = data.get("pattern")
        if not pattern or not isinstance(pattern, str):
            raise RecurrenceParseError("Recurrence pattern is required")

        end_type = data.get("endType") or RecurrenceEndTypeEnum.NEVER.value

        end_date = None
        if end_type == RecurrenceEndTypeEnum.UNTIL.value and data.get("endDate"):
            end_date = parse_calendar_date(data["endDate"])

        occurrences = None
        if end_type == RecurrenceEndTypeEnum.AFTER.value and data.get("occurrences") is not None:
            occurrences = _parse_int(data["occurrences"], "occurrences")

        interval = 1
        if data.get("interval") is not None:
            interval = max(_parse_int(data["interval"], "interval"), 1)

        raw_days = data.get("daysOfWeek") or []
        if not isinstance(raw_days, (list, tuple)):
            raise RecurrenceParseError("daysOfWeek must be a list")
        days_of_week = tuple(sorted({_parse_int(d, "daysOfWeek") for d in raw_days}))

        raw_exceptions = data.get("exceptions") or []
        if not isinstance(raw_exceptions, (list, tuple)):
            raise RecurrenceParseError("exceptions must be a list")
        exceptions = []
        for raw in raw_exceptions:
            day = parse_calendar_date(raw)
            if day not in exceptions:
                exceptions.append(day)

        return cls(
            pattern=pattern,
            end_type=end_type,
            interval=interval,
            days_of_week=days_of_week,
            end_date=end_date,
            occurrences=occurrences,
            exceptions=tuple(exceptions),
        )


def _parse_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise RecurrenceParseError(f"{field_name} must be a whole number")
    if isinstance(value, float) and not value.is_integer():
        raise RecurrenceParseError(f"{field_name} must be a whole number: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise RecurrenceParseError(f"{field_name} must be a whole number: {value!r}")


def parse_calendar_date(value: Any) -> date:
    """Reduce a date, datetime or ISO string to its calendar day.

    Raises:
        RecurrenceParseError: if the value is not a recognizable date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return isoparse(value.strip()).date()
        except ValueError:
            raise RecurrenceParseError(f"Invalid date: {value!r}")
    raise RecurrenceParseError(f"Invalid date: {value!r}")


def parse_recurrence(raw: Union[str, Mapping[str, Any], RecurrenceRule, None]) -> Optional[RecurrenceRule]:
    """Decode a stored recurrence value.

    Absent or malformed input yields None so the owning entity is treated
    as non-recurring.

    Args:
        raw: JSON string, dictionary, already-parsed rule, or None

    Returns:
        RecurrenceRule, or None if absent/unparseable
    """
    if raw is None or raw == "":
        return None
    if isinstance(raw, RecurrenceRule):
        return raw

    data = raw
    if isinstance(raw, str):
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Unparseable recurrence JSON: {e}")
            return None
        if data is None:
            return None

    try:
        return RecurrenceRule.from_dict(data)
    except RecurrenceParseError as e:
        logger.warning(f"Ignoring malformed recurrence: {e.message}")
        return None


def serialize_recurrence(rule: Union[RecurrenceRule, Mapping[str, Any], None]) -> Optional[str]:
    """Encode a rule for storage; None stays None."""
    if rule is None:
        return None
    if not isinstance(rule, RecurrenceRule):
        rule = RecurrenceRule.from_dict(rule)
    return rule.to_json()
