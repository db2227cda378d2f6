"""Recurrence Rule Validation.

This module validates raw recurrence rules submitted by the task and
event editors before they are serialized onto the entity.

Rules:
- pattern is one of daily, weekly, monthly, yearly, weekdays
- interval is a whole number from 1 to 999 (default 1)
- daysOfWeek holds distinct integers 0-6 (Sunday=0); empty is allowed
- endType is one of never, until, after
- until requires endDate; after requires occurrences >= 1
- exceptions are calendar dates
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Union

from enums import RecurrenceEndTypeEnum, VALID_END_TYPES, VALID_PATTERNS
from utils.error_handler import RecurrenceParseError
from utils.recurrence_parser import RecurrenceRule, parse_calendar_date

logger = logging.getLogger("app")


# Constants
MIN_DAY_OF_WEEK = 0
MAX_DAY_OF_WEEK = 6
MAX_INTERVAL = 999


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a recurrence rule."""
    valid: bool
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {"valid": True}
        return {"valid": False, "error": self.error}


def _invalid(message: str) -> ValidationResult:
    logger.debug(f"Recurrence rejected: {message}")
    return ValidationResult(valid=False, error=message)


def _is_whole_number(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_recurrence(rule: Union[Mapping[str, Any], RecurrenceRule, None]) -> ValidationResult:
    """Validate a raw recurrence rule.

    Args:
        rule: Stored-shape dictionary or a parsed RecurrenceRule

    Returns:
        ValidationResult with the first problem found, if any
    """
    if isinstance(rule, RecurrenceRule):
        rule = rule.to_dict()

    if not rule or not isinstance(rule, Mapping) or not rule.get("pattern"):
        return _invalid("Recurrence pattern is required")

    if rule["pattern"] not in VALID_PATTERNS:
        return _invalid("Invalid recurrence pattern")

    interval = rule.get("interval")
    if interval is not None and (not _is_whole_number(interval) or interval < 1):
        return _invalid("Interval must be a positive whole number")
    if interval is not None and interval > MAX_INTERVAL:
        return _invalid(f"Interval must be at most {MAX_INTERVAL}")

    days = rule.get("daysOfWeek")
    if days is not None:
        if not isinstance(days, (list, tuple)):
            return _invalid("Days of week must be a list")
        for day in days:
            if not _is_whole_number(day) or not MIN_DAY_OF_WEEK <= day <= MAX_DAY_OF_WEEK:
                return _invalid("Days of week must be between 0 (Sunday) and 6 (Saturday)")
        if len(set(days)) != len(days):
            return _invalid("Days of week must not repeat")

    end_type = rule.get("endType")
    if end_type not in VALID_END_TYPES:
        return _invalid(f"End condition must be one of: {', '.join(VALID_END_TYPES)}")

    if end_type == RecurrenceEndTypeEnum.UNTIL.value:
        if not rule.get("endDate"):
            return _invalid("End date is required when ending on a date")
        try:
            parse_calendar_date(rule["endDate"])
        except RecurrenceParseError:
            return _invalid("End date is not a valid date")

    if end_type == RecurrenceEndTypeEnum.AFTER.value:
        occurrences = rule.get("occurrences")
        if not _is_whole_number(occurrences) or occurrences < 1:
            return _invalid("Valid occurrence count is required")

    exceptions = rule.get("exceptions")
    if exceptions is not None:
        if not isinstance(exceptions, (list, tuple)):
            return _invalid("Exception dates must be a list")
        try:
            for value in exceptions:
                parse_calendar_date(value)
        except RecurrenceParseError:
            return _invalid("Exception dates must be valid dates")

    return ValidationResult(valid=True)
