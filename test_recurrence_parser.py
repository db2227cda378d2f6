import json
from datetime import date

import pytest

from utils.error_handler import RecurrenceParseError
from utils.recurrence_parser import (
    RecurrenceRule,
    parse_calendar_date,
    parse_recurrence,
    serialize_recurrence,
)


@pytest.mark.parametrize("raw", [None, "", "null", "{not json", '{"interval": 2}', "[1, 2]"])
def test_absent_or_malformed_rules_parse_to_none(raw):
    assert parse_recurrence(raw) is None


def test_parses_stored_json():
    stored = json.dumps({
        "pattern": "weekly",
        "interval": 2,
        "daysOfWeek": [5, 1, 3, 1],
        "endType": "until",
        "endDate": "2024-06-30",
        "exceptions": ["2024-01-05", "2024-01-05T10:00:00Z", "2024-02-02"],
    })
    rule = parse_recurrence(stored)

    assert rule == RecurrenceRule(
        pattern="weekly",
        interval=2,
        days_of_week=(1, 3, 5),
        end_type="until",
        end_date=date(2024, 6, 30),
        exceptions=(date(2024, 1, 5), date(2024, 2, 2)),
    )


def test_end_fields_follow_end_type():
    rule = RecurrenceRule.from_dict({
        "pattern": "daily", "endType": "never", "endDate": "2024-01-31", "occurrences": 4,
    })
    assert rule.end_date is None
    assert rule.occurrences is None

    rule = RecurrenceRule.from_dict({"pattern": "daily", "endType": "after", "occurrences": 4,
                                     "endDate": "2024-01-31"})
    assert rule.occurrences == 4
    assert rule.end_date is None


def test_defaults_for_missing_fields():
    rule = RecurrenceRule.from_dict({"pattern": "monthly"})
    assert rule.interval == 1
    assert rule.end_type == "never"
    assert rule.days_of_week == ()
    assert rule.exceptions == ()


def test_non_positive_interval_becomes_one():
    assert RecurrenceRule.from_dict({"pattern": "daily", "interval": 0}).interval == 1


def test_from_dict_raises_on_garbage():
    with pytest.raises(RecurrenceParseError):
        RecurrenceRule.from_dict({"pattern": "daily", "exceptions": ["not a date"]})
    with pytest.raises(RecurrenceParseError):
        RecurrenceRule.from_dict({"pattern": "daily", "interval": "often"})
    with pytest.raises(RecurrenceParseError):
        RecurrenceRule.from_dict(["daily"])


def test_parse_passes_rule_through():
    rule = RecurrenceRule(pattern="yearly")
    assert parse_recurrence(rule) is rule


def test_serialize_normalizes_stored_shape():
    stored = serialize_recurrence({"pattern": "weekly", "daysOfWeek": [3, 1], "endType": "after",
                                   "occurrences": 6, "endDate": "2024-01-01"})
    assert json.loads(stored) == {
        "pattern": "weekly",
        "interval": 1,
        "endType": "after",
        "daysOfWeek": [1, 3],
        "occurrences": 6,
    }
    assert serialize_recurrence(None) is None


def test_parse_calendar_date_reduces_to_day():
    assert parse_calendar_date("2024-03-01") == date(2024, 3, 1)
    assert parse_calendar_date("2024-03-01T23:30:00-05:00") == date(2024, 3, 1)
    assert parse_calendar_date(date(2024, 3, 1)) == date(2024, 3, 1)


def test_fractional_numbers_are_not_truncated():
    with pytest.raises(RecurrenceParseError):
        RecurrenceRule.from_dict({"pattern": "daily", "interval": 2.5})
    with pytest.raises(RecurrenceParseError):
        RecurrenceRule.from_dict({"pattern": "daily", "endType": "after", "occurrences": 1.5})
    assert parse_recurrence('{"pattern": "daily", "interval": 2.5}') is None

    assert RecurrenceRule.from_dict({"pattern": "daily", "interval": 2.0}).interval == 2
