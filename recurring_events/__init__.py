# This file makes the 'recurring_events' directory a Python package.

from .errors import InvalidEvent, InvalidOffset, InvalidRule, RecurrenceError
from .rules import (
    Frequency,
    Weekday,
    RecurrenceRule,
    SingleOccurrence,
    DailyRule,
    WeeklyRule,
    MonthlyDayRule,
    MonthlyWeekdayRule,
    YearlyRule,
    make_rule,
    parse_weekday,
)
from .models import Event, Occurrence, OccurrenceWindow
from .engine import RecurrenceExpander, expand, expand_event
from .validation import ValidationResult, validate
from .description import describe, describe_tokens, format_lead_time
from .event_loading import (
    rule_from_dict,
    event_from_dict,
    parse_reminder_offsets,
    load_events_from_yaml,
)

__all__ = [
    "RecurrenceError",
    "InvalidRule",
    "InvalidEvent",
    "InvalidOffset",
    "Frequency",
    "Weekday",
    "RecurrenceRule",
    "SingleOccurrence",
    "DailyRule",
    "WeeklyRule",
    "MonthlyDayRule",
    "MonthlyWeekdayRule",
    "YearlyRule",
    "make_rule",
    "parse_weekday",
    "Event",
    "Occurrence",
    "OccurrenceWindow",
    "RecurrenceExpander",
    "expand",
    "expand_event",
    "ValidationResult",
    "validate",
    "describe",
    "describe_tokens",
    "format_lead_time",
    "rule_from_dict",
    "event_from_dict",
    "parse_reminder_offsets",
    "load_events_from_yaml",
]
