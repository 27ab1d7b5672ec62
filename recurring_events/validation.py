import datetime
from typing import Any, List, Mapping, NamedTuple, Optional, Union

from utils import to_date

from .errors import InvalidRule
from .event_loading import RULE_KEYS, first_present
from .rules import (
    MONTH_WEEKS,
    Frequency,
    RecurrenceRule,
    parse_frequency,
    parse_weekday,
)

MAX_INTERVAL = 999
MAX_END_AFTER = 1000


class ValidationResult(NamedTuple):
    valid: bool
    errors: List[str]


def _is_int(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    try:
        int(value)
        return True
    except (TypeError, ValueError):
        return False


def _validate_mapping(data: Mapping[str, Any], today: Optional[datetime.date]) -> List[str]:
    errors: List[str] = []
    fields = {name: first_present(data, keys) for name, keys in RULE_KEYS.items()}

    try:
        frequency = parse_frequency(fields["frequency"])
    except InvalidRule as e:
        return [str(e)]
    if frequency is Frequency.NONE:
        return errors

    interval = fields["interval"] if fields["interval"] is not None else 1
    if not _is_int(interval) or not 1 <= int(interval) <= MAX_INTERVAL:
        errors.append(f"Interval must be a number between 1 and {MAX_INTERVAL}")

    end_after = fields["end_after"]
    if end_after is not None and (
        not _is_int(end_after) or not 1 <= int(end_after) <= MAX_END_AFTER
    ):
        errors.append(f"Number of occurrences must be between 1 and {MAX_END_AFTER}")

    end_date = fields["end_date"]
    if end_date is not None and end_after is not None:
        errors.append("Set either an end date or a number of occurrences, not both")
    if end_date is not None:
        try:
            end = to_date(end_date)
            if today is not None and end <= today:
                errors.append("End date must be in the future")
        except (TypeError, ValueError):
            errors.append(f"End date is not a valid date: {end_date!r}")

    for exception in fields["exceptions"] or []:
        try:
            to_date(exception)
        except (TypeError, ValueError):
            errors.append(f"Exception is not a valid date: {exception!r}")

    weekdays = fields["weekdays"]
    if weekdays:
        if frequency is not Frequency.WEEKLY:
            errors.append("Weekdays can only be set for weekly recurrence")
        if isinstance(weekdays, str):
            weekdays = [w.strip() for w in weekdays.split(",") if w.strip()]
        for weekday in weekdays:
            try:
                parse_weekday(weekday)
            except InvalidRule as e:
                errors.append(str(e))

    month_day = fields["month_day"]
    month_week = fields["month_week"]
    month_weekday = fields["month_weekday"]
    has_month_week = month_week is not None or month_weekday is not None
    if frequency is Frequency.MONTHLY:
        if month_day is not None and has_month_week:
            errors.append("Choose either a day of the month or a weekday of the month, not both")
        elif month_day is None and not has_month_week:
            errors.append("Monthly recurrence needs a day of the month or a weekday of the month")
    elif month_day is not None or has_month_week:
        errors.append("Day of month selection is only allowed for monthly recurrence")

    if month_day is not None and (not _is_int(month_day) or not 1 <= int(month_day) <= 31):
        errors.append("Day of the month must be between 1 and 31")
    if has_month_week:
        if not _is_int(month_week) or int(month_week) not in MONTH_WEEKS:
            errors.append("Week of the month must be 1-4 or -1 (last)")
        if month_weekday is None:
            errors.append("Weekday of the month is required")
        else:
            try:
                parse_weekday(month_weekday)
            except InvalidRule as e:
                errors.append(str(e))

    return errors


def _validate_rule(rule: RecurrenceRule, today: Optional[datetime.date]) -> List[str]:
    # Construction already enforced the hard invariants
    errors: List[str] = []
    if not rule.is_recurring:
        return errors
    if rule.interval > MAX_INTERVAL:
        errors.append(f"Interval must be a number between 1 and {MAX_INTERVAL}")
    if rule.end_after is not None and rule.end_after > MAX_END_AFTER:
        errors.append(f"Number of occurrences must be between 1 and {MAX_END_AFTER}")
    if rule.end_date is not None and today is not None and rule.end_date <= today:
        errors.append("End date must be in the future")
    return errors


def validate(
    rule: Union[RecurrenceRule, Mapping[str, Any], None],
    today: Optional[datetime.date] = None,
) -> ValidationResult:
    """
    Проверяет правило повторения и собирает все ошибки.

    Accepts a built rule or a raw descriptor (as coming from a form) and
    never raises for bad rule content. ``today`` enables the "end date must
    be in the future" check.
    """
    if rule is None:
        return ValidationResult(True, [])
    if isinstance(rule, RecurrenceRule):
        errors = _validate_rule(rule, today)
    elif isinstance(rule, Mapping):
        errors = _validate_mapping(rule, today)
    else:
        errors = [f"Recurrence rule must be a mapping, got {type(rule).__name__}"]
    return ValidationResult(not errors, errors)
