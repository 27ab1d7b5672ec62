import datetime
import logging
from typing import Any, Iterable, List, Mapping, Optional, Tuple

import yaml

from utils import to_date, to_time

from .errors import InvalidEvent, InvalidOffset, InvalidRule, RecurrenceError
from .models import Event
from .rules import RecurrenceRule, make_rule

logger = logging.getLogger(__name__)

# Accepted spellings per field, first match wins
RULE_KEYS = {
    "frequency": ("frequency", "type", "freq", "repeat"),
    "interval": ("interval",),
    "weekdays": ("weekdays", "byday", "daysOfWeek", "days_of_week"),
    "month_day": ("monthDay", "month_day"),
    "month_week": ("monthWeek", "month_week"),
    "month_weekday": ("monthWeekday", "month_weekday"),
    "end_date": ("endDate", "end_date", "until"),
    "end_after": ("endAfter", "end_after", "count"),
    "exceptions": ("exceptions", "exdates"),
}

EVENT_KEYS = {
    "id": ("id", "event_id", "eventId"),
    "anchor_date": ("anchorDate", "anchor_date", "date", "start"),
    "anchor_time": ("anchorTime", "anchor_time", "time", "startTime", "start_time"),
    "is_all_day": ("isAllDay", "is_all_day", "allDay", "all_day"),
    "rule": ("recurrenceRule", "recurrence_rule", "recurrence", "rule"),
    "reminders": ("reminderOffsets", "reminder_offsets", "reminders"),
    "title": ("title", "subject", "name"),
}


def first_present(data: Mapping[str, Any], keys: Iterable[str]) -> Any:
    """First non-None value among the alias keys (camelCase and snake_case)."""
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _as_int(value: Any, field_name: str) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidRule(f"'{field_name}' must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidRule(f"'{field_name}' must be an integer, got {value!r}")


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, str):
        return [t.strip() for t in value.replace(";", ",").split(",") if t.strip()]
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def rule_from_dict(data: Mapping[str, Any]) -> RecurrenceRule:
    """
    Builds a RecurrenceRule from a loose descriptor.

    Accepts camelCase and snake_case keys (``monthDay`` / ``month_day``),
    ``type`` or ``frequency``, comma separated weekday strings and
    ISO date strings. Raises InvalidRule on malformed input.
    """
    if not isinstance(data, Mapping):
        raise InvalidRule(f"Recurrence rule must be a mapping, got {type(data).__name__}")

    fields = {name: first_present(data, keys) for name, keys in RULE_KEYS.items()}
    interval = _as_int(fields["interval"], "interval")

    return make_rule(
        frequency=fields["frequency"],
        interval=1 if interval is None else interval,
        weekdays=_as_list(fields["weekdays"]),
        month_day=_as_int(fields["month_day"], "month_day"),
        month_week=_as_int(fields["month_week"], "month_week"),
        month_weekday=fields["month_weekday"],
        end_date=fields["end_date"],
        end_after=_as_int(fields["end_after"], "end_after"),
        exceptions=_as_list(fields["exceptions"]),
    )


def parse_reminder_offsets(value: Any) -> Tuple[int, ...]:
    """Sorted, de-duplicated lead times in minutes. Negative values raise InvalidOffset."""
    offsets = set()
    for item in _as_list(value):
        if isinstance(item, bool):
            raise InvalidOffset(f"Reminder offset must be an integer, got {item!r}")
        try:
            minutes = int(item)
        except (TypeError, ValueError):
            raise InvalidOffset(f"Reminder offset must be an integer, got {item!r}")
        if minutes < 0:
            raise InvalidOffset(f"Reminder offset must not be negative, got {minutes}")
        offsets.add(minutes)
    return tuple(sorted(offsets))


def event_from_dict(data: Mapping[str, Any], event_id: Optional[str] = None) -> Event:
    """
    Builds an Event from a host descriptor such as
    ``{id, anchorDate, anchorTime?, isAllDay, recurrenceRule, reminderOffsets[]}``.

    A missing anchor is kept as None (scheduling will reject it); an anchor
    that cannot be parsed raises InvalidEvent right away.
    """
    if not isinstance(data, Mapping):
        raise InvalidEvent(f"Event descriptor must be a mapping, got {type(data).__name__}")

    fields = {name: first_present(data, keys) for name, keys in EVENT_KEYS.items()}
    resolved_id = fields["id"] if fields["id"] is not None else event_id
    if resolved_id is None:
        raise InvalidEvent(f"Event descriptor has no id: {dict(data)}")
    resolved_id = str(resolved_id)

    anchor_raw = fields["anchor_date"]
    anchor_date: Optional[datetime.date] = None
    anchor_time: Optional[datetime.time] = None
    if anchor_raw is not None:
        try:
            anchor_date = to_date(anchor_raw)
            if isinstance(anchor_raw, datetime.datetime):
                anchor_time = anchor_raw.time()
            elif isinstance(anchor_raw, str) and "T" in anchor_raw:
                anchor_time = to_time(anchor_raw.split("T", 1)[1][:5])
        except (TypeError, ValueError):
            raise InvalidEvent(f"Event '{resolved_id}' has an invalid anchor date: {anchor_raw!r}")

    if fields["anchor_time"] is not None:
        try:
            anchor_time = to_time(fields["anchor_time"])
        except (TypeError, ValueError):
            raise InvalidEvent(
                f"Event '{resolved_id}' has an invalid anchor time: {fields['anchor_time']!r}"
            )

    rule_raw = fields["rule"]
    if rule_raw is None:
        rule = None
    elif isinstance(rule_raw, RecurrenceRule):
        rule = rule_raw
    elif isinstance(rule_raw, str):
        rule = make_rule(rule_raw)
    else:
        rule = rule_from_dict(rule_raw)

    reminders: Optional[Tuple[int, ...]] = None
    if data.get("enableNotifications") is False:
        reminders = ()
    elif fields["reminders"] is not None:
        reminders = parse_reminder_offsets(fields["reminders"])

    return Event(
        id=resolved_id,
        anchor_date=anchor_date,
        anchor_time=anchor_time,
        is_all_day=bool(fields["is_all_day"]),
        rule=rule,
        reminders=reminders,
        title=fields["title"],
    )


def load_events_from_yaml(content: str) -> List[Event]:
    """
    Парсит список событий из YAML документа.

    The document is either a list of event mappings or a mapping
    ``id -> event``. Invalid entries are logged and skipped.
    """
    try:
        document = yaml.safe_load(content) or []
    except yaml.YAMLError as e:
        logger.warning(f"Failed to parse events YAML: {e}")
        return []

    entries: List[Tuple[Optional[str], Any]]
    if isinstance(document, dict):
        entries = [(str(event_id), data) for event_id, data in document.items()]
    elif isinstance(document, list):
        entries = [(None, data) for data in document]
    else:
        logger.error(f"Events YAML must be a list or a mapping, got {type(document).__name__}")
        return []

    events: List[Event] = []
    for event_id, data in entries:
        try:
            events.append(event_from_dict(data, event_id=event_id))
        except RecurrenceError as e:
            logger.error(f"Invalid event data for '{event_id or data}': {e}. Skipping.")
    logger.info(f"Loaded {len(events)} event(s) from YAML ({len(entries) - len(events)} skipped)")
    return events
