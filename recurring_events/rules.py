"""
Recurrence rule value objects.

Each frequency is its own frozen dataclass, so a rule carries exactly the
fields its frequency needs. Invariants are checked in ``__post_init__`` and
reported as ``InvalidRule``.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, ClassVar, FrozenSet, Iterable, Optional, Union

from utils import to_date

from .errors import InvalidRule


class Frequency(Enum):
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class Weekday(IntEnum):
    """Days of the week, numbered like ``date.weekday()``."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6

    @property
    def short_name(self) -> str:
        return self.name[:3].capitalize()


WEEKDAY_ALIASES = {
    "mo": Weekday.MONDAY,
    "mon": Weekday.MONDAY,
    "monday": Weekday.MONDAY,
    "tu": Weekday.TUESDAY,
    "tue": Weekday.TUESDAY,
    "tues": Weekday.TUESDAY,
    "tuesday": Weekday.TUESDAY,
    "we": Weekday.WEDNESDAY,
    "wed": Weekday.WEDNESDAY,
    "wednesday": Weekday.WEDNESDAY,
    "th": Weekday.THURSDAY,
    "thu": Weekday.THURSDAY,
    "thur": Weekday.THURSDAY,
    "thurs": Weekday.THURSDAY,
    "thursday": Weekday.THURSDAY,
    "fr": Weekday.FRIDAY,
    "fri": Weekday.FRIDAY,
    "friday": Weekday.FRIDAY,
    "sa": Weekday.SATURDAY,
    "sat": Weekday.SATURDAY,
    "saturday": Weekday.SATURDAY,
    "su": Weekday.SUNDAY,
    "sun": Weekday.SUNDAY,
    "sunday": Weekday.SUNDAY,
}

# 1..4 = first..fourth, -1 = last
MONTH_WEEKS = (1, 2, 3, 4, -1)

WeekdayLike = Union[Weekday, int, str]


def parse_weekday(value: WeekdayLike) -> Weekday:
    """Accepts a Weekday, an int 0-6 (Monday=0) or a day name/abbreviation."""
    if isinstance(value, Weekday):
        return value
    if isinstance(value, bool):
        raise InvalidRule(f"Invalid weekday: {value!r}")
    if isinstance(value, int):
        try:
            return Weekday(value)
        except ValueError:
            raise InvalidRule(f"Weekday number must be 0-6, got {value}")
    if isinstance(value, str):
        weekday = WEEKDAY_ALIASES.get(value.strip().lower())
        if weekday is not None:
            return weekday
    raise InvalidRule(f"Invalid weekday: {value!r}")


def parse_frequency(value: Union[Frequency, str, None]) -> Frequency:
    if value is None:
        return Frequency.NONE
    if isinstance(value, Frequency):
        return value
    try:
        return Frequency(str(value).strip().lower())
    except ValueError:
        raise InvalidRule(f"Unknown recurrence frequency: {value!r}")


def _coerce_date(value: Any, field_name: str) -> datetime.date:
    try:
        return to_date(value)
    except (TypeError, ValueError):
        raise InvalidRule(f"'{field_name}' is not a valid date: {value!r}")


@dataclass(frozen=True)
class RecurrenceRule:
    """Common part of every rule: interval, end condition and exceptions."""

    frequency: ClassVar[Frequency] = Frequency.NONE

    interval: int = 1
    end_date: Optional[datetime.date] = None
    end_after: Optional[int] = None
    exceptions: FrozenSet[datetime.date] = field(default_factory=frozenset)

    def __post_init__(self):
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise InvalidRule(f"Interval must be an integer, got {self.interval!r}")
        if self.interval < 1:
            raise InvalidRule(f"Interval must be >= 1, got {self.interval}")
        if self.end_date is not None and self.end_after is not None:
            raise InvalidRule("Only one of 'end_date' and 'end_after' may be set")
        if self.end_after is not None and (
            isinstance(self.end_after, bool)
            or not isinstance(self.end_after, int)
            or self.end_after < 1
        ):
            raise InvalidRule(f"'end_after' must be a positive integer, got {self.end_after!r}")
        if self.end_date is not None:
            object.__setattr__(
                self, "end_date", _coerce_date(self.end_date, "end_date")
            )
        object.__setattr__(
            self,
            "exceptions",
            frozenset(_coerce_date(d, "exceptions") for d in self.exceptions or ()),
        )

    @property
    def is_recurring(self) -> bool:
        return self.frequency is not Frequency.NONE


@dataclass(frozen=True)
class SingleOccurrence(RecurrenceRule):
    """A series holding only its anchor."""

    frequency: ClassVar[Frequency] = Frequency.NONE


@dataclass(frozen=True)
class DailyRule(RecurrenceRule):
    frequency: ClassVar[Frequency] = Frequency.DAILY


@dataclass(frozen=True)
class WeeklyRule(RecurrenceRule):
    """Weekly rule; an empty weekday set means the anchor's own weekday."""

    frequency: ClassVar[Frequency] = Frequency.WEEKLY

    weekdays: FrozenSet[Weekday] = field(default_factory=frozenset)

    def __post_init__(self):
        super().__post_init__()
        object.__setattr__(
            self, "weekdays", frozenset(parse_weekday(d) for d in self.weekdays or ())
        )


@dataclass(frozen=True)
class MonthlyDayRule(RecurrenceRule):
    """Same day of month every N months, clamped to the month length."""

    frequency: ClassVar[Frequency] = Frequency.MONTHLY

    month_day: Optional[int] = None

    def __post_init__(self):
        super().__post_init__()
        if (
            isinstance(self.month_day, bool)
            or not isinstance(self.month_day, int)
            or not 1 <= self.month_day <= 31
        ):
            raise InvalidRule(f"'month_day' must be between 1 and 31, got {self.month_day!r}")


@dataclass(frozen=True)
class MonthlyWeekdayRule(RecurrenceRule):
    """Nth (or last) given weekday of the month every N months."""

    frequency: ClassVar[Frequency] = Frequency.MONTHLY

    month_week: Optional[int] = None
    month_weekday: Optional[Weekday] = None

    def __post_init__(self):
        super().__post_init__()
        if self.month_week not in MONTH_WEEKS or isinstance(self.month_week, bool):
            raise InvalidRule(
                f"'month_week' must be one of {MONTH_WEEKS}, got {self.month_week!r}"
            )
        if self.month_weekday is None:
            raise InvalidRule("'month_weekday' is required together with 'month_week'")
        object.__setattr__(self, "month_weekday", parse_weekday(self.month_weekday))


@dataclass(frozen=True)
class YearlyRule(RecurrenceRule):
    frequency: ClassVar[Frequency] = Frequency.YEARLY


def make_rule(
    frequency: Union[Frequency, str, None],
    interval: int = 1,
    weekdays: Optional[Iterable[WeekdayLike]] = None,
    month_day: Optional[int] = None,
    month_week: Optional[int] = None,
    month_weekday: Optional[WeekdayLike] = None,
    end_date: Any = None,
    end_after: Optional[int] = None,
    exceptions: Iterable[Any] = (),
) -> RecurrenceRule:
    """
    Builds the right rule variant from flat, untyped fields.

    Raises InvalidRule for combinations the variants cannot express: a
    monthly rule with both or neither day-selection strategy, or fields
    that belong to another frequency.
    """
    freq = parse_frequency(frequency)
    common = dict(
        interval=interval,
        end_date=end_date,
        end_after=end_after,
        exceptions=frozenset(exceptions or ()),
    )

    if weekdays and freq is not Frequency.WEEKLY:
        raise InvalidRule("'weekdays' is only allowed for weekly rules")
    has_month_day = month_day is not None
    has_month_week = month_week is not None or month_weekday is not None
    if (has_month_day or has_month_week) and freq is not Frequency.MONTHLY:
        raise InvalidRule("Month day selection is only allowed for monthly rules")

    if freq is Frequency.NONE:
        return SingleOccurrence(**common)
    if freq is Frequency.DAILY:
        return DailyRule(**common)
    if freq is Frequency.WEEKLY:
        return WeeklyRule(weekdays=frozenset(weekdays or ()), **common)
    if freq is Frequency.YEARLY:
        return YearlyRule(**common)

    if has_month_day and has_month_week:
        raise InvalidRule(
            "Monthly rule must use either 'month_day' or 'month_week'/'month_weekday', not both"
        )
    if has_month_day:
        return MonthlyDayRule(month_day=month_day, **common)
    if has_month_week:
        return MonthlyWeekdayRule(
            month_week=month_week, month_weekday=month_weekday, **common
        )
    raise InvalidRule(
        "Monthly rule requires 'month_day' or 'month_week' with 'month_weekday'"
    )
