"""
Recurrence expansion.

A series is an ordered list of "raw" occurrences: raw occurrence 0 is the
anchor, raw occurrence n is computed directly from the anchor and n (see
``nth_occurrence``). Expansion jumps straight to the first raw occurrence
inside the query window instead of stepping from the anchor, then walks
forward, skipping exceptions, until the window or an end condition stops it.
"""

import datetime
import logging
from typing import Any, Iterator, List, Mapping, Optional, Tuple, Union

from dateutil.relativedelta import FR, MO, SA, SU, TH, TU, WE, relativedelta

from services.interfaces import IConfigService, IRecurrenceExpander
from utils import to_date

from .event_loading import rule_from_dict
from .models import Event, Occurrence
from .rules import (
    DailyRule,
    MonthlyDayRule,
    MonthlyWeekdayRule,
    RecurrenceRule,
    SingleOccurrence,
    WeeklyRule,
    YearlyRule,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_OCCURRENCES = 1000

RuleLike = Union[RecurrenceRule, Mapping[str, Any], None]


# --- Calendar arithmetic ---

# Indexed by Weekday
WEEKDAYS = (MO, TU, WE, TH, FR, SA, SU)


def _week_start(day: datetime.date) -> datetime.date:
    return day - datetime.timedelta(days=day.weekday())


def _weekly_layout(rule: WeeklyRule, anchor: datetime.date) -> Tuple[List[int], List[int]]:
    """
    Returns (weekdays, first_block_tail).

    ``weekdays`` are the selected weekdays ascending (the anchor's weekday
    when none are selected); ``first_block_tail`` are those after the anchor
    in the anchor's own week. Block 0 is [anchor] + tail.
    """
    weekdays = sorted(int(d) for d in rule.weekdays) or [anchor.weekday()]
    tail = [d for d in weekdays if d > anchor.weekday()]
    return weekdays, tail


# --- Series positions ---


def nth_occurrence(
    rule: RecurrenceRule, anchor: datetime.date, n: int
) -> Optional[datetime.date]:
    """Date of raw occurrence ``n`` (0 = anchor), or None past the calendar's end."""
    if n == 0:
        return anchor
    try:
        if isinstance(rule, DailyRule):
            return anchor + datetime.timedelta(days=n * rule.interval)

        if isinstance(rule, WeeklyRule):
            weekdays, tail = _weekly_layout(rule, anchor)
            week_start = _week_start(anchor)
            if n <= len(tail):
                return week_start + datetime.timedelta(days=tail[n - 1])
            block, position = divmod(n - 1 - len(tail), len(weekdays))
            return week_start + datetime.timedelta(
                days=7 * rule.interval * (block + 1) + weekdays[position]
            )

        if isinstance(rule, MonthlyDayRule):
            # relativedelta clamps day 29..31 to the month length
            return anchor + relativedelta(months=n * rule.interval, day=rule.month_day)

        if isinstance(rule, MonthlyWeekdayRule):
            weekday = WEEKDAYS[int(rule.month_weekday)]
            if rule.month_week == -1:
                return anchor + relativedelta(
                    months=n * rule.interval, day=31, weekday=weekday(-1)
                )
            return anchor + relativedelta(
                months=n * rule.interval, day=1, weekday=weekday(rule.month_week)
            )

        if isinstance(rule, YearlyRule):
            # Feb 29 falls back to Feb 28 in common years
            return anchor + relativedelta(years=n * rule.interval)
    except (ValueError, OverflowError):
        # Past date.max
        return None

    # SingleOccurrence has nothing after the anchor
    return None


def first_index_on_or_after(
    rule: RecurrenceRule, anchor: datetime.date, day: datetime.date
) -> Optional[int]:
    """Smallest raw index whose date is >= ``day``, computed without stepping."""
    if day <= anchor:
        return 0
    if isinstance(rule, SingleOccurrence):
        return None

    if isinstance(rule, DailyRule):
        elapsed = (day - anchor).days
        return -(-elapsed // rule.interval)

    if isinstance(rule, WeeklyRule):
        weekdays, tail = _weekly_layout(rule, anchor)
        week_start = _week_start(anchor)
        weeks_elapsed = (day - week_start).days // 7
        block, off_phase = divmod(weeks_elapsed, rule.interval)
        def block_first(k: int) -> int:
            # Index of the first occurrence in eligible block k (k >= 1)
            return 1 + len(tail) + (k - 1) * len(weekdays)

        if off_phase:
            return block_first(block + 1)
        if block == 0:
            for i, weekday in enumerate(tail):
                if weekday >= day.weekday():
                    return i + 1
            return block_first(1)
        for i, weekday in enumerate(weekdays):
            if weekday >= day.weekday():
                return block_first(block) + i
        return block_first(block + 1)

    if isinstance(rule, (MonthlyDayRule, MonthlyWeekdayRule)):
        elapsed = (day.year - anchor.year) * 12 + (day.month - anchor.month)
    elif isinstance(rule, YearlyRule):
        elapsed = day.year - anchor.year
    else:
        raise TypeError(f"Unsupported rule type: {type(rule).__name__}")

    n = max(1, -(-elapsed // rule.interval))
    # The candidate can land earlier in the same month/year as ``day``
    while True:
        candidate = nth_occurrence(rule, anchor, n)
        if candidate is None:
            return None
        if candidate >= day:
            return n
        n += 1


def index_of(
    rule: RecurrenceRule, anchor: datetime.date, day: datetime.date
) -> Optional[int]:
    """Raw index of ``day`` if it is a date of the series, else None."""
    if day < anchor:
        return None
    n = first_index_on_or_after(rule, anchor, day)
    if n is not None and nth_occurrence(rule, anchor, n) == day:
        return n
    return None


# --- Expansion ---


def _coerce_rule(rule: RuleLike) -> RecurrenceRule:
    if rule is None:
        return SingleOccurrence()
    if isinstance(rule, RecurrenceRule):
        return rule
    if isinstance(rule, Mapping):
        return rule_from_dict(rule)
    raise TypeError(f"Unsupported rule type: {type(rule).__name__}")


def _iter_series(
    anchor: datetime.date,
    rule: RecurrenceRule,
    window_start: datetime.date,
    window_end: datetime.date,
    max_results: Optional[int],
) -> Iterator[Tuple[datetime.date, int]]:
    """Yields (date, sequence_index) pairs inside [window_start, window_end)."""
    if window_end <= window_start:
        return

    raw = first_index_on_or_after(rule, anchor, max(window_start, anchor))
    if raw is None:
        return
    position = nth_occurrence(rule, anchor, raw)
    if position is None:
        return

    # Sequence indices count from the anchor and skip exceptions,
    # so excepted series dates before the window shift the index.
    skipped = sum(
        1
        for exc in rule.exceptions
        if anchor <= exc < position and index_of(rule, anchor, exc) is not None
    )
    sequence_index = raw - skipped

    produced = 0
    while True:
        day = nth_occurrence(rule, anchor, raw)
        if day is None or day >= window_end:
            break
        if rule.end_date is not None and day > rule.end_date:
            break
        if rule.end_after is not None and sequence_index >= rule.end_after:
            break
        raw += 1
        if day in rule.exceptions:
            continue
        if max_results is not None and produced >= max_results:
            logger.warning(
                f"Expansion stopped at {max_results} occurrences for anchor {anchor} "
                f"(window {window_start} - {window_end})"
            )
            break
        yield day, sequence_index
        sequence_index += 1
        produced += 1


def expand(
    anchor: Any,
    rule: RuleLike,
    window_start: Any,
    window_end: Any,
    max_results: Optional[int] = DEFAULT_MAX_OCCURRENCES,
) -> List[datetime.date]:
    """
    Occurrence dates of the series seeded at ``anchor`` inside
    [window_start, window_end), ascending and without duplicates.

    Raises InvalidRule for malformed rules (mappings are validated here).
    """
    rule = _coerce_rule(rule)
    anchor = to_date(anchor)
    return [
        day
        for day, _ in _iter_series(
            anchor, rule, to_date(window_start), to_date(window_end), max_results
        )
    ]


def expand_event(
    event: Event,
    window_start: Any,
    window_end: Any,
    max_results: Optional[int] = DEFAULT_MAX_OCCURRENCES,
) -> List[Occurrence]:
    """Like ``expand`` but returns Occurrence records for ``event``."""
    anchor = event.resolve_anchor()
    rule = _coerce_rule(event.rule)
    return [
        Occurrence(date=day, source_event_id=event.id, sequence_index=index)
        for day, index in _iter_series(
            anchor, rule, to_date(window_start), to_date(window_end), max_results
        )
    ]


class RecurrenceExpander(IRecurrenceExpander):
    """
    Stateless expander service. Holds only the configured per-call
    occurrence cap, so one instance is safe to share between threads.
    """

    def __init__(self, config_service: Optional[IConfigService] = None):
        self._max_results = (
            config_service.get_max_occurrences_per_expansion()
            if config_service is not None
            else DEFAULT_MAX_OCCURRENCES
        )
        logger.debug(
            f"RecurrenceExpander initialized (max occurrences per call: {self._max_results})."
        )

    def expand(
        self, anchor: Any, rule: RuleLike, window_start: Any, window_end: Any
    ) -> List[datetime.date]:
        return expand(anchor, rule, window_start, window_end, self._max_results)

    def expand_event(
        self, event: Event, window_start: Any, window_end: Any
    ) -> List[Occurrence]:
        occurrences = expand_event(event, window_start, window_end, self._max_results)
        logger.debug(
            f"Expanded event '{event.id}' in [{window_start}, {window_end}): "
            f"{len(occurrences)} occurrence(s)"
        )
        return occurrences
