from typing import List

from .rules import (
    DailyRule,
    MonthlyDayRule,
    MonthlyWeekdayRule,
    RecurrenceRule,
    WeeklyRule,
    YearlyRule,
)

ORDINALS = {1: "first", 2: "second", 3: "third", 4: "fourth", -1: "last"}


def _every(interval: int, unit: str, adverb: str) -> str:
    if interval == 1:
        return adverb
    return f"every {interval} {unit}s"


def describe_tokens(rule: RecurrenceRule) -> List[str]:
    """
    Разбивает правило на фрагменты текста.

    Tokens are kept separate so a host can localise or restyle them;
    ``describe`` joins them with spaces/commas.
    """
    if rule is None or not rule.is_recurring:
        return ["does not repeat"]

    tokens: List[str] = []
    if isinstance(rule, DailyRule):
        tokens.append(_every(rule.interval, "day", "daily"))
    elif isinstance(rule, WeeklyRule):
        tokens.append(_every(rule.interval, "week", "weekly"))
        if rule.weekdays:
            names = ", ".join(d.short_name for d in sorted(rule.weekdays))
            tokens.append(f"on {names}")
    elif isinstance(rule, MonthlyDayRule):
        tokens.append(_every(rule.interval, "month", "monthly"))
        tokens.append(f"on day {rule.month_day}")
    elif isinstance(rule, MonthlyWeekdayRule):
        tokens.append(_every(rule.interval, "month", "monthly"))
        tokens.append(f"on the {ORDINALS[rule.month_week]} {rule.month_weekday.short_name}")
    elif isinstance(rule, YearlyRule):
        tokens.append(_every(rule.interval, "year", "yearly"))

    if rule.end_date is not None:
        tokens.append(f"until {rule.end_date.isoformat()}")
    elif rule.end_after is not None:
        noun = "occurrence" if rule.end_after == 1 else "occurrences"
        tokens.append(f"for {rule.end_after} {noun}")
    return tokens


def describe(rule: RecurrenceRule) -> str:
    """Human readable summary, e.g. 'every 2 weeks on Mon, Wed until 2025-03-01'."""
    return " ".join(describe_tokens(rule))


def format_lead_time(minutes: int) -> str:
    """Reminder lead time as text: 'now', '5 minutes', '1 hour', '2 days'."""
    if minutes <= 0:
        return "now"
    if minutes % (24 * 60) == 0:
        value, unit = minutes // (24 * 60), "day"
    elif minutes % 60 == 0:
        value, unit = minutes // 60, "hour"
    else:
        value, unit = minutes, "minute"
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"
