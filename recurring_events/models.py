import datetime
from dataclasses import dataclass
from typing import NamedTuple, Optional, Tuple

from .errors import InvalidEvent
from .rules import RecurrenceRule


class OccurrenceWindow(NamedTuple):
    """Half-open date window [start, end)."""

    start: datetime.date
    end: datetime.date


@dataclass(frozen=True)
class Occurrence:
    """One concrete date of a series; derived on demand, never stored."""

    date: datetime.date
    source_event_id: str
    sequence_index: int


@dataclass
class Event:
    """
    Event descriptor handed in by the host application.

    ``reminders`` of None means "use the configured default offsets";
    an empty tuple means "no reminders".
    """

    id: str
    anchor_date: Optional[datetime.date]
    anchor_time: Optional[datetime.time] = None
    is_all_day: bool = False
    rule: Optional[RecurrenceRule] = None
    reminders: Optional[Tuple[int, ...]] = None
    title: Optional[str] = None

    def resolve_anchor(self) -> datetime.date:
        if self.anchor_date is None:
            raise InvalidEvent(f"Event '{self.id}' has no anchor date")
        if isinstance(self.anchor_date, datetime.datetime):
            return self.anchor_date.date()
        if not isinstance(self.anchor_date, datetime.date):
            raise InvalidEvent(
                f"Event '{self.id}' anchor is not a date: {self.anchor_date!r}"
            )
        return self.anchor_date

    def effective_time(
        self,
        day: datetime.date,
        all_day_time: datetime.time = datetime.time(0, 0),
    ) -> datetime.datetime:
        """Local start datetime of the occurrence falling on ``day``."""
        if self.is_all_day or self.anchor_time is None:
            return datetime.datetime.combine(day, all_day_time)
        return datetime.datetime.combine(day, self.anchor_time)

