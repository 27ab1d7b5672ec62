"""
Планировщик напоминаний.

Owns the trigger table: one entry per (event, occurrence, offset) identity,
plus one per snooze. Every mutation and the fire path run under one
reentrant lock, so a trigger is either fired or cancelled, never both, and
``on_fire`` may call back into the scheduler.
"""

import datetime
import itertools
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

from recurring_events.description import format_lead_time
from recurring_events.errors import InvalidOffset
from recurring_events.models import Event, Occurrence, OccurrenceWindow
from utils import to_date

from .interfaces import (
    ErrorSink,
    FireCallback,
    IClock,
    IConfigService,
    IRecurrenceExpander,
    IReminderScheduler,
    ITimerService,
    SchedulerStats,
)

logger = logging.getLogger(__name__)


class TriggerState(Enum):
    ARMED = "armed"
    FIRED = "fired"
    CANCELLED = "cancelled"


class TriggerKey(NamedTuple):
    """Identity of a trigger. Snoozed triggers have no offset and a unique snooze_id."""

    event_id: str
    occurrence_index: int
    offset_minutes: Optional[int]
    snooze_id: Optional[int] = None


class Reminder(NamedTuple):
    """What gets handed to on_fire."""

    event: Event
    occurrence: Occurrence
    offset_minutes: Optional[int]


@dataclass
class ScheduledTrigger:
    key: TriggerKey
    reminder: Reminder
    fire_at: datetime.datetime
    handle: Any = None
    state: TriggerState = TriggerState.ARMED


def log_reminder(event: Event, occurrence: Occurrence, offset_minutes: Optional[int]) -> None:
    """on_fire по умолчанию: только пишет напоминание в лог."""
    logger.info(
        f"Reminder: '{event.title or event.id}' on {occurrence.date}, "
        f"lead time {format_lead_time(offset_minutes or 0)}"
    )


def log_fire_error(exc: BaseException, trigger: ScheduledTrigger) -> None:
    """Стандартный обработчик ошибок on_fire: пишет в лог."""
    logger.error(
        f"on_fire failed for trigger {trigger.key} (fire_at {trigger.fire_at}): {exc}",
        exc_info=exc,
    )


def _check_offsets(offsets: Iterable[Any]) -> Tuple[int, ...]:
    checked = set()
    for offset in offsets:
        if isinstance(offset, bool) or not isinstance(offset, int):
            raise InvalidOffset(f"Reminder offset must be an integer, got {offset!r}")
        if offset < 0:
            raise InvalidOffset(f"Reminder offset must not be negative, got {offset}")
        checked.add(offset)
    return tuple(sorted(checked))


class ReminderSchedulerImpl(IReminderScheduler):
    """Реализация планировщика напоминаний поверх ITimerService."""

    def __init__(
        self,
        expander: IRecurrenceExpander,
        timer_service: ITimerService,
        clock: IClock,
        config_service: IConfigService,
        on_fire: FireCallback,
        error_sink: Optional[ErrorSink] = None,
    ):
        self._expander = expander
        self._timer_service = timer_service
        self._clock = clock
        self._on_fire = on_fire
        self._error_sink = error_sink or log_fire_error

        self._enabled = config_service.is_reminders_enabled()
        self._lookahead = datetime.timedelta(
            minutes=config_service.get_lookahead_minutes()
        )
        self._default_offsets = config_service.get_default_reminder_offsets()
        self._default_snooze = config_service.get_default_snooze_minutes()
        self._all_day_time = config_service.get_all_day_reminder_time()

        self._triggers: Dict[TriggerKey, ScheduledTrigger] = {}
        self._snooze_ids = itertools.count(1)
        self._fired_count = 0
        self._cancelled_count = 0
        self._lock = threading.RLock()
        logger.debug(
            f"ReminderScheduler initialized (enabled={self._enabled}, "
            f"lookahead={self._lookahead}, default offsets={self._default_offsets})."
        )

    # --- Планирование ---

    def _plan(
        self, event: Event, occurrence_window: Optional[OccurrenceWindow]
    ) -> List[ScheduledTrigger]:
        """Computes the triggers for ``event`` without touching the table."""
        event.resolve_anchor()
        offsets = _check_offsets(
            self._default_offsets if event.reminders is None else event.reminders
        )
        if not self._enabled or not offsets:
            return []

        now = self._clock.now()
        horizon = now + self._lookahead
        # The horizon bounds fire times; an occurrence can start up to the
        # largest offset after it.
        latest_start = horizon + datetime.timedelta(minutes=max(offsets))
        start, end = self._clock.today(), latest_start.date() + datetime.timedelta(days=1)
        if occurrence_window is not None:
            start = max(start, to_date(occurrence_window.start))
            end = min(end, to_date(occurrence_window.end))

        planned: List[ScheduledTrigger] = []
        for occurrence in self._expander.expand_event(event, start, end):
            starts_at = event.effective_time(occurrence.date, self._all_day_time)
            for offset in offsets:
                fire_at = starts_at - datetime.timedelta(minutes=offset)
                if fire_at <= now or fire_at >= horizon:
                    continue
                key = TriggerKey(event.id, occurrence.sequence_index, offset)
                planned.append(
                    ScheduledTrigger(key, Reminder(event, occurrence, offset), fire_at)
                )
        return planned

    def _arm(self, triggers: List[ScheduledTrigger]) -> None:
        armed: List[ScheduledTrigger] = []
        try:
            for trigger in triggers:
                trigger.handle = self._timer_service.call_at(
                    trigger.fire_at, partial(self._handle_timer, trigger)
                )
                armed.append(trigger)
        except Exception:
            for trigger in armed:
                self._timer_service.cancel(trigger.handle)
            raise
        for trigger in triggers:
            previous = self._triggers.get(trigger.key)
            if previous is not None:
                self._release(previous)
            self._triggers[trigger.key] = trigger

    def _release(self, trigger: ScheduledTrigger) -> None:
        trigger.state = TriggerState.CANCELLED
        if trigger.handle is not None:
            self._timer_service.cancel(trigger.handle)
        self._cancelled_count += 1

    def _cancel_event(self, event_id: str) -> int:
        keys = [key for key in self._triggers if key.event_id == event_id]
        for key in keys:
            self._release(self._triggers.pop(key))
        return len(keys)

    def schedule(
        self, event: Event, occurrence_window: Optional[OccurrenceWindow] = None
    ) -> List[ScheduledTrigger]:
        planned = self._plan(event, occurrence_window)
        with self._lock:
            self._arm(planned)
        if planned:
            logger.info(
                f"Armed {len(planned)} reminder(s) for event '{event.id}', "
                f"next at {min(t.fire_at for t in planned)}"
            )
        else:
            logger.debug(f"No reminders to arm for event '{event.id}'")
        return planned

    def cancel(self, event_id: str) -> int:
        with self._lock:
            count = self._cancel_event(event_id)
        if count:
            logger.info(f"Cancelled {count} reminder(s) for event '{event_id}'")
        return count

    def reschedule(
        self, event: Event, occurrence_window: Optional[OccurrenceWindow] = None
    ) -> List[ScheduledTrigger]:
        planned = self._plan(event, occurrence_window)
        with self._lock:
            cancelled = self._cancel_event(event.id)
            self._arm(planned)
        logger.info(
            f"Rescheduled event '{event.id}': {cancelled} reminder(s) cancelled, "
            f"{len(planned)} armed"
        )
        return planned

    def snooze(
        self,
        trigger: Union[ScheduledTrigger, Reminder],
        delay_minutes: Optional[int] = None,
    ) -> ScheduledTrigger:
        delay = self._default_snooze if delay_minutes is None else delay_minutes
        if isinstance(delay, bool) or not isinstance(delay, int) or delay <= 0:
            raise InvalidOffset(f"Snooze delay must be a positive integer, got {delay!r}")

        reminder = trigger.reminder if isinstance(trigger, ScheduledTrigger) else trigger
        with self._lock:
            if isinstance(trigger, ScheduledTrigger):
                current = self._triggers.get(trigger.key)
                if current is trigger:
                    self._release(self._triggers.pop(trigger.key))
            key = TriggerKey(
                reminder.event.id,
                reminder.occurrence.sequence_index,
                None,
                next(self._snooze_ids),
            )
            snoozed = ScheduledTrigger(
                key,
                reminder,
                self._clock.now() + datetime.timedelta(minutes=delay),
            )
            self._arm([snoozed])
        logger.info(
            f"Snoozed reminder for event '{reminder.event.id}' until {snoozed.fire_at}"
        )
        return snoozed

    def cancel_all(self) -> int:
        with self._lock:
            triggers = list(self._triggers.values())
            self._triggers.clear()
            for trigger in triggers:
                self._release(trigger)
        if triggers:
            logger.info(f"Cancelled all {len(triggers)} reminder(s)")
        return len(triggers)

    # --- Срабатывание ---

    def _handle_timer(self, trigger: ScheduledTrigger) -> None:
        with self._lock:
            if self._triggers.get(trigger.key) is not trigger:
                # Cancelled or replaced while the timer was in flight
                logger.debug(f"Ignoring stale timer for trigger {trigger.key}")
                return
            del self._triggers[trigger.key]
            trigger.state = TriggerState.FIRED
            self._fired_count += 1
            event, occurrence, offset = trigger.reminder
            logger.info(
                f"Reminder fired for event '{event.id}' on {occurrence.date} "
                f"(offset {offset})"
            )
            try:
                self._on_fire(event, occurrence, offset)
            except Exception as e:
                try:
                    self._error_sink(e, trigger)
                except Exception:
                    logger.error(
                        f"Error sink failed for trigger {trigger.key}", exc_info=True
                    )

    # --- Состояние ---

    def get_triggers(self, event_id: Optional[str] = None) -> List[ScheduledTrigger]:
        with self._lock:
            triggers = [
                t
                for t in self._triggers.values()
                if event_id is None or t.key.event_id == event_id
            ]
        return sorted(triggers, key=lambda t: (t.fire_at, t.key.offset_minutes or 0))

    def get_stats(self) -> SchedulerStats:
        with self._lock:
            return {
                "armed_count": len(self._triggers),
                "fired_count": self._fired_count,
                "cancelled_count": self._cancelled_count,
                "enabled": self._enabled,
            }

    def start(self) -> None:
        logger.info("Starting ReminderScheduler...")
        self._timer_service.start()

    def stop(self) -> None:
        logger.info("Stopping ReminderScheduler...")
        self.cancel_all()
        self._timer_service.stop()
