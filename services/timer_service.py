import datetime
import itertools
import logging
import math
import threading
import time
from typing import Dict, List, Optional

import schedule

from .clock_service import SystemClock
from .interfaces import IClock, IConfigService, ITimerService, TimerCallback

logger = logging.getLogger(__name__)


class TimerHandle:
    """Хэндл однократного таймера."""

    __slots__ = ("id", "when", "callback", "job")

    def __init__(self, timer_id: int, when: datetime.datetime, callback: TimerCallback):
        self.id = timer_id
        self.when = when
        self.callback = callback
        self.job: Optional[schedule.Job] = None

    def __repr__(self) -> str:
        return f"TimerHandle(id={self.id}, when={self.when.isoformat()})"


class ScheduleTimerService(ITimerService):
    """
    Реализация однократных таймеров поверх schedule.

    Each timer is a job on a private ``schedule.Scheduler`` that returns
    ``schedule.CancelJob`` after its first run. A daemon thread polls the
    scheduler; callbacks that became due are collected under the lock and
    invoked after it is released, so a callback may arm or cancel timers.
    """

    def __init__(
        self,
        config_service: Optional[IConfigService] = None,
        clock: Optional[IClock] = None,
    ):
        self._clock = clock or SystemClock()
        self._poll_interval = (
            config_service.get_timer_poll_interval() if config_service else 0.5
        )
        self._scheduler = schedule.Scheduler()
        self._pending: Dict[int, TimerHandle] = {}
        self._due: List[TimerHandle] = []
        self._ids = itertools.count(1)
        self._schedule_thread: Optional[threading.Thread] = None
        self._running = False
        self._lock = threading.Lock()
        logger.debug(
            f"ScheduleTimerService initialized (poll interval {self._poll_interval}s)."
        )

    def _mark_due(self, handle: TimerHandle):
        # Runs inside run_pending, lock already held
        if self._pending.pop(handle.id, None) is not None:
            self._due.append(handle)
        return schedule.CancelJob

    def _run_scheduler(self):
        """Целевая функция для потока schedule."""
        logger.info("Starting timer runner thread...")
        while self._running:
            self.run_pending()
            time.sleep(self._poll_interval)
        logger.info("Timer runner thread stopped.")

    def run_pending(self) -> int:
        """Выполняет наступившие таймеры. Возвращает их количество."""
        with self._lock:
            self._scheduler.run_pending()
            due, self._due = self._due, []
        for handle in due:
            try:
                handle.callback()
            except Exception as e:
                logger.error(f"Error in timer callback {handle!r}: {e}", exc_info=True)
        return len(due)

    def call_at(self, when: datetime.datetime, callback: TimerCallback) -> TimerHandle:
        delay = (when - self._clock.now()).total_seconds()
        handle = TimerHandle(next(self._ids), when, callback)
        with self._lock:
            # schedule counts whole seconds, round up so we never fire early
            handle.job = self._scheduler.every(max(1, math.ceil(delay))).seconds.do(
                self._mark_due, handle
            )
            self._pending[handle.id] = handle
        logger.debug(f"Timer {handle!r} armed (in {delay:.1f}s).")
        return handle

    def cancel(self, handle: TimerHandle) -> bool:
        with self._lock:
            if self._pending.pop(handle.id, None) is None:
                return False
            if handle.job is not None:
                self._scheduler.cancel_job(handle.job)
        logger.debug(f"Timer {handle!r} cancelled.")
        return True

    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def start(self) -> None:
        if self._running:
            logger.warning("ScheduleTimerService is already running.")
            return

        logger.info("Starting ScheduleTimerService...")
        self._running = True
        self._schedule_thread = threading.Thread(
            target=self._run_scheduler, daemon=True
        )
        self._schedule_thread.start()

    def stop(self) -> None:
        if not self._running:
            logger.warning("ScheduleTimerService is not running.")
            return

        logger.info("Stopping ScheduleTimerService...")
        self._running = False

        if self._schedule_thread and self._schedule_thread.is_alive():
            self._schedule_thread.join(timeout=2)

        with self._lock:
            self._scheduler.clear()
            self._pending.clear()
            self._due.clear()
        logger.info("ScheduleTimerService stopped.")
