import datetime
import heapq
import itertools
import logging
import threading
from typing import List, Optional, Tuple

from .interfaces import IClock, ITimerService, TimerCallback

logger = logging.getLogger(__name__)


class VirtualTimer:
    __slots__ = ("id", "when", "callback", "cancelled")

    def __init__(self, timer_id: int, when: datetime.datetime, callback: TimerCallback):
        self.id = timer_id
        self.when = when
        self.callback = callback
        self.cancelled = False

    def __repr__(self) -> str:
        return f"VirtualTimer(id={self.id}, when={self.when.isoformat()})"


class VirtualTimerService(IClock, ITimerService):
    """
    Виртуальное время для тестов и симуляций.

    Acts as both the clock and the timer service. Time only moves through
    ``advance`` / ``advance_to``; due timers fire in (time, arming order),
    each with the clock set to its own fire time.
    """

    def __init__(self, start: Optional[datetime.datetime] = None):
        self._now = start or datetime.datetime(2025, 1, 1, 0, 0)
        self._heap: List[Tuple[datetime.datetime, int, VirtualTimer]] = []
        self._pending = 0
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    # --- IClock ---

    def now(self) -> datetime.datetime:
        with self._lock:
            return self._now

    def today(self) -> datetime.date:
        return self.now().date()

    # --- ITimerService ---

    def call_at(self, when: datetime.datetime, callback: TimerCallback) -> VirtualTimer:
        with self._lock:
            timer = VirtualTimer(next(self._ids), when, callback)
            heapq.heappush(self._heap, (when, timer.id, timer))
            self._pending += 1
        return timer

    def cancel(self, handle: VirtualTimer) -> bool:
        with self._lock:
            if handle.cancelled or handle.callback is None:
                return False
            handle.cancelled = True
            self._pending -= 1
            # Heap entries are dropped lazily; rebuild once most are dead
            if len(self._heap) - self._pending > self._pending:
                self._heap = [entry for entry in self._heap if not entry[2].cancelled]
                heapq.heapify(self._heap)
            return True

    def pending_count(self) -> int:
        with self._lock:
            return self._pending

    def start(self) -> None:
        logger.debug("VirtualTimerService started.")

    def stop(self) -> None:
        logger.debug("VirtualTimerService stopped.")

    # --- Управление временем ---

    def _pop_due(
        self, until: datetime.datetime
    ) -> Optional[Tuple[VirtualTimer, TimerCallback]]:
        with self._lock:
            while self._heap and self._heap[0][0] <= until:
                _, _, timer = heapq.heappop(self._heap)
                if timer.cancelled:
                    continue
                self._pending -= 1
                self._now = max(self._now, timer.when)
                callback, timer.callback = timer.callback, None
                return timer, callback
            return None

    def advance_to(self, when: datetime.datetime) -> int:
        """Переводит часы на when и выполняет наступившие таймеры. Возвращает их количество."""
        fired = 0
        while True:
            due = self._pop_due(when)
            if due is None:
                break
            timer, callback = due
            fired += 1
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in timer callback {timer!r}: {e}", exc_info=True)
        with self._lock:
            self._now = max(self._now, when)
        return fired

    def advance(self, **delta) -> int:
        """advance(minutes=15) и т.п., аргументы как у timedelta."""
        return self.advance_to(self.now() + datetime.timedelta(**delta))

    def next_fire_time(self) -> Optional[datetime.datetime]:
        with self._lock:
            while self._heap and self._heap[0][2].cancelled:
                heapq.heappop(self._heap)
            return self._heap[0][0] if self._heap else None
