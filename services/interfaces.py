from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    List,
    Optional,
    Protocol,
    Tuple,
    TypedDict,
)
import datetime

if TYPE_CHECKING:
    from recurring_events.models import Event, Occurrence, OccurrenceWindow
    from services.reminder_service import Reminder, ScheduledTrigger


# --- Интерфейс Сервиса Конфигурации ---
class IConfigService(Protocol):
    """Интерфейс для доступа к конфигурационным параметрам приложения."""

    def get(self, key: str, default: Optional[Any] = None) -> Optional[Any]: ...
    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]: ...
    def get_int(self, key: str, default: int) -> int: ...
    def get_float(self, key: str, default: float) -> float: ...
    def get_bool(self, key: str, default: bool) -> bool: ...
    def get_list_str(
        self, key: str, default: Optional[List[str]] = None
    ) -> Optional[List[str]]: ...
    def get_log_level(self) -> str: ...
    def is_reminders_enabled(self) -> bool: ...
    def get_lookahead_minutes(self) -> int: ...
    def get_default_reminder_offsets(self) -> Tuple[int, ...]: ...
    def get_default_snooze_minutes(self) -> int: ...
    def get_all_day_reminder_time(self) -> datetime.time: ...
    def get_max_occurrences_per_expansion(self) -> int: ...
    def get_timer_poll_interval(self) -> float: ...


# --- Интерфейс Часов ---
class IClock(Protocol):
    """Источник текущего времени. Подменяется в тестах виртуальным временем."""

    def now(self) -> datetime.datetime:
        """Текущее локальное время (naive datetime)."""
        ...

    def today(self) -> datetime.date:
        """Текущая дата."""
        ...


# --- Типы колбэков для таймеров и напоминаний ---
TimerCallback = Callable[[], None]
FireCallback = Callable[["Event", "Occurrence", Optional[int]], None]
ErrorSink = Callable[[BaseException, "ScheduledTrigger"], None]


# --- Интерфейс Сервиса Таймеров ---
class ITimerService(Protocol):
    """Однократные отложенные вызовы. Хэндл непрозрачен для вызывающего."""

    def call_at(self, when: datetime.datetime, callback: TimerCallback) -> Any:
        """Планирует вызов callback в момент when. Возвращает хэндл для отмены."""
        ...

    def cancel(self, handle: Any) -> bool:
        """Отменяет вызов. False, если он уже выполнен или отменен."""
        ...

    def pending_count(self) -> int:
        """Количество ожидающих вызовов."""
        ...

    def start(self) -> None:
        """Запускает обработку таймеров."""
        ...

    def stop(self) -> None:
        """Останавливает обработку таймеров."""
        ...


# --- Интерфейс Раскрытия Повторений ---
class IRecurrenceExpander(Protocol):
    """Раскрытие правила повторения в конкретные даты внутри окна."""

    def expand(
        self, anchor: Any, rule: Any, window_start: Any, window_end: Any
    ) -> List[datetime.date]:
        """Даты вхождений серии в полуинтервале [window_start, window_end)."""
        ...

    def expand_event(
        self, event: "Event", window_start: Any, window_end: Any
    ) -> List["Occurrence"]:
        """То же, но в виде Occurrence для конкретного события."""
        ...


class SchedulerStats(TypedDict):
    armed_count: int
    fired_count: int
    cancelled_count: int
    enabled: bool


# --- Интерфейс Планировщика Напоминаний ---
class IReminderScheduler(Protocol):
    """Интерфейс для постановки, отмены и отложения напоминаний о событиях."""

    def schedule(
        self, event: "Event", occurrence_window: Optional["OccurrenceWindow"] = None
    ) -> List["ScheduledTrigger"]:
        """Ставит триггеры для всех вхождений события в окне. Всё или ничего."""
        ...

    def cancel(self, event_id: str) -> int:
        """Отменяет все активные триггеры события. Возвращает их количество."""
        ...

    def reschedule(
        self, event: "Event", occurrence_window: Optional["OccurrenceWindow"] = None
    ) -> List["ScheduledTrigger"]:
        """cancel + schedule для уже измененного события."""
        ...

    def snooze(
        self, trigger: "ScheduledTrigger | Reminder", delay_minutes: Optional[int] = None
    ) -> "ScheduledTrigger":
        """Ставит повторный триггер через delay_minutes от текущего момента."""
        ...

    def cancel_all(self) -> int:
        """Отменяет все активные триггеры."""
        ...

    def get_triggers(self, event_id: Optional[str] = None) -> List["ScheduledTrigger"]:
        """Активные триггеры (всех событий или одного), по времени срабатывания."""
        ...

    def get_stats(self) -> SchedulerStats:
        """Счетчики активных, сработавших и отмененных триггеров."""
        ...

    def start(self) -> None:
        """Запускает сервис таймеров."""
        ...

    def stop(self) -> None:
        """Останавливает сервис таймеров."""
        ...
