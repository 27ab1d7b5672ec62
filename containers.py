from dependency_injector import containers, providers
import logging
from typing import Optional

from config import load_app_config
from utils import setup_logging

# --- Интерфейсы ---
from services.interfaces import (
    ErrorSink,
    FireCallback,
    IClock,
    IRecurrenceExpander,
    IReminderScheduler,
    ITimerService,
)

# --- Реализации Сервисов ---
from services.config_service import ConfigServiceImpl
from services.clock_service import SystemClock
from services.timer_service import ScheduleTimerService
from services.reminder_service import (
    ReminderSchedulerImpl,
    log_fire_error,
    log_reminder,
)

# --- Движок Повторений ---
from recurring_events import RecurrenceExpander

logger = logging.getLogger(__name__)

# --- Контейнеры ---


class CoreContainer(containers.DeclarativeContainer):
    """Контейнер для базовых синглтонов и конфигурации."""

    config_dict = providers.Singleton(load_app_config)
    config_service = providers.Singleton(ConfigServiceImpl, config_data=config_dict)


class ServicesContainer(containers.DeclarativeContainer):
    """Контейнер для основных сервисов приложения."""

    core = providers.Container(CoreContainer)

    config_service = core.config_service  # Прокси для удобства

    clock: providers.Provider[IClock] = providers.Singleton(SystemClock)
    timer_service: providers.Provider[ITimerService] = providers.Singleton(
        ScheduleTimerService, config_service=config_service, clock=clock
    )
    expander: providers.Provider[IRecurrenceExpander] = providers.Singleton(
        RecurrenceExpander, config_service=config_service
    )

    # Колбэки хоста, переопределяются через get_container(on_fire=...)
    on_fire = providers.Object(log_reminder)
    error_sink = providers.Object(log_fire_error)

    reminder_scheduler: providers.Provider[IReminderScheduler] = providers.Singleton(
        ReminderSchedulerImpl,
        expander=expander,
        timer_service=timer_service,
        clock=clock,
        config_service=config_service,
        on_fire=on_fire,
        error_sink=error_sink,
    )


class ApplicationContainer(containers.DeclarativeContainer):
    """Главный контейнер приложения, собирающий все компоненты."""

    core = providers.Container(CoreContainer)
    services = providers.Container(ServicesContainer, core=core)


# --- Функция для доступа к контейнеру ---
_app_container_instance: Optional[ApplicationContainer] = None


def get_container(
    on_fire: Optional[FireCallback] = None,
    error_sink: Optional[ErrorSink] = None,
) -> ApplicationContainer:
    """
    Возвращает инициализированный инстанс главного DI контейнера.

    on_fire / error_sink, если переданы, заменяют колбэки по умолчанию
    (до первого обращения к reminder_scheduler).
    """
    global _app_container_instance
    if _app_container_instance is None:
        container = ApplicationContainer()
        setup_logging(container.core.config_service().get_log_level())
        logger.info("Initializing DI container...")
        _app_container_instance = container
    if on_fire is not None:
        _app_container_instance.services.on_fire.override(providers.Object(on_fire))
    if error_sink is not None:
        _app_container_instance.services.error_sink.override(
            providers.Object(error_sink)
        )
    return _app_container_instance


def reset_container() -> None:
    """Сбрасывает глобальный контейнер (используется в тестах)."""
    global _app_container_instance
    if _app_container_instance is not None:
        _app_container_instance.reset_singletons()
    _app_container_instance = None
